import logging

from fastapi import FastAPI

from ebookbot.config import configure_logging, get_web_settings
from ebookbot.routes import router

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="eBook Shop Pages")

app.include_router(router)

if not get_web_settings().delivery_secret:
    logger.warning("DELIVERY_SECRET is not set, downloads are served without a token")
