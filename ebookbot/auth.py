from typing import Optional

from fastapi import Depends, HTTPException, Query

from ebookbot.config import WebSettings, get_web_settings
from ebookbot.delivery import DeliverySigner


def get_signer(settings: WebSettings = Depends(get_web_settings)) -> DeliverySigner:
    return DeliverySigner(settings.public_base_url, settings.delivery_secret)


def verify_download(
    filename: str,
    token: Optional[str] = Query(None),
    signer: DeliverySigner = Depends(get_signer),
):
    if not signer.verify(filename, token):
        raise HTTPException(status_code=403, detail="Invalid or missing token")
