import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Force-load .env (Windows-safe, reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH)


@dataclass(frozen=True)
class Settings:
    discord_token: str
    stripe_secret_key: str
    database_url: str
    db_timeout: float = 10.0
    stripe_timeout: float = 20.0
    command_timeout: float = 30.0
    public_base_url: str = "http://localhost:8000"
    currency: str = "usd"
    delivery_secret: Optional[str] = None
    owner_id: Optional[int] = None
    log_level: str = "INFO"

    @property
    def success_url(self) -> str:
        return f"{self.public_base_url}/success?session_id={{CHECKOUT_SESSION_ID}}"

    @property
    def cancel_url(self) -> str:
        return f"{self.public_base_url}/cancel"


def build_database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url

    host = os.getenv("DB_HOST")
    name = os.getenv("DB_NAME")
    if not host or not name:
        raise RuntimeError("DATABASE_URL or DB_HOST/DB_NAME is not set. Check your .env file.")

    user = os.getenv("DB_USER", "")
    password = os.getenv("DB_PASS", "")
    port = os.getenv("DB_PORT", "3306")
    return f"mysql+mysqlconnector://{user}:{password}@{host}:{port}/{name}"


def _optional_int(name: str) -> Optional[int]:
    value = (os.getenv(name) or "").strip()
    return int(value) if value else None


def load_settings(require_secrets: bool = True) -> Settings:
    discord_token = os.getenv("DISCORD_TOKEN", "")
    stripe_secret_key = os.getenv("STRIPE_SECRET_KEY", "")
    if require_secrets:
        if not discord_token:
            raise RuntimeError("DISCORD_TOKEN is not set. Check your .env file.")
        if not stripe_secret_key:
            raise RuntimeError("STRIPE_SECRET_KEY is not set. Check your .env file.")

    return Settings(
        discord_token=discord_token,
        stripe_secret_key=stripe_secret_key,
        database_url=build_database_url(),
        db_timeout=float(os.getenv("DB_TIMEOUT", "10")),
        stripe_timeout=float(os.getenv("STRIPE_TIMEOUT", "20")),
        command_timeout=float(os.getenv("COMMAND_TIMEOUT", "30")),
        public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/"),
        currency=os.getenv("CURRENCY", "usd").lower(),
        delivery_secret=os.getenv("DELIVERY_SECRET") or None,
        owner_id=_optional_int("OWNER_ID"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


@dataclass(frozen=True)
class WebSettings:
    public_base_url: str = "http://localhost:8000"
    delivery_secret: Optional[str] = None
    files_dir: Path = BASE_DIR / "files"


@lru_cache
def get_settings() -> Settings:
    return load_settings()


@lru_cache
def get_web_settings() -> WebSettings:
    return WebSettings(
        public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/"),
        delivery_secret=os.getenv("DELIVERY_SECRET") or None,
        files_dir=Path(os.getenv("FILES_DIR") or BASE_DIR / "files"),
    )


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(name)s %(levelname)s: %(message)s'
    )
