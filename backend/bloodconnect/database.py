from __future__ import annotations

from pathlib import Path
from typing import List

import motor.motor_asyncio
from loguru import logger
from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConfigurationError


BASE_DIR = Path(__file__).resolve().parents[1]
ENV_FILES = [BASE_DIR / ".env.local", BASE_DIR / ".env"]


class Settings(BaseSettings):
    mongodb_url: str = "mongodb://localhost:27017/bloodconnect"
    jwt_secret: str = "supersecret"
    jwt_algorithm: str = "HS256"
    jwt_expires_min: int = 60
    bcrypt_rounds: int = 12
    mongo_server_timeout_ms: int = 2000
    mongo_connect_timeout_ms: int = 2000
    mongo_socket_timeout_ms: int = 2000
    twilio_sid: str | None = None
    twilio_token: str | None = None
    twilio_phone: str | None = None
    cors_origins: List[str] = ["*"]
    sms_country_code: str = "91"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=[str(path) for path in ENV_FILES],
        case_sensitive=False,
        env_prefix="",
    )


def get_settings() -> Settings:
    return Settings()


settings = get_settings()
FALLBACK_MONGO_URL = "mongodb://localhost:27017/bloodconnect"
DEFAULT_DATABASE = "bloodconnect"


def _create_client(uri: str) -> motor.motor_asyncio.AsyncIOMotorClient:
    connect_kwargs = {
        "serverSelectionTimeoutMS": settings.mongo_server_timeout_ms,
        "connectTimeoutMS": settings.mongo_connect_timeout_ms,
        "socketTimeoutMS": settings.mongo_socket_timeout_ms,
        "tz_aware": True,
    }
    try:
        return motor.motor_asyncio.AsyncIOMotorClient(uri, **connect_kwargs)
    except ConfigurationError as exc:
        if uri == FALLBACK_MONGO_URL:
            raise
        logger.warning(
            "MongoDB DNS resolution failed for {} ({}). Falling back to local Mongo at {}.",
            uri,
            exc,
            FALLBACK_MONGO_URL,
        )
        return motor.motor_asyncio.AsyncIOMotorClient(FALLBACK_MONGO_URL, **connect_kwargs)


client = _create_client(settings.mongodb_url)
db = client.get_default_database(DEFAULT_DATABASE)


def get_database() -> motor.motor_asyncio.AsyncIOMotorDatabase:
    return db


async def ensure_indexes(database: motor.motor_asyncio.AsyncIOMotorDatabase) -> None:
    """Create the indexes the application relies on.

    The unique index on ``accounts.email`` is what keeps a single email from
    being registered as both a donor and a hospital.
    """
    await database.get_collection("accounts").create_index([("email", ASCENDING)], unique=True)
    await database.get_collection("donor_profiles").create_index(
        [("blood_group", ASCENDING), ("eligible", ASCENDING), ("available", ASCENDING)]
    )
    await database.get_collection("requests").create_index(
        [("hospital_id", ASCENDING), ("status", ASCENDING), ("created_at", DESCENDING)]
    )
    await database.get_collection("requests").create_index(
        [("donor_id", ASCENDING), ("status", ASCENDING)]
    )
    await database.get_collection("notifications").create_index(
        [("recipient_id", ASCENDING), ("created_at", DESCENDING)]
    )


class MongoBaseModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)
