# backend/bms_pos/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/bms_pos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location (postgresql://... in production)
        "sqlite:///bms_pos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # bcrypt cost factor for employee PINs
    PIN_HASH_ROUNDS = int(os.environ.get("PIN_HASH_ROUNDS", "12"))

    # Activity (audit) sink: bounded queue drained by one worker thread.
    # ACTIVITY_LOG_SYNC writes inline instead (tests, CLI).
    ACTIVITY_QUEUE_SIZE = int(os.environ.get("ACTIVITY_QUEUE_SIZE", "1000"))
    ACTIVITY_LOG_SYNC = _env_bool("ACTIVITY_LOG_SYNC", False)

    # Name of the registered actor resolver (see services/actor_service.py)
    ACTOR_RESOLVER = os.environ.get("ACTOR_RESOLVER", "headers")

    CORS_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000",
        ).split(",")
        if origin.strip()
    }
