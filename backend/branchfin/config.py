# backend/branchfin/config.py
from __future__ import annotations
import os


# Keys that must resolve to a value once overrides are applied
REQUIRED_KEYS = ("SQLALCHEMY_DATABASE_URI", "SECRET_KEY")


class Config:
    # Store endpoint and secret have no defaults; create_app refuses to start without them
    SECRET_KEY = os.environ.get("SECRET_KEY")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # "Today" for write windows and dashboard rollups
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "UTC")

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    LOGIN_REDIRECT_PATH = "/login"


def missing_required_keys(config) -> list[str]:
    return [key for key in REQUIRED_KEYS if not config.get(key)]
