# backend/clubdesk/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/clubdesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///clubdesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Booking window rules
    BOOKING_MIN_MINUTES = int(os.environ.get("BOOKING_MIN_MINUTES", "15"))
    BOOKING_MAX_HOURS = int(os.environ.get("BOOKING_MAX_HOURS", "12"))
    BOOKING_CLOCK_SKEW_MINUTES = int(os.environ.get("BOOKING_CLOCK_SKEW_MINUTES", "5"))

    # List endpoints
    DEFAULT_PAGE_SIZE = 10
    MAX_PAGE_SIZE = 100
