# backend/laundry/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/laundry.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///laundry.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Concurrency retry policy for financial writes
    RETRY_ATTEMPTS = int(os.environ.get("RETRY_ATTEMPTS", "5"))
    RETRY_BACKOFF_SECONDS = float(os.environ.get("RETRY_BACKOFF_SECONDS", "0.05"))

    # Route distance for delivery orders. Without a key, straight-line
    # distance at an assumed 50 km/h is used.
    OPENROUTESERVICE_API_KEY = os.environ.get("OPENROUTESERVICE_API_KEY")
    ROUTE_SERVICE_TIMEOUT = float(os.environ.get("ROUTE_SERVICE_TIMEOUT", "5"))

    # channel name -> callable(recipient, message); None uses the logging senders
    NOTIFICATION_SENDERS = None
