# backend/pmsrecon/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pms.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Readings may be corrected until the cutoff hour (local station time)
    # of the day after the reading date.
    PMS_STATION_TIMEZONE = os.environ.get("PMS_STATION_TIMEZONE", "UTC")
    PMS_MODIFICATION_CUTOFF_HOUR = int(os.environ.get("PMS_MODIFICATION_CUTOFF_HOUR", "6"))

    # Deviation baseline: trailing days of non-estimated volumes.
    PMS_DEVIATION_WINDOW_DAYS = int(os.environ.get("PMS_DEVIATION_WINDOW_DAYS", "7"))
    PMS_DEVIATION_THRESHOLD_PERCENT = os.environ.get("PMS_DEVIATION_THRESHOLD_PERCENT", "20")

    # Estimation: trailing days used to reconstruct a missing reading, and
    # the volume assumed when a pump has no history at all.
    PMS_ESTIMATION_WINDOW_DAYS = int(os.environ.get("PMS_ESTIMATION_WINDOW_DAYS", "30"))
    PMS_DEFAULT_DAILY_VOLUME = os.environ.get("PMS_DEFAULT_DAILY_VOLUME", "120.0")

    # Header set by the upstream identity gateway.
    PMS_IDENTITY_HEADER = os.environ.get("PMS_IDENTITY_HEADER", "X-User-Id")
