from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(dotenv_path=ENV_PATH)

DEFAULT_DATABASE_URL = "sqlite:///./firesale.db"


def get_database_url() -> str:
    database_url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    if database_url and database_url.strip():
        return database_url.strip()
    raise RuntimeError("DATABASE_URL is required")


def get_sweep_interval_seconds() -> int:
    raw_interval = os.getenv("SWEEP_INTERVAL_SECONDS", "60").strip()
    try:
        interval = int(raw_interval)
    except ValueError as exc:
        raise RuntimeError("SWEEP_INTERVAL_SECONDS must be an integer") from exc
    if interval < 0:
        raise RuntimeError("SWEEP_INTERVAL_SECONDS must be 0 or greater")
    return interval


def get_transaction_max_attempts() -> int:
    raw_attempts = os.getenv("TRANSACTION_MAX_ATTEMPTS", "2").strip()
    try:
        attempts = int(raw_attempts)
    except ValueError as exc:
        raise RuntimeError("TRANSACTION_MAX_ATTEMPTS must be an integer") from exc
    if attempts <= 0:
        raise RuntimeError("TRANSACTION_MAX_ATTEMPTS must be greater than 0")
    return attempts


def get_transaction_retry_delay_seconds() -> float:
    raw_delay = os.getenv("TRANSACTION_RETRY_DELAY_SECONDS", "0.2").strip()
    try:
        delay = float(raw_delay)
    except ValueError as exc:
        raise RuntimeError("TRANSACTION_RETRY_DELAY_SECONDS must be a number") from exc
    if delay < 0:
        raise RuntimeError("TRANSACTION_RETRY_DELAY_SECONDS must be 0 or greater")
    return delay
