"""Runtime configuration read from the environment (and an optional .env)."""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")
REVIEW_MODEL = os.getenv("REVIEW_MODEL", "gemini-2.5-flash")
REVIEW_TIMEOUT = float(os.getenv("REVIEW_TIMEOUT", "120"))

# File size limit: 10MB
MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE", str(10 * 1024 * 1024)))
PAGE_FETCH_CONCURRENCY = int(os.getenv("PAGE_FETCH_CONCURRENCY", "4"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
