# survey_api/config.py
"""
Process-wide settings, read once from the environment at startup.

- BUCKET_NAME: target bucket (required)
- RECAPTCHA_PRIVATE_KEY: reCAPTCHA secret; empty disables verification
- RECAPTCHA_BYPASS: token value that skips verification
- ALLOWED_ORIGIN: origin allowed by the CORS headers
- STORAGE_BACKEND: 'local' or 's3'
- Loads .env from the working directory when available.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv

DEFAULT_ORIGIN = "https://screencovid.com"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class SettingsError(RuntimeError):
    """Raised when a required environment variable is missing."""


@dataclass(frozen=True)
class Settings:
    bucket_name: str
    recaptcha_private_key: str = ""
    recaptcha_bypass: str = ""
    allowed_origin: str = DEFAULT_ORIGIN
    storage_backend: str = "local"  # 'local' or 's3'
    aws_region: str = "ap-southeast-1"
    s3_endpoint_url: Optional[str] = None
    local_storage_dir: str = "data"
    log_level: str = "INFO"

    @property
    def verification_enabled(self) -> bool:
        return bool(self.recaptcha_private_key)

    def should_verify(self, token: str) -> bool:
        """Whether a submission carrying this token must go through reCAPTCHA."""
        if not self.verification_enabled:
            return False
        return self.recaptcha_bypass == "" or token != self.recaptcha_bypass


def load_settings() -> Settings:
    load_dotenv(find_dotenv(usecwd=True))

    bucket_name = os.getenv("BUCKET_NAME", "")
    if not bucket_name:
        raise SettingsError("BUCKET_NAME environment variable must be set.")

    return Settings(
        bucket_name=bucket_name,
        recaptcha_private_key=os.getenv("RECAPTCHA_PRIVATE_KEY", ""),
        recaptcha_bypass=os.getenv("RECAPTCHA_BYPASS", ""),
        allowed_origin=os.getenv("ALLOWED_ORIGIN", DEFAULT_ORIGIN),
        storage_backend=os.getenv("STORAGE_BACKEND", "local").strip().lower(),
        aws_region=os.getenv("AWS_REGION", "ap-southeast-1"),
        s3_endpoint_url=os.getenv("S3_ENDPOINT_URL") or None,
        local_storage_dir=os.getenv("LOCAL_STORAGE_DIR", "data"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
