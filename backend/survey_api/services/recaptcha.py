# survey_api/services/recaptcha.py
"""
Client for the reCAPTCHA siteverify API.

verify() only fails on transport or decoding problems. A token that Google
rejects comes back as a normal RecaptchaResponse with success=False; callers
decide what to do with it.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"


class RecaptchaError(Exception):
    pass


class RecaptchaResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, strict=True)

    success: bool = False
    score: float = 0.0
    action: str = ""
    challenge_ts: Optional[datetime] = None
    hostname: str = ""
    error_codes: List[str] = Field(default_factory=list, alias="error-codes")


class RecaptchaVerifier:
    def __init__(self, secret: str, url: str = VERIFY_URL,
                 client: Optional[httpx.AsyncClient] = None):
        self.secret = secret
        self.url = url
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def verify(self, token: str, remote_ip: str) -> RecaptchaResponse:
        form = {"secret": self.secret, "remoteip": remote_ip, "response": token}
        try:
            async with self.client.stream("POST", self.url, data=form) as resp:
                try:
                    body = await resp.aread()
                except httpx.HTTPError as e:
                    raise RecaptchaError(f"Read error: could not read body {e}") from e
        except RecaptchaError:
            raise
        except httpx.HTTPError as e:
            raise RecaptchaError(f"Post to recaptcha error {e}") from e

        try:
            return RecaptchaResponse.model_validate_json(body)
        except ValidationError as e:
            raise RecaptchaError(f"Read error: got invalid JSON {e}") from e

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
