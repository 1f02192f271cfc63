"""
Pytest fixtures for the survey intake service.

BUCKET_NAME must be set before survey_api.main is imported, since the module
builds its app at import time.
"""

from __future__ import annotations

import os

os.environ.setdefault("BUCKET_NAME", "test-bucket")
os.environ.setdefault("STORAGE_BACKEND", "local")

import pytest

from survey_api.config import Settings
from survey_api.services.recaptcha import RecaptchaError, RecaptchaResponse
from survey_api.services.storage import StorageBackend, StorageError


class FakeStorage(StorageBackend):
    """In-memory backend that records every write."""

    def __init__(self, error: Exception | None = None):
        self.objects: dict[str, bytes] = {}
        self.writes: list[str] = []
        self.error = error

    def write_file(self, path: str, content: bytes) -> str:
        self.writes.append(path)
        if self.error is not None:
            raise self.error
        self.objects[path] = content
        return path


class FakeVerifier:
    """Stands in for RecaptchaVerifier; remembers its calls."""

    def __init__(self, success: bool = True, error: str | None = None):
        self.success = success
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def verify(self, token: str, remote_ip: str) -> RecaptchaResponse:
        self.calls.append((token, remote_ip))
        if self.error is not None:
            raise RecaptchaError(self.error)
        return RecaptchaResponse(success=self.success, score=0.9 if self.success else 0.1)

    async def aclose(self) -> None:
        pass


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def make_client(storage):
    """Factory: TestClient over a fresh app with the given settings/verifier."""
    from fastapi.testclient import TestClient

    from survey_api.main import create_app

    def _make(settings: Settings | None = None, verifier=None, storage_backend=None):
        settings = settings or Settings(bucket_name="test-bucket")
        app = create_app(settings=settings, storage=storage_backend or storage, verifier=verifier)
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client):
    """TestClient with verification disabled and in-memory storage."""
    return make_client()


@pytest.fixture
def failing_storage():
    return FakeStorage(error=StorageError("connection reset by peer"))
