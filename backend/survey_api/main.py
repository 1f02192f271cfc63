"""
FastAPI/ASGI application entrypoint.

Run with: uvicorn survey_api.main:app --host 0.0.0.0 --port 8080
"""
from contextlib import asynccontextmanager
from typing import Optional
import logging
import sys

from fastapi import FastAPI

from survey_api.config import Settings, SettingsError, configure_logging, load_settings
from survey_api.routers.submit import router as submit_router
from survey_api.services.recaptcha import RecaptchaVerifier
from survey_api.services.storage import StorageBackend, build_storage

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None,
               storage: Optional[StorageBackend] = None,
               verifier: Optional[RecaptchaVerifier] = None) -> FastAPI:
    """Build the app once per process; settings, storage and verifier are shared read-only."""
    if settings is None:
        try:
            settings = load_settings()
        except SettingsError as e:
            print(e, file=sys.stderr)
            raise SystemExit(1)

    configure_logging(settings.log_level)

    if storage is None:
        storage = build_storage(settings)
    if verifier is None and settings.verification_enabled:
        verifier = RecaptchaVerifier(settings.recaptcha_private_key)
    if verifier is None:
        logger.info("reCAPTCHA verification disabled (no private key)")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if verifier is not None:
            await verifier.aclose()

    app = FastAPI(title="Survey Intake", lifespan=lifespan)
    app.state.settings = settings
    app.state.storage = storage
    app.state.verifier = verifier

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(submit_router)
    return app


app = create_app()
