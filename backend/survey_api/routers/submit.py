# survey_api/routers/submit.py
from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_validator
from starlette.requests import ClientDisconnect
from datetime import datetime, timezone
from typing import Dict, Literal, Optional
import logging

from survey_api.services import rawjson
from survey_api.services.recaptcha import RecaptchaError
from survey_api.services.storage import STORAGE_TIMEOUT, StorageError, write_with_timeout

router = APIRouter(prefix="/api/survey", tags=["survey"])
logger = logging.getLogger(__name__)

LIMIT = 32768  # max bytes read from a POST body; the rest is dropped
KEY_TIME_FORMAT = "%Y/%m/%d/%H/%M/"


# ---------- Models ----------

class Submission(BaseModel):
    captcha_token: str = ""
    id: str = ""
    answers: str = "null"  # raw JSON text, stored as-is and never inspected

    @field_validator("captcha_token", "id", mode="before")
    @classmethod
    def null_is_empty(cls, value):
        return "" if value is None else value


class ResponseEnvelope(BaseModel):
    status: Literal["ok", "error"]
    message: str


# ---------- Helpers ----------

def _preflight_headers(origin: str) -> Dict[str, str]:
    return {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Headers": "Authorization",
        "Access-Control-Allow-Methods": "POST",
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Max-Age": "3600",
    }


def _cors_headers(origin: str) -> Dict[str, str]:
    return {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Origin": origin,
    }


def _reply(status_code: int, status: str, message: str, headers: Dict[str, str]) -> JSONResponse:
    body = ResponseEnvelope(status=status, message=message)
    return JSONResponse(body.model_dump(), status_code=status_code, headers=headers)


async def read_limited(request: Request, limit: int = LIMIT) -> bytes:
    """Read at most `limit` bytes of the request body, silently dropping the rest."""
    data = bytearray()
    async for chunk in request.stream():
        data.extend(chunk[: limit - len(data)])
        if len(data) >= limit:
            break
    return bytes(data)


def storage_key(identifier: str, now: Optional[datetime] = None) -> str:
    """<year>/<month>/<day>/<hour>/<minute>/<identifier>, in UTC."""
    now = now or datetime.now(timezone.utc)
    return now.strftime(KEY_TIME_FORMAT) + identifier


def decode_submission(data: bytes) -> Submission:
    """
    Decode a request body. Unknown members are ignored, missing or null ones
    take their zero value. Raises ValueError when the body is not a JSON object.
    """
    fields = rawjson.object_fields(data.decode("utf-8"))
    values = {name: fields[name][0] for name in ("captcha_token", "id") if name in fields}
    if "answers" in fields:
        values["answers"] = rawjson.compact(fields["answers"][1])
    return Submission(**values)


# ---------- Routes ----------

@router.api_route("/submit", methods=["OPTIONS", "POST"])
async def submit(request: Request):
    """
    Accept one survey submission:
    checks reCAPTCHA when configured, then writes the answers to
    <bucket>/<YYYY/MM/DD/HH/mm>/<id>.
    """
    state = request.app.state
    settings = state.settings

    if request.method == "OPTIONS":
        return Response(status_code=204, headers=_preflight_headers(settings.allowed_origin))

    headers = _cors_headers(settings.allowed_origin)

    try:
        data = await read_limited(request)
    except ClientDisconnect as e:
        logger.warning("could not read request body: %s", e)
        return _reply(400, "error", "must supply a payload", headers)

    try:
        submission = decode_submission(data)
    except (ValueError, RecursionError) as e:
        logger.warning("error parsing input: %s", e)
        return _reply(400, "error", "error parsing input", headers)

    # Response sent once the answers are stored; a failed check downgrades it
    # but does not stop the write.
    reply = _reply(200, "ok", "thank you", headers)

    if settings.should_verify(submission.captcha_token):
        remote_ip = request.headers.get("X-Forwarded-For", "")
        try:
            result = await state.verifier.verify(submission.captcha_token, remote_ip)
        except RecaptchaError as e:
            logger.error("recaptcha verification failed: %s", e)
            return _reply(500, "error", str(e), headers)
        if not result.success:
            logger.warning("recaptcha rejected id=%s score=%s errors=%s",
                           submission.id, result.score, result.error_codes)
            reply = _reply(400, "error", "recaptcha thinks your are a bot", headers)

    key = storage_key(submission.id)
    try:
        await write_with_timeout(state.storage, key, submission.answers.encode("utf-8"),
                                 timeout=STORAGE_TIMEOUT)
    except StorageError as e:
        logger.error("failed to upload %s: %s", key, e)
        return _reply(500, "error", "failed to upload data " + str(e), headers)

    return reply
