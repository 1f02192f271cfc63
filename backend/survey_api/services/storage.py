# survey_api/services/storage.py
"""
Object storage for survey submissions, with local and S3 backends.
Set STORAGE_BACKEND env var to 'local' or 's3' to switch.

The S3 backend also talks to any S3-compatible service (e.g. Google Cloud
Storage through its interoperability endpoint) via S3_ENDPOINT_URL.
"""
import asyncio
import functools
import io
import logging
from pathlib import Path
from typing import Optional

from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from survey_api.config import Settings

logger = logging.getLogger(__name__)

STORAGE_TIMEOUT = 50.0  # seconds, per write


class StorageError(Exception):
    """A write could not be committed."""


class StorageTimeout(StorageError):
    """A write did not finish within the timeout."""


class StorageBackend:
    """Abstract storage interface"""

    def write_file(self, path: str, content: bytes) -> str:
        """Write file, return its location"""
        raise NotImplementedError


class LocalStorage(StorageBackend):
    """Local filesystem storage, one directory per bucket"""

    def __init__(self, base_dir: str = "data", bucket: str = ""):
        self.base_dir = Path(base_dir) / bucket

    def _full_path(self, path: str) -> Path:
        """Map a key to a file under base_dir; keys may not climb out or name a directory."""
        if any(part in ("", ".", "..") for part in path.replace("\\", "/").split("/")):
            raise StorageError(f"invalid object key {path!r}")
        root = self.base_dir.resolve()
        full_path = (root / path).resolve()
        if root not in full_path.parents:
            raise StorageError(f"object key {path!r} is outside the storage root")
        return full_path

    def write_file(self, path: str, content: bytes) -> str:
        try:
            full_path = self._full_path(path)
            full_path.parent.mkdir(parents=True, exist_ok=True)
            with open(full_path, 'wb') as f:
                f.write(content)
        except (OSError, ValueError) as e:
            raise StorageError(str(e)) from e
        return str(full_path)


class S3Storage(StorageBackend):
    """S3 (or S3-compatible) storage backend"""

    def __init__(self, bucket: str, region: str = "ap-southeast-1",
                 endpoint_url: Optional[str] = None,
                 timeout: float = STORAGE_TIMEOUT):
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self.timeout = timeout
        self._client = None

    @property
    def client(self):
        """Lazy load boto3 client"""
        if self._client is None:
            import boto3
            self._client = boto3.client(
                's3',
                region_name=self.region,
                endpoint_url=self.endpoint_url,
                config=Config(
                    connect_timeout=self.timeout,
                    read_timeout=self.timeout,
                    retries={"total_max_attempts": 1},
                ),
            )
        return self._client

    def _s3_key(self, path: str) -> str:
        """Convert path to S3 key"""
        return path.replace('\\', '/')

    def write_file(self, path: str, content: bytes) -> str:
        key = self._s3_key(path)
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=io.BytesIO(content),
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(str(e)) from e
        return f"s3://{self.bucket}/{key}"


def build_storage(settings: Settings) -> StorageBackend:
    """Build the storage backend selected by the settings."""
    if settings.storage_backend == "s3":
        logger.info("Storage: S3 bucket=%s", settings.bucket_name)
        return S3Storage(
            bucket=settings.bucket_name,
            region=settings.aws_region,
            endpoint_url=settings.s3_endpoint_url,
        )
    logger.info("Storage: local filesystem dir=%s bucket=%s",
                settings.local_storage_dir, settings.bucket_name)
    return LocalStorage(base_dir=settings.local_storage_dir, bucket=settings.bucket_name)


async def write_with_timeout(storage: StorageBackend, path: str, content: bytes,
                             timeout: float = STORAGE_TIMEOUT) -> str:
    """
    Run a blocking write in the default executor, giving up after `timeout`
    seconds. The worker thread is not interrupted; only the caller stops waiting.
    """
    loop = asyncio.get_running_loop()
    write = functools.partial(storage.write_file, path, content)
    try:
        return await asyncio.wait_for(loop.run_in_executor(None, write), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise StorageTimeout(f"write timed out after {timeout:g}s") from e
