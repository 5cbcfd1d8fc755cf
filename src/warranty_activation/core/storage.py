from __future__ import annotations

import os
import time
from dataclasses import dataclass
from pathlib import Path

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from warranty_activation.core.config import settings
from warranty_activation.core.logging import get_logger, log_event, log_exception, monotonic_ms

logger = get_logger(__name__)

_MISSING_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


class StorageError(RuntimeError):
    pass


@dataclass(frozen=True)
class StoredObject:
    key: str
    byte_size: int


class DocumentStorage:
    """Flat store of uploaded invoice documents addressed by key.

    Keys are plain filenames; claims reference them through
    ``Warranty.invoice_location``. Backends implement the underscored hooks;
    ``put`` wraps them with timing and ``storage.put.*`` events.
    """

    backend = "abstract"

    def put(self, *, key: str, body: bytes) -> StoredObject:
        start = time.monotonic()
        try:
            stored_key = self._write(key, body)
        except Exception:
            log_exception(
                logger,
                "storage.put.failure",
                backend=self.backend,
                storage_key=key,
                byte_size=len(body),
            )
            raise
        log_event(
            logger,
            "storage.put.success",
            backend=self.backend,
            storage_key=stored_key,
            byte_size=len(body),
            duration_ms=monotonic_ms(start),
        )
        return StoredObject(key=stored_key, byte_size=len(body))

    def get(self, *, key: str) -> bytes:  # pragma: no cover
        raise NotImplementedError

    def exists(self, *, key: str) -> bool:  # pragma: no cover
        raise NotImplementedError

    def list_all(self) -> list[str]:  # pragma: no cover
        raise NotImplementedError

    def _write(self, key: str, body: bytes) -> str:  # pragma: no cover
        raise NotImplementedError


class LocalDocumentStorage(DocumentStorage):
    backend = "local"

    def __init__(self, root: Path):
        self._root = root
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        # Keys never carry directories; strip any that slipped through.
        return self._root / Path(key).name

    def _write(self, key: str, body: bytes) -> str:
        path = self._path(key)
        try:
            path.write_bytes(body)
        except OSError as e:
            raise StorageError(f"Cannot write object: {key}") from e
        return path.name

    def get(self, *, key: str) -> bytes:
        path = self._path(key)
        if not path.is_file():
            raise StorageError(f"Object not found: {key}")
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"Object not readable: {key}") from e

    def exists(self, *, key: str) -> bool:
        return self._path(key).is_file()

    def list_all(self) -> list[str]:
        try:
            return sorted(entry.name for entry in self._root.iterdir() if entry.is_file())
        except OSError as e:
            raise StorageError(f"Cannot list storage root: {self._root}") from e


def _error_code(error: ClientError) -> str | None:
    return (error.response.get("Error") or {}).get("Code")


class S3DocumentStorage(DocumentStorage):
    """S3-compatible bucket backend (AWS, R2, MinIO).

    Transient failures are retried inside botocore; anything that still fails
    surfaces as StorageError.
    """

    backend = "s3"

    def __init__(self, client=None, bucket: str | None = None) -> None:
        self._bucket = bucket or settings.s3_bucket
        self._client = client or self._make_client()

    @staticmethod
    def _make_client():
        region = settings.s3_region
        if not region or region.lower() == "auto":
            region = "us-east-1"
        session = boto3.session.Session(
            aws_access_key_id=settings.s3_access_key_id,
            aws_secret_access_key=settings.s3_secret_access_key,
            region_name=region,
        )
        return session.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url or None,
            config=Config(
                retries={"max_attempts": 4, "mode": "standard"},
                connect_timeout=10,
                read_timeout=30,
            ),
        )

    def _write(self, key: str, body: bytes) -> str:
        try:
            self._client.put_object(Bucket=self._bucket, Key=key, Body=body)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Upload failed: {key}") from e
        return key

    def get(self, *, key: str) -> bytes:
        try:
            return self._client.get_object(Bucket=self._bucket, Key=key)["Body"].read()
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                raise StorageError(f"Object not found: {key}") from e
            raise StorageError(f"Object not readable: {key}") from e
        except BotoCoreError as e:
            raise StorageError(f"Object not readable: {key}") from e

    def exists(self, *, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in _MISSING_CODES:
                return False
            raise StorageError(f"Cannot check object: {key}") from e
        except BotoCoreError as e:
            raise StorageError(f"Cannot check object: {key}") from e
        return True

    def list_all(self) -> list[str]:
        try:
            pages = self._client.get_paginator("list_objects_v2").paginate(Bucket=self._bucket)
            return sorted(obj["Key"] for page in pages for obj in page.get("Contents") or [])
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Cannot list bucket: {self._bucket}") from e


_storage: DocumentStorage | None = None


def get_storage() -> DocumentStorage:
    """Process-wide storage backend chosen by ``STORAGE_BACKEND``."""
    global _storage  # noqa: PLW0603
    if _storage is None:
        if settings.storage_backend == "s3":
            _storage = S3DocumentStorage()
        else:
            root = settings.local_storage_path
            if not root.is_absolute():
                root = Path(os.getcwd()) / root
            _storage = LocalDocumentStorage(root)
    return _storage
