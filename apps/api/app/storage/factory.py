from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from app.core.config import settings
from app.storage.base import StorageAdapter
from app.storage.local import LocalStorageAdapter


def _local(root: str | Path | None) -> StorageAdapter:
    return LocalStorageAdapter(Path(root or settings.storage_root), settings.storage_public_base_url)


def _s3(root: str | Path | None) -> StorageAdapter:
    # boto3 is only imported when the bucket backend is selected
    from app.storage.s3 import S3StorageAdapter

    return S3StorageAdapter(
        bucket=settings.s3_bucket_name,
        region=settings.aws_region,
        cdn_url=settings.cdn_url,
    )


_BACKENDS = {"local": _local, "s3": _s3}


def create_storage(
    backend: str | None = None,
    root: str | Path | None = None,
) -> StorageAdapter:
    name = (backend or settings.storage_backend).strip().lower()
    builder = _BACKENDS.get(name)
    if builder is None:
        raise ValueError(f"unsupported storage backend: {name}")
    return builder(root)


@lru_cache(maxsize=1)
def get_storage() -> StorageAdapter:
    return create_storage()
