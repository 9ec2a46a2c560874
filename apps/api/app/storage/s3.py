from __future__ import annotations

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.storage.base import StorageAdapter, StorageError


class S3StorageAdapter(StorageAdapter):
    def __init__(
        self,
        bucket: str,
        region: str,
        cdn_url: str | None = None,
        client=None,
    ) -> None:
        self._bucket = bucket
        self._region = region
        self._cdn_url = cdn_url.rstrip("/") if cdn_url else None
        self._client = client or boto3.client("s3", region_name=region)

    def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"failed to upload {key!r}") from exc
        return self.public_url(key)

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"failed to delete {key!r}") from exc

    def exists(self, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in {"404", "NoSuchKey", "NotFound"}:
                return False
            raise StorageError(f"failed to stat {key!r}") from exc
        return True

    def public_url(self, key: str) -> str:
        if self._cdn_url:
            return f"{self._cdn_url}/{key}"
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"
