from __future__ import annotations

from abc import ABC, abstractmethod


class StorageError(Exception):
    """Object storage could not complete the request."""


class StorageAdapter(ABC):
    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store bytes under key and return the public URL."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete key if it exists."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Return whether key exists."""

    @abstractmethod
    def public_url(self, key: str) -> str:
        """Return the public URL a client can fetch key from."""
