from __future__ import annotations

from pathlib import Path, PurePosixPath

from app.storage.base import StorageAdapter, StorageError


class LocalStorageAdapter(StorageAdapter):
    def __init__(self, root: Path, public_base_url: str) -> None:
        self._root = root.resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._public_base_url = public_base_url.rstrip("/")

    def _normalize_key(self, key: str) -> str:
        normalized = key.strip().lstrip("/")
        path_key = PurePosixPath(normalized)
        if not normalized or path_key.is_absolute() or ".." in path_key.parts:
            raise ValueError(f"invalid storage key: {key!r}")
        return str(path_key)

    def _path_for_key(self, key: str) -> Path:
        normalized = self._normalize_key(key)
        return self._root.joinpath(*PurePosixPath(normalized).parts)

    def put(self, key: str, data: bytes, content_type: str) -> str:
        path = self._path_for_key(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"failed to write {key!r}") from exc
        return self.public_url(key)

    def delete(self, key: str) -> None:
        path = self._path_for_key(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"failed to delete {key!r}") from exc

    def exists(self, key: str) -> bool:
        return self._path_for_key(key).exists()

    def public_url(self, key: str) -> str:
        return f"{self._public_base_url}/{self._normalize_key(key)}"
