from app.storage.base import StorageAdapter, StorageError
from app.storage.factory import create_storage, get_storage

__all__ = ["StorageAdapter", "StorageError", "create_storage", "get_storage"]
