"""
Blob storage for uploaded documents, versions and signature images.
"""
import logging
import os
from typing import BinaryIO

logger = logging.getLogger(__name__)


class FileStorage:
    """Opaque byte store keyed by a storage key."""

    def put(self, data: bytes, key: str, content_type: str = "application/octet-stream") -> str:
        raise NotImplementedError

    def get(self, key: str) -> BinaryIO:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class LocalFileStorage(FileStorage):
    """Stores blobs as files below a root directory."""

    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    def _path_for(self, key: str) -> str:
        path = os.path.abspath(os.path.join(self.root, key))
        if os.path.commonpath([self.root, path]) != self.root:
            raise ValueError(f"Storage key escapes the storage root: {key}")
        return path

    def put(self, data: bytes, key: str, content_type: str = "application/octet-stream") -> str:
        path = self._path_for(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)
        logger.info("Stored %s (%d bytes, %s)", key, len(data), content_type)
        return key

    def get(self, key: str) -> BinaryIO:
        path = self._path_for(key)
        if not os.path.exists(path):
            raise FileNotFoundError(key)
        return open(path, "rb")

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        if os.path.exists(path):
            os.remove(path)
