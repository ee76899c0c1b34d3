from __future__ import annotations

import logging
import os
import tempfile
import threading
from typing import Dict, Protocol

logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


class NotFoundError(StorageError):
    pass


class Storage(Protocol):
    def put(self, name: str, data: bytes) -> None: ...

    def get(self, name: str) -> bytes: ...


class MemStore:
    """Thread-safe name -> bytes map. Values are copied on the way in and out."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._files: Dict[str, bytes] = {}

    def put(self, name: str, data: bytes) -> None:
        content = bytes(data)
        with self._lock:
            self._files[name] = content

    def get(self, name: str) -> bytes:
        with self._lock:
            try:
                content = self._files[name]
            except KeyError:
                raise NotFoundError(f"file not found: {name}") from None
        return bytes(content)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._files

    def __len__(self) -> int:
        with self._lock:
            return len(self._files)


class DirStore:
    """Stores each file flat under ``root``; writes replace the old file atomically."""

    def __init__(self, root: str):
        self.root = os.path.abspath(root)
        self._lock = threading.Lock()
        os.makedirs(self.root, exist_ok=True)

    def _path(self, name: str) -> str:
        if not name or name in (".", "..") or os.sep in name or (os.altsep and os.altsep in name):
            raise StorageError(f"invalid file name: {name!r}")
        return os.path.join(self.root, name)

    def put(self, name: str, data: bytes) -> None:
        path = self._path(name)
        with self._lock:
            tmp = None
            try:
                fd, tmp = tempfile.mkstemp(dir=self.root, prefix=".tftpd-")
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp, path)
            except OSError as exc:
                if tmp is not None and os.path.exists(tmp):
                    os.unlink(tmp)
                raise StorageError(f"cannot write {name}: {exc}") from exc
        logger.debug("stored %d bytes at %s", len(data), path)

    def get(self, name: str) -> bytes:
        try:
            path = self._path(name)
        except StorageError as exc:
            raise NotFoundError(str(exc)) from None
        with self._lock:
            try:
                with open(path, "rb") as f:
                    return f.read()
            except (FileNotFoundError, IsADirectoryError):
                raise NotFoundError(f"file not found: {name}") from None
            except OSError as exc:
                raise StorageError(f"cannot read {name}: {exc}") from exc
