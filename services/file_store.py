from __future__ import annotations

import logging
import os
import time

from utils import ApiError, sanitize_filename


_log = logging.getLogger("documents.files")


class LocalFileStore:
    """Binary document content on local disk; the database only keeps the filename."""

    def __init__(self, upload_dir: str):
        self.upload_dir = str(upload_dir or "./uploads")
        os.makedirs(self.upload_dir, exist_ok=True)

    def path(self, filename: str) -> str:
        name = os.path.basename(str(filename or ""))
        if not name or name in {".", ".."}:
            raise ApiError("BAD_REQUEST", "Invalid stored filename")
        return os.path.join(self.upload_dir, name)

    def save(self, original_name: str, data: bytes) -> str:
        millis = int(time.time() * 1000)
        stored = f"{millis}-{os.urandom(4).hex()}-{sanitize_filename(original_name or 'doc')}"
        with open(self.path(stored), "wb") as f:
            f.write(data)
        return stored

    def exists(self, filename: str) -> bool:
        return os.path.isfile(self.path(filename))

    def read(self, filename: str) -> bytes:
        p = self.path(filename)
        if not os.path.isfile(p):
            raise ApiError("NOT_FOUND", "File not found")
        with open(p, "rb") as f:
            return f.read()

    def delete(self, filename: str) -> bool:
        p = self.path(filename)
        try:
            os.remove(p)
        except FileNotFoundError:
            _log.warning("delete skipped, file already gone: %s", filename)
            return False
        return True
