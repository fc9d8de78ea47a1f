from __future__ import annotations

import logging
from typing import Any

from storage.base import Storage, progress_percentage
from storage.memory import MemStorage
from storage.seed import seed_defaults
from storage.sql import SqlStorage


_log = logging.getLogger("storage")


def open_storage(cfg: Any) -> Storage:
    """Build the backend named by ``cfg.STORAGE_BACKEND`` and seed it when asked to."""
    backend = str(getattr(cfg, "STORAGE_BACKEND", "memory") or "memory").strip().lower()
    strict = bool(getattr(cfg, "STRICT_IDENTITY", False))

    storage: Storage
    if backend == "memory":
        storage = MemStorage(strict_identity=strict)
    elif backend == "sql":
        storage = SqlStorage(
            cfg.DATABASE_URL,
            strict_identity=strict,
            cache_ttl_seconds=int(getattr(cfg, "REFERENCE_CACHE_TTL_SECONDS", 60) or 60),
            echo=bool(getattr(cfg, "DB_ECHO", False)),
        )
    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    _log.info("storage opened backend=%s strict_identity=%s", storage.backend, strict)
    if getattr(cfg, "SEED_DEFAULTS", False):
        seed_defaults(storage, cfg)
    return storage


__all__ = ["MemStorage", "SqlStorage", "Storage", "open_storage", "progress_percentage", "seed_defaults"]
