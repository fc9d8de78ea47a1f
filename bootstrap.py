from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from config import Config
from services.file_store import LocalFileStore
from storage import Storage, open_storage


_log = logging.getLogger("bootstrap")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@dataclass
class Portal:
    """Everything a request handler needs, built once per process (or per test)."""

    cfg: Config
    storage: Storage
    files: LocalFileStore

    def close(self) -> None:
        self.storage.close()

    def __enter__(self) -> "Portal":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def create_portal(cfg: Optional[Config] = None) -> Portal:
    cfg = cfg or Config()
    cfg.validate()
    configure_logging(cfg.LOG_LEVEL)

    storage = open_storage(cfg)
    files = LocalFileStore(cfg.UPLOAD_DIR)
    _log.info("portal ready env=%s backend=%s uploads=%s", cfg.APP_ENV, storage.backend, files.upload_dir)
    return Portal(cfg=cfg, storage=storage, files=files)
