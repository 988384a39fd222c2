from __future__ import annotations

import logging

from formguard.config import Settings, ensure_dirs
from formguard.protocols import Storage
from formguard.repo_json import JSONStorage
from formguard.repo_sqlite import SQLiteStorage

logger = logging.getLogger(__name__)


def init_storage(settings: Settings) -> Storage:
    ensure_dirs(settings)
    if settings.storage_backend == "json":
        logger.info("Using JSON storage at %s", settings.json_path)
        return JSONStorage(settings.json_path)
    if settings.storage_backend != "sqlite":
        raise ValueError(f"Unknown storage backend: {settings.storage_backend!r}")
    logger.info("Using SQLite storage at %s", settings.sqlite_path)
    return SQLiteStorage(settings.sqlite_path)
