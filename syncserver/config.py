"""Configuration settings for the sync server."""

import os

from common.constants import DEFAULT_CATALOG_PATH, DEFAULT_SERVER_PORT


def _split_directories(value: str) -> tuple:
    return tuple(part.strip() for part in value.split(",") if part.strip())


SYNC_SERVER_HOST = os.environ.get("SYNC_SERVER_HOST", "0.0.0.0")

SYNC_SERVER_PORT = int(os.environ.get("SYNC_SERVER_PORT", str(DEFAULT_SERVER_PORT)))

SYNC_CATALOG_PATH = os.environ.get("SYNC_CATALOG_PATH", DEFAULT_CATALOG_PATH)

SYNC_MANAGED_DIRECTORIES = _split_directories(os.environ.get("SYNC_MANAGED_DIRECTORIES", "mods,config"))

SYNC_MESSAGE_PREFIX = os.environ.get("SYNC_MESSAGE_PREFIX", "")

SYNC_REBUILD_CATALOG = os.environ.get("SYNC_REBUILD_CATALOG", "false").lower() in ("1", "true", "yes")
