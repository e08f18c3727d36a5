"""Entry point for the sync server.
Loads (or rebuilds) the file catalog, then serves peers until interrupted.
"""

import signal
import sys
from pathlib import Path
from typing import Tuple

from common.exceptions import CatalogError
from common.logging_config import setup_logging
from common.types import Vocabulary
from syncserver import config
from syncserver.catalog import FileCatalog
from syncserver.server import SyncServer

logger = setup_logging('syncserver')


def load_catalog() -> Tuple[FileCatalog, Tuple[str, ...]]:
    """
    Load the catalog file, rebuilding it from the managed directories when it
    is missing, unreadable or a rebuild is requested.

    Returns:
        (catalog, managed directories)
    """
    catalog_path = Path(config.SYNC_CATALOG_PATH)

    if catalog_path.exists() and not config.SYNC_REBUILD_CATALOG:
        try:
            catalog, directories = FileCatalog.load(catalog_path)
            if not directories:
                directories = config.SYNC_MANAGED_DIRECTORIES
            return catalog, directories
        except CatalogError as e:
            logger.error(f"Failed to load catalog: {e}")
            logger.info("Attempting to rebuild catalog from managed directories...")
    else:
        logger.info(f"Building catalog from managed directories: {', '.join(config.SYNC_MANAGED_DIRECTORIES)}")

    directories = config.SYNC_MANAGED_DIRECTORIES
    catalog = FileCatalog.build(directories)
    try:
        catalog.save(catalog_path, directories)
    except OSError as e:
        logger.error(f"Failed to save catalog to {catalog_path}: {e}")
    return catalog, directories


def main() -> None:
    """Bootstrap sync server."""
    if '--debug' in sys.argv:
        setup_logging('syncserver', log_level='DEBUG')
        logger.info("Debug logging enabled")
        sys.argv.remove('--debug')

    logger.info("Initializing sync server...")

    catalog, directories = load_catalog()
    vocabulary = (
        Vocabulary.with_prefix(config.SYNC_MESSAGE_PREFIX)
        if config.SYNC_MESSAGE_PREFIX
        else Vocabulary.default()
    )

    server = SyncServer(
        config.SYNC_SERVER_HOST,
        config.SYNC_SERVER_PORT,
        catalog,
        directories,
        vocabulary
    )

    def shutdown(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        server.stop()

    if sys.platform != 'win32':
        signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)

    try:
        server.start()
        server.serve_forever()
    except OSError as e:
        logger.error(f"Server error: {e}", exc_info=True)
        raise
    finally:
        server.stop()
        logger.info("Sync server shutdown complete")


if __name__ == "__main__":
    main()
