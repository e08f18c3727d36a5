"""Read-only file catalog: path -> content hash, in insertion order."""

import logging
import os
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ValidationError

from common.constants import CATALOG_DOCUMENT_VERSION
from common.exceptions import CatalogError
from syncserver.checksum import compute_file_checksum

logger = logging.getLogger(__name__)


class CatalogDocument(BaseModel):
    """On-disk catalog format."""
    version: int = CATALOG_DOCUMENT_VERSION
    directories: List[str] = []
    files: Dict[str, str] = {}


class FileCatalog(Mapping[str, str]):
    """
    Immutable snapshot of the files the server hands out.

    Iteration follows insertion order, which is also the order files are
    offered to peers during a sync.
    """

    def __init__(self, entries: Union[Mapping[str, str], Iterable[Tuple[str, str]], None] = None):
        """
        Initialize catalog from a mapping or from (path, hash) pairs.

        Raises:
            ValueError: If a path appears more than once in a pair sequence
        """
        self._entries: Dict[str, str] = {}
        if entries is None:
            return
        pairs = entries.items() if isinstance(entries, Mapping) else entries
        for path, checksum in pairs:
            if path in self._entries:
                raise ValueError(f"Duplicate catalog path: {path}")
            self._entries[path] = checksum

    def __getitem__(self, path: str) -> str:
        return self._entries[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"FileCatalog({len(self._entries)} files)"

    @classmethod
    def build(cls, directories: Iterable[str]) -> "FileCatalog":
        """
        Build a catalog by hashing every file under the managed directories.

        Directories are walked recursively in sorted order so that rebuilding
        an unchanged tree yields the same catalog order.

        Args:
            directories: Managed directory paths

        Returns:
            New FileCatalog instance
        """
        directories = list(directories)
        entries: Dict[str, str] = {}

        for directory in directories:
            if not os.path.isdir(directory):
                logger.warning(f"Managed directory not found, skipping: {directory}")
                continue

            for root, dirnames, filenames in os.walk(directory):
                dirnames.sort()
                for filename in sorted(filenames):
                    path = os.path.join(root, filename)
                    if not os.path.isfile(path):
                        continue
                    try:
                        entries[path] = compute_file_checksum(path)
                    except OSError as e:
                        logger.error(f"Failed to hash {path}: {e}")

        logger.info(f"Built catalog with {len(entries)} files from {len(directories)} directories")
        return cls(entries)

    @classmethod
    def load(cls, path: Union[str, Path]) -> Tuple["FileCatalog", Tuple[str, ...]]:
        """
        Load catalog and managed directories from a JSON document.

        Args:
            path: Catalog file

        Returns:
            (catalog, managed directories)

        Raises:
            CatalogError: If the file cannot be read or is not a valid document
        """
        path = Path(path)
        try:
            document = CatalogDocument.model_validate_json(path.read_text(encoding='utf-8'))
        except OSError as e:
            raise CatalogError(f"Cannot read catalog {path}: {e}") from e
        except ValidationError as e:
            raise CatalogError(f"Invalid catalog {path}: {e}") from e

        if document.version != CATALOG_DOCUMENT_VERSION:
            raise CatalogError(
                f"Unsupported catalog version {document.version} in {path}"
            )

        logger.info(f"Loaded {len(document.files)} files from catalog {path}")
        return cls(document.files), tuple(document.directories)

    def save(self, path: Union[str, Path], directories: Optional[Iterable[str]] = None) -> None:
        """
        Persist catalog and managed directories to a JSON document.

        Raises:
            OSError: If write operation fails
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        document = CatalogDocument(
            directories=list(directories or ()),
            files=dict(self._entries)
        )
        path.write_text(document.model_dump_json(indent=2), encoding='utf-8')

        logger.info(f"Saved {len(self._entries)} files to catalog {path}")
