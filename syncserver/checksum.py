"""SHA-256 checksum of catalog files, read in pieces."""

import hashlib
from pathlib import Path
from typing import Union

from common.constants import HASH_PIECE_SIZE_BYTES


def compute_file_checksum(path: Union[str, Path], piece_size: int = HASH_PIECE_SIZE_BYTES) -> str:
    """
    Compute SHA-256 checksum of a file without loading it whole.

    Args:
        path: File to hash
        piece_size: Bytes read per step

    Returns:
        Hexadecimal string representation of SHA-256 hash

    Raises:
        OSError: If the file cannot be read
    """
    hasher = hashlib.sha256()
    with open(path, 'rb') as f:
        while True:
            piece = f.read(piece_size)
            if not piece:
                break
            hasher.update(piece)
    return hasher.hexdigest()
