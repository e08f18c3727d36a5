"""Streams catalog files to a peer, prefixed by their length."""

import logging
import os
from typing import Optional

from common.constants import (
    DEFAULT_TRANSFER_CHUNK_BYTES,
    FILE_MISSING_MESSAGE,
    FILE_PERMISSION_DENIED_MESSAGE,
)
from common.protocol import WireWriter

logger = logging.getLogger(__name__)


class FileTransferEngine:
    """
    Sends one file at a time over a WireWriter.

    Wire layout per file: 8-byte length, then exactly that many raw bytes when
    the file is read without error.
    """

    def __init__(
        self,
        writer: WireWriter,
        chunk_size: int = DEFAULT_TRANSFER_CHUNK_BYTES,
        session_logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            writer: Writer bound to the peer transport
            chunk_size: Bytes read from disk and written per step (the
                transport's send buffer size)
            session_logger: Connection logger; defaults to the module logger
        """
        self.writer = writer
        self.chunk_size = chunk_size if chunk_size > 0 else DEFAULT_TRANSFER_CHUNK_BYTES
        self.logger = session_logger or logger

    def file_size(self, path: str) -> int:
        """
        Size of path in bytes, or 0 if it cannot be stat'ed.

        Failures are logged with their cause and reported as 0.
        """
        try:
            return os.stat(path).st_size
        except PermissionError as e:
            self.logger.debug(e)
            self.logger.error(FILE_PERMISSION_DENIED_MESSAGE % path)
        except OSError as e:
            self.logger.debug(e)
            error = FILE_MISSING_MESSAGE % path
            self.logger.error(error)
            logger.error(error)
        return 0

    def send_file(self, path: str) -> int:
        """
        Send the length of path followed by its contents.

        The path is not checked against the catalog. A read or write failure
        after the length has been sent stops the payload early; the length
        already announced is left as is. Bytes beyond the announced length
        (a file that grew after stat) are never sent.

        Args:
            path: Filesystem path of a catalog entry

        Returns:
            Number of payload bytes written

        Raises:
            OSError: If the length or the final flush cannot be written
        """
        self.logger.info(f"Writing {path} to client...")

        size = self.file_size(path)
        self.logger.debug(f"File size is: {size}")
        self.writer.write_long(size)
        self.writer.flush()

        sent = 0
        if size > 0:
            try:
                with open(path, 'rb') as f:
                    while sent < size:
                        chunk = f.read(min(self.chunk_size, size - sent))
                        if not chunk:
                            break
                        self.writer.write_bytes(chunk)
                        sent += len(chunk)
            except OSError as e:
                self.logger.debug(f"Failed to write file: {path}")
                self.logger.debug(e)
            finally:
                self.writer.flush()

        if sent != size:
            self.logger.warning(f"Sent {sent} of {size} announced bytes for {path}")

        self.logger.info(f"Finished writing: {path}, to client")
        return sent
