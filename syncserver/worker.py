"""
Per-connection protocol worker.

One ProtocolWorker serves one accepted socket until the peer exits, sends an
unknown message, stays idle past its timeout, or the transport fails:

    peer                              server
    HANDSHAKE          ->
                       <-  vocabulary {kind name: literal}
    SYNC_FILES         ->
                       <-  true, path, hash        (per catalog entry)
    answer (int)       ->
                       <-  length, bytes           (only when answer is NO)
                       <-  false
    GET_MANAGED_DIRECTORIES -> <- [directory, ...]
    GET_NUMBER_OF_MANAGED_FILES -> <- count (int)
    EXIT               ->  connection closed
"""

import enum
import logging
import socket
from datetime import datetime
from typing import Optional

from common.constants import DEFAULT_CLIENT_TIMEOUT_MS, FILE_SYNC_CLIENT_TIMEOUT_MS
from common.exceptions import ConnectionClosedError, FrameTooLargeError, WireFormatError
from common.logging_config import get_connection_logger
from common.protocol import WireReader, WireWriter, encode_utf
from common.types import BinaryAnswer, MessageKind, UnknownMessageError
from syncserver.session import SessionContext
from syncserver.timeout import TimeoutScheduler, TimeoutSupervisor
from syncserver.transfer import FileTransferEngine

logger = logging.getLogger(__name__)


class WorkerState(enum.Enum):
    RUNNING = "running"
    CLOSING = "closing"


class ProtocolWorker:
    """
    Handles requests from one peer until told to exit.

    Every blocking read of a message is preceded by re-arming the idle
    timeout, so the timeout bounds silence between messages rather than the
    lifetime of the connection.
    """

    def __init__(
        self,
        sock: socket.socket,
        context: SessionContext,
        scheduler: TimeoutScheduler,
        default_timeout_ms: int = DEFAULT_CLIENT_TIMEOUT_MS,
        transfer_timeout_ms: int = FILE_SYNC_CLIENT_TIMEOUT_MS
    ):
        """
        Initialize worker for an accepted connection.

        Args:
            sock: Connected socket, owned by the worker from now on
            context: Session context for this peer
            scheduler: Shared scheduler running idle-timeout actions
            default_timeout_ms: Idle timeout while waiting for messages
            transfer_timeout_ms: Idle timeout while a requested file is sent
        """
        self.sock = sock
        self.context = context
        self.default_timeout_ms = default_timeout_ms
        self.transfer_timeout_ms = transfer_timeout_ms
        self.state = WorkerState.RUNNING
        self.logger = get_connection_logger(context.peer_host)
        self.supervisor = TimeoutSupervisor(scheduler, self.timeout_shutdown, self.logger)

        self._rfile = None
        self._wfile = None
        self.reader: Optional[WireReader] = None
        self.writer: Optional[WireWriter] = None
        self.transfer: Optional[FileTransferEngine] = None

        self.logger.info(
            f"Connection established with {context.peer_address} "
            f"{datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"
        )

    def run(self) -> None:
        """Serve the connection until it reaches CLOSING, then tear down."""
        try:
            self._open_streams()
            self._loop()
        except (OSError, RuntimeError) as e:
            self.logger.error(f"Connection aborted: {e}")
        finally:
            self.logger.info(f"Closing connection with: {self.context.peer_address}")
            self.teardown()

    def _open_streams(self) -> None:
        self._rfile = self.sock.makefile('rb')
        self._wfile = self.sock.makefile('wb')
        self.reader = WireReader(self._rfile)
        self.writer = WireWriter(self._wfile)
        self.transfer = FileTransferEngine(self.writer, self._send_buffer_size(), self.logger)

    def _send_buffer_size(self) -> int:
        try:
            return self.sock.getsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF)
        except OSError as e:
            self.logger.debug(f"Cannot read send buffer size: {e}")
            return 0

    def _loop(self) -> None:
        while self.state is WorkerState.RUNNING:
            try:
                self.supervisor.set(self.default_timeout_ms)
                message = self.reader.read_object()
            except FrameTooLargeError as e:
                self.logger.error(f"Dropping client {self.context.peer_address}: {e}")
                self.state = WorkerState.CLOSING
                break
            except WireFormatError as e:
                self.logger.debug(f"Failed to read message: {e}")
                continue
            except (ConnectionClosedError, OSError) as e:
                if self.supervisor.expired:
                    self.logger.info(f"Client {self.context.peer_address} closed by timeout")
                else:
                    self.logger.info(f"Client {self.context.peer_address} disconnected: {e}")
                self.state = WorkerState.CLOSING
                break

            if message is None:
                self.logger.debug("Received null message, this should not happen.")
                continue

            if not isinstance(message, str):
                self.logger.debug(f"Received non-text message of type {type(message).__name__}, ignoring")
                continue

            self.logger.info(f"Received message: {message}, from client: {self.context.peer_address}")

            try:
                if not self.handle_message(message):
                    self.state = WorkerState.CLOSING
            except (ConnectionClosedError, WireFormatError, OSError) as e:
                if self.supervisor.expired:
                    self.logger.info(f"Client {self.context.peer_address} closed by timeout")
                else:
                    self.logger.error(f"Failed to write to {self.context.peer_address} client stream: {e}")
                self.state = WorkerState.CLOSING

    def handle_message(self, message: str) -> bool:
        """
        Respond to one message.

        Returns:
            True to keep serving, False to close the connection

        Raises:
            OSError: If the response cannot be written
        """
        vocabulary = self.context.vocabulary

        # Always sent first by well-behaved peers
        if message == vocabulary.handshake:
            self.logger.info("Sending coms messages")
            self.writer.write_object(vocabulary.to_wire())
            self.writer.flush()
            return True

        kind = vocabulary.kind_of(message)
        if kind is None:
            self.logger.info(f"Unknown message received from: {self.context.peer_address}")
            try:
                self.writer.write_object(UnknownMessageError(message).to_wire())
                self.writer.flush()
            except (WireFormatError, OSError) as e:
                self.logger.info(f"Failed to write error to client {self.context.peer_address}")
                self.logger.debug(e)
            return False

        if kind is MessageKind.SYNC_FILES:
            self.sync_files()
            return not self.supervisor.expired

        if kind is MessageKind.GET_MANAGED_DIRECTORIES:
            self.writer.write_object(list(self.context.directories))
            self.writer.flush()
            return True

        if kind is MessageKind.GET_NUMBER_OF_MANAGED_FILES:
            self.writer.write_int(len(self.context.catalog))
            self.writer.flush()
            return True

        if kind is MessageKind.EXIT:
            self.logger.info(
                f"Client requested exit, sync process complete for: {self.context.peer_address}"
            )
            return False

        return True

    def sync_files(self) -> int:
        """
        Offer every catalog entry to the peer and send the ones it lacks.

        Per entry: true, path, hash; the peer answers with a BinaryAnswer and,
        on NO, the file follows. A failure while handling one entry abandons
        the remaining entries but not the session. The exchange always ends
        with false, unless the idle timeout closed the connection meanwhile.
        Entries whose path or hash does not fit a utf field are skipped.

        Returns:
            Number of files transferred

        Raises:
            OSError: If the closing false marker cannot be written
        """
        catalog = self.context.catalog
        transferred = 0

        if len(catalog) > 0:
            for path, checksum in catalog.items():
                try:
                    encode_utf(path)
                    encode_utf(checksum)
                except WireFormatError as e:
                    self.logger.warning(f"Skipping catalog entry {path!r}, cannot be offered: {e}")
                    continue

                try:
                    self.logger.debug(f"Asking client if they have file: {path}")
                    self.writer.write_bool(True)
                    self.writer.write_utf(path)
                    self.writer.write_utf(checksum)
                    self.writer.flush()

                    if self.reader.read_int() == BinaryAnswer.NO:
                        self.logger.debug("Client said they don't have the file")
                        self.supervisor.set(self.transfer_timeout_ms)
                        self.transfer.send_file(path)
                        transferred += 1
                    else:
                        self.logger.debug("Client said they have the file already")
                        self.supervisor.set(self.default_timeout_ms)
                except (ConnectionClosedError, WireFormatError, OSError) as e:
                    self.logger.debug(e)
                    self.logger.info(
                        f"Encountered error during sync with {self.context.peer_address}, killing sync process"
                    )
                    break

            self.logger.debug("Finished sync")
        else:
            self.logger.debug("No files on the server?")

        if self.supervisor.expired:
            # Transport already shut down by the timeout
            return transferred

        self.writer.write_bool(False)
        self.writer.flush()
        return transferred

    def timeout_shutdown(self) -> None:
        """Force-close the transport; called from the timeout scheduler thread."""
        self.logger.info(f"Client connection timed out, closing {self.context.peer_address}")
        self.close()

    def close(self) -> None:
        """Shut down the transport; safe to call from any thread."""
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Already shut down or never connected
            pass
        self.sock.close()

    def teardown(self) -> None:
        """Cancel the idle timeout and release the transport."""
        self.state = WorkerState.CLOSING
        self.supervisor.close()

        for stream in (self._wfile, self._rfile):
            if stream is None:
                continue
            try:
                stream.close()
            except OSError as e:
                # Buffered bytes cannot be delivered to a closed transport
                self.logger.debug(f"Error closing client stream: {e}")

        self.close()
