"""TCP accept loop: one ProtocolWorker thread per peer connection."""

import logging
import socket
import threading
from typing import Iterable, Optional, Set, Tuple

from common.constants import DEFAULT_CLIENT_TIMEOUT_MS, FILE_SYNC_CLIENT_TIMEOUT_MS
from common.types import Vocabulary
from syncserver.catalog import FileCatalog
from syncserver.session import SessionContext
from syncserver.timeout import TimeoutScheduler
from syncserver.worker import ProtocolWorker

logger = logging.getLogger(__name__)


class SyncServer:
    """
    Accepts peer connections and hands each one to its own ProtocolWorker.

    The catalog, managed directories and vocabulary are shared read-only by
    every session.
    """

    def __init__(
        self,
        host: str,
        port: int,
        catalog: FileCatalog,
        directories: Iterable[str],
        vocabulary: Optional[Vocabulary] = None,
        default_timeout_ms: int = DEFAULT_CLIENT_TIMEOUT_MS,
        transfer_timeout_ms: int = FILE_SYNC_CLIENT_TIMEOUT_MS,
        backlog: int = 16
    ):
        self.host = host
        self.port = port
        self.catalog = catalog
        self.directories = tuple(directories)
        self.vocabulary = vocabulary or Vocabulary.default()
        self.default_timeout_ms = default_timeout_ms
        self.transfer_timeout_ms = transfer_timeout_ms
        self.backlog = backlog

        self.scheduler = TimeoutScheduler()
        self._listener: Optional[socket.socket] = None
        self._accept_thread: Optional[threading.Thread] = None
        self._workers: Set[ProtocolWorker] = set()
        self._workers_lock = threading.Lock()
        self._stop_event = threading.Event()

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the port is resolved when 0 was requested."""
        if self._listener is None:
            return self.host, self.port
        host, port = self._listener.getsockname()[:2]
        return host, port

    @property
    def active_sessions(self) -> int:
        with self._workers_lock:
            return len(self._workers)

    def start(self) -> None:
        """Bind the listener and start accepting connections in the background."""
        if self._listener is not None:
            logger.warning("Sync server already running")
            return

        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            listener.bind((self.host, self.port))
            listener.listen(self.backlog)
        except OSError:
            listener.close()
            raise

        self._listener = listener
        self._stop_event.clear()
        self.scheduler.start()

        self._accept_thread = threading.Thread(target=self._accept_loop, name="sync-accept", daemon=True)
        self._accept_thread.start()

        host, port = self.address
        logger.info(
            f"Sync server listening on {host}:{port} "
            f"[files={len(self.catalog)}, directories={len(self.directories)}]"
        )

    def serve_forever(self) -> None:
        """Start if needed and block until stop() is called."""
        if self._listener is None:
            self.start()
        self._stop_event.wait()

    def stop(self) -> None:
        """Stop accepting, close live connections and stop the timeout scheduler."""
        if self._listener is None:
            return

        self._stop_event.set()
        listener, self._listener = self._listener, None
        try:
            listener.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Listening sockets are not connected on every platform
            pass
        listener.close()

        if self._accept_thread and self._accept_thread is not threading.current_thread():
            self._accept_thread.join(5)
        self._accept_thread = None

        with self._workers_lock:
            workers = list(self._workers)
        for worker in workers:
            worker.close()

        self.scheduler.stop()
        logger.info("Sync server stopped")

    def _accept_loop(self) -> None:
        listener = self._listener
        while not self._stop_event.is_set():
            try:
                conn, addr = listener.accept()
            except OSError as e:
                if self._stop_event.is_set():
                    break
                logger.error(f"Accept failed: {e}")
                continue

            self._start_worker(conn, addr)

    def _start_worker(self, conn: socket.socket, addr) -> None:
        context = SessionContext.open(self.catalog, self.directories, self.vocabulary, addr)
        worker = ProtocolWorker(
            conn,
            context,
            self.scheduler,
            default_timeout_ms=self.default_timeout_ms,
            transfer_timeout_ms=self.transfer_timeout_ms
        )
        with self._workers_lock:
            self._workers.add(worker)

        thread = threading.Thread(
            target=self._run_worker,
            args=(worker,),
            name=context.logger_name,
            daemon=True
        )
        thread.start()

    def _run_worker(self, worker: ProtocolWorker) -> None:
        try:
            worker.run()
        finally:
            with self._workers_lock:
                self._workers.discard(worker)
