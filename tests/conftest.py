"""Shared pytest fixtures for all tests."""

import socket
import threading
from typing import Any, Optional, Tuple

import pytest

from common.protocol import WireReader, WireWriter
from common.types import BinaryAnswer, Vocabulary
from syncserver.catalog import FileCatalog
from syncserver.session import SessionContext
from syncserver.timeout import TimeoutScheduler
from syncserver.worker import ProtocolWorker

PEER_SOCKET_TIMEOUT = 5.0


class Peer:
    """
    Minimal client side of the sync protocol, used to drive the server.
    """

    def __init__(self, sock: socket.socket):
        sock.settimeout(PEER_SOCKET_TIMEOUT)
        self.sock = sock
        self.rfile = sock.makefile('rb')
        self.wfile = sock.makefile('wb')
        self.reader = WireReader(self.rfile)
        self.writer = WireWriter(self.wfile)
        self.worker: Optional[ProtocolWorker] = None
        self.thread: Optional[threading.Thread] = None

    def send(self, message: Any) -> None:
        self.writer.write_object(message)
        self.writer.flush()

    def send_raw(self, data: bytes) -> None:
        self.writer.write_bytes(data)
        self.writer.flush()

    def answer(self, value: int) -> None:
        self.writer.write_int(int(value))
        self.writer.flush()

    def read_object(self) -> Any:
        return self.reader.read_object()

    def read_int(self) -> int:
        return self.reader.read_int()

    def read_offer(self) -> Optional[Tuple[str, str]]:
        """Next (path, hash) offer of a sync, or None at the end marker."""
        if not self.reader.read_bool():
            return None
        return self.reader.read_utf(), self.reader.read_utf()

    def read_file(self) -> bytes:
        length = self.reader.read_long()
        return self.reader.read_exactly(length) if length else b""

    def sync(self, answers) -> list:
        """
        Run a full SYNC_FILES exchange.

        Args:
            answers: Callable (path, hash) -> BinaryAnswer

        Returns:
            List of (path, hash, received bytes or None)
        """
        self.send("SYNC_FILES")
        results = []
        while True:
            offer = self.read_offer()
            if offer is None:
                return results
            answer = answers(*offer)
            self.answer(answer)
            data = self.read_file() if answer == BinaryAnswer.NO else None
            results.append((offer[0], offer[1], data))

    def at_eof(self, timeout: float = PEER_SOCKET_TIMEOUT) -> bool:
        """True once the server has closed the connection with nothing left to read."""
        self.sock.settimeout(timeout)
        return self.rfile.read(1) == b""

    def close(self) -> None:
        for stream in (self.wfile, self.rfile):
            try:
                stream.close()
            except OSError:
                pass
        self.sock.close()


@pytest.fixture
def scheduler():
    """
    Running TimeoutScheduler, stopped after the test.
    """
    timeout_scheduler = TimeoutScheduler()
    timeout_scheduler.start()
    yield timeout_scheduler
    timeout_scheduler.stop()


@pytest.fixture
def connect_worker(scheduler):
    """
    Factory connecting a Peer to a ProtocolWorker running on its own thread.

    The two ends are joined with socket.socketpair().
    """
    peers = []

    def connect(
        catalog=None,
        directories=(),
        vocabulary: Optional[Vocabulary] = None,
        default_timeout_ms: int = 5000,
        transfer_timeout_ms: int = 10000
    ) -> Peer:
        server_sock, client_sock = socket.socketpair()
        context = SessionContext.open(
            catalog if isinstance(catalog, FileCatalog) else FileCatalog(catalog or {}),
            directories,
            vocabulary or Vocabulary.default(),
            ("127.0.0.1", 50000)
        )
        worker = ProtocolWorker(
            server_sock,
            context,
            scheduler,
            default_timeout_ms=default_timeout_ms,
            transfer_timeout_ms=transfer_timeout_ms
        )
        thread = threading.Thread(target=worker.run, daemon=True)
        thread.start()

        peer = Peer(client_sock)
        peer.worker = worker
        peer.thread = thread
        peers.append(peer)
        return peer

    yield connect

    for peer in peers:
        peer.close()
        peer.thread.join(PEER_SOCKET_TIMEOUT)


@pytest.fixture
def mod_files(tmp_path):
    """
    Two files under a managed 'mods' directory.

    Returns:
        (path of a.jar, path of b.jar) as strings
    """
    mods = tmp_path / 'mods'
    mods.mkdir()
    a_jar = mods / 'a.jar'
    b_jar = mods / 'b.jar'
    a_jar.write_bytes(b'a.jar contents ' * 1000)
    b_jar.write_bytes(b'b.jar contents')
    return str(a_jar), str(b_jar)
