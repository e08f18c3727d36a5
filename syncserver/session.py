"""Per-connection session context."""

from dataclasses import dataclass
from typing import Iterable, Tuple

from common.logging_config import connection_identity
from common.types import Vocabulary
from syncserver.catalog import FileCatalog


def format_peer_address(address) -> str:
    """
    Render a socket peer address as text.

    Args:
        address: (host, port, ...) tuple from accept()/getpeername(), or any other value

    Returns:
        'host:port' for IP addresses, str(address) otherwise
    """
    if isinstance(address, tuple) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    return str(address) if address else "unknown"


def format_peer_host(address) -> str:
    """Render only the host part of a socket peer address."""
    if isinstance(address, tuple) and address:
        return str(address[0])
    return str(address) if address else "unknown"


@dataclass(frozen=True)
class SessionContext:
    """
    Read-only references one session needs: the shared catalog, managed
    directories and vocabulary, plus the identity of the connected peer.

    Loggers are named after peer_host; the ephemeral port only appears in
    log text through peer_address.
    """
    catalog: FileCatalog
    directories: Tuple[str, ...]
    vocabulary: Vocabulary
    peer_address: str
    peer_host: str

    @classmethod
    def open(
        cls,
        catalog: FileCatalog,
        directories: Iterable[str],
        vocabulary: Vocabulary,
        address
    ) -> "SessionContext":
        return cls(
            catalog=catalog,
            directories=tuple(directories),
            vocabulary=vocabulary,
            peer_address=format_peer_address(address),
            peer_host=format_peer_host(address)
        )

    @property
    def logger_name(self) -> str:
        return connection_identity(self.peer_host)
