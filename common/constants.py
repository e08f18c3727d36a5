"""Protocol-wide constants (timeouts, answers, wire format limits)."""

DEFAULT_CLIENT_TIMEOUT_MS: int = 120000  # 2 minutes
FILE_SYNC_CLIENT_TIMEOUT_MS: int = 600000  # 10 minutes

HANDSHAKE_TOKEN: str = "HANDSHAKE"

BINARY_ANSWER_YES: int = 1
BINARY_ANSWER_NO: int = 0

WIRE_VERSION: int = 1
MAX_FRAME_SIZE_BYTES: int = 16 * 1024 * 1024
MAX_UTF_LENGTH_BYTES: int = 0xFFFF

DEFAULT_SERVER_PORT: int = 38067
DEFAULT_CATALOG_PATH: str = "./data/catalog.json"
CATALOG_DOCUMENT_VERSION: int = 1

# Fallback when the transport cannot report its send buffer size
DEFAULT_TRANSFER_CHUNK_BYTES: int = 64 * 1024
HASH_PIECE_SIZE_BYTES: int = 64 * 1024

FILE_MISSING_MESSAGE: str = "File missing on server, unable to send: %s"
FILE_PERMISSION_DENIED_MESSAGE: str = "Permission denied reading file, unable to send: %s"
