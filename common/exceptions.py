"""Custom exception classes shared by the server and the wire codec."""


class SyncError(Exception):
    """
    Base exception class for all sync-server errors.
    """
    pass


class WireFormatError(SyncError):
    """
    Raised when a value cannot be encoded to, or decoded from, the wire format.
    """
    pass


class ConnectionClosedError(SyncError):
    """
    Raised when the transport reaches end of stream in the middle of a read.
    """
    pass


class CatalogError(SyncError):
    """
    Raised when a catalog document is unreadable or fails validation.
    """
    pass


class FrameTooLargeError(WireFormatError):
    """
    Raised when an incoming frame announces more bytes than the reader accepts.

    The payload is left unread, so the stream cannot be resynchronized.
    """
    pass
