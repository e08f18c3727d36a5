"""Wire codec: versioned JSON object frames plus fixed-width primitives.

Layout (all integers big-endian):

    object  u8 version | u32 length | length bytes of UTF-8 JSON
    bool    1 byte (0x00 / 0x01)
    int     4-byte signed
    long    8-byte signed
    utf     u16 length | UTF-8 bytes
"""

import json
import struct
from typing import Any, BinaryIO

from common.constants import MAX_FRAME_SIZE_BYTES, MAX_UTF_LENGTH_BYTES, WIRE_VERSION
from common.exceptions import ConnectionClosedError, FrameTooLargeError, WireFormatError

FRAME_HEADER = struct.Struct("!BI")
BOOL = struct.Struct("!?")
INT = struct.Struct("!i")
LONG = struct.Struct("!q")
UTF_LENGTH = struct.Struct("!H")


def encode_utf(value: str) -> bytes:
    """
    Encode a string for a utf field without writing it.

    Raises:
        WireFormatError: If the encoded string exceeds 65535 bytes
    """
    encoded = value.encode("utf-8")
    if len(encoded) > MAX_UTF_LENGTH_BYTES:
        raise WireFormatError(f"String too long for utf field: {len(encoded)} bytes")
    return encoded


class WireWriter:
    """
    Writes protocol values to a buffered binary stream.

    Nothing reaches the peer until flush() is called.
    """

    def __init__(self, stream: BinaryIO):
        self.stream = stream

    def write_object(self, obj: Any) -> None:
        """
        Write a JSON-serializable value as one object frame.

        Raises:
            WireFormatError: If obj cannot be serialized or the frame is too large
        """
        try:
            payload = json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise WireFormatError(f"Cannot serialize object: {e}") from e

        if len(payload) > MAX_FRAME_SIZE_BYTES:
            raise WireFormatError(f"Frame too large: {len(payload)} > {MAX_FRAME_SIZE_BYTES}")

        self.stream.write(FRAME_HEADER.pack(WIRE_VERSION, len(payload)))
        self.stream.write(payload)

    def write_bool(self, value: bool) -> None:
        self.stream.write(BOOL.pack(bool(value)))

    def write_int(self, value: int) -> None:
        try:
            self.stream.write(INT.pack(value))
        except struct.error as e:
            raise WireFormatError(f"Value does not fit in an int: {value}") from e

    def write_long(self, value: int) -> None:
        try:
            self.stream.write(LONG.pack(value))
        except struct.error as e:
            raise WireFormatError(f"Value does not fit in a long: {value}") from e

    def write_utf(self, value: str) -> None:
        """
        Write a length-prefixed UTF-8 string.

        Raises:
            WireFormatError: If the encoded string exceeds 65535 bytes
        """
        encoded = encode_utf(value)
        self.stream.write(UTF_LENGTH.pack(len(encoded)))
        self.stream.write(encoded)

    def write_bytes(self, data: bytes) -> None:
        self.stream.write(data)

    def flush(self) -> None:
        self.stream.flush()


class WireReader:
    """
    Reads protocol values from a binary stream.

    End of stream in the middle of a value raises ConnectionClosedError.
    """

    def __init__(self, stream: BinaryIO):
        self.stream = stream

    def read_exactly(self, n: int) -> bytes:
        """
        Read exactly n bytes.

        Raises:
            ConnectionClosedError: If the stream ends first
        """
        data = self.stream.read(n)
        if data is None or len(data) < n:
            received = 0 if data is None else len(data)
            raise ConnectionClosedError(f"Stream closed after {received} of {n} bytes")
        return data

    def read_object(self) -> Any:
        """
        Read one object frame and decode its JSON payload.

        Raises:
            ConnectionClosedError: If the stream ends mid-frame
            FrameTooLargeError: If the announced length exceeds MAX_FRAME_SIZE_BYTES
            WireFormatError: On version mismatch or invalid JSON
        """
        version, length = FRAME_HEADER.unpack(self.read_exactly(FRAME_HEADER.size))

        if length > MAX_FRAME_SIZE_BYTES:
            raise FrameTooLargeError(f"Frame too large: {length} > {MAX_FRAME_SIZE_BYTES}")

        payload = self.read_exactly(length)

        if version != WIRE_VERSION:
            raise WireFormatError(f"Wire version mismatch: expected {WIRE_VERSION}, got {version}")

        try:
            return json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise WireFormatError(f"Invalid object frame: {e}") from e

    def read_bool(self) -> bool:
        return BOOL.unpack(self.read_exactly(BOOL.size))[0]

    def read_int(self) -> int:
        return INT.unpack(self.read_exactly(INT.size))[0]

    def read_long(self) -> int:
        return LONG.unpack(self.read_exactly(LONG.size))[0]

    def read_utf(self) -> str:
        (length,) = UTF_LENGTH.unpack(self.read_exactly(UTF_LENGTH.size))
        try:
            return self.read_exactly(length).decode("utf-8")
        except UnicodeDecodeError as e:
            raise WireFormatError(f"Invalid utf field: {e}") from e
