"""Unit tests for the wire codec."""

import io
import struct

import pytest

from common.constants import MAX_FRAME_SIZE_BYTES, WIRE_VERSION
from common.exceptions import ConnectionClosedError, FrameTooLargeError, WireFormatError
from common.protocol import FRAME_HEADER, WireReader, WireWriter, encode_utf


def written(write) -> bytes:
    stream = io.BytesIO()
    write(WireWriter(stream))
    return stream.getvalue()


def reader_for(data: bytes) -> WireReader:
    return WireReader(io.BytesIO(data))


class TestPrimitiveLayout:
    """Fixed-width fields are big-endian."""

    def test_bool_is_one_byte(self):
        assert written(lambda w: (w.write_bool(True), w.write_bool(False))) == b"\x01\x00"

    def test_int_is_four_bytes_signed(self):
        assert written(lambda w: w.write_int(2)) == b"\x00\x00\x00\x02"
        assert written(lambda w: w.write_int(-1)) == b"\xff\xff\xff\xff"

    def test_long_is_eight_bytes(self):
        assert written(lambda w: w.write_long(15000)) == struct.pack(">q", 15000)

    def test_utf_is_length_prefixed(self):
        assert written(lambda w: w.write_utf("mods/é.jar")) == b"\x00\x0bmods/\xc3\xa9.jar"

    def test_int_out_of_range_is_rejected(self):
        with pytest.raises(WireFormatError):
            written(lambda w: w.write_int(2 ** 31))

    def test_utf_over_limit_is_rejected_before_writing(self):
        stream = io.BytesIO()

        with pytest.raises(WireFormatError):
            WireWriter(stream).write_utf("x" * 70000)

        assert stream.getvalue() == b""

    def test_encode_utf_checks_limit_without_a_stream(self):
        assert encode_utf("x" * 65535) == b"x" * 65535

        with pytest.raises(WireFormatError):
            encode_utf("\u00e9" * 40000)


class TestObjectFrames:
    """JSON object frames with version and length header."""

    def test_frame_layout(self):
        raw = written(lambda w: w.write_object("EXIT"))

        assert raw == bytes([WIRE_VERSION]) + b"\x00\x00\x00\x06" + b'"EXIT"'

    def test_mapping_keeps_key_order(self):
        obj = {"HANDSHAKE": "HANDSHAKE", "EXIT": "BYE", "SYNC_FILES": "SYNC"}

        assert reader_for(written(lambda w: w.write_object(obj))).read_object() == obj
        assert list(reader_for(written(lambda w: w.write_object(obj))).read_object()) == list(obj)

    def test_unserializable_object_is_rejected(self):
        with pytest.raises(WireFormatError):
            written(lambda w: w.write_object({"path": object()}))

    def test_wrong_version_is_rejected_after_consuming_frame(self):
        body = b'"EXIT"'
        data = FRAME_HEADER.pack(WIRE_VERSION + 1, len(body)) + body + written(lambda w: w.write_int(7))
        reader = reader_for(data)

        with pytest.raises(WireFormatError):
            reader.read_object()

        assert reader.read_int() == 7

    def test_invalid_json_is_rejected(self):
        body = b"{oops"

        with pytest.raises(WireFormatError):
            reader_for(FRAME_HEADER.pack(WIRE_VERSION, len(body)) + body).read_object()

    def test_oversized_frame_is_rejected_before_reading_payload(self):
        with pytest.raises(FrameTooLargeError):
            reader_for(FRAME_HEADER.pack(WIRE_VERSION, MAX_FRAME_SIZE_BYTES + 1)).read_object()

    def test_null_payload_decodes_to_none(self):
        assert reader_for(written(lambda w: w.write_object(None))).read_object() is None


class TestEndOfStream:
    """Short reads raise ConnectionClosedError."""

    def test_empty_stream(self):
        with pytest.raises(ConnectionClosedError):
            reader_for(b"").read_object()

    def test_truncated_frame_body(self):
        with pytest.raises(ConnectionClosedError):
            reader_for(FRAME_HEADER.pack(WIRE_VERSION, 10) + b"abc").read_object()

    def test_truncated_int(self):
        with pytest.raises(ConnectionClosedError):
            reader_for(b"\x00\x00").read_int()
