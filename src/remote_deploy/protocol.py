"""
Wire format helpers for remote deploy.

A frame is a 4 byte little-endian length followed by that many bytes of
UTF-8 JSON:

    {"name": "<relative path>", "isCompressed": <bool>, "data": "<base64>"}

The frame is built once per file and written unmodified to every host.
"""

import base64
import binascii
import gzip
import json
import struct
import zlib
from dataclasses import dataclass
from typing import Tuple

from .errors import CompressionError, EncodingError, FrameError

LENGTH_FMT = "<I"
LENGTH_SIZE = struct.calcsize(LENGTH_FMT)
MAX_FRAME_PAYLOAD = 0xFFFFFFFF


@dataclass(frozen=True)
class RemoteFileRecord:
    name: str
    is_compressed: bool
    data: str

    def to_dict(self):
        # key order matches what receivers have always seen
        return {
            "name": self.name,
            "isCompressed": self.is_compressed,
            "data": self.data,
        }

    def content(self) -> bytes:
        """Original file bytes carried by this record."""
        raw = base64.b64decode(self.data, validate=True)
        if self.is_compressed:
            return gzip.decompress(raw)
        return raw


def gzip_bytes(data: bytes) -> bytes:
    try:
        # mtime=0 keeps the frame identical for identical input
        return gzip.compress(data, mtime=0)
    except (zlib.error, MemoryError, OSError) as e:
        raise CompressionError(f"Could not compress data: {e}") from e


def select_payload(data: bytes) -> Tuple[bytes, bool]:
    """Return (payload, is_compressed); gzip wins only when strictly smaller."""
    compressed = gzip_bytes(data)
    if len(compressed) < len(data):
        return compressed, True
    return data, False


def make_record(name: str, payload: bytes, is_compressed: bool) -> RemoteFileRecord:
    try:
        encoded = base64.b64encode(payload).decode("ascii")
    except (TypeError, binascii.Error, UnicodeDecodeError) as e:
        raise EncodingError(f"Could not base64 encode '{name}': {e}") from e
    return RemoteFileRecord(name=name, is_compressed=bool(is_compressed), data=encoded)


def encode_record(record: RemoteFileRecord) -> bytes:
    try:
        return json.dumps(
            record.to_dict(), ensure_ascii=False, separators=(",", ":")
        ).encode("utf-8")
    except (TypeError, ValueError, UnicodeEncodeError) as e:
        raise EncodingError(f"Could not serialize record '{record.name}': {e}") from e


def build_frame(payload: bytes) -> bytes:
    if len(payload) > MAX_FRAME_PAYLOAD:
        raise EncodingError(f"Record too large: {len(payload)} bytes")
    return struct.pack(LENGTH_FMT, len(payload)) + payload


def read_length(header: bytes) -> int:
    if len(header) != LENGTH_SIZE:
        raise FrameError(f"Length prefix must be {LENGTH_SIZE} bytes, got {len(header)}")
    return struct.unpack(LENGTH_FMT, header)[0]


def decode_record(payload: bytes) -> RemoteFileRecord:
    try:
        obj = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise FrameError(f"Malformed record: {e}") from e

    if not isinstance(obj, dict):
        raise FrameError("Record must be a JSON object")
    name = obj.get("name")
    if not isinstance(name, str) or not name or name.startswith("/"):
        raise FrameError(f"Invalid record name: {name!r}")

    is_compressed = obj.get("isCompressed", False)
    if not isinstance(is_compressed, bool):
        raise FrameError(f"isCompressed must be a boolean, got {is_compressed!r}")

    return RemoteFileRecord(
        name=name,
        is_compressed=is_compressed,
        data=str(obj.get("data") or ""),
    )


def decode_frame(frame: bytes) -> RemoteFileRecord:
    """Parse a complete frame (length prefix + payload)."""
    length = read_length(frame[:LENGTH_SIZE])
    payload = frame[LENGTH_SIZE:]
    if len(payload) != length:
        raise FrameError(f"Frame length mismatch: header says {length}, got {len(payload)}")
    return decode_record(payload)
