"""Binary encoder and decoder for reflect serialization payloads."""

import struct
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from reflectserde.exceptions import CodecException


def encode_utf8(value: str) -> bytes:
    try:
        return value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise CodecException("String is not encodable as UTF-8", cause=e) from e


def decode_utf8(raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CodecException("Invalid UTF-8 string in payload", cause=e) from e


class BinaryEncoder:
    """Binary stream writer for datum payloads.

    The underlying buffer is kept across :meth:`reset` calls so a single
    encoder can be reused for many messages.
    """

    def __init__(self):
        self._buffer = bytearray()

    def write_null(self) -> None:
        pass

    def write_boolean(self, value: bool) -> None:
        self._buffer.append(1 if value else 0)

    def write_int(self, value: int) -> None:
        self._buffer.extend(struct.pack("<i", value))

    def write_long(self, value: int) -> None:
        self._buffer.extend(struct.pack("<q", value))

    def write_float(self, value: float) -> None:
        self._buffer.extend(struct.pack("<f", value))

    def write_double(self, value: float) -> None:
        self._buffer.extend(struct.pack("<d", value))

    def write_string(self, value: str) -> None:
        self.write_bytes(encode_utf8(value))

    def write_bytes(self, value: bytes) -> None:
        self.write_int(len(value))
        self._buffer.extend(value)

    def write_index(self, index: int) -> None:
        self.write_int(index)

    def write_count(self, count: int) -> None:
        self.write_int(count)

    def write_raw(self, value: bytes) -> None:
        self._buffer.extend(value)

    def reset(self) -> None:
        del self._buffer[:]

    def size(self) -> int:
        return len(self._buffer)

    def to_bytes(self) -> bytes:
        return bytes(self._buffer)


class BinaryDecoder:
    """Binary stream reader for datum payloads."""

    def __init__(self, data: bytes = b"", offset: int = 0):
        self._data = data
        self._pos = offset

    def reset(self, data: bytes, offset: int = 0) -> "BinaryDecoder":
        self._data = data
        self._pos = offset
        return self

    def _unpack(self, fmt: str, size: int):
        try:
            value = struct.unpack_from(fmt, self._data, self._pos)[0]
        except struct.error as e:
            raise CodecException(
                f"Unexpected end of payload at position {self._pos}", cause=e
            ) from e
        self._pos += size
        return value

    def read_null(self) -> None:
        return None

    def read_boolean(self) -> bool:
        return self._unpack("<B", 1) != 0

    def read_int(self) -> int:
        return self._unpack("<i", 4)

    def read_long(self) -> int:
        return self._unpack("<q", 8)

    def read_float(self) -> float:
        return self._unpack("<f", 4)

    def read_double(self) -> float:
        return self._unpack("<d", 8)

    def read_bytes(self) -> bytes:
        length = self.read_int()
        if length < 0 or self._pos + length > len(self._data):
            raise CodecException(f"Invalid length {length} at position {self._pos - 4}")
        data = bytes(self._data[self._pos:self._pos + length])
        self._pos += length
        return data

    def read_string(self) -> str:
        return decode_utf8(self.read_bytes())

    def read_index(self) -> int:
        return self.read_int()

    def read_count(self) -> int:
        count = self.read_int()
        if count < 0:
            raise CodecException(f"Negative item count {count} at position {self._pos - 4}")
        return count

    def remaining(self) -> int:
        return len(self._data) - self._pos

    @property
    def position(self) -> int:
        return self._pos


class CoderPool:
    """Per-thread reusable encoders and decoders.

    Each thread owns at most one idle encoder and one idle decoder. A
    borrowed coder is handed back when the ``with`` block exits, even on
    error; a nested borrow on the same thread gets a fresh instance.
    """

    def __init__(self):
        self._local = threading.local()

    @contextmanager
    def borrow_encoder(self) -> Iterator[BinaryEncoder]:
        encoder: Optional[BinaryEncoder] = getattr(self._local, "encoder", None)
        self._local.encoder = None
        if encoder is None:
            encoder = BinaryEncoder()
        try:
            yield encoder
        finally:
            encoder.reset()
            self._local.encoder = encoder

    @contextmanager
    def borrow_decoder(self, data: bytes, offset: int = 0) -> Iterator[BinaryDecoder]:
        decoder: Optional[BinaryDecoder] = getattr(self._local, "decoder", None)
        self._local.decoder = None
        if decoder is None:
            decoder = BinaryDecoder()
        decoder.reset(data, offset)
        try:
            yield decoder
        finally:
            decoder.reset(b"")
            self._local.decoder = decoder
