"""
XDR (RFC 4506) primitive layer.

All values are big-endian and fixed width. Opaque blocks and strings are
zero padded to a 4-byte boundary. Readers never accept a short read.
"""

from __future__ import annotations

import io
import os
import struct
from typing import BinaryIO

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .config import DEFAULT_CONFIG, XDRConfig
from .errors import InvalidLength, TruncatedInput

_U32 = struct.Struct(">I")
_I32 = struct.Struct(">i")
_F32 = struct.Struct(">f")
_F64 = struct.Struct(">d")

UNIT = 4


def padded_length(n: int) -> int:
    """Round a byte count up to the next XDR unit."""
    return (n + UNIT - 1) & ~(UNIT - 1)


class XDRWriter:
    """
    Accumulates the XDR encoding of one frame in memory.

    The buffer is owned by a single stream handle and reset after each
    frame is flushed to the underlying stream.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def write_u32(self, value: int) -> None:
        """Append an unsigned 32-bit integer."""
        self._buffer += _U32.pack(value)

    def write_i32(self, value: int) -> None:
        """Append a signed 32-bit integer."""
        self._buffer += _I32.pack(value)

    def write_f32(self, value: float) -> None:
        """Append an IEEE single-precision float."""
        self._buffer += _F32.pack(value)

    def write_f64(self, value: float) -> None:
        """Append an IEEE double-precision float."""
        self._buffer += _F64.pack(value)

    def write_real(self, value: float, double: bool = False) -> None:
        """Append a float at the requested width."""
        if double:
            self.write_f64(value)
        else:
            self.write_f32(value)

    def write_f32_array(self, values: ArrayLike) -> None:
        """Append a flat sequence of single-precision floats."""
        self._buffer += np.asarray(values, dtype=">f4").tobytes()

    def write_f64_array(self, values: ArrayLike) -> None:
        """Append a flat sequence of double-precision floats."""
        self._buffer += np.asarray(values, dtype=">f8").tobytes()

    def write_real_array(self, values: ArrayLike, double: bool = False) -> None:
        """Append a flat float sequence at the requested width."""
        if double:
            self.write_f64_array(values)
        else:
            self.write_f32_array(values)

    def write_opaque(self, data: bytes) -> None:
        """Append a fixed-length opaque block, padded to 4 bytes."""
        self._buffer += data
        self._buffer += b"\x00" * (padded_length(len(data)) - len(data))

    def write_string(self, value: str | bytes) -> None:
        """Append a length-prefixed string, padded to 4 bytes."""
        if isinstance(value, str):
            value = value.encode("ascii")
        self.write_u32(len(value))
        self.write_opaque(value)

    def getvalue(self) -> bytes:
        """Return the encoded bytes."""
        return bytes(self._buffer)

    def reset(self) -> None:
        """Discard the buffered bytes."""
        self._buffer.clear()

    def __len__(self) -> int:
        return len(self._buffer)


class XDRReader:
    """
    Reads XDR primitives from a seekable binary stream.

    Args:
        stream: Binary stream supporting read(), seek() and tell().
        config: Length limits.

    Example:
        reader = XDRReader.from_bytes(data)
        magic = reader.read_i32()
    """

    def __init__(self, stream: BinaryIO, config: XDRConfig | None = None) -> None:
        self.stream = stream
        self.config = config if config is not None else DEFAULT_CONFIG.xdr

    @classmethod
    def from_bytes(cls, data: bytes, config: XDRConfig | None = None) -> XDRReader:
        """Create a reader over an in-memory buffer."""
        return cls(io.BytesIO(data), config)

    def tell(self) -> int:
        """Current byte offset."""
        return self.stream.tell()

    def seek(self, offset: int) -> None:
        """Move to an absolute byte offset."""
        self.stream.seek(offset, os.SEEK_SET)

    def remaining(self) -> int:
        """Number of bytes between the cursor and the end of the stream."""
        pos = self.stream.tell()
        end = self.stream.seek(0, os.SEEK_END)
        self.stream.seek(pos, os.SEEK_SET)
        return end - pos

    def at_end(self) -> bool:
        """True if no bytes remain."""
        return self.remaining() <= 0

    def require(self, n: int) -> None:
        """
        Check that ``n`` more bytes can be read.

        Raises:
            InvalidLength: If n is negative or above the configured limit.
            TruncatedInput: If fewer than n bytes remain.
        """
        if n > self.config.max_opaque_length:
            raise InvalidLength(
                f"Length {n} exceeds limit {self.config.max_opaque_length}",
                self.tell(),
            )
        self.ensure_available(n)

    def ensure_available(self, n: int) -> None:
        """
        Check that ``n`` more bytes exist, without the sanity limit.

        Raises:
            InvalidLength: If n is negative.
            TruncatedInput: If fewer than n bytes remain.
        """
        if n < 0:
            raise InvalidLength(f"Negative length {n}", self.tell())
        available = self.remaining()
        if n > available:
            # Checked before reading so a hostile length never allocates.
            raise TruncatedInput(n, available, self.tell())

    def _read_exact(self, n: int) -> bytes:
        offset = self.stream.tell()
        data = self.stream.read(n)
        if data is None:
            data = b""
        while len(data) < n:
            chunk = self.stream.read(n - len(data))
            if not chunk:
                raise TruncatedInput(n, len(data), offset)
            data += chunk
        return data

    def read_u32(self) -> int:
        """Read an unsigned 32-bit integer."""
        return _U32.unpack(self._read_exact(4))[0]

    def read_i32(self) -> int:
        """Read a signed 32-bit integer."""
        return _I32.unpack(self._read_exact(4))[0]

    def read_f32(self) -> float:
        """Read an IEEE single-precision float."""
        return _F32.unpack(self._read_exact(4))[0]

    def read_f64(self) -> float:
        """Read an IEEE double-precision float."""
        return _F64.unpack(self._read_exact(8))[0]

    def read_real(self, double: bool = False) -> float:
        """Read a float at the requested width."""
        return self.read_f64() if double else self.read_f32()

    def read_i32_array(self, count: int) -> NDArray[np.int32]:
        """Read ``count`` signed 32-bit integers."""
        self.ensure_available(4 * count)
        return np.frombuffer(self._read_exact(4 * count), dtype=">i4").astype(np.int32)

    def read_f32_array(self, count: int) -> NDArray[np.float32]:
        """Read ``count`` single-precision floats."""
        self.ensure_available(4 * count)
        return np.frombuffer(self._read_exact(4 * count), dtype=">f4").astype(
            np.float32
        )

    def read_f64_array(self, count: int) -> NDArray[np.float64]:
        """Read ``count`` double-precision floats."""
        self.ensure_available(8 * count)
        return np.frombuffer(self._read_exact(8 * count), dtype=">f8").astype(
            np.float64
        )

    def read_real_array(self, count: int, double: bool = False) -> NDArray[np.floating]:
        """Read ``count`` floats at the requested width."""
        return self.read_f64_array(count) if double else self.read_f32_array(count)

    def read_opaque(self, n: int) -> bytes:
        """
        Read a fixed-length opaque block of ``n`` bytes plus padding.

        Raises:
            InvalidLength: If ``n`` is negative or above the configured limit.
            TruncatedInput: If the stream holds fewer bytes than required.
        """
        padded = padded_length(n) if n >= 0 else n
        self.require(padded)
        return self._read_exact(padded)[:n]

    def read_string(self) -> str:
        """Read a length-prefixed string."""
        n = self.read_u32()
        return self.read_opaque(n).decode("ascii", errors="replace")

    def skip(self, n: int) -> None:
        """Advance ``n`` bytes, verifying they exist."""
        self.ensure_available(n)
        self.stream.seek(n, os.SEEK_CUR)
