"""MSB-first bit packing used by the XTC coordinate compressor."""

from __future__ import annotations

from collections.abc import Sequence

from ..errors import CorruptFrame


def bits_for_int(size: int) -> int:
    """
    Return the number of bits needed to store values in [0, size).

    Mirrors the reference implementation: counts bits until 2**bits > size,
    capped at 32.
    """
    num = 1
    n_bits = 0
    while size >= num and n_bits < 32:
        n_bits += 1
        num <<= 1
    return n_bits


def bits_for_ints(sizes: Sequence[int]) -> int:
    """
    Return the number of bits needed to store a mixed-radix tuple.

    A tuple (n0, n1, n2) with ni < sizes[i] is packed as one integer
    ``(n0 * s1 + n1) * s2 + n2``; the width is the bit length of the
    product of all sizes.
    """
    product = 1
    for size in sizes:
        product *= size
    return product.bit_length()


class BitWriter:
    """
    Growable MSB-first bit buffer.

    One writer is owned by a single encode call and discarded afterwards.

    Example:
        writer = BitWriter()
        writer.write_bits(5, 0b10110)
        data = writer.getvalue()
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._acc = 0
        self._n_acc = 0

    def write_bits(self, n_bits: int, value: int) -> None:
        """
        Append the low ``n_bits`` of ``value``.

        Args:
            n_bits: Field width in bits.
            value: Non-negative value to store.
        """
        if n_bits <= 0:
            return
        self._acc = (self._acc << n_bits) | (value & ((1 << n_bits) - 1))
        self._n_acc += n_bits
        while self._n_acc >= 8:
            self._n_acc -= 8
            self._buffer.append((self._acc >> self._n_acc) & 0xFF)
        self._acc &= (1 << self._n_acc) - 1

    def write_ints(self, n_bits: int, sizes: Sequence[int], nums: Sequence[int]) -> None:
        """
        Pack a triplet into ``n_bits`` bits using mixed-radix encoding.

        The combined integer is emitted least-significant byte first, each
        byte MSB-first, with the final partial chunk holding the high bits.

        Args:
            n_bits: Total width reserved for the tuple.
            sizes: Radix per element.
            nums: Values, ``nums[i] < sizes[i]``.
        """
        combined = nums[0]
        for size, num in zip(sizes[1:], nums[1:]):
            combined = combined * size + num
        n_full = (n_bits - 1) // 8 if n_bits > 0 else 0
        for _ in range(n_full):
            self.write_bits(8, combined & 0xFF)
            combined >>= 8
        self.write_bits(n_bits - 8 * n_full, combined)

    @property
    def n_bits(self) -> int:
        """Number of bits written so far."""
        return 8 * len(self._buffer) + self._n_acc

    def getvalue(self) -> bytes:
        """Return the packed bytes, zero padding the last partial byte."""
        if self._n_acc:
            return bytes(self._buffer) + bytes(
                [(self._acc << (8 - self._n_acc)) & 0xFF]
            )
        return bytes(self._buffer)


class BitReader:
    """
    Bounded MSB-first bit reader.

    Reading past the end of the buffer raises CorruptFrame: the buffer
    length is declared by the frame, so running out of bits means the
    declared contents are inconsistent.
    """

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0
        self._limit = 8 * len(data)

    def read_bits(self, n_bits: int) -> int:
        """Read an unsigned ``n_bits`` wide field."""
        if n_bits <= 0:
            return 0
        end = self._pos + n_bits
        if end > self._limit:
            raise CorruptFrame(
                f"Compressed data exhausted: need bit {end}, have {self._limit}"
            )
        first = self._pos >> 3
        last = (end + 7) >> 3
        chunk = int.from_bytes(self._data[first:last], "big")
        self._pos = end
        return (chunk >> ((last << 3) - end)) & ((1 << n_bits) - 1)

    def read_ints(self, n_bits: int, sizes: Sequence[int]) -> list[int]:
        """
        Read a mixed-radix tuple written by BitWriter.write_ints.

        Args:
            n_bits: Total width of the tuple.
            sizes: Radix per element.

        Returns:
            Decoded values, one per size.
        """
        combined = 0
        shift = 0
        remaining = n_bits
        while remaining > 8:
            combined |= self.read_bits(8) << shift
            shift += 8
            remaining -= 8
        if remaining > 0:
            combined |= self.read_bits(remaining) << shift

        nums = [0] * len(sizes)
        for i in range(len(sizes) - 1, 0, -1):
            combined, nums[i] = divmod(combined, sizes[i])
        if combined >= sizes[0]:
            raise CorruptFrame(
                f"Packed value {combined} exceeds axis range {sizes[0]}"
            )
        nums[0] = combined
        return nums

    @property
    def position(self) -> int:
        """Current bit position."""
        return self._pos
