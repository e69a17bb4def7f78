"""
XTC lossy 3-D coordinate compression.

Coordinates are quantized to integers with ``round(x * precision)``, shifted
by the per-axis minimum and bit packed. Consecutive atoms that lie close to
each other are stored as small deltas in "runs" of up to eight atoms. The
width of those deltas adapts from atom to atom through a table of magic
integers, each roughly 2**(1/3) larger than the previous one, so that a
packed delta triplet needs ``small_idx`` bits.

The encoder and decoder share AdaptiveState, whose transition function is
the only place the delta width changes. The bit stream therefore fully
determines the decoder state.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..errors import CorruptFrame, InvalidPrecision
from ..xdr import XDRReader, XDRWriter, padded_length
from .bits import BitReader, BitWriter, bits_for_int, bits_for_ints

logger = logging.getLogger(__name__)

MAGIC_INTS = (
    0, 0, 0, 0, 0, 0, 0, 0, 0,
    8, 10, 12, 16, 20, 25, 32, 40, 50, 64,
    80, 101, 128, 161, 203, 256, 322, 406, 512, 645,
    812, 1024, 1290, 1625, 2048, 2580, 3250, 4096, 5060, 6501,
    8192, 10321, 13003, 16384, 20642, 26007, 32768, 41285, 52015, 65536,
    82570, 104031, 131072, 165140, 208063, 262144, 330280, 416127, 524287, 660561,
    832255, 1048576, 1321122, 1664510, 2097152, 2642245, 3329021, 4194304, 5284491, 6658042,
    8388607, 10568983, 13316085, 16777216,
)  # fmt: skip

FIRST_IDX = 9
LAST_IDX = len(MAGIC_INTS)

# Atoms per run and width of the run-length code.
MAX_RUN = 8
RUN_CODE_BITS = 5

# Quantized values must stay clear of the int32 limits.
MAX_ABS = 2**31 - 3

# Axis sizes above this are stored with independent per-axis widths.
MAX_PACKED_SIZE = 0xFFFFFF

# At or below this many atoms coordinates are stored uncompressed.
MAX_UNCOMPRESSED_ATOMS = 9


def _to_int32(value):
    """Wrap an integer to signed 32 bits like C int arithmetic in libxdrfile."""
    return (value + 2**31) % 2**32 - 2**31


def check_precision(precision: float) -> float:
    """
    Validate an encode-time precision.

    Raises:
        InvalidPrecision: If precision is not a positive finite number.
    """
    try:
        value = float(precision)
    except (TypeError, ValueError) as exc:
        raise InvalidPrecision(f"Precision must be a number, got {precision!r}") from exc
    if not math.isfinite(value) or value <= 0.0:
        raise InvalidPrecision(f"Precision must be positive, got {precision!r}")
    return value


def quantize(coords: ArrayLike, precision: float) -> NDArray[np.int64]:
    """
    Convert coordinates to integers.

    Rounds half away from zero in single precision, matching the reference
    writer bit for bit.

    Args:
        coords: Coordinates, shape (N, 3).
        precision: Positive scale factor.

    Returns:
        Integer array of shape (N, 3).
    """
    precision = check_precision(precision)
    x = np.asarray(coords, dtype=np.float32).reshape(-1, 3)
    if not np.all(np.isfinite(x)):
        raise ValueError("Coordinates must be finite")
    with np.errstate(over="ignore"):
        scaled = (x * np.float32(precision)).astype(np.float64)
    rounded = np.where(x >= 0, scaled + 0.5, scaled - 0.5).astype(np.float32)
    if np.any(np.abs(rounded.astype(np.float64)) > MAX_ABS):
        raise ValueError(
            f"Coordinates too large for precision {precision}: "
            "quantized values overflow 32-bit integers"
        )
    return np.trunc(rounded).astype(np.int64)


def dequantize(ints: ArrayLike, precision: float) -> NDArray[np.float32]:
    """
    Convert quantized integers back to single-precision coordinates.

    Raises:
        CorruptFrame: If precision is zero.
    """
    p = float(np.float32(precision))
    if p == 0.0:
        raise CorruptFrame("Precision of 0 cannot be decoded")
    inv = np.float32(1.0 / p)
    return np.asarray(ints, dtype=np.int64).astype(np.float32) * inv


@dataclass
class AdaptiveState:
    """
    Adaptive delta width shared by encoder and decoder.

    Attributes:
        small_idx: Current index into MAGIC_INTS; packed deltas use this many bits.
        small_num: Half of the current delta range; deltas are offset by it.
        smaller: Half of the next smaller delta range (0 at the bottom).
        min_idx: Lowest index the encoder tries to shrink towards.
        max_idx: Highest index the encoder may grow towards.
        larger: Threshold below which every axis delta permits growing.
    """

    small_idx: int
    small_num: int
    smaller: int
    min_idx: int
    max_idx: int
    larger: int

    @classmethod
    def initial(cls, small_idx: int) -> AdaptiveState:
        """Build the starting state for a frame."""
        if not FIRST_IDX <= small_idx < LAST_IDX:
            raise CorruptFrame(f"Delta width index {small_idx} out of range")
        max_idx = min(LAST_IDX, small_idx + 8)
        return cls(
            small_idx=small_idx,
            small_num=MAGIC_INTS[small_idx] // 2,
            smaller=MAGIC_INTS[max(FIRST_IDX, small_idx - 1)] // 2,
            min_idx=max_idx - 8,
            max_idx=max_idx,
            larger=MAGIC_INTS[min(max_idx, LAST_IDX - 1)] // 2,
        )

    @property
    def size_small(self) -> int:
        """Radix of each packed delta component."""
        return MAGIC_INTS[self.small_idx]

    def transition(self, is_smaller: int) -> None:
        """
        Move to the next delta width.

        Args:
            is_smaller: -1 to shrink, +1 to grow, 0 to keep.

        Raises:
            CorruptFrame: If the index would leave the magic table.
        """
        if is_smaller == 0:
            return
        idx = self.small_idx + is_smaller
        if not FIRST_IDX <= idx < LAST_IDX:
            raise CorruptFrame(f"Delta width index {idx} out of range")
        self.small_idx = idx
        if is_smaller < 0:
            self.small_num = self.smaller
            self.smaller = MAGIC_INTS[idx - 1] // 2 if idx > FIRST_IDX else 0
        else:
            self.smaller = self.small_num
            self.small_num = MAGIC_INTS[idx] // 2

    def proposal(self, prev: list[int], this: list[int], index: int) -> int:
        """
        Encoder's first guess for the width change at atom ``index``.

        Growing is proposed when the atom is within ``larger`` of the previous
        one on every axis, shrinking whenever the index sits above min_idx.
        """
        if (
            self.small_idx < self.max_idx
            and self.small_idx + 1 < LAST_IDX
            and index >= 1
            and abs(this[0] - prev[0]) < self.larger
            and abs(this[1] - prev[1]) < self.larger
            and abs(this[2] - prev[2]) < self.larger
        ):
            return 1
        if self.small_idx > self.min_idx:
            return -1
        return 0

    def is_small(self, a: list[int], b: list[int]) -> bool:
        """True if ``b`` can be stored as a delta from ``a``."""
        n = self.small_num
        return abs(a[0] - b[0]) < n and abs(a[1] - b[1]) < n and abs(a[2] - b[2]) < n


@dataclass(frozen=True)
class CompressedBlock:
    """
    Compressed coordinates of one frame.

    Attributes:
        minint: Minimum quantized value per axis.
        maxint: Maximum quantized value per axis.
        small_idx: Initial delta width index.
        data: Packed bit stream.
    """

    minint: tuple[int, int, int]
    maxint: tuple[int, int, int]
    small_idx: int
    data: bytes

    @property
    def sizes(self) -> tuple[int, int, int]:
        """Number of distinct quantized values per axis."""
        return tuple(hi - lo + 1 for lo, hi in zip(self.minint, self.maxint))

    @property
    def bit_widths(self) -> tuple[int, int, int]:
        """Bits required for each axis range."""
        return tuple(bits_for_int(size) for size in self.sizes)

    @property
    def bitsize(self) -> int:
        """
        Width of one packed full-coordinate triplet.

        Zero means the axes are too wide to combine and each is stored with
        its own width from ``bit_widths``.
        """
        if max(self.sizes) > MAX_PACKED_SIZE:
            return 0
        return bits_for_ints(self.sizes)

    def validate(self, max_bits: int = 32) -> None:
        """
        Check header fields before decoding.

        Raises:
            CorruptFrame: If the ranges or the delta index are unusable.
        """
        for lo, hi in zip(self.minint, self.maxint):
            if hi < lo:
                raise CorruptFrame(f"Axis maximum {hi} below minimum {lo}")
            if hi - lo + 1 > 2**max_bits:
                raise CorruptFrame(
                    f"Axis range {hi - lo + 1} needs more than {max_bits} bits"
                )
        if not FIRST_IDX <= self.small_idx < LAST_IDX:
            raise CorruptFrame(f"Delta width index {self.small_idx} out of range")


def _initial_small_idx(ints: NDArray[np.int64]) -> int:
    """Smallest index whose magic int covers the closest pair of neighbours."""
    if len(ints) < 2:
        mindiff = 2**31 - 1
    else:
        diffs = _to_int32(np.abs(np.diff(ints, axis=0)).sum(axis=1))
        mindiff = int(diffs.min())
    small_idx = FIRST_IDX
    while small_idx < LAST_IDX - 1 and MAGIC_INTS[small_idx] < mindiff:
        small_idx += 1
    return small_idx


def compress_ints(ints: ArrayLike) -> CompressedBlock:
    """
    Compress quantized coordinates.

    Args:
        ints: Integer coordinates, shape (N, 3).

    Returns:
        CompressedBlock holding ranges and packed data.
    """
    ints = np.asarray(ints, dtype=np.int64).reshape(-1, 3)
    n_atoms = len(ints)
    if n_atoms == 0:
        return CompressedBlock((0, 0, 0), (0, 0, 0), FIRST_IDX, b"")

    minint = tuple(int(v) for v in ints.min(axis=0))
    maxint = tuple(int(v) for v in ints.max(axis=0))
    if any(hi - lo >= MAX_ABS for lo, hi in zip(minint, maxint)):
        raise ValueError("Coordinate range too large to compress")

    block = CompressedBlock(minint, maxint, _initial_small_idx(ints), b"")
    sizes = block.sizes
    bitsize = block.bitsize
    bit_widths = block.bit_widths

    state = AdaptiveState.initial(block.small_idx)
    writer = BitWriter()
    coords = ints.tolist()
    prev = [0, 0, 0]
    prev_run = -1
    i = 0
    while i < n_atoms:
        this = coords[i]
        is_smaller = state.proposal(prev, this, i)
        is_small = False
        if i + 1 < n_atoms and state.is_small(this, coords[i + 1]):
            # Store the second atom first; water hydrogens then pack as a run.
            coords[i], coords[i + 1] = coords[i + 1], coords[i]
            this = coords[i]
            is_small = True

        shifted = [this[0] - minint[0], this[1] - minint[1], this[2] - minint[2]]
        if bitsize == 0:
            for width, value in zip(bit_widths, shifted):
                writer.write_bits(width, value)
        else:
            writer.write_ints(bitsize, sizes, shifted)
        prev = this
        i += 1

        if not is_small and is_smaller == -1:
            is_smaller = 0
        deltas = []
        while is_small and len(deltas) < MAX_RUN:
            this = coords[i]
            if is_smaller == -1 and _to_int32(
                (this[0] - prev[0]) ** 2
                + (this[1] - prev[1]) ** 2
                + (this[2] - prev[2]) ** 2
            ) >= _to_int32(state.smaller * state.smaller):
                is_smaller = 0
            n = state.small_num
            deltas.append(
                [this[0] - prev[0] + n, this[1] - prev[1] + n, this[2] - prev[2] + n]
            )
            prev = this
            i += 1
            is_small = i < n_atoms and state.is_small(prev, coords[i])

        run = 3 * len(deltas)
        if run != prev_run or is_smaller != 0:
            prev_run = run
            writer.write_bits(1, 1)
            writer.write_bits(RUN_CODE_BITS, run + is_smaller + 1)
        else:
            writer.write_bits(1, 0)
        size_small = state.size_small
        for delta in deltas:
            writer.write_ints(state.small_idx, (size_small,) * 3, delta)
        state.transition(is_smaller)

    return CompressedBlock(minint, maxint, block.small_idx, writer.getvalue())


def decompress_ints(
    block: CompressedBlock, n_atoms: int, max_bits: int = 32
) -> NDArray[np.int64]:
    """
    Decompress a block into quantized coordinates.

    Args:
        block: Compressed block.
        n_atoms: Number of atoms encoded in the block.
        max_bits: Largest accepted per-axis width.

    Returns:
        Integer array of shape (n_atoms, 3).

    Raises:
        CorruptFrame: If the block is inconsistent with n_atoms.
    """
    if n_atoms == 0:
        return np.zeros((0, 3), dtype=np.int64)
    block.validate(max_bits)
    if n_atoms > 8 * len(block.data):
        raise CorruptFrame(
            f"{len(block.data)} compressed bytes cannot hold {n_atoms} atoms"
        )

    minint = block.minint
    sizes = block.sizes
    bitsize = block.bitsize
    bit_widths = block.bit_widths

    state = AdaptiveState.initial(block.small_idx)
    reader = BitReader(block.data)
    out: list[list[int]] = []
    run = 0
    i = 0
    while i < n_atoms:
        if bitsize == 0:
            this = [reader.read_bits(width) for width in bit_widths]
        else:
            this = reader.read_ints(bitsize, sizes)
        this = [this[0] + minint[0], this[1] + minint[1], this[2] + minint[2]]
        i += 1
        prev = this

        is_smaller = 0
        if reader.read_bits(1):
            code = reader.read_bits(RUN_CODE_BITS)
            is_smaller = code % 3
            run = code - is_smaller
            is_smaller -= 1

        if run > 0:
            if i + run // 3 > n_atoms:
                raise CorruptFrame(f"Run of {run // 3} atoms overruns {n_atoms} atoms")
            n = state.small_num
            size_small = (state.size_small,) * 3
            for k in range(0, run, 3):
                delta = reader.read_ints(state.small_idx, size_small)
                i += 1
                cur = [
                    delta[0] + prev[0] - n,
                    delta[1] + prev[1] - n,
                    delta[2] + prev[2] - n,
                ]
                if k == 0:
                    # Undo the encoder's swap of the first two atoms.
                    cur, prev = prev, cur
                    out.append(prev)
                else:
                    prev = cur
                out.append(cur)
        else:
            out.append(this)
        state.transition(is_smaller)

    return np.array(out, dtype=np.int64).reshape(n_atoms, 3)


def compress(coords: ArrayLike, precision: float) -> CompressedBlock:
    """Quantize and compress coordinates of shape (N, 3)."""
    return compress_ints(quantize(coords, precision))


def decompress(
    block: CompressedBlock, n_atoms: int, precision: float, max_bits: int = 32
) -> NDArray[np.float32]:
    """Decompress a block and scale back to float32 coordinates."""
    return dequantize(decompress_ints(block, n_atoms, max_bits), precision)


def write_coords(
    writer: XDRWriter, coords: ArrayLike, precision: float
) -> CompressedBlock | None:
    """
    Write the coordinate section of an XTC frame.

    Layout: atom count, then either raw float triplets (at most nine atoms)
    or precision, minint[3], maxint[3], small_idx, byte count and the
    padded packed data.

    Returns:
        The compressed block, or None when coordinates were stored raw.
    """
    x = np.asarray(coords, dtype=np.float32).reshape(-1, 3)
    precision = check_precision(precision)
    writer.write_i32(len(x))
    if len(x) <= MAX_UNCOMPRESSED_ATOMS:
        writer.write_f32_array(x.ravel())
        return None

    block = compress(x, precision)
    logger.debug(
        "Compressed %d atoms into %d bytes (small_idx=%d)",
        len(x),
        len(block.data),
        block.small_idx,
    )
    writer.write_f32(precision)
    for value in (*block.minint, *block.maxint):
        writer.write_i32(value)
    writer.write_i32(block.small_idx)
    writer.write_i32(len(block.data))
    writer.write_opaque(block.data)
    return block


def _read_block_header(reader: XDRReader) -> tuple[float, tuple, tuple, int, int]:
    precision = reader.read_f32()
    ranges = reader.read_i32_array(6).tolist()
    small_idx = reader.read_i32()
    n_bytes = reader.read_i32()
    return precision, tuple(ranges[:3]), tuple(ranges[3:]), small_idx, n_bytes


def read_coords(
    reader: XDRReader, n_atoms: int, max_bits: int = 32
) -> tuple[NDArray[np.float32], float | None]:
    """
    Read the coordinate section of an XTC frame.

    Args:
        reader: Positioned at the section's atom count.
        n_atoms: Atom count from the frame header.
        max_bits: Largest accepted per-axis width.

    Returns:
        Coordinates of shape (n_atoms, 3) and the stored precision
        (None for uncompressed sections).

    Raises:
        CorruptFrame: If the section disagrees with the header or is malformed.
    """
    size = reader.read_i32()
    if size != n_atoms:
        raise CorruptFrame(
            f"Coordinate section holds {size} atoms, header declares {n_atoms}",
            reader.tell(),
        )
    if n_atoms <= MAX_UNCOMPRESSED_ATOMS:
        return reader.read_f32_array(3 * n_atoms).reshape(n_atoms, 3), None

    precision, minint, maxint, small_idx, n_bytes = _read_block_header(reader)
    data = reader.read_opaque(n_bytes)
    block = CompressedBlock(minint, maxint, small_idx, data)
    return decompress(block, n_atoms, precision, max_bits), precision


def skip_coords(reader: XDRReader, n_atoms: int) -> None:
    """Advance past a coordinate section without decompressing it."""
    size = reader.read_i32()
    if size != n_atoms:
        raise CorruptFrame(
            f"Coordinate section holds {size} atoms, header declares {n_atoms}",
            reader.tell(),
        )
    if n_atoms <= MAX_UNCOMPRESSED_ATOMS:
        reader.skip(12 * n_atoms)
        return
    *_, n_bytes = _read_block_header(reader)
    if n_bytes < 0:
        raise CorruptFrame(f"Negative compressed length {n_bytes}", reader.tell())
    reader.skip(padded_length(n_bytes))
