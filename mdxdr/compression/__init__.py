"""Integer coordinate compression used by the XTC format."""

from .bits import BitReader, BitWriter, bits_for_int, bits_for_ints
from .coords import (
    AdaptiveState,
    CompressedBlock,
    compress,
    compress_ints,
    decompress,
    decompress_ints,
    dequantize,
    quantize,
    read_coords,
    write_coords,
)

__all__ = [
    "AdaptiveState",
    "CompressedBlock",
    "BitReader",
    "BitWriter",
    "bits_for_int",
    "bits_for_ints",
    "quantize",
    "dequantize",
    "compress",
    "decompress",
    "compress_ints",
    "decompress_ints",
    "write_coords",
    "read_coords",
]
