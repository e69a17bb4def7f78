"""I/O layer for trajectory streams and files."""

from .base import TrajectoryReader, TrajectoryWriter
from .formats.trr import TRRReader, TRRWriter
from .formats.xtc import XTCReader, XTCWriter
from .stream import (
    FrameIndex,
    FrameWriter,
    StreamState,
    TrajectoryStream,
    build_index,
    decode_next_frame,
    encode_frame,
    open_trajectory,
    read_n_atoms,
    seek_to_frame,
)

__all__ = [
    # Streams
    "TrajectoryStream",
    "StreamState",
    "open_trajectory",
    "FrameIndex",
    "FrameWriter",
    "decode_next_frame",
    "encode_frame",
    "build_index",
    "seek_to_frame",
    "read_n_atoms",
    # Base classes
    "TrajectoryReader",
    "TrajectoryWriter",
    # Formats
    "XTCReader",
    "XTCWriter",
    "TRRReader",
    "TRRWriter",
]
