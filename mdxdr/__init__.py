"""
mdxdr - Readers and writers for GROMACS XTC and TRR trajectories.

XTC frames hold lossy compressed coordinates; TRR frames hold full-precision
coordinates, velocities and forces. Both are sequences of self-describing
big-endian XDR frames.

Quick Start:
    >>> import numpy as np
    >>> from mdxdr import Frame, XTCReader, XTCWriter
    >>> with XTCWriter("traj.xtc") as writer:
    ...     writer.write(Frame.from_coordinates(np.zeros((10, 3)), box=[3.0, 3.0, 3.0]))
    >>> with XTCReader("traj.xtc") as reader:
    ...     print(reader.n_atoms, len(reader))
    10 1
"""

__version__ = "0.1.0"

from .codecs import (
    decode_trr_frame,
    decode_xtc_frame,
    encode_trr_frame,
    encode_xtc_frame,
)
from .config import CodecConfig, StreamConfig, TRRConfig, XDRConfig, XTCConfig
from .errors import (
    AtomCountMismatch,
    CorruptFrame,
    FormatError,
    FormatMismatch,
    InvalidLength,
    InvalidPrecision,
    NotTrrFormat,
    NotXtcFormat,
    StreamClosed,
    TruncatedInput,
    XDRFileError,
)
from .frame import Frame
from .io import (
    FrameIndex,
    FrameWriter,
    TrajectoryStream,
    TRRReader,
    TRRWriter,
    XTCReader,
    XTCWriter,
    build_index,
    decode_next_frame,
    encode_frame,
    open_trajectory,
    read_n_atoms,
    seek_to_frame,
)

__all__ = [
    "Frame",
    # Single frames
    "encode_xtc_frame",
    "decode_xtc_frame",
    "encode_trr_frame",
    "decode_trr_frame",
    # Streams
    "TrajectoryStream",
    "open_trajectory",
    "FrameIndex",
    "FrameWriter",
    "decode_next_frame",
    "encode_frame",
    "build_index",
    "seek_to_frame",
    "read_n_atoms",
    # Files
    "XTCReader",
    "XTCWriter",
    "TRRReader",
    "TRRWriter",
    # Configuration
    "CodecConfig",
    "XDRConfig",
    "XTCConfig",
    "TRRConfig",
    "StreamConfig",
    # Errors
    "XDRFileError",
    "TruncatedInput",
    "InvalidLength",
    "CorruptFrame",
    "FormatError",
    "NotXtcFormat",
    "NotTrrFormat",
    "FormatMismatch",
    "InvalidPrecision",
    "AtomCountMismatch",
    "StreamClosed",
]
