"""
XTC frame codec.

Frame layout (all big-endian XDR):

    magic (1995), natoms, step, time (f32), box (9 x f32),
    coordinate section (see ``mdxdr.compression.coords``)
"""

from __future__ import annotations

import numpy as np

from ..compression.coords import read_coords, skip_coords, write_coords
from ..config import DEFAULT_CONFIG, XTCConfig
from ..errors import AtomCountMismatch, CorruptFrame, NotXtcFormat
from ..frame import Frame
from ..xdr import XDRReader, XDRWriter
from .base import FrameCodec, FrameInfo


XTC_MAGIC = 1995


def _read_header(reader: XDRReader, n_atoms: int | None) -> tuple[int, int, float]:
    offset = reader.tell()
    natoms = reader.read_i32()
    if natoms < 0:
        raise CorruptFrame(f"Negative atom count {natoms}", offset)
    if n_atoms is not None and natoms != n_atoms:
        raise AtomCountMismatch(n_atoms, natoms, offset)
    step = reader.read_i32()
    time = reader.read_f32()
    return natoms, step, time


class XTCCodec(FrameCodec):
    """
    Compressed coordinate frames.

    Args:
        precision: Precision used when a frame carries none. Defaults to
            the configured precision (1000.0).
        config: XTC settings.
    """

    name = "xtc"
    magic = XTC_MAGIC
    format_error = NotXtcFormat

    def __init__(
        self, precision: float | None = None, config: XTCConfig | None = None
    ) -> None:
        self.config = config if config is not None else DEFAULT_CONFIG.xtc
        self.precision = precision

    def resolve_precision(self, frame: Frame, precision: float | None = None) -> float:
        """Pick the explicit precision, then the frame's, then the default."""
        for candidate in (precision, self.precision, frame.precision):
            if candidate is not None:
                return candidate
        return self.config.precision

    def write(
        self, writer: XDRWriter, frame: Frame, precision: float | None = None
    ) -> None:
        """Append one XTC frame; coordinates are required for non-empty frames."""
        coordinates = frame.coordinates
        if coordinates is None:
            if frame.n_atoms:
                raise ValueError("XTC frames require coordinates")
            coordinates = np.zeros((0, 3), dtype=np.float32)
        box = frame.box if frame.box is not None else np.zeros((3, 3))

        writer.write_i32(self.magic)
        writer.write_i32(frame.n_atoms)
        writer.write_i32(frame.step)
        writer.write_f32(frame.time)
        writer.write_f32_array(np.asarray(box).ravel())
        write_coords(writer, coordinates, self.resolve_precision(frame, precision))

    def read(self, reader: XDRReader, n_atoms: int | None = None) -> Frame:
        """Decode one XTC frame."""
        self.check_magic(reader)
        natoms, step, time = _read_header(reader, n_atoms)
        box = reader.read_f32_array(9).reshape(3, 3)
        coordinates, precision = read_coords(reader, natoms, self.config.max_bits)
        return Frame(
            n_atoms=natoms,
            step=step,
            time=time,
            box=box,
            coordinates=coordinates,
            precision=precision,
        )

    def skip(self, reader: XDRReader) -> FrameInfo:
        """Advance past one XTC frame without decompressing coordinates."""
        offset = reader.tell()
        self.check_magic(reader)
        natoms, step, time = _read_header(reader, None)
        reader.skip(36)
        skip_coords(reader, natoms)
        return FrameInfo(offset, natoms, step, time, reader.tell() - offset)

    def read_n_atoms(self, reader: XDRReader) -> int:
        """Read only the atom count of the frame at the reader's position."""
        offset = reader.tell()
        self.check_magic(reader)
        natoms = _read_header(reader, None)[0]
        reader.seek(offset)
        return natoms


def encode_xtc_frame(
    frame: Frame, precision: float | None = None, config: XTCConfig | None = None
) -> bytes:
    """
    Encode a frame in XTC format.

    Args:
        frame: Frame with coordinates.
        precision: Quantization factor; defaults to the frame's precision,
            then to the configured default.
        config: XTC settings.

    Returns:
        Encoded frame bytes.
    """
    writer = XDRWriter()
    XTCCodec(config=config).write(writer, frame, precision)
    return writer.getvalue()


def decode_xtc_frame(data: bytes, config: XTCConfig | None = None) -> Frame:
    """Decode one XTC frame from bytes."""
    return XTCCodec(config=config).decode(data)
