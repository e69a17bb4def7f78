"""
TRR frame codec.

Frame layout (all big-endian XDR):

    magic (1993), 13, string "GMX_trn_file",
    ir_size, e_size, box_size, vir_size, pres_size, top_size, sym_size,
    x_size, v_size, f_size, natoms, step, nre,
    time, lambda                        (f32 or f64)
    box, virial, pressure (9 reals each), x, v, f (natoms x 3 reals each)

A section is present when its size field is non-zero. The real width is not
stored explicitly; it follows from any section size divided by its element
count.

A per-atom section of a zero-atom frame has size 0 on the wire, the same as
an absent section, so it decodes as None rather than an empty array.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from ..config import DEFAULT_CONFIG, TRRConfig
from ..errors import AtomCountMismatch, CorruptFrame, NotTrrFormat
from ..frame import Frame
from ..xdr import XDRReader, XDRWriter
from .base import FrameCodec, FrameInfo

logger = logging.getLogger(__name__)

TRR_MAGIC = 1993
TRR_VERSION = "GMX_trn_file"

FLOAT_SIZE = 4
DOUBLE_SIZE = 8

# Sections in body order: (header field, Frame attribute, per-atom)
SECTIONS = (
    ("box_size", "box", False),
    ("vir_size", "virial", False),
    ("pres_size", "pressure", False),
    ("x_size", "coordinates", True),
    ("v_size", "velocities", True),
    ("f_size", "forces", True),
)

_LEGACY_FIELDS = ("ir_size", "e_size", "top_size", "sym_size")


@dataclass
class TRRHeader:
    """
    Decoded TRR frame header.

    Attributes:
        ir_size, e_size, top_size, sym_size: Legacy block sizes, always 0.
        box_size, vir_size, pres_size: Bytes of each 3x3 block (0 = absent).
        x_size, v_size, f_size: Bytes of each per-atom block (0 = absent).
        n_atoms: Atom count.
        step: Step index.
        nre: Number of energy terms, unused.
        time: Simulation time.
        lambda_value: Free-energy coupling parameter.
        double: True if reals are 8 bytes wide.
    """

    ir_size: int = 0
    e_size: int = 0
    box_size: int = 0
    vir_size: int = 0
    pres_size: int = 0
    top_size: int = 0
    sym_size: int = 0
    x_size: int = 0
    v_size: int = 0
    f_size: int = 0
    n_atoms: int = 0
    step: int = 0
    nre: int = 0
    time: float = 0.0
    lambda_value: float = 0.0
    double: bool = False

    INT_FIELDS = (
        "ir_size", "e_size", "box_size", "vir_size", "pres_size", "top_size",
        "sym_size", "x_size", "v_size", "f_size", "n_atoms", "step", "nre",
    )  # fmt: skip

    @property
    def real_size(self) -> int:
        return DOUBLE_SIZE if self.double else FLOAT_SIZE

    @property
    def body_size(self) -> int:
        """Bytes occupied by all present sections."""
        return sum(getattr(self, field) for field, _, _ in SECTIONS)

    @classmethod
    def for_frame(cls, frame: Frame, double: bool = False) -> TRRHeader:
        """Build the header describing ``frame``."""
        header = cls(
            n_atoms=frame.n_atoms,
            step=frame.step,
            time=frame.time,
            lambda_value=frame.lambda_value,
        )
        width = DOUBLE_SIZE if double else FLOAT_SIZE
        for field, attr, per_atom in SECTIONS:
            if getattr(frame, attr) is not None:
                count = 3 * frame.n_atoms if per_atom else 9
                setattr(header, field, count * width)
        # Without a non-empty section a reader cannot see the width.
        header.double = double and header.body_size > 0
        return header

    def infer_double(self, offset: int | None = None) -> None:
        """
        Derive the real width from the section sizes.

        Raises:
            CorruptFrame: If the sizes imply a width other than 4 or 8 bytes,
                or sections disagree with each other.
        """
        widths = set()
        for field, _, per_atom in SECTIONS:
            size = getattr(self, field)
            if size == 0:
                continue
            count = 3 * self.n_atoms if per_atom else 9
            if count == 0 or size % count:
                raise CorruptFrame(
                    f"{field}={size} is not a multiple of {count} elements", offset
                )
            widths.add(size // count)
        if not widths:
            logger.debug("TRR frame has no sections; assuming single precision")
            self.double = False
            return
        if len(widths) > 1 or not widths <= {FLOAT_SIZE, DOUBLE_SIZE}:
            raise CorruptFrame(f"Inconsistent real sizes {sorted(widths)}", offset)
        self.double = widths.pop() == DOUBLE_SIZE


def read_trr_header(reader: XDRReader, n_atoms: int | None = None) -> TRRHeader:
    """
    Read a TRR header after its magic number.

    Args:
        reader: Positioned just past the magic number.
        n_atoms: Atom count required by the trajectory, if established.
    """
    offset = reader.tell()
    slen = reader.read_i32()
    if slen != len(TRR_VERSION) + 1:
        raise CorruptFrame(f"Bad TRR version string length {slen}", offset)
    reader.read_string()

    header = TRRHeader()
    for field in TRRHeader.INT_FIELDS:
        setattr(header, field, reader.read_i32())

    if header.n_atoms < 0:
        raise CorruptFrame(f"Negative atom count {header.n_atoms}", offset)
    if n_atoms is not None and header.n_atoms != n_atoms:
        raise AtomCountMismatch(n_atoms, header.n_atoms, offset)
    for field in (*_LEGACY_FIELDS, *(f for f, _, _ in SECTIONS)):
        if getattr(header, field) < 0:
            raise CorruptFrame(f"Negative {field}", offset)
    for field in _LEGACY_FIELDS:
        if getattr(header, field):
            raise CorruptFrame(f"Unsupported TRR block {field}", offset)

    header.infer_double(offset)
    header.time = reader.read_real(header.double)
    header.lambda_value = reader.read_real(header.double)
    return header


def write_trr_header(writer: XDRWriter, header: TRRHeader) -> None:
    """Append a TRR header including its magic number."""
    writer.write_i32(TRR_MAGIC)
    writer.write_i32(len(TRR_VERSION) + 1)
    writer.write_string(TRR_VERSION)
    for field in TRRHeader.INT_FIELDS:
        writer.write_i32(getattr(header, field))
    writer.write_real(header.time, header.double)
    writer.write_real(header.lambda_value, header.double)


class TRRCodec(FrameCodec):
    """
    Uncompressed full-precision frames.

    Args:
        double: Write 8-byte reals. Defaults to the configured setting.
        config: TRR settings.
    """

    name = "trr"
    magic = TRR_MAGIC
    format_error = NotTrrFormat

    def __init__(
        self, double: bool | None = None, config: TRRConfig | None = None
    ) -> None:
        self.config = config if config is not None else DEFAULT_CONFIG.trr
        self.double = self.config.double if double is None else double

    def write(self, writer: XDRWriter, frame: Frame) -> None:
        """Append one TRR frame with every section the frame carries."""
        header = TRRHeader.for_frame(frame, self.double)
        write_trr_header(writer, header)
        for field, attr, _ in SECTIONS:
            if getattr(header, field):
                writer.write_real_array(getattr(frame, attr).ravel(), header.double)

    def read(self, reader: XDRReader, n_atoms: int | None = None) -> Frame:
        """Decode one TRR frame; absent sections become None."""
        self.check_magic(reader)
        header = read_trr_header(reader, n_atoms)
        reader.ensure_available(header.body_size)

        sections = {}
        for field, attr, per_atom in SECTIONS:
            if getattr(header, field):
                count = 3 * header.n_atoms if per_atom else 9
                values = reader.read_real_array(count, header.double)
                sections[attr] = values.reshape(-1, 3)
        return Frame(
            n_atoms=header.n_atoms,
            step=header.step,
            time=header.time,
            lambda_value=header.lambda_value,
            **sections,
        )

    def skip(self, reader: XDRReader) -> FrameInfo:
        """Advance past one TRR frame using its declared section sizes."""
        offset = reader.tell()
        self.check_magic(reader)
        header = read_trr_header(reader)
        reader.skip(header.body_size)
        return FrameInfo(
            offset, header.n_atoms, header.step, header.time, reader.tell() - offset
        )

    def read_n_atoms(self, reader: XDRReader) -> int:
        """Read only the atom count of the frame at the reader's position."""
        offset = reader.tell()
        self.check_magic(reader)
        n_atoms = read_trr_header(reader).n_atoms
        reader.seek(offset)
        return n_atoms


def encode_trr_frame(frame: Frame, double: bool = False) -> bytes:
    """
    Encode a frame in TRR format.

    Args:
        frame: Frame to encode; None sections are omitted.
        double: Store reals as 8-byte doubles.

    Returns:
        Encoded frame bytes.
    """
    return TRRCodec(double=double).encode(frame)


def decode_trr_frame(data: bytes) -> Frame:
    """Decode one TRR frame from bytes."""
    return TRRCodec().decode(data)
