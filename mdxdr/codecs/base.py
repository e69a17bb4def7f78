"""Base class for frame codecs."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..errors import FormatError
from ..frame import Frame
from ..xdr import XDRReader, XDRWriter


@dataclass(frozen=True)
class FrameInfo:
    """
    Header summary of one frame, gathered without decoding its body.

    Attributes:
        offset: Byte offset of the frame's magic number.
        n_atoms: Declared atom count.
        step: Step index.
        time: Simulation time.
        size: Encoded frame length in bytes.
    """

    offset: int
    n_atoms: int
    step: int
    time: float
    size: int


class FrameCodec(ABC):
    """
    Abstract base class for frame codecs.

    A codec encodes one Frame to XDR and decodes it back. Codecs hold only
    configuration; the reader/writer they are given carries all state, so
    one codec may serve any number of streams.
    """

    name: str
    magic: int
    format_error: type[FormatError]

    @abstractmethod
    def write(self, writer: XDRWriter, frame: Frame) -> None:
        """
        Append one encoded frame to ``writer``.

        Args:
            writer: Destination buffer.
            frame: Frame to encode.
        """
        ...

    @abstractmethod
    def read(self, reader: XDRReader, n_atoms: int | None = None) -> Frame:
        """
        Decode one frame at the reader's position.

        Args:
            reader: Source positioned at a magic number.
            n_atoms: Atom count required by the trajectory, if established.

        Returns:
            Decoded Frame.
        """
        ...

    @abstractmethod
    def skip(self, reader: XDRReader) -> FrameInfo:
        """Advance past one frame, parsing only its header."""
        ...

    def encode(self, frame: Frame) -> bytes:
        """Encode a frame to bytes."""
        writer = XDRWriter()
        self.write(writer, frame)
        return writer.getvalue()

    def decode(self, data: bytes) -> Frame:
        """Decode a single frame from bytes."""
        return self.read(XDRReader.from_bytes(data))

    def check_magic(self, reader: XDRReader) -> None:
        """
        Read the magic number and fail fast if it is not this format's.

        Raises:
            FormatError: Subclass named by ``format_error``.
        """
        offset = reader.tell()
        magic = reader.read_i32()
        if magic != self.magic:
            raise self.format_error(
                f"Bad {self.name.upper()} magic {magic} (expected {self.magic})",
                offset,
            )

    def probe(self, data: bytes) -> bool:
        """True if ``data`` starts with this format's magic number."""
        if len(data) < 4:
            return False
        return int.from_bytes(data[:4], "big", signed=True) == self.magic
