"""Sequential and indexed frame streams over binary byte streams."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO

import numpy as np
from numpy.typing import NDArray

from ..codecs import MAGICS, FrameCodec, FrameInfo, format_for_magic, get_codec
from ..config import DEFAULT_CONFIG, CodecConfig
from ..errors import (
    AtomCountMismatch,
    FormatMismatch,
    StreamClosed,
    TruncatedInput,
)
from ..frame import Frame
from ..xdr import XDRReader, XDRWriter

logger = logging.getLogger(__name__)


class StreamState(Enum):
    """Lifecycle of a trajectory stream."""

    UNOPENED = "unopened"
    OPEN = "open"
    CLOSED = "closed"


@dataclass
class FrameIndex:
    """
    Byte offsets of every frame in a stream.

    Derived data: rebuildable at any time by a linear scan.

    Attributes:
        offsets: Byte offset of each frame.
        steps: Step index of each frame.
        times: Simulation time of each frame.
        sizes: Encoded length of each frame in bytes.
    """

    offsets: list[int] = field(default_factory=list)
    steps: list[int] = field(default_factory=list)
    times: list[float] = field(default_factory=list)
    sizes: list[int] = field(default_factory=list)

    def append(self, info: FrameInfo) -> None:
        """Record one frame."""
        self.offsets.append(info.offset)
        self.steps.append(info.step)
        self.times.append(info.time)
        self.sizes.append(info.size)

    def __len__(self) -> int:
        return len(self.offsets)

    def __getitem__(self, n: int) -> int:
        """Byte offset of frame ``n``."""
        return self.offsets[n]

    def as_dict(self) -> dict[int, int]:
        """Mapping from frame number to byte offset."""
        return dict(enumerate(self.offsets))

    def frame_at_time(self, time: float, tolerance: float = 0.0) -> int:
        """
        Return the first frame whose time is not before ``time``.

        Raises:
            IndexError: If every frame is earlier than ``time``.
        """
        times: NDArray[np.float64] = np.asarray(self.times, dtype=np.float64)
        candidates = np.nonzero(times >= time - tolerance)[0]
        if len(candidates) == 0:
            raise IndexError(f"No frame at or after time {time}")
        return int(candidates[0])


class TrajectoryStream:
    """
    Frame-by-frame reader over a seekable binary stream.

    The first frame's magic number fixes the format; its atom count fixes
    the atom count for the rest of the stream. The handle owns the cursor
    and the optional index and must not be shared between threads without
    external locking.

    Args:
        stream: Seekable binary stream positioned at a frame boundary.
        fmt: Expected format ("xtc" or "trr"). Detected when None.
        config: Codec settings.

    Example:
        with open("traj.xtc", "rb") as f, TrajectoryStream(f) as traj:
            for frame in traj:
                analyze(frame.coordinates)
    """

    def __init__(
        self,
        stream: BinaryIO,
        fmt: str | None = None,
        config: CodecConfig | None = None,
    ) -> None:
        self.config = config if config is not None else DEFAULT_CONFIG
        self._reader = XDRReader(stream, self.config.xdr)
        self._fmt = fmt.lower() if fmt is not None else None
        self._codec: FrameCodec | None = None
        self._state = StreamState.UNOPENED
        self._origin = 0
        self._n_atoms: int | None = None
        self._index: FrameIndex | None = None
        self._frame_number = 0
        self._last_time: float | None = None

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def format(self) -> str | None:
        """Format fixed by the first frame, None before opening."""
        return self._fmt if self._state is not StreamState.UNOPENED else None

    @property
    def n_atoms(self) -> int:
        """Atom count of the trajectory."""
        self._ensure_open()
        if self._n_atoms is None:
            position = self._reader.tell()
            self._reader.seek(self._origin)
            try:
                if self._reader.at_end():
                    return 0
                self._n_atoms = self._codec.read_n_atoms(self._reader)
            finally:
                self._reader.seek(position)
        return self._n_atoms

    @property
    def frame_number(self) -> int:
        """Number of the frame the next read returns."""
        return self._frame_number

    def open(self) -> TrajectoryStream:
        """
        Validate the first magic number and fix the format.

        An empty stream opens successfully and yields no frames.

        Raises:
            FormatError: If the magic is unknown or not the requested format.
        """
        if self._state is StreamState.CLOSED:
            raise StreamClosed("Trajectory stream is closed")
        if self._state is StreamState.OPEN:
            return self

        self._origin = self._reader.tell()
        if self._reader.at_end():
            fmt = self._fmt or "xtc"
        else:
            magic = self._peek_magic()
            if self._fmt is not None:
                codec = get_codec(self._fmt)
                if magic != codec.magic:
                    raise codec.format_error(
                        f"Bad {codec.name.upper()} magic {magic} "
                        f"(expected {codec.magic})",
                        self._origin,
                    )
                fmt = self._fmt
            else:
                fmt = format_for_magic(magic, self._origin)

        self._fmt = fmt
        self._codec = self._make_codec(fmt)
        self._state = StreamState.OPEN
        logger.debug("Opened %s trajectory at byte %d", fmt, self._origin)
        return self

    def _make_codec(self, fmt: str) -> FrameCodec:
        if fmt == "xtc":
            return get_codec(fmt, config=self.config.xtc)
        return get_codec(fmt, config=self.config.trr)

    def close(self) -> None:
        """Close the handle; the underlying stream is left to its owner."""
        self._state = StreamState.CLOSED
        self._index = None

    def _ensure_open(self) -> None:
        if self._state is StreamState.CLOSED:
            raise StreamClosed("Trajectory stream is closed")
        if self._state is StreamState.UNOPENED:
            self.open()

    def _peek_magic(self) -> int:
        offset = self._reader.tell()
        try:
            return self._reader.read_i32()
        finally:
            self._reader.seek(offset)

    def next_frame(self) -> Frame | None:
        """
        Decode the frame at the cursor and advance past it.

        Returns:
            The decoded Frame, or None at a clean end of stream.

        Raises:
            TruncatedInput: The stream ends inside the frame. The cursor is
                moved back to the frame start so the read can be retried.
            FormatMismatch: The frame belongs to another format.
            AtomCountMismatch: The atom count differs from the first frame.
            CorruptFrame: The frame is malformed.
        """
        self._ensure_open()
        reader = self._reader
        if reader.at_end():
            return None

        offset = reader.tell()
        try:
            magic = self._peek_magic()
            if magic != self._codec.magic:
                other = MAGICS.get(magic, "unknown")
                raise FormatMismatch(
                    f"Frame {self._frame_number} is {other}, stream is {self._fmt}",
                    offset,
                )
            frame = self._codec.read(reader, self._n_atoms)
        except TruncatedInput:
            reader.seek(offset)
            raise

        if self._n_atoms is None:
            self._n_atoms = frame.n_atoms
        self._check_time(frame)
        self._frame_number += 1
        return frame

    def _check_time(self, frame: Frame) -> None:
        if (
            self.config.stream.check_monotonic_time
            and self._last_time is not None
            and frame.time < self._last_time
        ):
            logger.warning(
                "Frame %d time %g precedes previous frame time %g",
                self._frame_number,
                frame.time,
                self._last_time,
            )
        self._last_time = frame.time

    def __iter__(self) -> Iterator[Frame]:
        """Iterate over the remaining frames."""
        while True:
            frame = self.next_frame()
            if frame is None:
                return
            yield frame

    def build_index(self) -> FrameIndex:
        """
        Scan the whole stream, reading only frame headers.

        The cursor is restored afterwards.

        Raises:
            AtomCountMismatch: If any frame changes the atom count.
            FormatMismatch: If any frame belongs to another format.
        """
        self._ensure_open()
        reader = self._reader
        position = reader.tell()
        index = FrameIndex()
        reader.seek(self._origin)
        try:
            while not reader.at_end():
                offset = reader.tell()
                magic = self._peek_magic()
                if magic != self._codec.magic:
                    raise FormatMismatch(
                        f"Frame {len(index)} is {MAGICS.get(magic, 'unknown')}, "
                        f"stream is {self._fmt}",
                        offset,
                    )
                info = self._codec.skip(reader)
                if self._n_atoms is None:
                    self._n_atoms = info.n_atoms
                elif info.n_atoms != self._n_atoms:
                    raise AtomCountMismatch(self._n_atoms, info.n_atoms, offset)
                index.append(info)
        finally:
            reader.seek(position)
        self._index = index
        logger.debug("Indexed %d %s frames", len(index), self._fmt)
        return index

    @property
    def index(self) -> FrameIndex:
        """Frame index, built on first access."""
        if self._index is None:
            self.build_index()
        return self._index

    @property
    def n_frames(self) -> int:
        """Number of frames in the stream."""
        return len(self.index)

    def seek_to_frame(self, n: int, index: FrameIndex | None = None) -> None:
        """
        Position the cursor at frame ``n``.

        Args:
            n: Frame number (0-based; negative counts from the end).
            index: Index to use instead of the stream's own.

        Raises:
            IndexError: If ``n`` is out of range.
        """
        self._ensure_open()
        index = index if index is not None else self.index
        if n < 0:
            n += len(index)
        if not 0 <= n < len(index):
            raise IndexError(f"Frame {n} out of range for {len(index)} frames")
        self._reader.seek(index[n])
        self._frame_number = n
        self._last_time = None
        logger.debug("Seeked to frame %d at byte %d", n, index[n])

    def seek_to_time(self, time: float) -> int:
        """
        Position the cursor at the first frame not before ``time``.

        Returns:
            The frame number moved to.
        """
        n = self.index.frame_at_time(time, self.config.stream.time_tolerance)
        self.seek_to_frame(n)
        return n

    def rewind(self) -> None:
        """Return to the first frame."""
        self._ensure_open()
        self._reader.seek(self._origin)
        self._frame_number = 0
        self._last_time = None

    def __enter__(self) -> TrajectoryStream:
        """Context manager entry."""
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()


class FrameWriter:
    """
    Appends encoded frames to a binary stream.

    Each frame is encoded into a buffer owned by this handle, written in one
    call, then the buffer is cleared.

    Args:
        stream: Writable binary stream.
        fmt: "xtc" or "trr".
        precision: XTC precision override.
        double: Write TRR reals in double precision.
        config: Codec settings.
    """

    def __init__(
        self,
        stream: BinaryIO,
        fmt: str = "xtc",
        precision: float | None = None,
        double: bool | None = None,
        config: CodecConfig | None = None,
    ) -> None:
        self.config = config if config is not None else DEFAULT_CONFIG
        self.stream = stream
        self.fmt = fmt.lower()
        if self.fmt == "xtc":
            self._codec = get_codec("xtc", precision=precision, config=self.config.xtc)
        else:
            self._codec = get_codec(self.fmt, double=double, config=self.config.trr)
        self._buffer = XDRWriter()
        self._n_atoms: int | None = None
        self._n_frames = 0
        self._closed = False

    @property
    def n_frames(self) -> int:
        """Number of frames written."""
        return self._n_frames

    def write_frame(self, frame: Frame) -> None:
        """
        Encode and append one frame.

        Raises:
            AtomCountMismatch: If the frame's atom count differs from the
                first frame written.
            InvalidPrecision: If the XTC precision is not positive.
        """
        if self._closed:
            raise StreamClosed("Frame writer is closed")
        if self._n_atoms is not None and frame.n_atoms != self._n_atoms:
            raise AtomCountMismatch(self._n_atoms, frame.n_atoms)
        self._buffer.reset()
        try:
            self._codec.write(self._buffer, frame)
            self.stream.write(self._buffer.getvalue())
        finally:
            self._buffer.reset()
        self._n_atoms = frame.n_atoms
        self._n_frames += 1

    def flush(self) -> None:
        """Flush the underlying stream."""
        self.stream.flush()

    def close(self) -> None:
        """Flush and stop accepting frames; the stream stays open."""
        if not self._closed:
            self.flush()
            self._closed = True

    def __enter__(self) -> FrameWriter:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()


def open_trajectory(
    stream: BinaryIO, fmt: str | None = None, config: CodecConfig | None = None
) -> TrajectoryStream:
    """
    Open a frame stream, detecting the format from the first magic number.

    Raises:
        FormatError: If the first frame is neither XTC nor TRR, or not ``fmt``.
    """
    return TrajectoryStream(stream, fmt, config).open()


def decode_next_frame(
    stream: BinaryIO, config: CodecConfig | None = None
) -> Frame | None:
    """
    Decode the frame at the stream's position, whichever format it is.

    Returns:
        The decoded Frame, or None if the stream is at its end.
    """
    traj = TrajectoryStream(stream, config=config)
    try:
        return traj.open().next_frame()
    finally:
        traj.close()


def encode_frame(
    stream: BinaryIO,
    frame: Frame,
    precision: float | None = None,
    fmt: str = "xtc",
    double: bool | None = None,
) -> None:
    """
    Append one encoded frame to a stream.

    Args:
        stream: Writable binary stream.
        frame: Frame to encode.
        precision: XTC precision (defaults to the frame's, then 1000.0).
        fmt: "xtc" or "trr".
        double: TRR real width.
    """
    FrameWriter(stream, fmt, precision=precision, double=double).write_frame(frame)


def build_index(stream: BinaryIO, config: CodecConfig | None = None) -> dict[int, int]:
    """Map frame numbers to byte offsets with one header-only scan."""
    return TrajectoryStream(stream, config=config).open().build_index().as_dict()


def seek_to_frame(stream: BinaryIO, index: dict[int, int] | FrameIndex, n: int) -> None:
    """
    Move a stream to the start of frame ``n`` using a prebuilt index.

    Raises:
        IndexError: If frame ``n`` is not in the index.
    """
    try:
        offset = index[n]
    except (KeyError, IndexError):
        raise IndexError(f"Frame {n} not in index of {len(index)} frames") from None
    stream.seek(offset)


def read_n_atoms(stream: BinaryIO) -> int:
    """Read the atom count from the first frame header without moving the stream."""
    position = stream.tell()
    try:
        return TrajectoryStream(stream).open().n_atoms
    finally:
        stream.seek(position)
