"""Base classes for trajectory file I/O."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from pathlib import Path

from ..config import DEFAULT_CONFIG, CodecConfig
from ..frame import Frame
from .stream import FrameIndex, FrameWriter, TrajectoryStream


class TrajectoryWriter(ABC):
    """
    Abstract base class for trajectory file writers.

    Writers append frames to a file. Opening with ``append=True`` extends
    an existing trajectory.

    Example:
        with XTCWriter("trajectory.xtc") as writer:
            for step, coords in enumerate(simulation):
                writer.write(Frame.from_coordinates(coords, step=step))
    """

    format: str

    def __init__(
        self,
        filename: str | Path,
        append: bool = False,
        config: CodecConfig | None = None,
    ) -> None:
        """
        Initialize trajectory writer.

        Args:
            filename: Output file path.
            append: Extend an existing file instead of truncating it.
            config: Codec settings.
        """
        self.filename = Path(filename)
        self.append = append
        self.config = config if config is not None else DEFAULT_CONFIG
        self._file = None
        self._writer: FrameWriter | None = None

    @abstractmethod
    def _make_writer(self) -> FrameWriter:
        """Create the frame writer for the open file."""
        ...

    def write(self, frame: Frame) -> None:
        """
        Write a single frame.

        Args:
            frame: Frame to write.
        """
        if self._writer is None:
            self.open()
        self._writer.write_frame(frame)

    def open(self) -> None:
        """Open file for binary writing."""
        self._file = self.filename.open("ab" if self.append else "wb")
        self._writer = self._make_writer()

    def close(self) -> None:
        """Close file."""
        if self._writer is not None:
            self._writer.close()
            self._writer = None
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> TrajectoryWriter:
        """Context manager entry."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()

    @property
    def n_frames(self) -> int:
        """Number of frames written."""
        return self._writer.n_frames if self._writer is not None else 0


class TrajectoryReader(ABC):
    """
    Abstract base class for trajectory file readers.

    Readers support iteration and random access through a frame index that
    is built by a header-only scan on first use.

    Example:
        with XTCReader("trajectory.xtc") as reader:
            for frame in reader:
                analyze(frame)
            last = reader[-1]
    """

    @property
    @abstractmethod
    def format(self) -> str:
        """Format name passed to the frame stream."""
        ...

    def __init__(self, filename: str | Path, config: CodecConfig | None = None) -> None:
        """
        Initialize trajectory reader.

        Args:
            filename: Input file path.
            config: Codec settings.
        """
        self.filename = Path(filename)
        self.config = config if config is not None else DEFAULT_CONFIG
        self._file = None
        self._stream: TrajectoryStream | None = None

    @property
    def stream(self) -> TrajectoryStream:
        """Underlying frame stream, opening the file if needed."""
        if self._stream is None:
            self.open()
        return self._stream

    def open(self) -> None:
        """Open file for binary reading and validate the first magic number."""
        self._file = self.filename.open("rb")
        try:
            self._stream = TrajectoryStream(self._file, self.format, self.config).open()
        except Exception:
            self._file.close()
            self._file = None
            raise

    def close(self) -> None:
        """Close file."""
        if self._stream is not None:
            self._stream.close()
            self._stream = None
        if self._file is not None:
            self._file.close()
            self._file = None

    @property
    def n_atoms(self) -> int:
        """Atom count of the trajectory."""
        return self.stream.n_atoms

    @property
    def index(self) -> FrameIndex:
        """Byte offsets of all frames."""
        return self.stream.index

    def read_frame(self, index: int) -> Frame:
        """
        Read a specific frame.

        Args:
            index: Frame index (0-based, negative counts from the end).

        Returns:
            Decoded Frame.
        """
        self.stream.seek_to_frame(index)
        return self.stream.next_frame()

    def read_time(self, time: float) -> Frame:
        """Read the first frame whose time is not before ``time``."""
        self.stream.seek_to_time(time)
        return self.stream.next_frame()

    def __iter__(self) -> Iterator[Frame]:
        """Iterate over all frames from the start."""
        self.stream.rewind()
        return iter(self.stream)

    def __len__(self) -> int:
        """Return number of frames."""
        return self.stream.n_frames

    def __getitem__(self, index: int) -> Frame:
        """Get frame by index."""
        return self.read_frame(index)

    def __enter__(self) -> TrajectoryReader:
        """Context manager entry."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()

    @property
    def n_frames(self) -> int:
        """Number of frames in trajectory."""
        return len(self)
