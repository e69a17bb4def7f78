"""XTC (GROMACS) compressed trajectory files."""

from __future__ import annotations

from pathlib import Path

from ...config import CodecConfig
from ..base import TrajectoryReader, TrajectoryWriter
from ..stream import FrameWriter


class XTCWriter(TrajectoryWriter):
    """
    XTC format trajectory writer.

    XTC stores coordinates only, quantized to 1/precision nm and packed
    with an adaptive integer compressor.
    """

    format = "xtc"

    def __init__(
        self,
        filename: str | Path,
        precision: float | None = None,
        append: bool = False,
        config: CodecConfig | None = None,
    ) -> None:
        """
        Initialize XTC writer.

        Args:
            filename: Output file path.
            precision: Coordinate precision (1000 = 0.001 nm). Frames that
                carry their own precision use it when this is None.
            append: Extend an existing file.
            config: Codec settings.
        """
        super().__init__(filename, append, config)
        self.precision = precision

    def _make_writer(self) -> FrameWriter:
        return FrameWriter(
            self._file, self.format, precision=self.precision, config=self.config
        )


class XTCReader(TrajectoryReader):
    """XTC format trajectory reader."""

    format = "xtc"
