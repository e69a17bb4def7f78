"""TRR (GROMACS) full-precision trajectory files."""

from __future__ import annotations

from pathlib import Path

from ...config import CodecConfig
from ..base import TrajectoryReader, TrajectoryWriter
from ..stream import FrameWriter


class TRRWriter(TrajectoryWriter):
    """
    TRR format trajectory writer.

    Each frame stores whichever of box, virial, pressure, coordinates,
    velocities and forces it carries, uncompressed.
    """

    format = "trr"

    def __init__(
        self,
        filename: str | Path,
        double: bool | None = None,
        append: bool = False,
        config: CodecConfig | None = None,
    ) -> None:
        """
        Initialize TRR writer.

        Args:
            filename: Output file path.
            double: Store 8-byte reals. Defaults to the configured setting.
            append: Extend an existing file.
            config: Codec settings.
        """
        super().__init__(filename, append, config)
        self.double = double

    def _make_writer(self) -> FrameWriter:
        return FrameWriter(
            self._file, self.format, double=self.double, config=self.config
        )


class TRRReader(TrajectoryReader):
    """TRR format trajectory reader; real width is detected per frame."""

    format = "trr"
