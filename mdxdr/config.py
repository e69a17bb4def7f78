"""Codec configuration."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class XDRConfig:
    """
    Limits for the XDR primitive layer.

    Attributes:
        max_opaque_length: Upper bound for any declared opaque/string length.
            Lengths above this are rejected before any allocation happens.
    """

    max_opaque_length: int = 1 << 30


@dataclass(frozen=True)
class XTCConfig:
    """
    XTC codec settings.

    Attributes:
        precision: Default quantization factor (1000 = 0.001 nm).
        max_bits: Largest bit width accepted for one axis of a compressed frame.
    """

    precision: float = 1000.0
    max_bits: int = 32


@dataclass(frozen=True)
class TRRConfig:
    """
    TRR codec settings.

    Attributes:
        double: Write 8-byte reals instead of 4-byte reals.
    """

    double: bool = False


@dataclass(frozen=True)
class StreamConfig:
    """
    Frame stream settings.

    Attributes:
        time_tolerance: Absolute tolerance when seeking to a time value.
        check_monotonic_time: Log a warning when frame time decreases.
    """

    time_tolerance: float = 1e-4
    check_monotonic_time: bool = True


@dataclass(frozen=True)
class CodecConfig:
    """Bundle of all codec settings."""

    xdr: XDRConfig = field(default_factory=XDRConfig)
    xtc: XTCConfig = field(default_factory=XTCConfig)
    trr: TRRConfig = field(default_factory=TRRConfig)
    stream: StreamConfig = field(default_factory=StreamConfig)


DEFAULT_CONFIG = CodecConfig()
