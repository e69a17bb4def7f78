"""Frame codecs for the XTC and TRR formats."""

from __future__ import annotations

from ..errors import FormatError
from .base import FrameCodec, FrameInfo
from .trr import TRR_MAGIC, TRRCodec, TRRHeader, decode_trr_frame, encode_trr_frame
from .xtc import XTC_MAGIC, XTCCodec, decode_xtc_frame, encode_xtc_frame

CODECS: dict[str, type[FrameCodec]] = {
    "xtc": XTCCodec,
    "trr": TRRCodec,
}

MAGICS: dict[int, str] = {
    XTC_MAGIC: "xtc",
    TRR_MAGIC: "trr",
}


def get_codec(name: str, **kwargs) -> FrameCodec:
    """
    Instantiate a codec by format name.

    Args:
        name: "xtc" or "trr" (case-insensitive).
        **kwargs: Codec options (precision, double, config).
    """
    try:
        codec_cls = CODECS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown trajectory format {name!r}. Available: {list(CODECS)}"
        ) from None
    return codec_cls(**kwargs)


def format_for_magic(magic: int, offset: int | None = None) -> str:
    """
    Return the format name for a magic number.

    Raises:
        FormatError: If the magic number is not recognised.
    """
    try:
        return MAGICS[magic]
    except KeyError:
        raise FormatError(f"Unknown trajectory magic {magic}", offset) from None


__all__ = [
    "FrameCodec",
    "FrameInfo",
    "XTCCodec",
    "TRRCodec",
    "TRRHeader",
    "XTC_MAGIC",
    "TRR_MAGIC",
    "CODECS",
    "get_codec",
    "format_for_magic",
    "encode_xtc_frame",
    "decode_xtc_frame",
    "encode_trr_frame",
    "decode_trr_frame",
]
