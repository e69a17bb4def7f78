"""Trajectory format implementations."""

from .trr import TRRReader, TRRWriter
from .xtc import XTCReader, XTCWriter

__all__ = [
    # XTC
    "XTCReader",
    "XTCWriter",
    # TRR
    "TRRReader",
    "TRRWriter",
]
