"""Exception hierarchy for XDR trajectory decoding and encoding."""

from __future__ import annotations


class XDRFileError(IOError):
    """
    Base class for all trajectory codec errors.

    Attributes:
        offset: Byte offset in the stream where the error was detected,
            or None if unknown.
    """

    def __init__(self, message: str, offset: int | None = None) -> None:
        if offset is not None:
            message = f"{message} (at byte {offset})"
        super().__init__(message)
        self.offset = offset


class TruncatedInput(XDRFileError):
    """Stream ended in the middle of a field or frame."""

    def __init__(
        self,
        expected: int,
        received: int,
        offset: int | None = None,
    ) -> None:
        super().__init__(
            f"Truncated input: expected {expected} bytes, got {received}", offset
        )
        self.expected = expected
        self.received = received


class InvalidLength(XDRFileError):
    """Declared length is negative or exceeds what the stream can hold."""


class CorruptFrame(XDRFileError):
    """Frame contents are internally inconsistent or exceed sane bounds."""


class FormatError(XDRFileError):
    """Magic number does not identify the expected format."""


class NotXtcFormat(FormatError):
    """Frame does not start with the XTC magic number."""


class NotTrrFormat(FormatError):
    """Frame does not start with the TRR magic number."""


class FormatMismatch(FormatError):
    """A frame's format differs from the format fixed by the first frame."""


class InvalidPrecision(XDRFileError, ValueError):
    """XTC precision must be a positive, finite number."""


class AtomCountMismatch(XDRFileError):
    """
    Frame atom count differs from the count established for the stream.

    Attributes:
        expected: Atom count of the trajectory.
        found: Atom count declared by the offending frame.
    """

    def __init__(self, expected: int, found: int, offset: int | None = None) -> None:
        super().__init__(
            f"Atom count mismatch: trajectory has {expected} atoms, "
            f"frame declares {found}",
            offset,
        )
        self.expected = expected
        self.found = found


class StreamClosed(XDRFileError):
    """Operation attempted on a closed trajectory stream."""
