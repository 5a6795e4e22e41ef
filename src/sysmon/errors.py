"""Error types raised by the sysmon engine and its collectors."""

from __future__ import annotations

import enum


class ErrorKind(str, enum.Enum):
    """Coarse classification of a failure."""

    INVALID_ARGUMENT = "invalid_argument"
    IO = "io"
    PARSE = "parse"
    NOT_SUPPORTED = "not_supported"
    OUT_OF_MEMORY = "out_of_memory"
    INTERNAL = "internal"


class SysmonError(Exception):
    """Base class for every error raised by sysmon."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class InvalidArgumentError(SysmonError):
    """An API was called with a missing or out-of-range argument."""

    kind = ErrorKind.INVALID_ARGUMENT


class SysmonIOError(SysmonError):
    """A read that should have succeeded failed."""

    kind = ErrorKind.IO


class ParseError(SysmonError):
    """A configuration value could not be parsed."""

    kind = ErrorKind.PARSE


class NotSupportedError(SysmonError):
    """The metric source is not available on this platform or host."""

    kind = ErrorKind.NOT_SUPPORTED


class OutOfMemoryError(SysmonError):
    """Allocation failed; the enclosing operation is aborted."""

    kind = ErrorKind.OUT_OF_MEMORY


class InternalError(SysmonError):
    """An internal invariant was violated."""

    kind = ErrorKind.INTERNAL
