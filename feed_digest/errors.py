"""Error kinds raised by the digest pipeline."""

from __future__ import annotations

from typing import Optional


class DigestError(RuntimeError):
    """Base class for terminal failures of a single render request."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class FetchError(DigestError):
    """The feed could not be retrieved."""


class HttpStatusError(FetchError):
    """The feed server answered with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class EmptyBodyError(FetchError):
    """The feed server answered with an empty body."""


class ParseError(DigestError):
    """The feed body could not be interpreted."""


class MalformedFeedError(ParseError):
    """The feed body is not well-formed XML."""


class UnsupportedFormatError(ParseError):
    """The XML is neither RSS 2.0 nor Atom 1.0."""
