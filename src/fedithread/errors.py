"""Exceptions raised while loading and cleaning remote threads."""

from __future__ import annotations

from typing import Optional


class ThreadError(RuntimeError):
    """Base exception for every failure raised by ``fedithread``."""


class TransportError(ThreadError):
    """Raised when a page cannot be retrieved from the remote server."""

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class ParseError(ThreadError):
    """Raised when a response body is not valid JSON."""

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class DecodeError(ThreadError):
    """Raised when a JSON object does not describe a post."""


class MissingRepliesLink(ThreadError):
    """Raised when a post does not expose ``replies.first.next``."""

    def __init__(self, url: str) -> None:
        super().__init__("Missing replies link")
        self.url = url


class InvalidRepliesData(ThreadError):
    """Raised when a reply page has no ``items`` list."""

    def __init__(self, url: str) -> None:
        super().__init__("Invalid replies data")
        self.url = url


class SanitizeError(ThreadError):
    """Base class for fragments rejected by :func:`fedithread.html_sanitizer.sanitize`.

    ``position`` is the offset in the input where scanning stopped.
    """

    message = "Rejected HTML"

    def __init__(self, position: int, message: Optional[str] = None) -> None:
        super().__init__(message or self.message)
        self.position = position


class BadEntity(SanitizeError):
    message = "Bad HTML entity"


class UnterminatedEntity(SanitizeError):
    message = "Unterminated HTML entity"


class UnsafeTag(SanitizeError):
    message = "Unsafe tag"


class UnsafeAttribute(SanitizeError):
    message = "Unsafe attribute"


class InvalidClosingTag(SanitizeError):
    message = "Invalid closing tag"


class InvalidOpeningTag(SanitizeError):
    message = "Invalid opening tag"


class InvalidAttributeValue(SanitizeError):
    message = "Invalid attribute value"


class MissingAttributeValue(SanitizeError):
    message = "Missing attribute value"


__all__ = [
    "ThreadError",
    "TransportError",
    "ParseError",
    "DecodeError",
    "MissingRepliesLink",
    "InvalidRepliesData",
    "SanitizeError",
    "BadEntity",
    "UnterminatedEntity",
    "UnsafeTag",
    "UnsafeAttribute",
    "InvalidClosingTag",
    "InvalidOpeningTag",
    "InvalidAttributeValue",
    "MissingAttributeValue",
]
