"""Tagged exceptions raised by the template engine."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional


class ErrorKind(str, Enum):
    INPUT = "input"
    DOWNLOAD = "download"
    INVALID_ARCHIVE = "invalid_archive"
    TEMPLATE_SLIDE = "template_slide"
    UNRESOLVED = "unresolved"
    UPLOAD = "upload"


class TemplateEngineError(Exception):
    """Base error; callers branch on ``kind`` rather than on message text."""

    kind: ErrorKind = ErrorKind.INPUT

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        self.message = str(message).strip() or "Template engine error"
        if kind is not None:
            self.kind = kind
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}


class InputError(TemplateEngineError):
    """Raised for a missing template reference or a malformed request."""

    kind = ErrorKind.INPUT


class DownloadError(TemplateEngineError):
    """Raised when the template cannot be fetched (network error or non-2xx)."""

    kind = ErrorKind.DOWNLOAD


class InvalidArchiveError(TemplateEngineError):
    """Raised when the fetched bytes are not a readable presentation package."""

    kind = ErrorKind.INVALID_ARCHIVE


class TemplateSlideError(TemplateEngineError):
    """Raised when a template slide selected for replication cannot be read."""

    kind = ErrorKind.TEMPLATE_SLIDE


class UnresolvedPlaceholderError(TemplateEngineError):
    """Raised in strict mode when placeholders remain after substitution."""

    kind = ErrorKind.UNRESOLVED

    def __init__(self, names: Iterable[str]):
        self.names = sorted({str(n) for n in names if str(n).strip()})
        super().__init__("Unresolved placeholders: " + ", ".join(self.names))


class UploadError(TemplateEngineError):
    """Raised when a generated file cannot be persisted; generation itself succeeded."""

    kind = ErrorKind.UPLOAD
