"""Custom exception classes for the application."""
from dataclasses import dataclass
from typing import Any, List, Optional


class AppException(Exception):
    """Base exception for the application."""

    def __init__(self, message: str, detail: Any = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class NotFoundError(AppException):
    """Resource not found."""
    pass


class ValidationError(AppException):
    """Local validation failed before any network call."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message, detail={"field": field} if field else None)


class BackendError(AppException):
    """Error reported by the remote store (PostgREST/Storage or SQL adapter)."""

    def __init__(self, code: str, message: str, detail: Any = None):
        self.code = code or ""
        super().__init__(message, detail)

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class TransientBackendError(BackendError):
    """Backend error known to resolve itself (schema cache not yet refreshed)."""
    pass


class TerminalBackendError(BackendError):
    """Backend error surfaced to the caller, never retried."""

    def __init__(self, code: str, message: str, attempts: int = 1, detail: Any = None):
        self.attempts = attempts
        super().__init__(code, message, detail)


@dataclass(frozen=True)
class TierFailure:
    """One failed upload strategy for a file."""
    target: str
    reason: str


class MediaUploadExhaustedError(AppException):
    """Every fallback tier failed for a file.

    ``uploaded_urls`` holds the URLs of the files in the same batch that did
    upload, so callers can keep them; ``failures`` lists every failed file of
    the batch (this error included).
    """

    def __init__(
        self,
        file_name: str,
        size: int,
        inline_limit: int,
        tier_failures: List[TierFailure],
        uploaded_urls: Optional[List[str]] = None,
    ):
        self.file_name = file_name
        self.size = size
        self.inline_limit = inline_limit
        self.tier_failures = list(tier_failures)
        self.uploaded_urls: List[str] = list(uploaded_urls or [])
        self.failures: List["MediaUploadExhaustedError"] = [self]

        reasons = "; ".join(f"{f.target}: {f.reason}" for f in self.tier_failures)
        message = (
            f"Upload failed for '{file_name}' ({_format_mib(size)}): {reasons}"
        )
        if size >= inline_limit:
            message += (
                f". File exceeds the {_format_mib(inline_limit)} inline-encoding limit"
            )
        super().__init__(
            message,
            detail={
                "file_name": file_name,
                "size": size,
                "inline_limit": inline_limit,
                "targets": [f.target for f in self.tier_failures],
            },
        )


def _format_mib(size: int) -> str:
    return f"{size / (1024 * 1024):.1f} MiB"
