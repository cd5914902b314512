"""
Error taxonomy shared by the fetcher, the engine and the export builder.

FetchAborted is not a FetchError: a superseded or cancelled request is
never reported as a failure.
"""
from __future__ import annotations

from typing import Any


class PowerOddsError(Exception):
    """Base exception carrying a machine-readable kind and a readable message."""

    kind = "error"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "details": dict(self.details)}


class FetchError(PowerOddsError):
    """Network failure, non-success HTTP status or malformed provider payload."""

    kind = "fetch"

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        url: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        d = dict(details or {})
        if status is not None:
            d["status"] = status
        if url is not None:
            d["url"] = url
        super().__init__(message, details=d)
        self.status = status
        self.url = url


class FetchAborted(PowerOddsError):
    """The in-flight request was cancelled or superseded by a newer one."""

    kind = "aborted"


class ValidationError(PowerOddsError, ValueError):
    """Out-of-domain month, day, window or coordinate supplied by the caller."""

    kind = "validation"

    def __init__(self, message: str, *, field: str | None = None, **details: Any) -> None:
        d = dict(details)
        if field:
            d["field"] = field
        super().__init__(message, details=d)
        self.field = field
