"""
errors.py — Exception taxonomy for the sync engine.

  PipelineError
  ├── FetchError            — upstream call failed; .retryable drives the retry loop
  │   ├── TransportError    — no HTTP response (connect error, timeout); always retryable
  │   └── UpstreamError     — non-2xx status; retryable only for 429 and 5xx
  ├── NormalizationError    — raw record is not an object / cannot be modeled
  ├── UnknownRegionError    — record references a code absent from the registry
  ├── PersistenceError      — storage failure on a single write
  ├── FatalSyncError        — fetch failed after retries; aborts the invocation
  └── SyncTimeoutError      — caller-supplied invocation deadline exceeded

Per-record errors (NormalizationError, UnknownRegionError, PersistenceError)
are collected into the sync result; only FatalSyncError and SyncTimeoutError
end an invocation early.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for all sync engine errors."""


class FetchError(PipelineError):
    """A request to the upstream API failed."""

    retryable: bool = False

    def __init__(self, message: str, *, retryable: bool | None = None) -> None:
        super().__init__(message)
        if retryable is not None:
            self.retryable = retryable


class TransportError(FetchError):
    """Network-level failure: no response was received."""

    retryable = True


class UpstreamError(FetchError):
    """The upstream answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str | None = None) -> None:
        self.status_code = status_code
        super().__init__(
            message or f"Upstream returned HTTP {status_code}",
            retryable=is_retryable_status(status_code),
        )


def is_retryable_status(status_code: int) -> bool:
    """Rate limits and server errors are worth retrying; other statuses are not."""
    return status_code == 429 or status_code >= 500


class NormalizationError(PipelineError):
    """A raw upstream record could not be normalized."""


class UnknownRegionError(PipelineError):
    """A record references a region code that is not in the registry."""

    def __init__(self, code: str | None) -> None:
        self.code = code
        super().__init__(f"Unknown region code: {code}")


class PersistenceError(PipelineError):
    """A storage-layer write or read failed."""


class FatalSyncError(PipelineError):
    """The sync invocation cannot continue (fetch failed after retries)."""


class SyncTimeoutError(PipelineError):
    """The invocation exceeded its caller-supplied deadline."""
