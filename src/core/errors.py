# src/core/errors.py — v1
"""Error taxonomy for the image pipeline.

FetchError and StoreError are absorbed per candidate and recorded;
ConflictError and ValidationError surface synchronously to batch callers.
"""

from __future__ import annotations


class ImagePipelineError(Exception):
    """Base class for all pipeline errors."""


class FetchError(ImagePipelineError):
    """Remote download failed after all retry attempts."""

    def __init__(self, url: str, cause: str, attempts: int) -> None:
        self.url = url
        self.cause = cause
        self.attempts = attempts
        super().__init__(f"Fetch of {url} failed after {attempts} attempt(s): {cause}")


class StoreError(ImagePipelineError):
    """Cache or durable store unavailable. Retryable by the caller."""

    def __init__(self, operation: str, cause: Exception | str) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"Store {operation} failed: {cause}")


class ConflictError(ImagePipelineError):
    """A batch was started while another one is still running."""

    def __init__(self, active_job_id: str) -> None:
        self.active_job_id = active_job_id
        super().__init__(f"Batch {active_job_id} is already running")


class ValidationError(ImagePipelineError, ValueError):
    """Malformed input (bad URL, empty entity list, non-positive concurrency)."""
