"""
Exception hierarchy for the ingestion pipeline.

Partition and validation errors are fatal to the document or pool
invocation that raised them. Unit failures are collected by the worker
pool and never abort sibling units. ExhaustedError is surfaced to the
caller so it can fall back to backup data.
"""

from typing import Any


class IngestionError(Exception):
    """Base class for all ingestion errors."""

    pass


class PartitionError(IngestionError):
    """Raised when a source document is not a well-formed record container."""

    def __init__(self, message: str, path: str | None = None, offset: int | None = None):
        self.path = path
        self.offset = offset
        location = ""
        if path is not None:
            location = f" in {path}"
        if offset is not None:
            location += f" at byte {offset}"
        super().__init__(f"{message}{location}")


class ValidationError(IngestionError):
    """Raised when a worker pool invocation has invalid arguments."""

    pass


class UnitFailure(IngestionError):
    """A work unit failed after exhausting its attempts."""

    def __init__(
        self,
        unit_id: str,
        cause: BaseException | None = None,
        attempts: int = 0,
        message: str | None = None,
    ):
        self.unit_id = unit_id
        self.cause = cause
        self.attempts = attempts
        if message is None:
            detail = f": {type(cause).__name__}: {cause}" if cause is not None else ""
            message = f"Unit {unit_id} failed after {attempts} attempt(s){detail}"
        super().__init__(message)


class UnitTimeout(UnitFailure):
    """A work unit attempt exceeded its time budget."""

    def __init__(self, unit_id: str, timeout_seconds: float, attempts: int = 0):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            unit_id,
            attempts=attempts,
            message=f"Unit {unit_id} timed out after {timeout_seconds:.1f}s",
        )


class InvalidResponseError(IngestionError):
    """The external query service answered with an empty or malformed body."""

    pass


class ExhaustedError(IngestionError):
    """Every endpoint ran out of attempts."""

    def __init__(self, failures: dict[str, BaseException], attempts: int = 0):
        self.failures = dict(failures)
        self.attempts = attempts
        summary = "; ".join(
            f"{endpoint}: {type(error).__name__}: {error}"
            for endpoint, error in self.failures.items()
        )
        super().__init__(
            f"All {len(self.failures)} endpoint(s) exhausted after "
            f"{attempts} attempt(s) ({summary or 'no endpoints'})"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempts": self.attempts,
            "failures": {
                endpoint: {"type": type(error).__name__, "error": str(error)}
                for endpoint, error in self.failures.items()
            },
        }


class InputError(IngestionError):
    """Raised when reconciliation receives no usable data."""

    pass
