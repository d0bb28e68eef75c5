"""Tri-state outcome for operations that may be skipped under fail-open policy."""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class OutcomeStatus(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a guarded operation.

    SKIPPED means the operation failed but was not required, so the pipeline
    continues. The original error is kept for reporting.
    """

    status: OutcomeStatus
    value: T | None = None
    error: Exception | None = None

    @classmethod
    def succeeded(cls, value: T) -> "Outcome[T]":
        return cls(OutcomeStatus.SUCCEEDED, value=value)

    @classmethod
    def skipped(cls, error: Exception | None = None) -> "Outcome[T]":
        return cls(OutcomeStatus.SKIPPED, error=error)

    @classmethod
    def failed(cls, error: Exception) -> "Outcome[T]":
        return cls(OutcomeStatus.FAILED, error=error)

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.SUCCEEDED

    def unwrap(self) -> T:
        """Return the value, raising the stored error if there is none."""
        if self.status == OutcomeStatus.SUCCEEDED:
            return self.value
        if self.error is not None:
            raise self.error
        raise RuntimeError(f"outcome has no value (status: {self.status.value})")
