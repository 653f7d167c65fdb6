"""Result type returned by the internal operations."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class OperationResult:
    """Outcome of one lifecycle or upload operation.

    ``ok`` is True when the operation did its work. A ``skipped`` result is an
    expected control condition (wrong lifecycle state, capacity reached,
    upload already in flight) and is not an error.
    """

    ok: bool
    message: str
    skipped: bool = False
    error: Exception | None = None

    @classmethod
    def success(cls, message: str) -> OperationResult:
        return cls(ok=True, message=message)

    @classmethod
    def skip(cls, message: str, error: Exception | None = None) -> OperationResult:
        return cls(ok=False, message=message, skipped=True, error=error)

    @classmethod
    def failure(cls, message: str, error: Exception | None = None) -> OperationResult:
        return cls(ok=False, message=message, error=error)

    @property
    def failed(self) -> bool:
        """True for real failures, False for successes and skips."""
        return not self.ok and not self.skipped
