"""Tri-state result reported by every connect/disconnect operation."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional


class OutcomeKind(enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    reason: Optional[str] = None
    error: Optional[BaseException] = None

    @classmethod
    def succeeded(cls) -> "Outcome":
        return cls(OutcomeKind.SUCCEEDED)

    @classmethod
    def failed(cls, reason: str, error: Optional[BaseException] = None) -> "Outcome":
        return cls(OutcomeKind.FAILED, reason=reason, error=error)

    @classmethod
    def cancelled(cls) -> "Outcome":
        return cls(OutcomeKind.CANCELLED, reason="operation cancelled")

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCEEDED

    @property
    def is_cancelled(self) -> bool:
        return self.kind is OutcomeKind.CANCELLED

    @property
    def is_failed(self) -> bool:
        return self.kind is OutcomeKind.FAILED

    def __str__(self) -> str:
        if self.reason:
            return f"{self.kind.value}: {self.reason}"
        return self.kind.value
