"""
Caller-supplied deadlines.

A `Deadline` is a monotonic point in time; long steps (lock waits, store calls)
ask it for the remaining budget and call `check()` between steps.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from spotmap.errors import DeadlineExceeded


@dataclass(frozen=True)
class Deadline:
    expires_at: float

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        if float(seconds) <= 0:
            raise ValueError("deadline seconds must be > 0")
        return cls(expires_at=time.monotonic() + float(seconds))

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at

    def check(self, step: str) -> None:
        if self.expired():
            raise DeadlineExceeded(f"deadline exceeded during {step}")


def deadline_from_seconds(seconds: float | None) -> Deadline | None:
    """Build a deadline from an optional timeout (None/0 disables it)."""
    if not seconds:
        return None
    return Deadline.after(seconds)
