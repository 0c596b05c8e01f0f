"""
Error taxonomy.

- `InputError`: bad client input (bbox/filter values). Subclasses `ValueError` so the
  API layer maps it to 400 like any other validation failure. Never retried.
- `StoreUnavailable`: the persistence layer could not be reached. Retryable by the caller.
- `SpotNotFound`: lookup of an unknown spot id.
- `DeadlineExceeded`: the caller's deadline passed before the operation completed.
"""

from __future__ import annotations


class SpotmapError(Exception):
    """Base class for errors raised by the engine."""


class InputError(SpotmapError, ValueError):
    pass


class StoreUnavailable(SpotmapError):
    retryable = True


class SpotNotFound(SpotmapError, LookupError):
    def __init__(self, spot_id: int):
        super().__init__(f"Spot not found: {spot_id}")
        self.spot_id = spot_id


class DeadlineExceeded(SpotmapError, TimeoutError):
    retryable = True
