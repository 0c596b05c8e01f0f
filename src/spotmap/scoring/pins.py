"""
Pin tier classification.

Thresholds are evaluated highest first:
- Red:    30+ matching photos
- Orange: 10..29
- Yellow: 5..9
- Green:  1..4
"""

from __future__ import annotations

from spotmap.domain.models import PinTier

PIN_TIER_THRESHOLDS: tuple[tuple[int, PinTier], ...] = (
    (30, "Red"),
    (10, "Orange"),
    (5, "Yellow"),
    (1, "Green"),
)


def classify_pin_tier(photo_count: int) -> PinTier:
    """Map a matching-photo count to its pin tier."""
    if photo_count < 1:
        raise ValueError(f"photo_count must be >= 1, got {photo_count}")
    for threshold, tier in PIN_TIER_THRESHOLDS[:-1]:
        if photo_count >= threshold:
            return tier
    return PIN_TIER_THRESHOLDS[-1][1]
