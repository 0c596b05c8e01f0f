import pytest

from spotmap.scoring.pins import classify_pin_tier


@pytest.mark.parametrize(
    "count,tier",
    [
        (1, "Green"),
        (4, "Green"),
        (5, "Yellow"),
        (9, "Yellow"),
        (10, "Orange"),
        (29, "Orange"),
        (30, "Red"),
        (31, "Red"),
    ],
)
def test_pin_tier_boundaries(count, tier):
    assert classify_pin_tier(count) == tier


def test_pin_tier_rejects_empty_spots():
    with pytest.raises(ValueError):
        classify_pin_tier(0)
