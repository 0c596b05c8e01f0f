import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from spotmap.core.deadline import Deadline
from spotmap.core.geo import Coordinate, haversine_m
from spotmap.core.spatial_index import Grid
from spotmap.errors import DeadlineExceeded
from spotmap.ingest.photos import PhotoIngestor
from spotmap.resolver.locks import CellLocks
from spotmap.resolver.resolve import SpotResolver

TOKYO_TOWER = Coordinate(lat="35.6585", lng="139.7454")


def _spot_count(store, center=TOKYO_TOWER, radius_m=5_000):
    return len(store.find_spots_within(center, radius_m))


class _SlowStore:
    """Widens the read-then-insert window so unsynchronized resolves would race."""

    def __init__(self, inner, delay_s=0.05):
        self._inner = inner
        self._delay_s = delay_s

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def find_spots_within(self, center, radius_m):
        time.sleep(self._delay_s)
        return self._inner.find_spots_within(center, radius_m)


def test_first_photo_creates_spot_at_its_coordinate(store):
    resolver = SpotResolver(store)
    spot_id = resolver.resolve(TOKYO_TOWER, creator_id=7)

    spot = store.get_spot(spot_id)
    assert spot.coordinate == TOKYO_TOWER
    assert spot.created_by == 7


def test_nearby_photo_reuses_spot_and_far_photo_creates_one(store):
    resolver = SpotResolver(store)
    first = resolver.resolve(TOKYO_TOWER, 1)

    # ~28 m away: same spot.
    assert resolver.resolve(Coordinate(lat="35.6587", lng="139.7456"), 2) == first
    # ~445 m away: new spot.
    far = resolver.resolve(Coordinate(lat="35.6625", lng="139.7454"), 2)
    assert far != first
    assert _spot_count(store) == 2


def test_nearest_spot_wins(store):
    near = store.insert_spot(Coordinate(lat="35.6590", lng="139.7454"), 1)  # ~56 m north
    store.insert_spot(Coordinate(lat="35.6575", lng="139.7454"), 1)  # ~111 m south
    resolver = SpotResolver(store)

    assert resolver.resolve(TOKYO_TOWER, 2) == near.spot_id


def test_equidistant_spots_resolve_to_lowest_id(store):
    other = Coordinate(lat="35.6590", lng="139.7454")
    first = store.insert_spot(other, 1)
    store.insert_spot(other, 1)
    resolver = SpotResolver(store)

    assert resolver.resolve(TOKYO_TOWER, 2) == first.spot_id


def test_radius_boundary_is_inclusive(store):
    anchor = store.insert_spot(TOKYO_TOWER, 1)
    point = Coordinate(lat="35.6600", lng="139.7470")
    d = haversine_m(point, TOKYO_TOWER)

    assert SpotResolver(store, radius_m=d).resolve(point, 2) == anchor.spot_id
    assert SpotResolver(store, radius_m=d - 0.01).resolve(point, 2) != anchor.spot_id


def test_sequential_photos_within_fifty_meters_reuse_the_first_spot(store):
    resolver = SpotResolver(store)
    spot_id = resolver.resolve(TOKYO_TOWER, 1)
    nearby = [
        ("35.6587", "139.7456"),
        ("35.6583", "139.7452"),
        ("35.6588", "139.7451"),
        ("35.6582", "139.7457"),
        ("35.6585", "139.7459"),
    ]
    for lat, lng in nearby:
        point = Coordinate(lat=lat, lng=lng)
        assert haversine_m(point, TOKYO_TOWER) <= 50
        assert resolver.resolve(point, 2) == spot_id

    # The anchor stays at the first photo.
    assert store.get_spot(spot_id).coordinate == TOKYO_TOWER
    assert _spot_count(store) == 1


def test_concurrent_resolves_of_one_place_create_a_single_spot(store):
    resolver = SpotResolver(_SlowStore(store))
    points = [Coordinate(lat=f"35.6585{i}", lng="139.7454") for i in range(8)]
    barrier = threading.Barrier(len(points))

    def _resolve(point):
        barrier.wait()
        return resolver.resolve(point, 1)

    with ThreadPoolExecutor(max_workers=len(points)) as pool:
        spot_ids = list(pool.map(_resolve, points))

    assert len(set(spot_ids)) == 1
    assert _spot_count(store) == 1


def test_concurrent_resolves_across_a_lock_cell_boundary_create_a_single_spot(store):
    grid = Grid(500)
    # Row 7890 of a 500 m grid starts at this latitude (110,540 m per degree).
    boundary = 7890 * 500 / 110_540
    south = Coordinate(lat=f"{boundary - 0.0008:.7f}", lng="139.7454")
    north = Coordinate(lat=f"{boundary + 0.0008:.7f}", lng="139.7454")
    assert grid.cell_key(south) != grid.cell_key(north)
    assert 170 < haversine_m(south, north) < 200

    resolver = SpotResolver(_SlowStore(store), lock_cell_size_m=500)
    points = [south, north] * 3
    barrier = threading.Barrier(len(points))

    def _resolve(point):
        barrier.wait()
        return resolver.resolve(point, 1)

    with ThreadPoolExecutor(max_workers=len(points)) as pool:
        spot_ids = list(pool.map(_resolve, points))

    assert len(set(spot_ids)) == 1
    assert _spot_count(store, center=south) == 1


def test_concurrent_resolves_far_apart_do_not_share_a_spot(store):
    resolver = SpotResolver(_SlowStore(store))
    points = [Coordinate(lat="35.6585", lng=f"139.{7454 + 50 * i}") for i in range(4)]
    barrier = threading.Barrier(len(points))

    def _resolve(point):
        barrier.wait()
        return resolver.resolve(point, 1)

    with ThreadPoolExecutor(max_workers=len(points)) as pool:
        spot_ids = list(pool.map(_resolve, points))

    assert len(set(spot_ids)) == len(points)


def test_expired_deadline_fails_without_writing(store):
    resolver = SpotResolver(store)
    with pytest.raises(DeadlineExceeded):
        resolver.resolve(TOKYO_TOWER, 1, deadline=Deadline(expires_at=time.monotonic() - 1))
    assert _spot_count(store) == 0


def test_deadline_expires_while_waiting_for_cell_lock(store):
    locks = CellLocks(Grid(500))
    resolver = SpotResolver(store, locks=locks)

    with locks.hold(TOKYO_TOWER, 200):
        with pytest.raises(DeadlineExceeded):
            resolver.resolve(TOKYO_TOWER, 1, deadline=Deadline.after(0.05))

    assert _spot_count(store) == 0
    assert locks.active_cells() == 0
    # Locks were released: the next call goes through.
    assert resolver.resolve(TOKYO_TOWER, 1) >= 1


def test_ingestor_attaches_photo_to_resolved_spot(store, new_photo):
    ingestor = PhotoIngestor(SpotResolver(store))

    first = ingestor.ingest(new_photo())
    second = ingestor.ingest(new_photo(lat="35.6587", lng="139.7456"))

    assert first.spot_id == second.spot_id
    assert store.list_photo_ids(first.spot_id) == [first.photo_id, second.photo_id]


def test_resolver_rejects_non_positive_radius(store):
    with pytest.raises(ValueError):
        SpotResolver(store, radius_m=0)
