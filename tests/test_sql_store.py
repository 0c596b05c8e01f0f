from decimal import Decimal

import pytest
from sqlalchemy import func, select

from spotmap.core.geo import Coordinate
from spotmap.errors import StoreUnavailable
from spotmap.store.sql import SqlSpotStore, create_sql_engine
from spotmap.store.tables import PhotoRow, photo_categories


@pytest.fixture
def sql_store(tmp_path):
    store = SqlSpotStore.from_url(f"sqlite:///{tmp_path / 'spots.db'}")
    store.create_schema()
    yield store
    store.engine.dispose()


def _count(store, stmt):
    with store.engine.connect() as conn:
        return conn.execute(stmt).scalar_one()


def test_unreachable_database_raises_store_unavailable(tmp_path):
    store = SqlSpotStore.from_url(f"sqlite:///{tmp_path / 'missing' / 'dir' / 'spots.db'}")
    with pytest.raises(StoreUnavailable):
        store.create_schema()
    with pytest.raises(StoreUnavailable):
        store.get_spot(1)
    with pytest.raises(StoreUnavailable):
        store.find_spots_within(Coordinate(lat="35.6585", lng="139.7454"), 200)


def test_coordinates_are_stored_with_seven_decimals(sql_store):
    spot = sql_store.insert_spot(Coordinate(lat="35.65851234", lng="139.74541239"), 1)

    stored = sql_store.get_spot(spot.spot_id)
    assert stored.coordinate.lat == Decimal("35.6585123")
    assert stored.coordinate.lng == Decimal("139.7454124")
    assert stored.coordinate == spot.coordinate


def test_duplicate_object_key_leaves_no_partial_photo(sql_store, new_photo):
    spot = sql_store.insert_spot(Coordinate(lat="35.6585", lng="139.7454"), 1)
    sql_store.add_photo(spot.spot_id, new_photo(object_key="dup.jpg", category_ids=[1]))

    with pytest.raises(ValueError):
        sql_store.add_photo(spot.spot_id, new_photo(object_key="dup.jpg", category_ids=[2, 3]))

    assert _count(sql_store, select(func.count()).select_from(PhotoRow)) == 1
    assert _count(sql_store, select(func.count()).select_from(photo_categories)) == 1


def test_photo_for_unknown_spot_is_rejected(sql_store, new_photo):
    with pytest.raises(ValueError):
        sql_store.add_photo(42, new_photo())
    assert _count(sql_store, select(func.count()).select_from(PhotoRow)) == 0


def test_radius_lookup_near_the_antimeridian(sql_store):
    east = sql_store.insert_spot(Coordinate(lat="0", lng="179.9995"), 1)
    west = sql_store.insert_spot(Coordinate(lat="0", lng="-179.9995"), 1)

    hits = sql_store.find_spots_within(Coordinate(lat="0", lng="180"), 200)
    assert sorted(spot.spot_id for spot, _ in hits) == [east.spot_id, west.spot_id]


def test_in_memory_url_shares_one_connection():
    store = SqlSpotStore(create_sql_engine("sqlite://"))
    store.create_schema()
    spot = store.insert_spot(Coordinate(lat="1", lng="2"), 1)
    assert store.get_spot(spot.spot_id) is not None
