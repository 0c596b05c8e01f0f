import itertools

import pytest

from spotmap.domain.models import NewPhoto
from spotmap.store.memory import MemorySpotStore
from spotmap.store.sql import SqlSpotStore


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    # Every behavioural test runs against both store implementations.
    if request.param == "memory":
        yield MemorySpotStore()
        return
    sql_store = SqlSpotStore.from_url(f"sqlite:///{tmp_path / 'spots.db'}")
    sql_store.create_schema()
    yield sql_store
    sql_store.engine.dispose()


@pytest.fixture
def new_photo():
    """Factory for NewPhoto payloads with unique object keys; keyword args override fields."""
    keys = itertools.count(1)

    def _make(lat="35.6585", lng="139.7454", **overrides) -> NewPhoto:
        payload = {
            "latitude": lat,
            "longitude": lng,
            "user_id": 1,
            "object_key": f"photos/{next(keys)}.jpg",
        }
        payload.update(overrides)
        return NewPhoto.model_validate(payload)

    return _make
