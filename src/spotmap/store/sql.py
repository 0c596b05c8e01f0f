"""
Relational spot store (SQLAlchemy).

Works on any SQLAlchemy backend (SQLite for development/tests, PostgreSQL in production)
without geo extensions:
- radius lookups pre-filter with an indexed bounding box in SQL, then apply the exact
  Haversine formula in Python (`spotmap.core.geo.haversine_m`);
- viewport aggregation counts matching photos and picks the thumbnail with window
  functions in a single statement.

Each public method runs in its own explicit transaction (`sessionmaker.begin()`), so a
spot or photo is either fully committed or absent.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import ColumnElement, Engine, create_engine, exists, extract, func, insert, or_, select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from spotmap.core.geo import Box, Coordinate, bounding_box_around, haversine_m
from spotmap.core.time import local_now, to_local_naive
from spotmap.domain.models import NewPhoto, Photo, Spot, SpotAggregate, SpotFilters
from spotmap.errors import StoreUnavailable
from spotmap.store.tables import Base, PhotoRow, SpotRow, photo_categories

logger = logging.getLogger(__name__)

_COORDINATE_QUANTUM = Decimal("1e-7")


def create_sql_engine(url: str, *, echo: bool = False) -> Engine:
    """Create an engine; SQLite gets thread-sharing enabled (and a single connection if in-memory)."""
    kwargs: dict[str, Any] = {"echo": echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in {"sqlite://", "sqlite:///:memory:"}:
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def _lng_clause(column: Any, box: Box) -> ColumnElement[bool]:
    if box.wraps:
        return or_(column >= box.west, column <= box.east)
    return column.between(box.west, box.east)


def _to_spot(row: SpotRow) -> Spot:
    return Spot(
        spot_id=row.spot_id,
        coordinate=Coordinate(lat=row.latitude, lng=row.longitude),
        created_by=row.created_by_user_id,
        created_at=row.created_at,
    )


class SqlSpotStore:
    def __init__(self, engine: Engine, *, timezone: str = "UTC"):
        self._engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)
        self._timezone = timezone

    @classmethod
    def from_url(cls, url: str, *, echo: bool = False, timezone: str = "UTC") -> "SqlSpotStore":
        return cls(create_sql_engine(url, echo=echo), timezone=timezone)

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_schema(self) -> None:
        try:
            Base.metadata.create_all(self._engine)
        except (OperationalError, InterfaceError) as e:
            raise StoreUnavailable(f"could not create schema: {e}") from e

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        try:
            with self._sessions.begin() as session:
                yield session
        except IntegrityError as e:
            raise ValueError(f"constraint violated: {e.orig}") from e
        except (OperationalError, InterfaceError, PoolTimeoutError) as e:
            logger.warning("Spot store unavailable: %s", e)
            raise StoreUnavailable(str(e)) from e

    def _add_spot_row(self, session: Session, coordinate: Coordinate, created_by: int) -> SpotRow:
        row = SpotRow(
            latitude=coordinate.lat.quantize(_COORDINATE_QUANTUM),
            longitude=coordinate.lng.quantize(_COORDINATE_QUANTUM),
            created_by_user_id=created_by,
            created_at=local_now(self._timezone),
        )
        session.add(row)
        session.flush()
        return row

    def _add_photo_row(self, session: Session, spot_id: int, photo: NewPhoto) -> Photo:
        categories = frozenset(photo.category_ids)
        row = PhotoRow(
            spot_id=spot_id,
            user_id=photo.user_id,
            s3_object_key=photo.object_key,
            title=photo.title,
            shot_at=to_local_naive(photo.shot_at, self._timezone) if photo.shot_at else None,
            weather=photo.weather,
            time_of_day=photo.time_of_day,
            created_at=local_now(self._timezone),
        )
        session.add(row)
        session.flush()
        if categories:
            session.execute(
                insert(photo_categories),
                [{"photo_id": row.photo_id, "category_id": c} for c in sorted(categories)],
            )
        return Photo(
            photo_id=row.photo_id,
            spot_id=row.spot_id,
            user_id=row.user_id,
            object_key=row.s3_object_key,
            title=row.title,
            shot_at=row.shot_at,
            weather=row.weather,
            time_of_day=row.time_of_day,
            category_ids=categories,
            created_at=row.created_at,
        )

    def insert_spot(self, coordinate: Coordinate, created_by: int) -> Spot:
        with self._transaction() as session:
            return _to_spot(self._add_spot_row(session, coordinate, created_by))

    def get_spot(self, spot_id: int) -> Spot | None:
        with self._transaction() as session:
            row = session.get(SpotRow, spot_id)
            return _to_spot(row) if row is not None else None

    def find_spots_within(self, center: Coordinate, radius_m: float) -> list[tuple[Spot, float]]:
        box = bounding_box_around(center, radius_m)
        stmt = select(SpotRow).where(
            SpotRow.latitude.between(box.south, box.north),
            _lng_clause(SpotRow.longitude, box),
        )
        with self._transaction() as session:
            candidates = [_to_spot(row) for row in session.scalars(stmt)]

        out: list[tuple[Spot, float]] = []
        for spot in candidates:
            d = haversine_m(center, spot.coordinate)
            if d <= radius_m:
                out.append((spot, d))
        return out

    def _photo_conditions(self, filters: SpotFilters, shot_after: datetime | None) -> list[ColumnElement[bool]]:
        conditions: list[ColumnElement[bool]] = []
        if shot_after is not None:
            conditions.append(PhotoRow.shot_at >= shot_after)
        if filters.category_ids:
            conditions.append(
                exists().where(
                    photo_categories.c.photo_id == PhotoRow.photo_id,
                    photo_categories.c.category_id.in_(sorted(filters.category_ids)),
                )
            )
        if filters.months:
            conditions.append(extract("month", PhotoRow.shot_at).in_(sorted(filters.months)))
        if filters.times_of_day:
            conditions.append(PhotoRow.time_of_day.in_(sorted(filters.times_of_day)))
        if filters.weathers:
            conditions.append(PhotoRow.weather.in_(sorted(filters.weathers)))
        return conditions

    def aggregate_spots(
        self,
        box: Box,
        filters: SpotFilters,
        *,
        shot_after: datetime | None = None,
    ) -> list[SpotAggregate]:
        ranked = (
            select(
                PhotoRow.spot_id.label("spot_id"),
                PhotoRow.s3_object_key.label("object_key"),
                func.count().over(partition_by=PhotoRow.spot_id).label("photo_count"),
                func.row_number()
                .over(
                    partition_by=PhotoRow.spot_id,
                    order_by=(PhotoRow.shot_at.is_(None), PhotoRow.shot_at.desc(), PhotoRow.photo_id.desc()),
                )
                .label("rn"),
            )
            .join(SpotRow, SpotRow.spot_id == PhotoRow.spot_id)
            .where(
                SpotRow.latitude.between(box.south, box.north),
                _lng_clause(SpotRow.longitude, box),
                *self._photo_conditions(filters, shot_after),
            )
            .subquery()
        )
        stmt = (
            select(SpotRow, ranked.c.photo_count, ranked.c.object_key)
            .join(ranked, ranked.c.spot_id == SpotRow.spot_id)
            .where(ranked.c.rn == 1)
        )
        with self._transaction() as session:
            return [
                SpotAggregate(spot=_to_spot(row), photo_count=int(count), thumbnail_ref=key)
                for row, count, key in session.execute(stmt)
            ]

    def add_photo(self, spot_id: int, photo: NewPhoto) -> Photo:
        with self._transaction() as session:
            if session.get(SpotRow, spot_id) is None:
                raise ValueError(f"cannot attach photo to unknown spot {spot_id}")
            return self._add_photo_row(session, spot_id, photo)

    def insert_spot_with_photo(self, coordinate: Coordinate, created_by: int, photo: NewPhoto) -> Photo:
        # One transaction: a rejected photo rolls the new spot back with it.
        with self._transaction() as session:
            spot_row = self._add_spot_row(session, coordinate, created_by)
            return self._add_photo_row(session, spot_row.spot_id, photo)

    def list_photo_ids(self, spot_id: int) -> list[int]:
        stmt = (
            select(PhotoRow.photo_id)
            .where(PhotoRow.spot_id == spot_id)
            .order_by(PhotoRow.shot_at.is_(None), PhotoRow.shot_at.asc(), PhotoRow.photo_id.asc())
        )
        with self._transaction() as session:
            return list(session.scalars(stmt))
