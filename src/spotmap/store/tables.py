# src/spotmap/store/tables.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Table
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Coordinates are stored with 7 decimal places (about 1 cm).
COORDINATE_TYPE = Numeric(10, 7, asdecimal=True)


class Base(DeclarativeBase):
    pass


class SpotRow(Base):
    __tablename__ = "spots"
    __table_args__ = (Index("ix_spots_lat_lng", "latitude", "longitude"),)

    spot_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    latitude: Mapped[Decimal] = mapped_column(COORDINATE_TYPE, nullable=False)
    longitude: Mapped[Decimal] = mapped_column(COORDINATE_TYPE, nullable=False)
    created_by_user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class PhotoRow(Base):
    __tablename__ = "photos"

    photo_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    spot_id: Mapped[int] = mapped_column(ForeignKey("spots.spot_id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    s3_object_key: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    shot_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)
    weather: Mapped[str | None] = mapped_column(String(50), nullable=True)
    time_of_day: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


# Category master data lives outside this service; ids are opaque here.
photo_categories = Table(
    "photo_categories",
    Base.metadata,
    Column("photo_id", ForeignKey("photos.photo_id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", Integer, primary_key=True),
)
