"""
spotmap CLI entrypoint.

This CLI is intended for local demos and debugging without the HTTP API.
It delegates all logic to the resolver, query engine and ingestor, and prints JSON.
"""

from __future__ import annotations

import argparse
import json
from typing import Any

from spotmap.config.settings import get_settings
from spotmap.core.deadline import deadline_from_seconds
from spotmap.core.geo import Coordinate
from spotmap.core.logging import configure_logging
from spotmap.core.time import parse_datetime
from spotmap.domain.models import BoundingBox, NewPhoto, SpotFilters
from spotmap.errors import SpotmapError
from spotmap.ingest.photos import PhotoIngestor
from spotmap.query.engine import SpotQueryEngine
from spotmap.resolver.resolve import SpotResolver
from spotmap.store.factory import build_store


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _cmd_init_db(args: argparse.Namespace) -> int:
    settings = get_settings()
    build_store(settings)
    print(f"store ready: backend={settings.store.backend}")
    return 0


def _cmd_resolve(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = build_store(settings)
    resolver = SpotResolver.from_settings(store, settings)
    spot_id = resolver.resolve(
        Coordinate(lat=args.lat, lng=args.lng),
        int(args.user_id),
        deadline=deadline_from_seconds(settings.app.request_timeout_seconds),
    )
    _print_json({"spotId": spot_id})
    return 0


def _cmd_add_photo(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = build_store(settings)
    ingestor = PhotoIngestor(SpotResolver.from_settings(store, settings))
    photo = NewPhoto(
        latitude=args.lat,
        longitude=args.lng,
        user_id=int(args.user_id),
        object_key=args.object_key,
        title=args.title or "",
        shot_at=parse_datetime(args.shot_at, settings.app.timezone) if args.shot_at else None,
        weather=args.weather,
        time_of_day=args.time_of_day,
        category_ids=[int(c) for c in _split_csv(args.categories)],
    )
    stored = ingestor.ingest(photo, deadline=deadline_from_seconds(settings.app.request_timeout_seconds))
    _print_json({"photoId": stored.photo_id, "spotId": stored.spot_id})
    return 0


def _cmd_spots(args: argparse.Namespace) -> int:
    settings = get_settings()
    engine = SpotQueryEngine.from_settings(build_store(settings), settings)
    bbox = BoundingBox.from_bounds(north=args.north, south=args.south, east=args.east, west=args.west)
    filters = SpotFilters.build(
        category_ids=_split_csv(args.categories),
        months=_split_csv(args.months),
        times_of_day=_split_csv(args.times_of_day),
        weathers=_split_csv(args.weathers),
    )
    results = engine.query(bbox, filters, deadline=deadline_from_seconds(settings.app.request_timeout_seconds))
    _print_json([r.model_dump(mode="json", by_alias=True) for r in results])
    return 0


def _cmd_spot_photos(args: argparse.Namespace) -> int:
    settings = get_settings()
    engine = SpotQueryEngine.from_settings(build_store(settings), settings)
    _print_json(engine.spot_photo_ids(int(args.spot_id)))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="spotmap", description="Photo spot aggregation and map queries.")
    sub = parser.add_subparsers(dest="command", required=True)

    p_init = sub.add_parser("init-db", help="Create the configured store schema.")
    p_init.set_defaults(func=_cmd_init_db)

    p_resolve = sub.add_parser("resolve", help="Find or create the spot for a coordinate.")
    p_resolve.add_argument("--lat", required=True)
    p_resolve.add_argument("--lng", required=True)
    p_resolve.add_argument("--user-id", required=True)
    p_resolve.set_defaults(func=_cmd_resolve)

    p_add = sub.add_parser("add-photo", help="Attach a photo to its spot.")
    p_add.add_argument("--lat", required=True)
    p_add.add_argument("--lng", required=True)
    p_add.add_argument("--user-id", required=True)
    p_add.add_argument("--object-key", required=True)
    p_add.add_argument("--title")
    p_add.add_argument("--shot-at", help="ISO-8601 capture time (naive = configured timezone)")
    p_add.add_argument("--weather")
    p_add.add_argument("--time-of-day")
    p_add.add_argument("--categories", help="Comma-separated category ids")
    p_add.set_defaults(func=_cmd_add_photo)

    p_spots = sub.add_parser("spots", help="Query spots inside a viewport.")
    for bound in ("north", "south", "east", "west"):
        p_spots.add_argument(f"--{bound}", required=True)
    p_spots.add_argument("--categories", help="Comma-separated category ids")
    p_spots.add_argument("--months", help="Comma-separated months (1-12)")
    p_spots.add_argument("--times-of-day", help="Comma-separated time-of-day labels")
    p_spots.add_argument("--weathers", help="Comma-separated weather labels")
    p_spots.set_defaults(func=_cmd_spots)

    p_photos = sub.add_parser("spot-photos", help="List photo ids of a spot.")
    p_photos.add_argument("spot_id")
    p_photos.set_defaults(func=_cmd_spot_photos)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m spotmap.cli`."""
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    func: Any = getattr(args, "func")
    try:
        return int(func(args))
    except ValueError as e:
        parser.exit(2, f"error: {e}\n")
    except SpotmapError as e:
        parser.exit(1, f"error: {e}\n")


if __name__ == "__main__":
    raise SystemExit(main())
