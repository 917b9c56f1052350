# src/gtfsdb/core/clip.py
"""Geographic clip: copy a feed database and prune it to a bounding box.

The input database is opened read-only and copied with SQLite's online
backup API; all deletions happen on the copy, so a failed clip never
damages the input.
"""

from __future__ import annotations

import math
import sqlite3
from dataclasses import dataclass
from pathlib import Path

from gtfsdb.contracts.errors import StoreError
from gtfsdb.contracts.types import KeepPredicate, RowValues
from gtfsdb.core.config import ClipSettings, GtfsdbSettings
from gtfsdb.core.integrity.pruner import CascadingPruner, PruneResult
from gtfsdb.core.integrity.validator import IntegrityValidator
from gtfsdb.core.logging import get_logger
from gtfsdb.core.schema.graph import SchemaGraph
from gtfsdb.core.schema.gtfs import GTFS_SCHEMA
from gtfsdb.core.store.database import FeedStore

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """WGS84 rectangle, edges inclusive."""

    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    def __post_init__(self) -> None:
        for name in ("min_lon", "min_lat", "max_lon", "max_lat"):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(f"{name} must be a finite number")
        if not (-180.0 <= self.min_lon <= self.max_lon <= 180.0):
            raise ValueError(f"Longitudes must satisfy -180 <= min_lon <= max_lon <= 180, got {self.min_lon}, {self.max_lon}")
        if not (-90.0 <= self.min_lat <= self.max_lat <= 90.0):
            raise ValueError(f"Latitudes must satisfy -90 <= min_lat <= max_lat <= 90, got {self.min_lat}, {self.max_lat}")

    @classmethod
    def parse(cls, text: str) -> BoundingBox:
        """Parse ``"min_lon,min_lat,max_lon,max_lat"``.

        Raises:
            ValueError: If there are not four numbers or the box is invalid
        """
        parts = [part.strip() for part in text.split(",")]
        if len(parts) != 4:
            raise ValueError(f"Bounding box needs 4 comma-separated numbers (min_lon,min_lat,max_lon,max_lat), got '{text}'")
        try:
            min_lon, min_lat, max_lon, max_lat = (float(part) for part in parts)
        except ValueError as e:
            raise ValueError(f"Bounding box contains a non-numeric value: '{text}'") from e
        return cls(min_lon, min_lat, max_lon, max_lat)

    def contains(self, lon: float, lat: float) -> bool:
        return self.min_lon <= lon <= self.max_lon and self.min_lat <= lat <= self.max_lat


def inside_predicate(store: FeedStore, bbox: BoundingBox, settings: ClipSettings) -> KeepPredicate:
    """Build a keep predicate for the anchor entity from a bounding box.

    Coordinates are parsed once, up front, so each bad row is logged once
    and the inside/total count is known before pruning starts. Rows with
    missing or unparseable coordinates are outside.
    """
    inside: set[str] = set()
    total = 0
    for row in store.scan(settings.anchor_entity):
        total += 1
        row_id = row.values.get(settings.id_column)
        lon = _parse_coordinate(row.values, settings.longitude_column, row_id)
        lat = _parse_coordinate(row.values, settings.latitude_column, row_id)
        if row_id is not None and lon is not None and lat is not None and bbox.contains(lon, lat):
            inside.add(row_id)
    logger.info(f"{len(inside)} of {total} {settings.anchor_entity} are inside", inside=len(inside), total=total)

    id_column = settings.id_column

    def keep(values: RowValues) -> bool:
        return values.get(id_column) in inside

    return keep


def _parse_coordinate(values: RowValues, column: str, row_id: str | None) -> float | None:
    raw = values.get(column)
    try:
        value = float(raw) if raw is not None else math.nan
    except ValueError:
        value = math.nan
    if math.isfinite(value):
        return value
    logger.error(f"Failed to parse {column}", id=row_id, value=raw)
    return None


def copy_database(input_path: Path, output_path: Path) -> None:
    """Copy a SQLite database with the online backup API.

    The input is opened read-only; an existing output is overwritten.

    Raises:
        StoreError: If the input is missing or either database fails
    """
    if not input_path.exists():
        raise StoreError(f"Feed database not found: {input_path}")
    try:
        source = sqlite3.connect(f"{input_path.resolve().as_uri()}?mode=ro", uri=True)
        try:
            target = sqlite3.connect(output_path)
            try:
                source.backup(target)
            finally:
                target.close()
        finally:
            source.close()
    except sqlite3.Error as e:
        raise StoreError(f"Cannot copy {input_path} to {output_path}: {e}") from e


def clip(
    input_path: str | Path,
    output_path: str | Path,
    bbox: BoundingBox,
    *,
    schema: SchemaGraph = GTFS_SCHEMA,
    settings: GtfsdbSettings | None = None,
) -> PruneResult:
    """Write a copy of ``input_path`` keeping only what serves stops inside ``bbox``.

    Args:
        input_path: Source feed database, never modified
        output_path: Destination database, overwritten if present
        bbox: Region to keep
        schema: Schema driving the cascade
        settings: Clip, validation and store settings (defaults if None)

    Returns:
        PruneResult describing every deletion made on the copy

    Raises:
        StoreError: If copying or pruning fails
        ValueError: If input and output are the same file
    """
    settings = settings if settings is not None else GtfsdbSettings()
    source = Path(input_path)
    destination = Path(output_path)
    if destination.exists() and destination.resolve() == source.resolve():
        raise ValueError(f"Clip output must differ from its input: {destination}")

    logger.info(f"Writing a clipped copy of {source} to {destination}", bbox=str(bbox))
    copy_database(source, destination)
    logger.info("Copied input db")

    validator = IntegrityValidator(schema, max_passes=settings.validation.max_repair_passes)
    pruner = CascadingPruner(schema, validator)
    with FeedStore.open(destination, schema, synchronous=settings.store.synchronous) as store:
        keep = inside_predicate(store, bbox, settings.clip)
        result = pruner.prune(store, settings.clip.anchor_entity, keep)

    logger.info(f"Wrote {destination}", deleted=result.total_deleted)
    return result
