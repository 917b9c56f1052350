# src/gtfsdb/core/__init__.py
"""Core infrastructure: Schema, Store, Integrity, Clip, Configuration, Logging."""

from gtfsdb.core.clip import BoundingBox, clip
from gtfsdb.core.config import (
    ClipSettings,
    GtfsdbSettings,
    StoreSettings,
    ValidationSettings,
    load_settings,
)
from gtfsdb.core.integrity import (
    CascadingPruner,
    IntegrityValidator,
    PruneResult,
    PruneStep,
    ValidationResult,
)
from gtfsdb.core.logging import configure_logging, feed_context, get_logger
from gtfsdb.core.schema import GTFS_SCHEMA, SchemaGraph, build_gtfs_schema
from gtfsdb.core.store import FeedStore, StoreRow

__all__ = [
    "GTFS_SCHEMA",
    "BoundingBox",
    "CascadingPruner",
    "ClipSettings",
    "FeedStore",
    "GtfsdbSettings",
    "IntegrityValidator",
    "PruneResult",
    "PruneStep",
    "SchemaGraph",
    "StoreRow",
    "StoreSettings",
    "ValidationResult",
    "ValidationSettings",
    "build_gtfs_schema",
    "clip",
    "configure_logging",
    "feed_context",
    "get_logger",
    "load_settings",
]
