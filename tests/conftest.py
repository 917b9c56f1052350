# tests/conftest.py
"""Shared test fixtures and helpers.

Store Fixtures:
- gtfs_store: in-memory FeedStore with every GTFS entity declared
- feed_db: factory writing a SQLite feed file from {entity: [rows]}
- failing_store: in-memory store whose deletions raise StoreError

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import logging
import os
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from pathlib import Path

import pytest
import structlog
from hypothesis import Phase, Verbosity, settings

from gtfsdb.contracts import RowIdentity, StoreError
from gtfsdb.core.schema import GTFS_SCHEMA
from gtfsdb.core.store import FeedStore

type FeedRows = Mapping[str, Sequence[Mapping[str, str | None]]]


# =============================================================================
# Hypothesis profiles
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Store round-trips make timing vary
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Logging isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Drop handlers installed by configure_logging().

    CLI tests configure logging against CliRunner's temporary stderr; a
    handler left behind would write to a closed stream in later tests.
    """
    yield
    logging.getLogger().handlers = []
    logging.getLogger().setLevel(logging.WARNING)
    logging.getLogger("gtfsdb").setLevel(logging.NOTSET)
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


# =============================================================================
# Store fixtures
# =============================================================================


def populate(store: FeedStore, rows: FeedRows) -> None:
    """Insert rows entity by entity."""
    for entity, entity_rows in rows.items():
        store.insert_rows(entity, entity_rows)


@pytest.fixture
def gtfs_store() -> Iterator[FeedStore]:
    """In-memory store with every GTFS entity declared."""
    store = FeedStore.in_memory(GTFS_SCHEMA)
    yield store
    store.close()


class FailingDeleteStore(FeedStore):
    """Store whose deletions fail as a full disk would."""

    attempts = 0

    def delete_scheduled(self, scheduled: Mapping[str, Iterable[RowIdentity]]) -> int:
        self.attempts += 1
        raise StoreError(f"disk I/O error deleting from {sorted(scheduled)}")


@pytest.fixture
def failing_store() -> Iterator[FailingDeleteStore]:
    """In-memory GTFS store that counts and fails every deletion."""
    store = FailingDeleteStore.in_memory(GTFS_SCHEMA)
    yield store
    store.close()


@pytest.fixture
def feed_db(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a GTFS feed database file.

    Usage:
        path = feed_db({"stops": [{"stop_id": "S1", ...}]})
    """

    def _write(rows: FeedRows, name: str = "feed.db") -> Path:
        path = tmp_path / name
        with FeedStore.open(path, GTFS_SCHEMA, create=True) as store:
            populate(store, rows)
        return path

    return _write


# A small consistent feed: one agency, one route, two trips on two stops
# inside a (0,0)-(1,1) box plus one stop far outside it.
SMALL_FEED: dict[str, list[dict[str, str | None]]] = {
    "agency": [{"agency_id": "A1", "agency_name": "Agency", "agency_url": "https://a.example", "agency_timezone": "UTC"}],
    "routes": [{"route_id": "R1", "agency_id": "A1", "route_short_name": "1", "route_type": "3"}],
    "calendar": [
        {
            "service_id": "WK",
            "monday": "1",
            "tuesday": "1",
            "wednesday": "1",
            "thursday": "1",
            "friday": "1",
            "saturday": "0",
            "sunday": "0",
            "start_date": "20240101",
            "end_date": "20241231",
        }
    ],
    "trips": [
        {"route_id": "R1", "service_id": "WK", "trip_id": "T1"},
        {"route_id": "R1", "service_id": "WK", "trip_id": "T2"},
    ],
    "stops": [
        {"stop_id": "IN1", "stop_name": "Inside 1", "stop_lat": "0.5", "stop_lon": "0.5"},
        {"stop_id": "IN2", "stop_name": "Inside 2", "stop_lat": "0.6", "stop_lon": "0.6"},
        {"stop_id": "FAR", "stop_name": "Far", "stop_lat": "40.0", "stop_lon": "40.0"},
    ],
    "stop_times": [
        {"trip_id": "T1", "stop_id": "IN1", "stop_sequence": "1", "arrival_time": "08:00:00", "departure_time": "08:00:00"},
        {"trip_id": "T1", "stop_id": "IN2", "stop_sequence": "2", "arrival_time": "08:05:00", "departure_time": "08:05:00"},
        {"trip_id": "T2", "stop_id": "FAR", "stop_sequence": "1", "arrival_time": "09:00:00", "departure_time": "09:00:00"},
    ],
}


@pytest.fixture
def small_feed() -> dict[str, list[dict[str, str | None]]]:
    """Fresh copy of SMALL_FEED."""
    return {entity: [dict(row) for row in rows] for entity, rows in SMALL_FEED.items()}
