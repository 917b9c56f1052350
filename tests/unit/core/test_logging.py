# tests/unit/core/test_logging.py
"""Tests for gtfsdb's logging setup and feed context binding."""

import json
import logging
from typing import Any

import pytest
import structlog

from gtfsdb.contracts import ValidationMode
from gtfsdb.core.store import FeedStore


def _json_lines(text: str) -> list[dict[str, Any]]:
    return [json.loads(line) for line in text.splitlines() if line.strip()]


class TestConfigureLogging:
    """Handler, format and level wiring."""

    def test_events_go_to_stderr_as_json(self, capsys: pytest.CaptureFixture[str]) -> None:
        """JSON events land on stderr with level, logger name and timestamp."""
        from gtfsdb.core.logging import configure_logging, get_logger

        configure_logging(json_output=True)

        get_logger("gtfsdb.core.store").info("Deleted rows", entity="trips", deleted=3)

        captured = capsys.readouterr()
        assert captured.out == ""
        (data,) = _json_lines(captured.err)
        assert data["event"] == "Deleted rows"
        assert data["entity"] == "trips"
        assert data["deleted"] == 3
        assert data["level"] == "info"
        assert data["logger"] == "gtfsdb.core.store"
        assert "timestamp" in data
        assert "_record" not in data
        assert "_from_structlog" not in data

    def test_console_rendering(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Console mode renders key=value pairs, not JSON."""
        from gtfsdb.core.logging import configure_logging, get_logger

        configure_logging(json_output=False)

        get_logger("gtfsdb.cli").info("Validating", mode="strict")

        err = capsys.readouterr().err
        assert "Validating" in err
        assert "mode=strict" in err
        assert not err.strip().startswith("{")

    def test_level_applies_to_gtfsdb_loggers(self, capsys: pytest.CaptureFixture[str]) -> None:
        """INFO hides gtfsdb debug events."""
        from gtfsdb.core.logging import configure_logging, get_logger

        configure_logging(json_output=True, level="info")
        logger = get_logger("gtfsdb.core.integrity.validator")

        logger.debug("hidden")
        logger.info("shown")

        events = [data["event"] for data in _json_lines(capsys.readouterr().err)]
        assert events == ["shown"]

    def test_debug_keeps_third_party_loggers_at_warning(self, capsys: pytest.CaptureFixture[str]) -> None:
        """DEBUG opens the gtfsdb tree only; SQLAlchemy stays at WARNING."""
        from gtfsdb.core.logging import configure_logging, get_logger

        configure_logging(json_output=True, level="DEBUG")

        get_logger("gtfsdb.core.store.database").debug("Declared entity")
        logging.getLogger("sqlalchemy.engine").info("SELECT 1")
        logging.getLogger("sqlalchemy.pool").warning("Pool exhausted")

        events = [data["event"] for data in _json_lines(capsys.readouterr().err)]
        assert events == ["Declared entity", "Pool exhausted"]
        assert logging.getLogger("gtfsdb").level == logging.DEBUG
        assert logging.getLogger().level == logging.WARNING

    def test_quieter_level_applies_to_everything(self) -> None:
        """A level above WARNING raises the floor for third-party loggers too."""
        from gtfsdb.core.logging import configure_logging

        configure_logging(level="ERROR")

        assert logging.getLogger().level == logging.ERROR
        assert logging.getLogger("gtfsdb").level == logging.ERROR

    def test_unknown_level_rejected(self) -> None:
        """Level names are checked before anything is configured."""
        from gtfsdb.core.logging import configure_logging

        with pytest.raises(ValueError, match="LOUD"):
            configure_logging(level="LOUD")

    def test_stdlib_records_share_the_json_format(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Records from stdlib loggers pass through the same processors."""
        from gtfsdb.core.logging import configure_logging

        configure_logging(json_output=True)

        logging.getLogger("dynaconf").warning("Settings file has no [default] section")

        (data,) = _json_lines(capsys.readouterr().err)
        assert data["event"] == "Settings file has no [default] section"
        assert data["logger"] == "dynaconf"
        assert data["level"] == "warning"
        assert "timestamp" in data


class TestFeedContext:
    """feed_context() binds feed fields to events."""

    def test_nested_blocks_add_and_restore_fields(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Inner fields disappear when their block exits."""
        from gtfsdb.core.logging import configure_logging, feed_context, get_logger

        configure_logging(json_output=True)
        logger = get_logger("gtfsdb.core.clip")

        with feed_context("feed.db", mode="repair"):
            with feed_context("feed.db", anchor="stops"):
                logger.info("inner")
            logger.info("outer")
        logger.info("after")

        inner, outer, after = _json_lines(capsys.readouterr().err)
        assert (inner["location"], inner["mode"], inner["anchor"]) == ("feed.db", "repair", "stops")
        assert (outer["location"], outer["mode"]) == ("feed.db", "repair")
        assert "anchor" not in outer
        assert "location" not in after
        assert "mode" not in after
        assert structlog.contextvars.get_contextvars() == {}

    def test_validation_events_carry_location_and_mode(
        self, capsys: pytest.CaptureFixture[str], gtfs_store: FeedStore
    ) -> None:
        """Every validator event names the store and the mode."""
        from gtfsdb.core.integrity import IntegrityValidator
        from gtfsdb.core.logging import configure_logging
        from gtfsdb.core.schema import GTFS_SCHEMA

        gtfs_store.insert_rows("routes", [{"route_id": "R1", "agency_id": "GHOST"}])
        configure_logging(json_output=True)

        IntegrityValidator(GTFS_SCHEMA).validate(gtfs_store, ValidationMode.PERMISSIVE)

        events = [data for data in _json_lines(capsys.readouterr().err) if data["logger"].startswith("gtfsdb.")]
        assert events
        assert {(data["location"], data["mode"]) for data in events} == {(":memory:", "permissive")}
        warnings = [data for data in events if data["level"] == "warning"]
        assert [data["event"] for data in warnings] == ["GHOST in routes is not a valid agency_id [route_id: R1]"]
        assert structlog.contextvars.get_contextvars() == {}

    def test_prune_events_carry_anchor(
        self, capsys: pytest.CaptureFixture[str], gtfs_store: FeedStore, small_feed: dict
    ) -> None:
        """The closing validation inside a prune sees both anchor and mode."""
        from gtfsdb.core.integrity import CascadingPruner
        from gtfsdb.core.logging import configure_logging
        from gtfsdb.core.schema import GTFS_SCHEMA

        for entity_name, rows in small_feed.items():
            gtfs_store.insert_rows(entity_name, rows)
        configure_logging(json_output=True)

        CascadingPruner(GTFS_SCHEMA).prune(gtfs_store, "stops", lambda values: values.get("stop_id") != "FAR")

        events = _json_lines(capsys.readouterr().err)
        pruner_events = [data for data in events if data["logger"] == "gtfsdb.core.integrity.pruner"]
        validator_events = [data for data in events if data["logger"] == "gtfsdb.core.integrity.validator"]
        assert pruner_events
        assert validator_events
        assert all(data["anchor"] == "stops" for data in pruner_events + validator_events)
        assert all(data["mode"] == "repair" for data in validator_events)
        assert all("mode" not in data for data in pruner_events)
