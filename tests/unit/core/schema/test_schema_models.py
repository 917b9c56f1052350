# tests/unit/core/schema/test_schema_models.py
"""Tests for the declarative schema types."""

import pytest


class TestColumnRef:
    """Tests for ColumnRef parsing and ordering."""

    def test_parse_dotted(self) -> None:
        """ColumnRef.parse splits "entity.column" at the dot."""
        from gtfsdb.core.schema import ColumnRef

        ref = ColumnRef.parse("stop_times.trip_id")

        assert ref.entity == "stop_times"
        assert ref.column == "trip_id"
        assert str(ref) == "stop_times.trip_id"

    @pytest.mark.parametrize("dotted", ["stops", "a.b.c", ".stop_id", "stops."])
    def test_parse_rejects_malformed(self, dotted: str) -> None:
        """Anything but exactly one dot is rejected."""
        from gtfsdb.contracts import SchemaConfigurationError
        from gtfsdb.core.schema import ColumnRef

        with pytest.raises(SchemaConfigurationError, match="entity.column"):
            ColumnRef.parse(dotted)

    def test_orders_by_entity_then_column(self) -> None:
        """References sort by entity, then column."""
        from gtfsdb.core.schema import ColumnRef

        refs = [
            ColumnRef.parse("trips.service_id"),
            ColumnRef.parse("stops.zone_id"),
            ColumnRef.parse("trips.route_id"),
            ColumnRef.parse("stops.parent_station"),
        ]

        assert [str(ref) for ref in sorted(refs)] == [
            "stops.parent_station",
            "stops.zone_id",
            "trips.route_id",
            "trips.service_id",
        ]


class TestEntitySchema:
    """Tests for EntitySchema construction checks."""

    def test_column_lookup(self) -> None:
        """Column names, presence and type description."""
        from gtfsdb.contracts import Presence
        from gtfsdb.core.schema import column, entity

        stops = entity(
            "stops",
            column("stop_id", "Unique ID", Presence.REQUIRED),
            column("stop_name"),
            primary_key=("stop_id",),
        )

        assert stops.column_names == ("stop_id", "stop_name")
        assert stops.primary_key == ("stop_id",)
        assert stops.has_column("stop_name")
        assert not stops.has_column("stop_lat")
        assert stops.get_column("stop_id").presence is Presence.REQUIRED
        assert stops.get_column("stop_name").type_description == "Text"

    def test_get_missing_column_raises_key_error(self) -> None:
        """Unknown columns raise KeyError naming the reference."""
        from gtfsdb.core.schema import column, entity

        stops = entity("stops", column("stop_id"))

        with pytest.raises(KeyError, match="stops.stop_lat"):
            stops.get_column("stop_lat")

    def test_duplicate_columns_rejected(self) -> None:
        """Column names are unique per entity."""
        from gtfsdb.contracts import SchemaConfigurationError
        from gtfsdb.core.schema import column, entity

        with pytest.raises(SchemaConfigurationError, match="duplicate"):
            entity("stops", column("stop_id"), column("stop_id"))

    def test_primary_key_must_be_declared(self) -> None:
        """Primary key columns must exist."""
        from gtfsdb.contracts import SchemaConfigurationError
        from gtfsdb.core.schema import column, entity

        with pytest.raises(SchemaConfigurationError, match="primary key"):
            entity("stops", column("stop_name"), primary_key=("stop_id",))

    def test_entity_without_primary_key_allowed(self) -> None:
        """feed_info has no primary key."""
        from gtfsdb.core.schema import column, entity

        feed_info = entity("feed_info", column("feed_publisher_name"))

        assert feed_info.primary_key == ()

    def test_frozen(self) -> None:
        """Entity schemas are immutable."""
        from dataclasses import FrozenInstanceError

        from gtfsdb.core.schema import column, entity

        stops = entity("stops", column("stop_id"))

        with pytest.raises(FrozenInstanceError):
            stops.name = "platforms"  # type: ignore[misc]


class TestForeignKeyVariants:
    """foreign_key() chooses the edge variant from the declaration shape."""

    def test_single_target_is_reference(self) -> None:
        """One target in another entity builds a ReferenceEdge."""
        from gtfsdb.contracts import EdgeKind
        from gtfsdb.core.schema import ReferenceEdge, foreign_key

        edge = foreign_key("trips.route_id", "routes.route_id", prune_unreferenced=True)

        assert isinstance(edge, ReferenceEdge)
        assert edge.kind is EdgeKind.REFERENCE
        assert edge.source_entity == "trips"
        assert edge.source_column == "route_id"
        assert [str(t) for t in edge.targets] == ["routes.route_id"]
        assert edge.prune_unreferenced is True

    def test_several_targets_is_any_of(self) -> None:
        """Several targets build an AnyOfEdge."""
        from gtfsdb.contracts import EdgeKind
        from gtfsdb.core.schema import AnyOfEdge, foreign_key

        edge = foreign_key("trips.service_id", "calendar.service_id", "calendar_dates.service_id")

        assert isinstance(edge, AnyOfEdge)
        assert edge.kind is EdgeKind.ANY_OF
        assert [str(t) for t in edge.targets] == ["calendar.service_id", "calendar_dates.service_id"]
        assert edge.prune_unreferenced is False

    def test_same_entity_target_is_self_reference(self) -> None:
        """A target in the source entity builds a SelfReferenceEdge."""
        from gtfsdb.contracts import EdgeKind
        from gtfsdb.core.schema import SelfReferenceEdge, foreign_key

        edge = foreign_key("stops.parent_station", "stops.stop_id")

        assert isinstance(edge, SelfReferenceEdge)
        assert edge.kind is EdgeKind.SELF_REFERENCE
        assert edge.target_column == "stop_id"
        assert str(edge.target) == "stops.stop_id"
        assert edge.prune_unreferenced is False

    def test_self_reference_cannot_prune_unreferenced(self) -> None:
        """Self references never prune unreferenced rows."""
        from gtfsdb.contracts import SchemaConfigurationError
        from gtfsdb.core.schema import foreign_key

        with pytest.raises(SchemaConfigurationError, match="self-referential"):
            foreign_key("stops.parent_station", "stops.stop_id", prune_unreferenced=True)

    def test_no_target_rejected(self) -> None:
        """A foreign key needs a target."""
        from gtfsdb.contracts import SchemaConfigurationError
        from gtfsdb.core.schema import foreign_key

        with pytest.raises(SchemaConfigurationError, match="no target"):
            foreign_key("trips.route_id")

    def test_any_of_rejects_duplicate_alternatives(self) -> None:
        """Alternatives must differ."""
        from gtfsdb.contracts import SchemaConfigurationError
        from gtfsdb.core.schema import foreign_key

        with pytest.raises(SchemaConfigurationError, match="same alternative"):
            foreign_key("trips.service_id", "calendar.service_id", "calendar.service_id")

    def test_any_of_rejects_own_entity(self) -> None:
        """Alternatives may not point back at the source entity."""
        from gtfsdb.contracts import SchemaConfigurationError
        from gtfsdb.core.schema import foreign_key

        with pytest.raises(SchemaConfigurationError, match="source entity"):
            foreign_key("stops.parent_station", "stops.stop_id", "areas.area_id")

    def test_any_of_needs_two_alternatives(self) -> None:
        """An AnyOfEdge built directly needs two alternatives."""
        from gtfsdb.contracts import SchemaConfigurationError
        from gtfsdb.core.schema import AnyOfEdge, ColumnRef

        with pytest.raises(SchemaConfigurationError, match="at least two"):
            AnyOfEdge(ColumnRef.parse("trips.service_id"), (ColumnRef.parse("calendar.service_id"),))

    def test_reference_edge_rejects_own_entity(self) -> None:
        """A ReferenceEdge may not point at its own entity."""
        from gtfsdb.contracts import SchemaConfigurationError
        from gtfsdb.core.schema import ColumnRef, ReferenceEdge

        with pytest.raises(SchemaConfigurationError, match="SelfReferenceEdge"):
            ReferenceEdge(ColumnRef.parse("stops.parent_station"), ColumnRef.parse("stops.stop_id"))
