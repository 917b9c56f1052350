# src/gtfsdb/core/schema/gtfs.py
"""GTFS static schedule schema declarations.

One EntitySchema per GTFS file (table name = file name without ``.txt``),
columns in reference order, plus every foreign key between files.

Not declared as foreign keys:
- references into locations.geojson (stop_times.location_id)
- translations.record_id / record_sub_id (target depends on table_name)
- calendar_dates.service_id (it may define a service on its own)
"""

from __future__ import annotations

from gtfsdb.contracts.enums import Presence
from gtfsdb.core.schema.graph import SchemaGraph
from gtfsdb.core.schema.models import EntitySchema, ForeignKeyEdge, column, entity, foreign_key

_REQ = Presence.REQUIRED
_COND_REQ = Presence.CONDITIONALLY_REQUIRED
_COND_FORBID = Presence.CONDITIONALLY_FORBIDDEN
_REC = Presence.RECOMMENDED
_OPT = Presence.OPTIONAL


GTFS_ENTITIES: tuple[EntitySchema, ...] = (
    entity(
        "agency",
        column("agency_id", "Unique ID", _COND_REQ),
        column("agency_name", "Text", _REQ),
        column("agency_url", "URL", _REQ),
        column("agency_timezone", "Timezone", _REQ),
        column("agency_lang", "Language code", _OPT),
        column("agency_phone", "Phone number", _OPT),
        column("agency_fare_url", "URL", _OPT),
        column("agency_email", "Email", _OPT),
        primary_key=("agency_id",),
    ),
    entity(
        "stops",
        column("stop_id", "Unique ID", _REQ),
        column("stop_code", "Text", _OPT),
        column("stop_name", "Text", _COND_REQ),
        column("tts_stop_name", "Text", _OPT),
        column("stop_desc", "Text", _OPT),
        column("stop_lat", "Latitude", _COND_REQ),
        column("stop_lon", "Longitude", _COND_REQ),
        column("zone_id", "ID", _OPT),
        column("stop_url", "URL", _OPT),
        column("location_type", "Enum", _OPT),
        column("parent_station", "Foreign ID referencing stops.stop_id", _COND_REQ),
        column("stop_timezone", "Timezone", _OPT),
        column("wheelchair_boarding", "Enum", _OPT),
        column("level_id", "Foreign ID referencing levels.level_id", _OPT),
        column("platform_code", "Text", _OPT),
        primary_key=("stop_id",),
    ),
    entity(
        "routes",
        column("route_id", "Unique ID", _REQ),
        column("agency_id", "Foreign ID referencing agency.agency_id", _COND_REQ),
        column("route_short_name", "Text", _COND_REQ),
        column("route_long_name", "Text", _COND_REQ),
        column("route_desc", "Text", _OPT),
        column("route_type", "Enum", _REQ),
        column("route_url", "URL", _OPT),
        column("route_color", "Color", _OPT),
        column("route_text_color", "Color", _OPT),
        column("route_sort_order", "Non-negative integer", _OPT),
        column("continuous_pickup", "Enum", _COND_FORBID),
        column("continuous_drop_off", "Enum", _COND_FORBID),
        column("network_id", "ID", _COND_FORBID),
        primary_key=("route_id",),
    ),
    entity(
        "trips",
        column("route_id", "Foreign ID referencing routes.route_id", _REQ),
        column("service_id", "Foreign ID referencing calendar.service_id or calendar_dates.service_id", _REQ),
        column("trip_id", "Unique ID", _REQ),
        column("trip_headsign", "Text", _OPT),
        column("trip_short_name", "Text", _OPT),
        column("direction_id", "Enum", _OPT),
        column("block_id", "ID", _OPT),
        column("shape_id", "Foreign ID referencing shapes.shape_id", _COND_REQ),
        column("wheelchair_accessible", "Enum", _OPT),
        column("bikes_allowed", "Enum", _OPT),
        primary_key=("trip_id",),
    ),
    entity(
        "stop_times",
        column("trip_id", "Foreign ID referencing trips.trip_id", _REQ),
        column("arrival_time", "Time", _COND_REQ),
        column("departure_time", "Time", _COND_REQ),
        column("stop_id", "Foreign ID referencing stops.stop_id", _COND_REQ),
        column("location_group_id", "Foreign ID referencing location_groups.location_group_id", _COND_FORBID),
        column("location_id", "Foreign ID referencing id from locations.geojson", _COND_FORBID),
        column("stop_sequence", "Non-negative integer", _REQ),
        column("stop_headsign", "Text", _OPT),
        column("start_pickup_drop_off_window", "Time", _COND_REQ),
        column("end_pickup_drop_off_window", "Time", _COND_REQ),
        column("pickup_type", "Enum", _COND_FORBID),
        column("drop_off_type", "Enum", _COND_FORBID),
        column("continuous_pickup", "Enum", _COND_FORBID),
        column("continuous_drop_off", "Enum", _COND_FORBID),
        column("shape_dist_traveled", "Non-negative float", _OPT),
        column("timepoint", "Enum", _REC),
        column("pickup_booking_rule_id", "Foreign ID referencing booking_rules.booking_rule_id", _OPT),
        column("drop_off_booking_rule_id", "Foreign ID referencing booking_rules.booking_rule_id", _OPT),
        primary_key=("trip_id", "stop_sequence"),
    ),
    entity(
        "calendar",
        column("service_id", "Unique ID", _REQ),
        column("monday", "Enum", _REQ),
        column("tuesday", "Enum", _REQ),
        column("wednesday", "Enum", _REQ),
        column("thursday", "Enum", _REQ),
        column("friday", "Enum", _REQ),
        column("saturday", "Enum", _REQ),
        column("sunday", "Enum", _REQ),
        column("start_date", "Date", _REQ),
        column("end_date", "Date", _REQ),
        primary_key=("service_id",),
    ),
    entity(
        "calendar_dates",
        column("service_id", "Foreign ID referencing calendar.service_id or ID", _REQ),
        column("date", "Date", _REQ),
        column("exception_type", "Enum", _REQ),
        primary_key=("service_id", "date"),
    ),
    entity(
        "fare_attributes",
        column("fare_id", "Unique ID", _REQ),
        column("price", "Non-negative float", _REQ),
        column("currency_type", "Currency code", _REQ),
        column("payment_method", "Enum", _REQ),
        column("transfers", "Enum", _REQ),
        column("agency_id", "Foreign ID referencing agency.agency_id", _COND_REQ),
        column("transfer_duration", "Non-negative integer", _OPT),
        primary_key=("fare_id",),
    ),
    entity(
        "fare_rules",
        column("fare_id", "Foreign ID referencing fare_attributes.fare_id", _REQ),
        column("route_id", "Foreign ID referencing routes.route_id", _OPT),
        column("origin_id", "Foreign ID referencing stops.zone_id", _OPT),
        column("destination_id", "Foreign ID referencing stops.zone_id", _OPT),
        column("contains_id", "Foreign ID referencing stops.zone_id", _OPT),
        primary_key=("fare_id", "route_id", "origin_id", "destination_id", "contains_id"),
    ),
    entity(
        "timeframes",
        column("timeframe_group_id", "ID", _REQ),
        column("start_time", "Time", _COND_REQ),
        column("end_time", "Time", _COND_REQ),
        column("service_id", "Foreign ID referencing calendar.service_id or calendar_dates.service_id", _REQ),
        primary_key=("timeframe_group_id", "start_time", "end_time", "service_id"),
    ),
    entity(
        "fare_media",
        column("fare_media_id", "Unique ID", _REQ),
        column("fare_media_name", "Text", _OPT),
        column("fare_media_type", "Enum", _REQ),
        primary_key=("fare_media_id",),
    ),
    entity(
        "fare_products",
        column("fare_product_id", "ID", _REQ),
        column("fare_product_name", "Text", _OPT),
        column("fare_media_id", "Foreign ID referencing fare_media.fare_media_id", _OPT),
        column("amount", "Currency amount", _REQ),
        column("currency", "Currency code", _REQ),
        primary_key=("fare_product_id", "fare_media_id"),
    ),
    entity(
        "fare_leg_rules",
        column("leg_group_id", "ID", _OPT),
        column("network_id", "Foreign ID referencing routes.network_id or networks.network_id", _OPT),
        column("from_area_id", "Foreign ID referencing areas.area_id", _OPT),
        column("to_area_id", "Foreign ID referencing areas.area_id", _OPT),
        column("from_timeframe_group_id", "Foreign ID referencing timeframes.timeframe_group_id", _OPT),
        column("to_timeframe_group_id", "Foreign ID referencing timeframes.timeframe_group_id", _OPT),
        column("fare_product_id", "Foreign ID referencing fare_products.fare_product_id", _REQ),
        column("rule_priority", "Non-negative integer", _OPT),
        primary_key=(
            "network_id",
            "from_area_id",
            "to_area_id",
            "from_timeframe_group_id",
            "to_timeframe_group_id",
            "fare_product_id",
        ),
    ),
    entity(
        "fare_transfer_rules",
        column("from_leg_group_id", "Foreign ID referencing fare_leg_rules.leg_group_id", _OPT),
        column("to_leg_group_id", "Foreign ID referencing fare_leg_rules.leg_group_id", _OPT),
        column("transfer_count", "Non-zero integer", _COND_FORBID),
        column("duration_limit", "Positive integer", _OPT),
        column("duration_limit_type", "Enum", _COND_REQ),
        column("fare_transfer_type", "Enum", _REQ),
        column("fare_product_id", "Foreign ID referencing fare_products.fare_product_id", _OPT),
        primary_key=("from_leg_group_id", "to_leg_group_id", "fare_product_id", "transfer_count", "duration_limit"),
    ),
    entity(
        "areas",
        column("area_id", "Unique ID", _REQ),
        column("area_name", "Text", _OPT),
        primary_key=("area_id",),
    ),
    entity(
        "stop_areas",
        column("area_id", "Foreign ID referencing areas.area_id", _REQ),
        column("stop_id", "Foreign ID referencing stops.stop_id", _REQ),
        primary_key=("area_id", "stop_id"),
    ),
    entity(
        "networks",
        column("network_id", "Unique ID", _REQ),
        column("network_name", "Text", _OPT),
        primary_key=("network_id",),
    ),
    entity(
        "route_networks",
        column("network_id", "Foreign ID referencing networks.network_id", _REQ),
        column("route_id", "Foreign ID referencing routes.route_id", _REQ),
        primary_key=("route_id",),
    ),
    entity(
        "shapes",
        column("shape_id", "ID", _REQ),
        column("shape_pt_lat", "Latitude", _REQ),
        column("shape_pt_lon", "Longitude", _REQ),
        column("shape_pt_sequence", "Non-negative integer", _REQ),
        column("shape_dist_traveled", "Non-negative float", _OPT),
        primary_key=("shape_id", "shape_pt_sequence"),
    ),
    entity(
        "frequencies",
        column("trip_id", "Foreign ID referencing trips.trip_id", _REQ),
        column("start_time", "Time", _REQ),
        column("end_time", "Time", _REQ),
        column("headway_secs", "Positive integer", _REQ),
        column("exact_times", "Enum", _OPT),
        primary_key=("trip_id", "start_time"),
    ),
    entity(
        "transfers",
        column("from_stop_id", "Foreign ID referencing stops.stop_id", _COND_REQ),
        column("to_stop_id", "Foreign ID referencing stops.stop_id", _COND_REQ),
        column("from_route_id", "Foreign ID referencing routes.route_id", _OPT),
        column("to_route_id", "Foreign ID referencing routes.route_id", _OPT),
        column("from_trip_id", "Foreign ID referencing trips.trip_id", _COND_REQ),
        column("to_trip_id", "Foreign ID referencing trips.trip_id", _COND_REQ),
        column("transfer_type", "Enum", _REQ),
        column("min_transfer_time", "Non-negative integer", _OPT),
        primary_key=("from_stop_id", "to_stop_id", "from_trip_id", "to_trip_id", "from_route_id", "to_route_id"),
    ),
    entity(
        "pathways",
        column("pathway_id", "Unique ID", _REQ),
        column("from_stop_id", "Foreign ID referencing stops.stop_id", _REQ),
        column("to_stop_id", "Foreign ID referencing stops.stop_id", _REQ),
        column("pathway_mode", "Enum", _REQ),
        column("is_bidirectional", "Enum", _REQ),
        column("length", "Non-negative float", _OPT),
        column("traversal_time", "Positive integer", _OPT),
        column("stair_count", "Non-null integer", _OPT),
        column("max_slope", "Float", _OPT),
        column("min_width", "Positive float", _OPT),
        column("signposted_as", "Text", _OPT),
        column("reversed_signposted_as", "Text", _OPT),
        primary_key=("pathway_id",),
    ),
    entity(
        "levels",
        column("level_id", "Unique ID", _REQ),
        column("level_index", "Float", _REQ),
        column("level_name", "Text", _OPT),
        primary_key=("level_id",),
    ),
    entity(
        "location_groups",
        column("location_group_id", "Unique ID", _REQ),
        column("location_group_name", "Text", _OPT),
        primary_key=("location_group_id",),
    ),
    entity(
        "location_group_stops",
        column("location_group_id", "Foreign ID referencing location_groups.location_group_id", _REQ),
        column("stop_id", "Foreign ID referencing stops.stop_id", _REQ),
        primary_key=("location_group_id", "stop_id"),
    ),
    entity(
        "booking_rules",
        column("booking_rule_id", "Unique ID", _REQ),
        column("booking_type", "Enum", _REQ),
        column("prior_notice_duration_min", "Integer", _COND_REQ),
        column("prior_notice_duration_max", "Integer", _COND_FORBID),
        column("prior_notice_last_day", "Integer", _COND_REQ),
        column("prior_notice_last_time", "Time", _COND_REQ),
        column("prior_notice_start_day", "Integer", _COND_FORBID),
        column("prior_notice_start_time", "Time", _COND_REQ),
        column("prior_notice_service_id", "Foreign ID referencing calendar.service_id", _COND_FORBID),
        column("message", "Text", _OPT),
        column("pickup_message", "Text", _OPT),
        column("drop_off_message", "Text", _OPT),
        column("phone_number", "Phone number", _OPT),
        column("info_url", "URL", _OPT),
        column("booking_url", "URL", _OPT),
        primary_key=("booking_rule_id",),
    ),
    entity(
        "translations",
        column("table_name", "Enum", _REQ),
        column("field_name", "Text", _REQ),
        column("language", "Language code", _REQ),
        column("translation", "Text or URL or Email or Phone number", _REQ),
        column("record_id", "Foreign ID", _COND_REQ),
        column("record_sub_id", "Foreign ID", _COND_REQ),
        column("field_value", "Text or URL or Email or Phone number", _COND_REQ),
        primary_key=("table_name", "field_name", "language", "record_id", "record_sub_id", "field_value"),
    ),
    entity(
        "feed_info",
        column("feed_publisher_name", "Text", _REQ),
        column("feed_publisher_url", "URL", _REQ),
        column("feed_lang", "Language code", _REQ),
        column("default_lang", "Language code", _OPT),
        column("feed_start_date", "Date", _REC),
        column("feed_end_date", "Date", _REC),
        column("feed_version", "Text", _REC),
        column("feed_contact_email", "Email", _OPT),
        column("feed_contact_url", "URL", _OPT),
    ),
    entity(
        "attributions",
        column("attribution_id", "Unique ID", _OPT),
        column("agency_id", "Foreign ID referencing agency.agency_id", _OPT),
        column("route_id", "Foreign ID referencing routes.route_id", _OPT),
        column("trip_id", "Foreign ID referencing trips.trip_id", _OPT),
        column("organization_name", "Text", _REQ),
        column("is_producer", "Enum", _OPT),
        column("is_operator", "Enum", _OPT),
        column("is_authority", "Enum", _OPT),
        column("attribution_url", "URL", _OPT),
        column("attribution_email", "Email", _OPT),
        column("attribution_phone", "Phone number", _OPT),
        primary_key=("attribution_id",),
    ),
)


# prune_unreferenced marks targets that exist only to serve the source rows:
# a clip drops trips without stop_times, routes without trips, agencies
# without routes, services without trips, areas without stop_areas and
# fares without fare rules.
GTFS_EDGES: tuple[ForeignKeyEdge, ...] = (
    foreign_key("stops.parent_station", "stops.stop_id"),
    foreign_key("stops.level_id", "levels.level_id"),
    foreign_key("routes.agency_id", "agency.agency_id", prune_unreferenced=True),
    foreign_key("trips.route_id", "routes.route_id", prune_unreferenced=True),
    foreign_key("trips.service_id", "calendar.service_id", "calendar_dates.service_id", prune_unreferenced=True),
    foreign_key("trips.shape_id", "shapes.shape_id"),
    foreign_key("stop_times.trip_id", "trips.trip_id", prune_unreferenced=True),
    foreign_key("stop_times.stop_id", "stops.stop_id"),
    foreign_key("stop_times.location_group_id", "location_groups.location_group_id"),
    foreign_key("stop_times.pickup_booking_rule_id", "booking_rules.booking_rule_id"),
    foreign_key("stop_times.drop_off_booking_rule_id", "booking_rules.booking_rule_id"),
    foreign_key("fare_attributes.agency_id", "agency.agency_id"),
    foreign_key("fare_rules.fare_id", "fare_attributes.fare_id", prune_unreferenced=True),
    foreign_key("fare_rules.route_id", "routes.route_id"),
    foreign_key("fare_rules.origin_id", "stops.zone_id"),
    foreign_key("fare_rules.destination_id", "stops.zone_id"),
    foreign_key("fare_rules.contains_id", "stops.zone_id"),
    foreign_key("timeframes.service_id", "calendar.service_id", "calendar_dates.service_id"),
    foreign_key("fare_products.fare_media_id", "fare_media.fare_media_id"),
    foreign_key("fare_leg_rules.network_id", "routes.network_id", "networks.network_id"),
    foreign_key("fare_leg_rules.from_area_id", "areas.area_id"),
    foreign_key("fare_leg_rules.to_area_id", "areas.area_id"),
    foreign_key("fare_leg_rules.from_timeframe_group_id", "timeframes.timeframe_group_id"),
    foreign_key("fare_leg_rules.to_timeframe_group_id", "timeframes.timeframe_group_id"),
    foreign_key("fare_leg_rules.fare_product_id", "fare_products.fare_product_id"),
    foreign_key("fare_transfer_rules.from_leg_group_id", "fare_leg_rules.leg_group_id"),
    foreign_key("fare_transfer_rules.to_leg_group_id", "fare_leg_rules.leg_group_id"),
    foreign_key("fare_transfer_rules.fare_product_id", "fare_products.fare_product_id"),
    foreign_key("stop_areas.area_id", "areas.area_id", prune_unreferenced=True),
    foreign_key("stop_areas.stop_id", "stops.stop_id"),
    foreign_key("route_networks.network_id", "networks.network_id"),
    foreign_key("route_networks.route_id", "routes.route_id"),
    foreign_key("frequencies.trip_id", "trips.trip_id"),
    foreign_key("transfers.from_stop_id", "stops.stop_id"),
    foreign_key("transfers.to_stop_id", "stops.stop_id"),
    foreign_key("transfers.from_route_id", "routes.route_id"),
    foreign_key("transfers.to_route_id", "routes.route_id"),
    foreign_key("transfers.from_trip_id", "trips.trip_id"),
    foreign_key("transfers.to_trip_id", "trips.trip_id"),
    foreign_key("pathways.from_stop_id", "stops.stop_id"),
    foreign_key("pathways.to_stop_id", "stops.stop_id"),
    foreign_key("location_group_stops.location_group_id", "location_groups.location_group_id"),
    foreign_key("location_group_stops.stop_id", "stops.stop_id"),
    foreign_key("booking_rules.prior_notice_service_id", "calendar.service_id"),
    foreign_key("attributions.agency_id", "agency.agency_id"),
    foreign_key("attributions.route_id", "routes.route_id"),
    foreign_key("attributions.trip_id", "trips.trip_id"),
)


def build_gtfs_schema() -> SchemaGraph:
    """Build the GTFS schema graph.

    Raises:
        SchemaConfigurationError: If the declarations above are inconsistent
    """
    return SchemaGraph(GTFS_ENTITIES, GTFS_EDGES)


GTFS_SCHEMA = build_gtfs_schema()
