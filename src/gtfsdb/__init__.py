"""
gtfsdb: Referential integrity for GTFS feeds stored in SQLite.

Validates a loaded feed against the GTFS foreign-key graph, repairs it by
deleting violating rows, and clips it to a geographic region without leaving
dangling references behind.
"""

__version__ = "0.1.0"
