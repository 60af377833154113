"""
Column detection for road speed limit packs.

Pack exports differ in how they name the geometry column, and some omit the
maxspeed or highway attributes. Detection runs once per load and resolves the
actual column names so the row query is the same shape for every pack.
"""

import logging
import sqlite3
from dataclasses import dataclass
from typing import Optional

from .config import (
    ROADS_TABLE,
    GEOMETRY_COLUMN_ALIASES,
    GEOMETRY_COLUMN_CANDIDATES,
    MAXSPEED_COLUMN,
    HIGHWAY_COLUMN,
)

logger = logging.getLogger('openHUD.schema')


class NoGeometryColumn(Exception):
    """No geometry column could be found in the roads table."""


@dataclass(frozen=True)
class RoadsSchema:
    """Resolved column names for a roads table."""
    table: str
    geometry_column: str
    maxspeed_column: Optional[str] = None
    highway_column: Optional[str] = None

    @property
    def has_maxspeed(self) -> bool:
        return self.maxspeed_column is not None

    @property
    def has_highway(self) -> bool:
        return self.highway_column is not None

    def select_sql(self) -> str:
        """
        Row query returning (maxspeed, highway, geometry).

        Missing attribute columns are replaced by empty literals so every
        pack yields the same three columns.
        """
        maxspeed = self.maxspeed_column or f"'' AS {MAXSPEED_COLUMN}"
        highway = self.highway_column or f"'' AS {HIGHWAY_COLUMN}"
        return f"SELECT {maxspeed}, {highway}, {self.geometry_column} FROM {self.table}"


def _column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    """Check a column by issuing a minimal query against it."""
    try:
        conn.execute(f"SELECT {column} FROM {table} LIMIT 1").fetchall()
        return True
    except sqlite3.OperationalError:
        return False


def detect_roads_schema(conn: sqlite3.Connection, table: str = ROADS_TABLE) -> RoadsSchema:
    """
    Resolve geometry and attribute columns for the roads table.

    Column names are matched case-insensitively. Geometry aliases are tried in
    priority order; if none is listed by PRAGMA table_info, each candidate is
    probed with a SELECT and the first that works is used.

    Raises:
        NoGeometryColumn: if no geometry column could be found
        sqlite3.DatabaseError: if the file is not a readable database
    """
    columns = {}
    for row in conn.execute(f"PRAGMA table_info({table})"):
        name = row[1]
        columns.setdefault(name.lower(), name)

    geometry = None
    for alias in GEOMETRY_COLUMN_ALIASES:
        if alias in columns:
            geometry = columns[alias]
            break

    if geometry is None:
        for candidate in GEOMETRY_COLUMN_CANDIDATES:
            if _column_exists(conn, table, candidate):
                geometry = candidate
                break

    if geometry is None:
        raise NoGeometryColumn(f"No geometry column found in table '{table}'")

    schema = RoadsSchema(
        table=table,
        geometry_column=geometry,
        maxspeed_column=columns.get(MAXSPEED_COLUMN),
        highway_column=columns.get(HIGHWAY_COLUMN),
    )
    logger.info(
        "Roads schema: geometry=%s maxspeed=%s highway=%s",
        schema.geometry_column, schema.has_maxspeed, schema.has_highway,
    )
    return schema
