"""
Shared pytest fixtures for openHUD tests.
"""

import os
import sys
import pytest

# Add project root and fixture helpers to path for imports
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)
sys.path.insert(0, os.path.join(PROJECT_ROOT, 'tests', 'fixtures'))

from road_packs import (  # noqa: E402
    ISTANBUL_SECONDARY_WKT,
    create_pack,
)


@pytest.fixture
def make_pack(tmp_path):
    """Factory writing packs into the test's temp directory."""
    counter = {'n': 0}

    def _make(rows, columns=("maxspeed", "highway", "geom"), table="roads", name=None):
        counter['n'] += 1
        filename = name or f"pack_{counter['n']}.sqlite"
        return create_pack(tmp_path / filename, rows, columns=columns, table=table)

    return _make


@pytest.fixture
def secondary_road_pack(make_pack):
    """Single secondary road, no maxspeed."""
    return make_pack([(None, "secondary", ISTANBUL_SECONDARY_WKT)])


@pytest.fixture
def signed_road_pack(make_pack):
    """Single secondary road signed at 50 km/h."""
    return make_pack([("50", "secondary", ISTANBUL_SECONDARY_WKT)])


@pytest.fixture
def empty_pack(make_pack):
    """Roads table with no rows."""
    return make_pack([])


@pytest.fixture
def corrupt_pack(tmp_path):
    """File that is not a SQLite database."""
    path = tmp_path / "corrupt.sqlite"
    path.write_bytes(b"this is not a database" * 100)
    return str(path)
