"""Speed limit lookup configuration."""

# Source pack layout
ROADS_TABLE = "roads"
PACK_EXTENSION = ".sqlite"

# Geometry column resolution
# Aliases matched case-insensitively against PRAGMA table_info, in priority order
GEOMETRY_COLUMN_ALIASES = ("geom", "geometry")
# Probed with a SELECT when no alias matched, first that executes wins
GEOMETRY_COLUMN_CANDIDATES = ("geom", "geometry", "GEOMETRY", "wkt", "WKT")
MAXSPEED_COLUMN = "maxspeed"
HIGHWAY_COLUMN = "highway"

# Decoding and index bounds
MAX_SAMPLES_PER_LINE = 16      # Representative points kept per polyline
SAMPLE_INDEX_CAPACITY = 500_000  # Hard cap on samples per loaded pack

# Query
EARTH_RADIUS_M = 6_371_000.0
MATCH_RADIUS_M = 300.0  # Nearest sample must be closer than this (metres)

# Fallback limits by OSM highway class (km/h)
DEFAULT_LIMITS_KMH = {
    "motorway": 120,
    "trunk": 90,
    "primary": 90,
    "secondary": 80,
    "tertiary": 50,
    "residential": 50,
}
FALLBACK_LIMIT_KMH = 50
