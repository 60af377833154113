"""
Road geometry decoding for speed limit packs.

Turns one row's geometry value into a short list of representative
(lon, lat) points. Two encodings are understood:

- WKB blobs: a little-endian subset covering LineString (type 2) and
  MultiLineString (type 5).
- WKT text: LINESTRING and MULTILINESTRING.

Long lines are downsampled to at most max_samples_per_line points per line,
always keeping the final vertex. Decoding never raises: malformed or
truncated input yields whatever points were fully decoded before the problem.
"""

import logging
import re
import struct
from typing import Any, List, Sequence, Tuple

from .config import MAX_SAMPLES_PER_LINE

logger = logging.getLogger('openHUD.decoder')

Point = Tuple[float, float]  # (lon, lat)

WKB_LITTLE_ENDIAN = 1
WKB_LINESTRING = 2
WKB_MULTILINESTRING = 5

_UINT32 = struct.Struct('<I')
_POINT = struct.Struct('<2d')

# Geometry keywords, with an optional Z/M/ZM dimension marker
_WKT_KEYWORDS = re.compile(r"(?:MULTI)?LINESTRING(?:\s*(?:ZM|Z|M)\b)?", re.IGNORECASE)


def _kept_count(last: int, stride: int) -> int:
    """Vertices kept for stride over indices 0..last, final vertex included."""
    return last // stride + 1 + (1 if last % stride else 0)


def sample_indices(n: int, max_samples: int = MAX_SAMPLES_PER_LINE) -> List[int]:
    """
    Vertex indices to keep for a line of n vertices.

    Keeps vertices 0, stride, 2*stride, ... with stride = n // max_samples
    (at least 1), plus the final vertex. If that would exceed max_samples
    the stride is widened until it fits. Lines of max_samples vertices or
    fewer are kept whole.
    """
    if n <= 0:
        return []
    last = n - 1
    if max_samples <= 1:
        return [last]

    stride = max(1, n // max_samples)
    stride = max(stride, -(-last // (max_samples - 1)) - 1)
    while _kept_count(last, stride) > max_samples:
        stride += 1

    indices = list(range(0, n, stride))
    if indices[-1] != last:
        indices.append(last)
    return indices


def _append_sample(points: List[Point], point: Point, is_final: bool) -> None:
    # Final vertex is dropped if it repeats the previous kept point
    if is_final and points and points[-1] == point:
        return
    points.append(point)


class _WKBReader:
    """Cursor over a WKB buffer. Reads return None once the buffer runs out."""

    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def remaining(self) -> int:
        return len(self.data) - self.offset

    def read_byte(self):
        if self.remaining() < 1:
            return None
        value = self.data[self.offset]
        self.offset += 1
        return value

    def read_uint32(self):
        if self.remaining() < 4:
            return None
        value = _UINT32.unpack_from(self.data, self.offset)[0]
        self.offset += 4
        return value

    def read_point(self):
        if self.remaining() < 16:
            return None
        point = _POINT.unpack_from(self.data, self.offset)
        self.offset += 16
        return point

    def read_line(self, max_samples: int, out: List[Point]) -> bool:
        """
        Read a vertex count and that many points, appending kept ones to out.

        Returns False if the buffer ran out before the line was complete.
        """
        count = self.read_uint32()
        if count is None:
            return False
        keep = set(sample_indices(count, max_samples))
        line: List[Point] = []
        complete = True
        for i in range(count):
            point = self.read_point()
            if point is None:
                complete = False
                break
            if i in keep:
                _append_sample(line, point, i == count - 1)
        out.extend(line)
        return complete


def decode_wkb(data: bytes, max_samples_per_line: int = MAX_SAMPLES_PER_LINE) -> List[Point]:
    """
    Decode sample points from a little-endian WKB LineString/MultiLineString.

    Big-endian blobs and other geometry types produce no points. The byte
    order and type of each sub-line inside a MultiLineString are skipped
    without being checked; sub-lines are always read as little-endian lines.
    """
    reader = _WKBReader(bytes(data))
    points: List[Point] = []

    if reader.read_byte() != WKB_LITTLE_ENDIAN:
        return points
    geom_type = reader.read_uint32()
    if geom_type is None:
        return points
    # Only the low byte carries the base type
    geom_type &= 0xFF

    if geom_type == WKB_LINESTRING:
        reader.read_line(max_samples_per_line, points)
    elif geom_type == WKB_MULTILINESTRING:
        line_count = reader.read_uint32()
        if line_count is None:
            return points
        for _ in range(line_count):
            reader.read_byte()    # sub byte order, ignored
            reader.read_uint32()  # sub type, ignored
            if not reader.read_line(max_samples_per_line, points):
                break
    return points


def _parse_wkt_vertex(token: str):
    parts = token.split()
    if len(parts) < 2:
        return None
    try:
        return float(parts[0]), float(parts[1])
    except ValueError:
        return None


def decode_wkt(text: str, max_samples_per_line: int = MAX_SAMPLES_PER_LINE) -> List[Point]:
    """
    Decode sample points from a WKT LINESTRING or MULTILINESTRING.

    All parts of a MULTILINESTRING are flattened into one vertex list before
    downsampling. Vertex tokens that are not two numbers are skipped.
    """
    cleaned = _WKT_KEYWORDS.sub("", text)
    cleaned = cleaned.replace("(", "").replace(")", "").strip()
    if not cleaned:
        return []

    tokens: Sequence[str] = cleaned.split(",")
    last = len(tokens) - 1
    points: List[Point] = []
    for i in sample_indices(len(tokens), max_samples_per_line):
        vertex = _parse_wkt_vertex(tokens[i])
        if vertex is not None:
            _append_sample(points, vertex, i == last)
    return points


def decode_geometry(value: Any, max_samples_per_line: int = MAX_SAMPLES_PER_LINE) -> List[Point]:
    """Decode a geometry column value, dispatching on its SQLite storage type."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return decode_wkb(value, max_samples_per_line)
    if isinstance(value, str):
        return decode_wkt(value, max_samples_per_line)
    logger.debug("Unsupported geometry value type: %s", type(value).__name__)
    return []
