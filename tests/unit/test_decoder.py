"""
Unit tests for road geometry decoding.
Tests WKB/WKT decoding and downsampling from speedlimit/decoder.py.
"""

import struct

import pytest

from road_packs import (
    ISTANBUL_SECONDARY,
    ISTANBUL_SECONDARY_WKT,
    straight_line,
    wkb_linestring,
    wkb_multilinestring,
    wkt_linestring,
)
from speedlimit.decoder import (
    decode_geometry,
    decode_wkb,
    decode_wkt,
    sample_indices,
)


class TestSampleIndices:
    """Tests for stride downsampling of vertex indices."""

    @pytest.mark.unit
    def test_empty_line(self):
        assert sample_indices(0, 16) == []

    @pytest.mark.unit
    def test_short_line_keeps_everything(self):
        assert sample_indices(5, 16) == [0, 1, 2, 3, 4]

    @pytest.mark.unit
    def test_single_vertex(self):
        assert sample_indices(1, 16) == [0]

    @pytest.mark.unit
    def test_final_vertex_added_off_stride(self):
        assert sample_indices(12, 5) == [0, 3, 6, 9, 11]

    @pytest.mark.unit
    def test_stride_widened_to_fit_cap(self):
        # n // k gives stride 3, which would keep 0, 3, 6, 9 and 10
        assert sample_indices(11, 3) == [0, 5, 10]

    @pytest.mark.unit
    def test_exactly_cap_vertices_kept_whole(self):
        assert sample_indices(16, 16) == list(range(16))

    @pytest.mark.unit
    @pytest.mark.parametrize("n", [2, 15, 16, 17, 31, 32, 33, 100, 1000, 12345])
    @pytest.mark.parametrize("k", [1, 2, 5, 16])
    def test_bounded_ordered_and_ends_on_last(self, n, k):
        indices = sample_indices(n, k)
        assert 0 < len(indices) <= k
        assert indices[-1] == n - 1
        assert indices == sorted(set(indices))

    @pytest.mark.unit
    def test_starts_at_first_vertex(self):
        assert sample_indices(100, 16)[0] == 0


class TestDecodeWKBLineString:
    """Tests for WKB LineString decoding."""

    @pytest.mark.unit
    def test_two_vertex_line(self):
        assert decode_wkb(wkb_linestring(ISTANBUL_SECONDARY)) == ISTANBUL_SECONDARY

    @pytest.mark.unit
    def test_long_line_downsampled(self):
        points = straight_line(100)
        decoded = decode_wkb(wkb_linestring(points), max_samples_per_line=16)

        assert len(decoded) <= 16
        assert decoded[0] == points[0]
        assert decoded[-1] == points[-1]
        # Order is preserved
        positions = [points.index(p) for p in decoded]
        assert positions == sorted(positions)

    @pytest.mark.unit
    def test_big_endian_rejected(self):
        data = wkb_linestring(ISTANBUL_SECONDARY, byte_order=0)
        assert decode_wkb(data) == []

    @pytest.mark.unit
    def test_point_geometry_rejected(self):
        data = struct.pack('<BI2d', 1, 1, 28.9, 41.0)
        assert decode_wkb(data) == []

    @pytest.mark.unit
    def test_only_low_type_byte_used(self):
        data = wkb_linestring(ISTANBUL_SECONDARY, geom_type=0x40000002)
        assert decode_wkb(data) == ISTANBUL_SECONDARY

    @pytest.mark.unit
    def test_empty_buffer(self):
        assert decode_wkb(b"") == []

    @pytest.mark.unit
    def test_truncated_header(self):
        assert decode_wkb(b"\x01\x02\x00") == []

    @pytest.mark.unit
    def test_truncated_mid_point_keeps_complete_points(self):
        points = straight_line(5)
        data = wkb_linestring(points)
        # Header (9 bytes) + three full points + half of the fourth
        cut = 9 + 3 * 16 + 8
        assert decode_wkb(data[:cut]) == points[:3]

    @pytest.mark.unit
    def test_truncated_before_last_vertex_of_long_line(self):
        points = straight_line(40)
        data = wkb_linestring(points)
        decoded = decode_wkb(data[:-1], max_samples_per_line=16)

        assert decoded
        assert points[-1] not in decoded
        assert all(p in points for p in decoded)

    @pytest.mark.unit
    def test_repeated_final_vertex_not_duplicated(self):
        points = [(28.90, 41.00), (28.91, 41.01), (28.91, 41.01)]
        assert decode_wkb(wkb_linestring(points)) == points[:2]

    @pytest.mark.unit
    def test_accepts_bytearray_and_memoryview(self):
        data = wkb_linestring(ISTANBUL_SECONDARY)
        assert decode_wkb(bytearray(data)) == ISTANBUL_SECONDARY
        assert decode_wkb(memoryview(data)) == ISTANBUL_SECONDARY


class TestDecodeWKBMultiLineString:
    """Tests for WKB MultiLineString decoding."""

    @pytest.mark.unit
    def test_all_sub_lines_decoded_in_order(self):
        line_a = [(28.90, 41.00), (28.91, 41.01)]
        line_b = [(29.00, 41.05), (29.01, 41.06), (29.02, 41.07)]
        assert decode_wkb(wkb_multilinestring([line_a, line_b])) == line_a + line_b

    @pytest.mark.unit
    def test_each_sub_line_downsampled_separately(self):
        line_a = straight_line(50)
        line_b = straight_line(50, start=(29.0, 41.0))
        decoded = decode_wkb(wkb_multilinestring([line_a, line_b]), max_samples_per_line=8)

        assert len(decoded) <= 16
        assert line_a[-1] in decoded
        assert decoded[-1] == line_b[-1]

    @pytest.mark.unit
    def test_sub_line_headers_ignored(self):
        """Sub-line byte order and type are skipped, not checked."""
        line = [(28.90, 41.00), (28.91, 41.01)]
        data = wkb_multilinestring([line], sub_byte_order=0, sub_type=99)
        assert decode_wkb(data) == line

    @pytest.mark.unit
    def test_truncated_second_line_keeps_first(self):
        line_a = [(28.90, 41.00), (28.91, 41.01)]
        line_b = [(29.00, 41.05), (29.01, 41.06), (29.02, 41.07)]
        data = wkb_multilinestring([line_a, line_b])
        # Drop the last point of line_b
        decoded = decode_wkb(data[:-16])
        assert decoded == line_a + line_b[:2]

    @pytest.mark.unit
    def test_empty_collection(self):
        assert decode_wkb(wkb_multilinestring([])) == []


class TestDecodeWKT:
    """Tests for WKT LINESTRING/MULTILINESTRING decoding."""

    @pytest.mark.unit
    def test_linestring(self):
        assert decode_wkt(ISTANBUL_SECONDARY_WKT) == ISTANBUL_SECONDARY

    @pytest.mark.unit
    def test_matches_wkb_for_same_vertices(self):
        points = straight_line(57)
        from_wkt = decode_wkt(wkt_linestring(points), 16)
        from_wkb = decode_wkb(wkb_linestring(points), 16)

        assert len(from_wkt) == len(from_wkb)
        for (lon_a, lat_a), (lon_b, lat_b) in zip(from_wkt, from_wkb):
            assert lon_a == pytest.approx(lon_b)
            assert lat_a == pytest.approx(lat_b)

    @pytest.mark.unit
    def test_multilinestring_flattened(self):
        text = "MULTILINESTRING((28.90 41.00, 28.91 41.01), (29.00 41.05, 29.01 41.06))"
        assert decode_wkt(text) == [
            (28.90, 41.00), (28.91, 41.01), (29.00, 41.05), (29.01, 41.06),
        ]

    @pytest.mark.unit
    def test_long_linestring_bounded(self):
        points = straight_line(200)
        decoded = decode_wkt(wkt_linestring(points), 16)
        assert len(decoded) <= 16
        assert decoded[-1] == pytest.approx(points[-1])

    @pytest.mark.unit
    def test_bad_tokens_skipped(self):
        text = "LINESTRING(28.90 41.00, junk, 28.905, 28.91 41.01)"
        assert decode_wkt(text) == [(28.90, 41.00), (28.91, 41.01)]

    @pytest.mark.unit
    def test_extra_ordinates_ignored(self):
        assert decode_wkt("LINESTRING Z (28.90 41.00 12.5, 28.91 41.01 13.0)") == [
            (28.90, 41.00), (28.91, 41.01),
        ]

    @pytest.mark.unit
    @pytest.mark.parametrize("text", ["", "LINESTRING()", "LINESTRING EMPTY", "   "])
    def test_empty_geometry(self, text):
        assert decode_wkt(text) == []


class TestDecodeGeometry:
    """Tests for dispatch on column value type."""

    @pytest.mark.unit
    def test_bytes_decoded_as_wkb(self):
        assert decode_geometry(wkb_linestring(ISTANBUL_SECONDARY)) == ISTANBUL_SECONDARY

    @pytest.mark.unit
    def test_text_decoded_as_wkt(self):
        assert decode_geometry(ISTANBUL_SECONDARY_WKT) == ISTANBUL_SECONDARY

    @pytest.mark.unit
    @pytest.mark.parametrize("value", [None, 42, 3.14])
    def test_other_types_give_nothing(self, value):
        assert decode_geometry(value) == []
