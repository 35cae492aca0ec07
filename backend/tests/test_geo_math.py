"""
GeoMath tests: point-in-polygon, haversine distance, CIDR containment
"""
import pytest

from utils.geo_math import cidr_contains, haversine_distance_meters, parse_point, point_in_polygon

UNIT_SQUARE = [
    {"lat": 0, "lng": 0},
    {"lat": 0, "lng": 10},
    {"lat": 10, "lng": 10},
    {"lat": 10, "lng": 0},
]


class TestPointInPolygon:

    def test_square_inside_and_outside(self):
        assert point_in_polygon(5, 5, UNIT_SQUARE) is True
        assert point_in_polygon(15, 15, UNIT_SQUARE) is False

    @pytest.mark.parametrize("shift", [0, 1, 2, 3])
    def test_result_independent_of_rotation(self, shift):
        rotated = UNIT_SQUARE[shift:] + UNIT_SQUARE[:shift]
        assert point_in_polygon(5, 5, rotated) is True
        assert point_in_polygon(15, 15, rotated) is False

    def test_result_independent_of_winding(self):
        reversed_square = list(reversed(UNIT_SQUARE))
        assert point_in_polygon(5, 5, reversed_square) is True
        assert point_in_polygon(-1, 5, reversed_square) is False

    def test_concave_polygon_notch_is_outside(self):
        l_shape = [
            {"lat": 0, "lng": 0},
            {"lat": 0, "lng": 10},
            {"lat": 5, "lng": 10},
            {"lat": 5, "lng": 5},
            {"lat": 10, "lng": 5},
            {"lat": 10, "lng": 0},
        ]
        assert point_in_polygon(2, 2, l_shape) is True
        assert point_in_polygon(7, 7, l_shape) is False

    def test_missing_vertex_skips_edges_instead_of_failing(self):
        with_gap = [
            {"lat": 0, "lng": 0},
            {"lat": None, "lng": 5},
            {"lat": 0, "lng": 10},
            {"lat": 10, "lng": 10},
            {"lat": 10, "lng": 0},
        ]
        assert point_in_polygon(5, 5, with_gap) is True

    def test_accepts_list_vertices(self):
        square = [[0, 0], [0, 10], [10, 10], [10, 0]]
        assert point_in_polygon(5, 5, square) is True

    def test_empty_polygon(self):
        assert point_in_polygon(5, 5, []) is False
        assert point_in_polygon(5, 5, None) is False


class TestHaversine:

    def test_same_point_is_zero(self):
        assert haversine_distance_meters(24.7136, 46.6753, 24.7136, 46.6753) == pytest.approx(0, abs=1e-6)

    @pytest.mark.parametrize("a, b", [
        ((24.7136, 46.6753), (21.4858, 39.1925)),
        ((-33.8688, 151.2093), (51.5074, -0.1278)),
        ((0, 179.9), (0, -179.9)),
    ])
    def test_symmetric(self, a, b):
        assert haversine_distance_meters(*a, *b) == pytest.approx(haversine_distance_meters(*b, *a))

    def test_one_degree_of_latitude(self):
        assert haversine_distance_meters(0, 0, 1, 0) == pytest.approx(111194.93, abs=1)

    def test_antimeridian_is_short(self):
        assert haversine_distance_meters(0, 179.9, 0, -179.9) < 25000

    @pytest.mark.parametrize("point", [
        (float("nan"), 46.6),
        (24.7, float("nan")),
        (float("inf"), 46.6),
    ])
    def test_non_finite_coordinates_raise(self, point):
        # لا يجب أن تتحول NaN إلى مسافة صفر
        with pytest.raises(ValueError):
            haversine_distance_meters(*point, 24.7, 46.6)


class TestCidrContains:

    def test_range_membership(self):
        assert cidr_contains("192.168.1.5", "192.168.1.0/24") is True
        assert cidr_contains("192.168.2.5", "192.168.1.0/24") is False

    def test_exact_match_form(self):
        assert cidr_contains("10.0.0.1", "10.0.0.1") is True
        assert cidr_contains("10.0.0.2", "10.0.0.1") is False

    def test_subnet_host_bits_are_masked(self):
        assert cidr_contains("10.1.2.3", "10.1.99.99/16") is True

    def test_zero_and_full_prefix(self):
        assert cidr_contains("8.8.8.8", "0.0.0.0/0") is True
        assert cidr_contains("8.8.8.8", "8.8.8.8/32") is True
        assert cidr_contains("8.8.8.9", "8.8.8.8/32") is False

    @pytest.mark.parametrize("ip, cidr", [
        ("192.168.1.300", "192.168.1.0/24"),
        ("192.168.1.5", "192.168.1.0/33"),
        ("192.168.1.5", "192.168.1.0/abc"),
        ("192.168.1.5", "not-an-ip/24"),
        ("garbage", "garbage"),
        ("::1", "::1"),
        ("", "10.0.0.0/8"),
        (None, "10.0.0.0/8"),
        ("10.0.0.1", None),
        ("².0.0.1", "10.0.0.0/8"),
        ("10.0.0.1", "10.0.0.0/²"),
        ("10.0.0.1", "¹0.0.0.1"),
        ("10.0.0.1", "::/0"),
    ])
    def test_malformed_input_is_false(self, ip, cidr):
        assert cidr_contains(ip, cidr) is False


class TestParsePoint:

    def test_shapes(self):
        assert parse_point({"lat": 1, "lng": 2}) == (1.0, 2.0)
        assert parse_point({"latitude": "1.5", "longitude": "2.5"}) == (1.5, 2.5)
        assert parse_point([3, 4]) == (3.0, 4.0)

    def test_invalid(self):
        assert parse_point({"lat": None, "lng": 2}) is None
        assert parse_point({"lat": "x", "lng": 2}) is None
        assert parse_point("24.7,46.6") is None
        assert parse_point([1]) is None
