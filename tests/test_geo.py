from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.airports import ReferenceData
from core.geo import FALLBACK_DISTANCE_NM, GeoResolver, along_track_nm, cross_track_nm, gcd_nm, midpoint


@pytest.fixture(scope="module")
def resolver() -> GeoResolver:
    return ReferenceData.from_csv().resolver()


def test_gcd_matches_known_transcontinental_distance(resolver: GeoResolver) -> None:
    assert resolver.distance("KLAX", "KJFK") == pytest.approx(2146, abs=5)


def test_gcd_zero_for_same_point() -> None:
    assert gcd_nm(40.0, -74.0, 40.0, -74.0) == 0.0


@pytest.mark.parametrize(
    "a, b",
    [
        ("KLAX", "KJFK"),
        ("KTEB", "EGLL"),
        ("CYYZ", "MMMX"),
        ("KSEA", "KMIA"),
        ("MYNN", "KBOS"),
    ],
)
def test_distance_is_symmetric(resolver: GeoResolver, a: str, b: str) -> None:
    assert resolver.distance(a, b) == resolver.distance(b, a)


def test_unknown_airport_uses_fallback(resolver: GeoResolver) -> None:
    assert resolver.distance("KLAX", "ZZZZ") == FALLBACK_DISTANCE_NM
    assert resolver.distance("ZZZZ", "KLAX") == FALLBACK_DISTANCE_NM
    assert resolver.distance("ZZZZ", "YYYY") == FALLBACK_DISTANCE_NM


def test_fallback_distance_is_configurable() -> None:
    custom = GeoResolver({}, fallback_distance_nm=321.0)
    assert custom.distance("KAAA", "KBBB") == 321.0


def test_identical_codes_are_zero_even_when_unknown(resolver: GeoResolver) -> None:
    assert resolver.distance("ZZZZ", "zzzz") == 0.0


def test_known_airport_is_case_insensitive(resolver: GeoResolver) -> None:
    assert resolver.known_airport("klax")
    assert not resolver.known_airport("ZZZZ")
    assert not resolver.known_airport(None)
    assert resolver.airport(" kjfk ").name == "John F Kennedy Intl"


def test_corridor_geometry_for_mid_continent_point(resolver: GeoResolver) -> None:
    origin = resolver.airport("KLAX")
    destination = resolver.airport("KJFK")
    point = resolver.airport("KSTL")
    direct = resolver.distance("KLAX", "KJFK")

    assert cross_track_nm(origin, destination, point) < 450
    assert 0 < along_track_nm(origin, destination, point) < direct


def test_along_track_negative_behind_origin(resolver: GeoResolver) -> None:
    origin = resolver.airport("KSTL")
    destination = resolver.airport("KJFK")
    behind = resolver.airport("KLAX")

    assert along_track_nm(origin, destination, behind) < 0


def test_midpoint_lies_between_endpoints(resolver: GeoResolver) -> None:
    lat, lon = midpoint(resolver.airport("KLAX"), resolver.airport("KJFK"))
    assert 33.9 < lat < 42.0
    assert -118.4 < lon < -73.8
