"""Great-circle geometry and ICAO distance resolution."""

from __future__ import annotations

import math
from typing import Mapping, Optional, Tuple

from .contracts import Airport

EARTH_RADIUS_NM = 3440.065
FALLBACK_DISTANCE_NM = 500.0


def gcd_nm(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the great-circle distance between two coordinates in NM."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)
    a = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    return EARTH_RADIUS_NM * (2 * math.atan2(math.sqrt(a), math.sqrt(1 - a)))


def initial_bearing_rad(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    delta_lambda = math.radians(lon2 - lon1)
    y = math.sin(delta_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)
    return math.atan2(y, x)


def cross_track_nm(origin: Airport, destination: Airport, point: Airport) -> float:
    """Unsigned distance of ``point`` from the origin→destination great circle."""

    angular = gcd_nm(origin.lat, origin.lon, point.lat, point.lon) / EARTH_RADIUS_NM
    theta_point = initial_bearing_rad(origin.lat, origin.lon, point.lat, point.lon)
    theta_path = initial_bearing_rad(origin.lat, origin.lon, destination.lat, destination.lon)
    value = math.sin(angular) * math.sin(theta_point - theta_path)
    return abs(math.asin(max(-1.0, min(1.0, value))) * EARTH_RADIUS_NM)


def along_track_nm(origin: Airport, destination: Airport, point: Airport) -> float:
    """Signed progress of ``point`` along the great circle, measured from origin.

    Points behind the origin come back negative so corridor searches can drop
    them without a second pass.
    """

    angular = gcd_nm(origin.lat, origin.lon, point.lat, point.lon) / EARTH_RADIUS_NM
    cross = cross_track_nm(origin, destination, point) / EARTH_RADIUS_NM
    denominator = math.cos(cross)
    if denominator == 0:
        return 0.0
    ratio = max(-1.0, min(1.0, math.cos(angular) / denominator))
    along = math.acos(ratio) * EARTH_RADIUS_NM
    theta_point = initial_bearing_rad(origin.lat, origin.lon, point.lat, point.lon)
    theta_path = initial_bearing_rad(origin.lat, origin.lon, destination.lat, destination.lon)
    if math.cos(theta_point - theta_path) < 0:
        return -along
    return along


def midpoint(a: Airport, b: Airport) -> Tuple[float, float]:
    """Great-circle midpoint as ``(lat, lon)`` in degrees."""

    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    lon1 = math.radians(a.lon)
    delta_lambda = math.radians(b.lon - a.lon)
    bx = math.cos(lat2) * math.cos(delta_lambda)
    by = math.cos(lat2) * math.sin(delta_lambda)
    lat = math.atan2(math.sin(lat1) + math.sin(lat2), math.sqrt((math.cos(lat1) + bx) ** 2 + by**2))
    lon = lon1 + math.atan2(by, math.cos(lat1) + bx)
    return math.degrees(lat), (math.degrees(lon) + 540) % 360 - 180


class GeoResolver:
    """Resolve ICAO codes to coordinates and great-circle distances.

    Codes missing from the reference table resolve to ``fallback_distance_nm``
    instead of failing, so routing keeps working for small fields that have
    not been loaded yet. Callers use :meth:`known_airport` to warn about it.
    """

    def __init__(
        self,
        airports: Mapping[str, Airport],
        *,
        fallback_distance_nm: float = FALLBACK_DISTANCE_NM,
    ) -> None:
        self._airports = {code.upper(): airport for code, airport in airports.items()}
        self.fallback_distance_nm = fallback_distance_nm

    @property
    def airports(self) -> Mapping[str, Airport]:
        return self._airports

    def airport(self, icao: Optional[str]) -> Optional[Airport]:
        if not icao:
            return None
        return self._airports.get(icao.strip().upper())

    def known_airport(self, icao: Optional[str]) -> bool:
        return self.airport(icao) is not None

    def distance(self, icao_a: str, icao_b: str) -> float:
        code_a = (icao_a or "").strip().upper()
        code_b = (icao_b or "").strip().upper()
        if code_a and code_a == code_b:
            return 0.0
        if code_a > code_b:
            code_a, code_b = code_b, code_a
        a = self._airports.get(code_a)
        b = self._airports.get(code_b)
        if a is None or b is None:
            return self.fallback_distance_nm
        return gcd_nm(a.lat, a.lon, b.lat, b.lon)
