"""Reference data contracts, loaders and geometry shared by the routing engine."""

from .airports import ReferenceData, load_aircraft, load_airports
from .contracts import Aircraft, AircraftCategory, Airport, Leg, country_for_icao, normalize_icao
from .geo import EARTH_RADIUS_NM, FALLBACK_DISTANCE_NM, GeoResolver, gcd_nm
from .reposition import RepositionEstimate, reposition_estimate

__all__ = [
    "Aircraft",
    "AircraftCategory",
    "Airport",
    "EARTH_RADIUS_NM",
    "FALLBACK_DISTANCE_NM",
    "GeoResolver",
    "Leg",
    "ReferenceData",
    "RepositionEstimate",
    "country_for_icao",
    "gcd_nm",
    "load_aircraft",
    "load_airports",
    "normalize_icao",
    "reposition_estimate",
]
