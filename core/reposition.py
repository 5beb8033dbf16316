"""Reusable helpers for computing ferry (reposition) legs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .geo import GeoResolver


@dataclass(frozen=True)
class RepositionEstimate:
    """One-way empty leg from the aircraft's home base to the first departure."""

    from_icao: str
    to_icao: str
    distance_nm: float
    hours: float
    used_fallback: bool


def reposition_estimate(
    home_icao: Optional[str],
    start_icao: Optional[str],
    cruise_speed_kts: float,
    resolver: GeoResolver,
    *,
    route_factor: float = 1.0,
) -> Optional[RepositionEstimate]:
    """Estimate the ferry leg needed before the trip starts.

    Returns ``None`` when the aircraft is already positioned at the first
    departure airport or when either end is missing.
    """

    code_from = (home_icao or "").strip().upper()
    code_to = (start_icao or "").strip().upper()
    if not code_from or not code_to or code_from == code_to:
        return None
    if cruise_speed_kts <= 0:
        raise ValueError("cruise_speed_kts must be positive")

    used_fallback = not (resolver.known_airport(code_from) and resolver.known_airport(code_to))
    nm = resolver.distance(code_from, code_to) * route_factor
    return RepositionEstimate(
        from_icao=code_from,
        to_icao=code_to,
        distance_nm=nm,
        hours=nm / cruise_speed_kts,
        used_fallback=used_fallback,
    )
