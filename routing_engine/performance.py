"""Aircraft performance helpers with category-level defaults."""

from __future__ import annotations

from typing import Mapping, NamedTuple

from core.contracts import Aircraft

from .config import RoutingConfig


class CategoryPerf(NamedTuple):
    speed_kts: float
    fuel_burn_gph: float
    min_runway_ft: float


CATEGORY_PERF: Mapping[str, CategoryPerf] = {
    "turboprop": CategoryPerf(speed_kts=250, fuel_burn_gph=55, min_runway_ft=3500),
    "light": CategoryPerf(speed_kts=420, fuel_burn_gph=100, min_runway_ft=4000),
    "midsize": CategoryPerf(speed_kts=450, fuel_burn_gph=155, min_runway_ft=5000),
    "super-mid": CategoryPerf(speed_kts=470, fuel_burn_gph=205, min_runway_ft=5500),
    "heavy": CategoryPerf(speed_kts=480, fuel_burn_gph=300, min_runway_ft=7000),
    "ultra-long": CategoryPerf(speed_kts=490, fuel_burn_gph=355, min_runway_ft=7000),
}


def category_perf(aircraft: Aircraft) -> CategoryPerf:
    return CATEGORY_PERF.get(aircraft.category.value, CATEGORY_PERF["midsize"])


def cruise_speed_kts(aircraft: Aircraft) -> float:
    """Per-aircraft cruise speed if set, else the category default."""

    return aircraft.cruise_speed_kts or category_perf(aircraft).speed_kts


def fuel_burn_gph(aircraft: Aircraft) -> float:
    if aircraft.fuel_burn_gph is not None:
        return aircraft.fuel_burn_gph
    return category_perf(aircraft).fuel_burn_gph


def min_runway_ft(aircraft: Aircraft) -> float:
    if aircraft.min_runway_ft is not None:
        return aircraft.min_runway_ft
    return category_perf(aircraft).min_runway_ft


def usable_range_nm(aircraft: Aircraft, config: RoutingConfig) -> float:
    """Nominal range reduced by the fuel-reserve fraction."""

    return aircraft.range_nm * (1 - config.reserve_fraction)


def flight_time_hr(distance_nm: float, aircraft: Aircraft) -> float:
    return distance_nm / cruise_speed_kts(aircraft)


def fuel_burn_gal(distance_nm: float, aircraft: Aircraft) -> float:
    return flight_time_hr(distance_nm, aircraft) * fuel_burn_gph(aircraft)


def runway_adequate(longest_runway_ft: float | None, aircraft: Aircraft) -> bool:
    """Unknown runway length never qualifies an airport as a refuel stop."""

    if longest_runway_ft is None:
        return False
    return longest_runway_ft >= min_runway_ft(aircraft)
