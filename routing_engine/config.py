"""Injected constant tables for routing, risk and pricing.

Every tunable the engine uses lives on :class:`RoutingConfig` so tests and
callers can override a single table (e.g. the reserve fraction or the peak
calendar) without patching module globals.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass, field, replace
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Dict, FrozenSet, Literal, Mapping, Optional, Tuple

_PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_PEAK_DAYS_PATH = _PROJECT_ROOT / "data" / "peak_days.csv"

InternationalBasis = Literal["leg", "itinerary"]

DEFAULT_REPOSITIONING_HOURLY_USD: Mapping[str, float] = {
    "turboprop": 1500.0,
    "light": 2200.0,
    "midsize": 3000.0,
    "super-mid": 4000.0,
    "heavy": 5500.0,
    "ultra-long": 7000.0,
}

# Landing/overflight permit fee per international leg, keyed by the foreign jurisdiction.
DEFAULT_PERMIT_FEES_USD: Mapping[str, float] = {
    "CA": 250.0,
    "MX": 600.0,
    "BS": 400.0,
    "SX": 450.0,
    "GL": 900.0,
    "IS": 650.0,
    "IE": 700.0,
    "GB": 900.0,
    "FR": 850.0,
    "CH": 850.0,
    "NL": 800.0,
    "AE": 1500.0,
}

DEFAULT_TAX_RATES: Mapping[str, float] = {
    "US": 0.075,
    "CA": 0.05,
    "MX": 0.16,
}


@lru_cache(maxsize=4)
def load_peak_days(path: Optional[Path] = None) -> FrozenSet[date]:
    """Read the designated high-demand calendar (``date`` column, ISO format)."""

    csv_path = Path(path) if path else DEFAULT_PEAK_DAYS_PATH
    if not csv_path.exists():
        return frozenset()
    days = set()
    with csv_path.open(newline="", encoding="utf-8-sig") as handle:
        reader = csv.DictReader(handle)
        for row in reader:
            text = (row.get("date") or "").strip()
            if not text:
                continue
            try:
                days.add(date.fromisoformat(text))
            except ValueError:
                continue
    return frozenset(days)


@dataclass(frozen=True)
class RoutingConfig:
    """Constant tables for the routing core. Instances are immutable."""

    # Geometry and range
    reserve_fraction: float = 0.10
    fallback_distance_nm: float = 500.0
    detour_search_radii_nm: Tuple[float, ...] = (150.0, 300.0, 450.0)

    # Refuel stops
    ground_time_standard_min: int = 30
    ground_time_extended_min: int = 45

    # Pricing
    default_fuel_price_usd_gal: float = 7.50
    default_fbo_fee_usd: float = 600.0
    repositioning_hourly_usd: Mapping[str, float] = field(
        default_factory=lambda: dict(DEFAULT_REPOSITIONING_HOURLY_USD)
    )
    repositioning_route_factor: float = 1.0
    permit_fees_usd: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_PERMIT_FEES_USD))
    default_permit_fee_usd: float = 750.0
    international_basis: InternationalBasis = "leg"
    home_jurisdiction: str = "US"
    crew_overnight_rate_usd: float = 350.0
    crew_count: int = 2
    catering_per_leg_usd: float = 350.0
    peak_dates: FrozenSet[date] = field(default_factory=load_peak_days)
    peak_weekdays: FrozenSet[int] = frozenset({4, 6})  # Friday, Sunday
    peak_day_surcharge_rate: float = 0.05
    tax_rates: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_TAX_RATES))
    default_tax_rate: float = 0.075

    # Risk and reliability
    base_risk: float = 0.10
    weather_penalties: Mapping[str, float] = field(
        default_factory=lambda: {"nogo": 0.30, "marginal": 0.15}
    )
    icing_penalties: Mapping[str, float] = field(
        default_factory=lambda: {"severe": 0.10, "moderate": 0.05}
    )
    convective_penalties: Mapping[str, float] = field(
        default_factory=lambda: {"high": 0.10, "moderate": 0.05}
    )
    weather_penalty_cap: float = 0.70
    notam_penalties: Mapping[str, float] = field(
        default_factory=lambda: {"critical": 0.20, "caution": 0.08}
    )
    stop_penalty: float = 0.05
    # Each threshold of total flight time crossed adds long_haul_penalty.
    long_haul_thresholds_hr: Tuple[float, ...] = (8.0, 14.0)
    long_haul_penalty: float = 0.05
    international_penalty: float = 0.05
    on_time_risk_weight: float = 0.40
    on_time_stop_penalty: float = 0.03

    # Optimizer
    balanced_weights: Tuple[float, float, float] = (0.5, 0.3, 0.2)
    max_workers: int = 8

    def __post_init__(self) -> None:
        if not 0 <= self.reserve_fraction < 1:
            raise ValueError("reserve_fraction must be within [0, 1)")
        if not self.detour_search_radii_nm:
            raise ValueError("detour_search_radii_nm needs at least one radius")
        if self.international_basis not in ("leg", "itinerary"):
            raise ValueError(f"Unsupported international_basis: {self.international_basis!r}")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")

    @property
    def max_search_radius_nm(self) -> float:
        return max(self.detour_search_radii_nm)

    def with_overrides(self, **overrides: object) -> "RoutingConfig":
        return replace(self, **overrides)

    def permit_fee_for(self, jurisdiction: Optional[str]) -> float:
        if not jurisdiction:
            return self.default_permit_fee_usd
        return self.permit_fees_usd.get(jurisdiction.upper(), self.default_permit_fee_usd)

    def tax_rate_for(self, jurisdiction: Optional[str]) -> float:
        if not jurisdiction:
            return self.default_tax_rate
        return self.tax_rates.get(jurisdiction.upper(), self.default_tax_rate)

    def repositioning_rate_for(self, category: str) -> float:
        rates: Dict[str, float] = dict(self.repositioning_hourly_usd)
        return rates.get(category, rates.get("midsize", 0.0))

    def is_peak_day(self, day: date) -> bool:
        return day in self.peak_dates or day.weekday() in self.peak_weekdays
