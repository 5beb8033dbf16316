"""Shared dataclasses for derived routing records and the final route plan."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Literal, Optional, Tuple

OptimizationMode = Literal["cost", "time", "balanced"]
MODES: Tuple[OptimizationMode, ...] = ("cost", "time", "balanced")

GoNogo = Literal["go", "marginal", "nogo"]
IcingRisk = Literal["none", "light", "moderate", "severe"]
ConvectiveRisk = Literal["none", "low", "moderate", "high"]
NotamType = Literal["runway_closure", "fuel_outage", "tfr", "nav_aid", "taxiway", "other"]
NotamSeverity = Literal["info", "caution", "critical"]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """Quantize ``value`` to cents. Floats go through ``str`` so the result is reproducible."""

    if isinstance(value, Decimal):
        amount = value
    else:
        amount = Decimal(str(value))
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _money_out(value: Decimal) -> str:
    return format(value, "f")


@dataclass(frozen=True)
class RouteLeg:
    """A flyable segment; a subdivision of a raw leg when fuel stops were inserted."""

    leg_index: int
    from_icao: str
    to_icao: str
    distance_nm: float
    flight_time_hr: float
    fuel_burn_gal: float
    fuel_cost_usd: Decimal
    is_fuel_stop_leg: bool = False
    departure_utc: Optional[datetime] = None
    arrival_utc: Optional[datetime] = None

    def as_dict(self) -> Dict[str, object]:
        return {
            "legIndex": self.leg_index,
            "from": self.from_icao,
            "to": self.to_icao,
            "distanceNm": self.distance_nm,
            "flightTimeHr": self.flight_time_hr,
            "fuelBurnGal": self.fuel_burn_gal,
            "fuelCostUsd": _money_out(self.fuel_cost_usd),
            "isFuelStopLeg": self.is_fuel_stop_leg,
            "departureUtc": _iso(self.departure_utc),
            "arrivalUtc": _iso(self.arrival_utc),
        }


@dataclass(frozen=True)
class RefuelStop:
    icao: str
    airport_name: str
    leg_index: int
    added_distance_nm: float
    fuel_price_usd_gal: float
    fuel_uplift_gal: float
    fuel_cost_usd: Decimal
    fbo_fee_usd: Decimal
    ground_time_min: int
    customs: bool
    deicing: bool
    reason: str

    def as_dict(self) -> Dict[str, object]:
        return {
            "icao": self.icao,
            "airportName": self.airport_name,
            "legIndex": self.leg_index,
            "addedDistanceNm": self.added_distance_nm,
            "fuelPriceUsdGal": self.fuel_price_usd_gal,
            "fuelUpliftGal": self.fuel_uplift_gal,
            "fuelCostUsd": _money_out(self.fuel_cost_usd),
            "fboFeeUsd": _money_out(self.fbo_fee_usd),
            "groundTimeMin": self.ground_time_min,
            "customs": self.customs,
            "deicing": self.deicing,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class WeatherAssessment:
    """Injected go/no-go summary for one airport."""

    icao: str
    status: GoNogo
    ceiling_ft: Optional[float] = None
    visibility_sm: Optional[float] = None
    wind_speed_kts: Optional[float] = None
    icing_risk: IcingRisk = "none"
    convective_risk: ConvectiveRisk = "none"
    observed_at: Optional[datetime] = None

    def as_dict(self) -> Dict[str, object]:
        return {
            "icao": self.icao,
            "status": self.status,
            "ceilingFt": self.ceiling_ft,
            "visibilitySm": self.visibility_sm,
            "windSpeedKts": self.wind_speed_kts,
            "icingRisk": self.icing_risk,
            "convectiveRisk": self.convective_risk,
            "observedAt": _iso(self.observed_at),
        }


@dataclass(frozen=True)
class NotamAlert:
    notam_id: str
    icao: str
    type: NotamType
    severity: NotamSeverity
    raw_text: str = ""
    effective_from: Optional[datetime] = None
    effective_to: Optional[datetime] = None

    def as_dict(self) -> Dict[str, object]:
        return {
            "notamId": self.notam_id,
            "icao": self.icao,
            "type": self.type,
            "severity": self.severity,
            "rawText": self.raw_text,
            "effectiveFrom": _iso(self.effective_from),
            "effectiveTo": _iso(self.effective_to),
        }


@dataclass(frozen=True)
class LineItem:
    category: str
    label: str
    amount: Decimal
    leg: Optional[int] = None

    def as_dict(self) -> Dict[str, object]:
        return {
            "category": self.category,
            "label": self.label,
            "amount": _money_out(self.amount),
            "leg": self.leg,
        }


COST_FIELDS: Tuple[str, ...] = (
    "fuel_cost",
    "fbo_fees",
    "repositioning_cost",
    "permit_fees",
    "crew_overnight_cost",
    "catering_cost",
    "peak_day_surcharge",
)


@dataclass(frozen=True)
class CostBreakdown:
    """Itemized quotation. ``subtotal`` is the sum of :data:`COST_FIELDS`."""

    fuel_cost: Decimal
    fbo_fees: Decimal
    repositioning_cost: Decimal
    repositioning_hours: float
    permit_fees: Decimal
    crew_overnight_cost: Decimal
    catering_cost: Decimal
    peak_day_surcharge: Decimal
    subtotal: Decimal
    margin_pct: float
    margin_amount: Decimal
    tax_rate: float
    tax: Decimal
    total: Decimal
    line_items: Tuple[LineItem, ...] = ()

    def itemized_sum(self) -> Decimal:
        return sum((getattr(self, name) for name in COST_FIELDS), ZERO)

    def as_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {name: _money_out(getattr(self, name)) for name in COST_FIELDS}
        payload.update(
            {
                "repositioning_hours": self.repositioning_hours,
                "subtotal": _money_out(self.subtotal),
                "margin_pct": self.margin_pct,
                "margin_amount": _money_out(self.margin_amount),
                "tax_rate": self.tax_rate,
                "tax": _money_out(self.tax),
                "total": _money_out(self.total),
                "line_items": [item.as_dict() for item in self.line_items],
            }
        )
        return payload


@dataclass(frozen=True)
class RoutePlan:
    """Immutable result of one (aircraft, legs, mode) computation.

    ``computed_at`` is the only wall-clock value and stays out of
    :meth:`payload`, so two runs over identical inputs share a fingerprint.
    """

    aircraft_id: str
    mode: OptimizationMode
    route_legs: Tuple[RouteLeg, ...]
    refuel_stops: Tuple[RefuelStop, ...]
    weather: Tuple[WeatherAssessment, ...]
    notams: Tuple[NotamAlert, ...]
    cost_breakdown: CostBreakdown
    total_distance_nm: float
    total_flight_time_hr: float
    total_ground_time_hr: float
    total_fuel_cost_usd: Decimal
    risk_score: float
    on_time_probability: float
    warnings: Tuple[str, ...] = ()
    computed_at: Optional[datetime] = field(default=None, compare=False)

    @property
    def total_time_hr(self) -> float:
        """Flight time plus ground time at refuel stops."""

        return self.total_flight_time_hr + self.total_ground_time_hr

    @property
    def total(self) -> Decimal:
        return self.cost_breakdown.total

    def payload(self) -> Dict[str, object]:
        return {
            "aircraftId": self.aircraft_id,
            "mode": self.mode,
            "routeLegs": [leg.as_dict() for leg in self.route_legs],
            "refuelStops": [stop.as_dict() for stop in self.refuel_stops],
            "weather": [item.as_dict() for item in self.weather],
            "notams": [item.as_dict() for item in self.notams],
            "costBreakdown": self.cost_breakdown.as_dict(),
            "totalDistanceNm": self.total_distance_nm,
            "totalFlightTimeHr": self.total_flight_time_hr,
            "totalGroundTimeHr": self.total_ground_time_hr,
            "totalFuelCostUsd": _money_out(self.total_fuel_cost_usd),
            "riskScore": self.risk_score,
            "onTimeProbability": self.on_time_probability,
            "warnings": list(self.warnings),
        }

    def fingerprint(self) -> str:
        canonical = json.dumps(self.payload(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def as_dict(self) -> Dict[str, object]:
        payload = self.payload()
        payload["computedAt"] = _iso(self.computed_at)
        payload["fingerprint"] = self.fingerprint()
        return payload
