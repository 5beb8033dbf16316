"""Package expander, gate and cost outputs into the immutable :class:`RoutePlan`."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, Optional

from .environment import GateResult
from .expander import Expansion
from .schemas import COST_FIELDS, CostBreakdown, OptimizationMode, RoutePlan

_DIFF_FIELDS = COST_FIELDS + ("subtotal", "margin_amount", "tax", "total")


def _dedupe(messages: Iterable[str]) -> tuple:
    seen = []
    for message in messages:
        if message not in seen:
            seen.append(message)
    return tuple(seen)


def assemble_route_plan(
    aircraft_id: str,
    mode: OptimizationMode,
    expansion: Expansion,
    gate: GateResult,
    cost_breakdown: CostBreakdown,
    *,
    warnings: Iterable[str] = (),
    computed_at: Optional[datetime] = None,
) -> RoutePlan:
    """Build the plan record. Aggregates are derived from the parts, never passed in."""

    return RoutePlan(
        aircraft_id=aircraft_id,
        mode=mode,
        route_legs=expansion.route_legs,
        refuel_stops=expansion.refuel_stops,
        weather=gate.weather,
        notams=gate.notams,
        cost_breakdown=cost_breakdown,
        total_distance_nm=sum(leg.distance_nm for leg in expansion.route_legs),
        total_flight_time_hr=sum(leg.flight_time_hr for leg in expansion.route_legs),
        total_ground_time_hr=sum(stop.ground_time_min for stop in expansion.refuel_stops) / 60.0,
        total_fuel_cost_usd=cost_breakdown.fuel_cost,
        risk_score=gate.risk_score,
        on_time_probability=gate.on_time_probability,
        warnings=_dedupe(list(expansion.warnings) + list(gate.warnings) + list(warnings)),
        computed_at=computed_at or datetime.now(timezone.utc),
    )


@dataclass(frozen=True)
class PlanDiff:
    """Re-pricing comparison between a stored plan and a fresh computation."""

    deltas: Dict[str, Decimal] = field(default_factory=dict)
    fingerprint_match: bool = False
    route_changed: bool = False

    @property
    def total_delta(self) -> Decimal:
        return self.deltas.get("total", Decimal("0.00"))

    def changed_fields(self) -> Dict[str, Decimal]:
        return {name: delta for name, delta in self.deltas.items() if delta != 0}

    def as_dict(self) -> Dict[str, object]:
        return {
            "deltas": {name: format(delta, "f") for name, delta in self.deltas.items()},
            "fingerprintMatch": self.fingerprint_match,
            "routeChanged": self.route_changed,
        }


def _route_signature(plan: RoutePlan) -> tuple:
    return tuple((leg.from_icao, leg.to_icao) for leg in plan.route_legs)


def diff_plans(stored: RoutePlan, fresh: RoutePlan) -> PlanDiff:
    deltas = {
        name: getattr(fresh.cost_breakdown, name) - getattr(stored.cost_breakdown, name) for name in _DIFF_FIELDS
    }
    return PlanDiff(
        deltas=deltas,
        fingerprint_match=stored.fingerprint() == fresh.fingerprint(),
        route_changed=_route_signature(stored) != _route_signature(fresh),
    )


def _signed(value: float, text: str) -> str:
    return f"{'-' if value < 0 else '+'}{text}"


def trade_off_note(primary: RoutePlan, alternative: RoutePlan) -> str:
    """One-line comparison, e.g. ``"+$1,200 cost, -45 min flight time vs primary route"``."""

    cost_delta = alternative.total - primary.total
    minutes = round((alternative.total_flight_time_hr - primary.total_flight_time_hr) * 60)
    cost_text = _signed(float(cost_delta), f"${abs(cost_delta):,.0f}")
    time_text = _signed(minutes, f"{abs(minutes)} min")
    return f"{cost_text} cost, {time_text} flight time vs primary route"
