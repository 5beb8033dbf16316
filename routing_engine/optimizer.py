"""Run the expander, gate and cost engine per mode and per candidate aircraft.

Units of work are independent and run on a bounded thread pool. A failing
unit becomes a :class:`RoutingFailure` and never aborts its siblings; units
still running at the timeout (or when the caller cancels) are abandoned and
reported as ``CANCELLED``.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Hashable, List, Optional, Sequence, Tuple

from core.contracts import Aircraft, Leg
from core.geo import GeoResolver

from .assembler import assemble_route_plan, trade_off_note
from .config import RoutingConfig
from .cost_engine import calculate_costs, international_legs
from .environment import EnvironmentalData, EnvironmentalGate
from .errors import CANCELLED, NO_CANDIDATE, RoutingError, RoutingFailure
from .expander import expand_legs
from .schemas import MODES, OptimizationMode, RoutePlan

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PricingOptions:
    margin_pct: float = 15.0
    catering_requested: bool = False
    is_international: Optional[bool] = None
    fuel_price_override: Optional[float] = None
    tax_rate: Optional[float] = None


class _LinkedEvent(threading.Event):
    """Event that also reports set when the caller's event is set."""

    def __init__(self, parent: Optional[threading.Event] = None) -> None:
        super().__init__()
        self._parent = parent

    def is_set(self) -> bool:
        return super().is_set() or (self._parent is not None and self._parent.is_set())


def plan_mode(
    aircraft: Aircraft,
    legs: Sequence[Leg],
    mode: OptimizationMode,
    *,
    resolver: GeoResolver,
    config: Optional[RoutingConfig] = None,
    environment: Optional[EnvironmentalData] = None,
    pricing: Optional[PricingOptions] = None,
    cancel_event: Optional[threading.Event] = None,
    computed_at: Optional[datetime] = None,
) -> RoutePlan:
    """Compute one fully assembled plan for ``(aircraft, legs, mode)``."""

    config = config or RoutingConfig()
    pricing = pricing or PricingOptions()
    gate = EnvironmentalGate(environment, config)
    expansion = expand_legs(
        legs,
        aircraft,
        mode,
        resolver=resolver,
        config=config,
        airport_risk=gate.airport_risk,
        deicing_required=gate.deicing_required,
        fuel_price_override=pricing.fuel_price_override,
        cancel_event=cancel_event,
    )
    international = pricing.is_international
    if international is None:
        international = bool(international_legs(legs, resolver, config))
    gate_result = gate.evaluate(
        expansion.touched_icaos(),
        expansion.stop_count,
        expansion.route_legs[0].departure_utc,
        max(leg.arrival_utc for leg in expansion.route_legs),
        flight_hours=sum(leg.flight_time_hr for leg in expansion.route_legs),
        international=international,
    )
    breakdown = calculate_costs(
        expansion.route_legs,
        expansion.refuel_stops,
        aircraft,
        legs=legs,
        margin_pct=pricing.margin_pct,
        catering_requested=pricing.catering_requested,
        is_international=pricing.is_international,
        resolver=resolver,
        config=config,
        fuel_price_override=pricing.fuel_price_override,
        tax_rate=pricing.tax_rate,
    )
    if cancel_event is not None and cancel_event.is_set():
        raise RoutingError("Route computation cancelled", CANCELLED)
    plan = assemble_route_plan(
        aircraft.id,
        mode,
        expansion,
        gate_result,
        breakdown,
        computed_at=computed_at,
    )
    logger.info(
        "Planned %s (%s): %d stops, %.0f nm, total %s",
        aircraft.id,
        mode,
        len(plan.refuel_stops),
        plan.total_distance_nm,
        plan.total,
    )
    return plan


def _fan_out(
    jobs: Dict[Hashable, Callable[[threading.Event], RoutePlan]],
    *,
    max_workers: int,
    timeout: Optional[float],
    cancel_event: Optional[threading.Event],
    describe: Callable[[Hashable], Dict[str, Optional[str]]],
) -> Tuple[Dict[Hashable, RoutePlan], List[RoutingFailure]]:
    """Run ``jobs`` concurrently and collect a plan or a failure for each key."""

    stop = _LinkedEvent(cancel_event)
    results: Dict[Hashable, RoutePlan] = {}
    failures: List[RoutingFailure] = []
    executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="route-plan")
    try:
        futures: Dict[Future, Hashable] = {executor.submit(job, stop): key for key, job in jobs.items()}
        _, pending = wait(futures, timeout=timeout)
        if pending:
            stop.set()
        for future, key in futures.items():
            labels = describe(key)
            if future in pending:
                future.cancel()
                failures.append(RoutingFailure(code=CANCELLED, message="Abandoned before completion", **labels))
                continue
            error = future.exception()
            if error is None:
                results[key] = future.result()
            elif isinstance(error, RoutingError):
                logger.warning("Route plan failed for %s: %s", labels, error)
                failures.append(RoutingFailure.from_error(error, **labels))
            else:
                raise error
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
    return results, failures


@dataclass(frozen=True)
class ModeComparison:
    """Plans per optimization mode for one aircraft plus any per-mode failures."""

    plans: Dict[str, RoutePlan] = field(default_factory=dict)
    failures: Tuple[RoutingFailure, ...] = ()

    def plan(self, mode: OptimizationMode) -> Optional[RoutePlan]:
        return self.plans.get(mode)

    def trade_offs(self, primary: OptimizationMode = "balanced") -> Dict[str, str]:
        """Notes comparing each other mode against ``primary``."""

        base = self.plans.get(primary)
        if base is None:
            return {}
        return {mode: trade_off_note(base, plan) for mode, plan in self.plans.items() if mode != primary}

    def as_dict(self) -> Dict[str, object]:
        return {
            "plans": {mode: plan.as_dict() for mode, plan in self.plans.items()},
            "failures": [failure.as_dict() for failure in self.failures],
        }


@dataclass(frozen=True)
class AircraftRanking:
    """Balanced plans for each viable candidate, cheapest first."""

    ranked: Tuple[RoutePlan, ...] = ()
    failures: Tuple[RoutingFailure, ...] = ()

    @property
    def best(self) -> Optional[RoutePlan]:
        return self.ranked[0] if self.ranked else None

    def as_dict(self) -> Dict[str, object]:
        return {
            "ranked": [plan.as_dict() for plan in self.ranked],
            "failures": [failure.as_dict() for failure in self.failures],
        }


def plan_all_modes(
    aircraft: Aircraft,
    legs: Sequence[Leg],
    *,
    resolver: GeoResolver,
    config: Optional[RoutingConfig] = None,
    environment: Optional[EnvironmentalData] = None,
    pricing: Optional[PricingOptions] = None,
    timeout: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
) -> ModeComparison:
    config = config or RoutingConfig()

    def job_for(mode: OptimizationMode) -> Callable[[threading.Event], RoutePlan]:
        def run(stop: threading.Event) -> RoutePlan:
            return plan_mode(
                aircraft,
                legs,
                mode,
                resolver=resolver,
                config=config,
                environment=environment,
                pricing=pricing,
                cancel_event=stop,
            )

        return run

    results, failures = _fan_out(
        {mode: job_for(mode) for mode in MODES},
        max_workers=len(MODES),
        timeout=timeout,
        cancel_event=cancel_event,
        describe=lambda mode: {"aircraft_id": aircraft.id, "mode": str(mode)},
    )
    plans = {mode: results[mode] for mode in MODES if mode in results}
    return ModeComparison(plans=plans, failures=tuple(failures))


def rank_aircraft(
    candidates: Sequence[Aircraft],
    legs: Sequence[Leg],
    *,
    resolver: GeoResolver,
    config: Optional[RoutingConfig] = None,
    environment: Optional[EnvironmentalData] = None,
    pricing: Optional[PricingOptions] = None,
    timeout: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
    prior_failures: Sequence[RoutingFailure] = (),
) -> AircraftRanking:
    """Rank candidates by the total of their balanced plan, then aircraft id.

    Raises ``NO_CANDIDATE`` when no candidate produces a plan.
    """

    config = config or RoutingConfig()
    by_id = {aircraft.id: aircraft for aircraft in candidates}

    def job_for(aircraft: Aircraft) -> Callable[[threading.Event], RoutePlan]:
        def run(stop: threading.Event) -> RoutePlan:
            return plan_mode(
                aircraft,
                legs,
                "balanced",
                resolver=resolver,
                config=config,
                environment=environment,
                pricing=pricing,
                cancel_event=stop,
            )

        return run

    results: Dict[Hashable, RoutePlan] = {}
    failures: List[RoutingFailure] = list(prior_failures)
    if by_id:
        results, unit_failures = _fan_out(
            {aircraft_id: job_for(aircraft) for aircraft_id, aircraft in sorted(by_id.items())},
            max_workers=min(len(by_id), config.max_workers),
            timeout=timeout,
            cancel_event=cancel_event,
            describe=lambda aircraft_id: {"aircraft_id": str(aircraft_id), "mode": "balanced"},
        )
        failures.extend(unit_failures)

    if not results:
        raise RoutingError(
            "No candidate aircraft can fly this itinerary",
            NO_CANDIDATE,
            {"failures": [failure.as_dict() for failure in failures]},
        )
    ranked = sorted(results.values(), key=lambda plan: (plan.total, plan.aircraft_id))
    logger.info(
        "Ranked %d of %d candidates; best %s at %s",
        len(ranked),
        len(by_id) + len(prior_failures),
        ranked[0].aircraft_id,
        ranked[0].total,
    )
    return AircraftRanking(ranked=tuple(ranked), failures=tuple(failures))
