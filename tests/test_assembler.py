from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
import re
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.airports import ReferenceData
from core.contracts import Leg
from routing_engine.assembler import assemble_route_plan, diff_plans, trade_off_note
from routing_engine.config import RoutingConfig
from routing_engine.cost_engine import calculate_costs
from routing_engine.environment import EnvironmentalGate
from routing_engine.expander import expand_legs
from routing_engine.optimizer import PricingOptions, plan_mode
from routing_engine.schemas import RoutePlan


@pytest.fixture(scope="module")
def reference() -> ReferenceData:
    return ReferenceData.from_csv()


def _build_plan(reference: ReferenceData, margin_pct: float = 15.0, aircraft_id: str = "ac-xls") -> RoutePlan:
    config = RoutingConfig(peak_dates=frozenset())
    legs = [Leg(from_icao="KTEB", to_icao="KMIA", date=date(2026, 3, 3))]
    return plan_mode(
        reference.find_aircraft(aircraft_id),
        legs,
        "cost",
        resolver=reference.resolver(),
        config=config,
        pricing=PricingOptions(margin_pct=margin_pct),
        computed_at=datetime(2026, 3, 1, 12, tzinfo=timezone.utc),
    )


def test_assemble_derives_aggregates(reference: ReferenceData) -> None:
    config = RoutingConfig(peak_dates=frozenset())
    resolver = reference.resolver()
    aircraft = reference.find_aircraft("ac-xls")
    legs = [Leg(from_icao="KTEB", to_icao="KBOS", date=date(2026, 3, 3))]
    expansion = expand_legs(legs, aircraft, "time", resolver=resolver, config=config)
    gate = EnvironmentalGate(config=config).evaluate(expansion.touched_icaos(), expansion.stop_count)
    breakdown = calculate_costs(
        expansion.route_legs,
        expansion.refuel_stops,
        aircraft,
        legs=legs,
        margin_pct=15,
        catering_requested=False,
        is_international=None,
        resolver=resolver,
        config=config,
    )

    plan = assemble_route_plan(aircraft.id, "time", expansion, gate, breakdown, warnings=gate.warnings)

    assert plan.mode == "time"
    assert plan.total_distance_nm == expansion.route_legs[0].distance_nm
    assert plan.total_ground_time_hr == 0.0
    assert plan.total_fuel_cost_usd == breakdown.fuel_cost
    assert plan.computed_at.tzinfo is not None
    # gate warnings passed twice are reported once
    assert len(plan.warnings) == 2


def test_fingerprint_ignores_computed_at(reference: ReferenceData) -> None:
    plan = _build_plan(reference)
    later = replace(plan, computed_at=datetime(2027, 1, 1, tzinfo=timezone.utc))

    assert plan.fingerprint() == later.fingerprint()
    assert re.fullmatch(r"[0-9a-f]{64}", plan.fingerprint())
    assert "computedAt" not in plan.payload()
    assert plan.as_dict()["computedAt"] == "2026-03-01T12:00:00+00:00"


def test_payload_serializes_money_as_strings(reference: ReferenceData) -> None:
    payload = _build_plan(reference).payload()

    assert isinstance(payload["costBreakdown"]["total"], str)
    assert isinstance(payload["routeLegs"][0]["fuelCostUsd"], str)
    Decimal(payload["costBreakdown"]["total"])


def test_diff_identical_plans(reference: ReferenceData) -> None:
    diff = diff_plans(_build_plan(reference), _build_plan(reference))

    assert diff.fingerprint_match is True
    assert diff.route_changed is False
    assert diff.changed_fields() == {}
    assert diff.total_delta == Decimal("0.00")


def test_diff_after_margin_change(reference: ReferenceData) -> None:
    stored = _build_plan(reference, margin_pct=15)
    fresh = _build_plan(reference, margin_pct=20)

    diff = diff_plans(stored, fresh)

    assert diff.fingerprint_match is False
    assert diff.route_changed is False
    assert set(diff.changed_fields()) == {"margin_amount", "tax", "total"}
    assert diff.total_delta > 0
    assert diff.as_dict()["deltas"]["fuel_cost"] == "0.00"


def test_trade_off_note_format(reference: ReferenceData) -> None:
    primary = _build_plan(reference, aircraft_id="ac-xls")
    other = _build_plan(reference, aircraft_id="ac-challenger350")

    assert trade_off_note(primary, primary) == "+$0 cost, +0 min flight time vs primary route"
    note = trade_off_note(primary, other)
    assert re.fullmatch(r"[+-]\$[\d,]+ cost, [+-]\d+ min flight time vs primary route", note)
    assert note.startswith("+$")
