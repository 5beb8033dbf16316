from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path
import sys
import threading
from typing import Any, List

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.airports import ReferenceData
from core.contracts import Aircraft, Leg
from core.geo import GeoResolver, along_track_nm, cross_track_nm, gcd_nm, midpoint
from routing_engine.config import RoutingConfig
from routing_engine.errors import CANCELLED, INVALID_INPUT, NO_ROUTE, UNKNOWN_AIRPORT, RoutingError
from routing_engine.expander import _LegPlanner, expand_legs
from routing_engine.performance import usable_range_nm

TUESDAY = date(2026, 3, 3)


def _build_aircraft(**overrides: Any) -> Aircraft:
    fields = {
        "id": "ac-test",
        "category": "light",
        "range_nm": 500,
        "fuel_burn_gph": 120,
        "cruise_speed_kts": 400,
        "min_runway_ft": 4000,
        "home_base_icao": "KLAX",
    }
    fields.update(overrides)
    return Aircraft(**fields)


def _build_legs(*pairs: str, day: date = TUESDAY) -> List[Leg]:
    return [Leg(from_icao=a, to_icao=b, date=day, time=time(14, 0)) for a, b in (p.split("-") for p in pairs)]


@pytest.fixture(scope="module")
def resolver() -> GeoResolver:
    return ReferenceData.from_csv().resolver()


@pytest.fixture
def config() -> RoutingConfig:
    return RoutingConfig(reserve_fraction=0.0, peak_dates=frozenset())


def test_direct_leg_within_range_is_unchanged(resolver: GeoResolver, config: RoutingConfig) -> None:
    aircraft = _build_aircraft(range_nm=2000)
    expansion = expand_legs(_build_legs("KTEB-KBOS"), aircraft, "cost", resolver=resolver, config=config)

    assert len(expansion.route_legs) == 1
    assert expansion.refuel_stops == ()
    leg = expansion.route_legs[0]
    assert (leg.from_icao, leg.to_icao) == ("KTEB", "KBOS")
    assert leg.is_fuel_stop_leg is False
    assert leg.distance_nm == resolver.distance("KTEB", "KBOS")
    assert leg.flight_time_hr == pytest.approx(leg.distance_nm / 400)
    assert leg.fuel_burn_gal == pytest.approx(leg.flight_time_hr * 120)


@pytest.mark.parametrize("mode", ["cost", "time", "balanced"])
def test_transcontinental_leg_gets_refuel_stops(resolver: GeoResolver, config: RoutingConfig, mode: str) -> None:
    aircraft = _build_aircraft()
    expansion = expand_legs(_build_legs("KLAX-KJFK"), aircraft, mode, resolver=resolver, config=config)

    assert usable_range_nm(aircraft, config) == 500
    assert expansion.refuel_stops
    assert all(leg.distance_nm <= 500 for leg in expansion.route_legs)
    assert expansion.route_legs[0].from_icao == "KLAX"
    assert expansion.route_legs[-1].to_icao == "KJFK"
    for previous, current in zip(expansion.route_legs, expansion.route_legs[1:]):
        assert previous.to_icao == current.from_icao
    assert [stop.icao for stop in expansion.refuel_stops] == [leg.to_icao for leg in expansion.route_legs[:-1]]
    assert all(leg.is_fuel_stop_leg for leg in expansion.route_legs)


def test_default_reserve_keeps_legs_inside_usable_range(resolver: GeoResolver) -> None:
    aircraft = ReferenceData.from_csv().find_aircraft("ac-shorthop")
    config = RoutingConfig(peak_dates=frozenset())
    expansion = expand_legs(_build_legs("KLAX-KJFK"), aircraft, "balanced", resolver=resolver, config=config)

    limit = usable_range_nm(aircraft, config)
    assert limit == pytest.approx(500.4)
    assert all(leg.distance_nm <= limit for leg in expansion.route_legs)


def test_stop_detours_account_for_the_whole_geometry(resolver: GeoResolver, config: RoutingConfig) -> None:
    expansion = expand_legs(_build_legs("KLAX-KJFK"), _build_aircraft(), "cost", resolver=resolver, config=config)

    flown = sum(leg.distance_nm for leg in expansion.route_legs)
    detours = sum(stop.added_distance_nm for stop in expansion.refuel_stops)
    assert flown - detours == pytest.approx(resolver.distance("KLAX", "KJFK"), abs=1e-6)
    assert all(stop.added_distance_nm >= -1e-6 for stop in expansion.refuel_stops)


def test_refuel_stop_details(resolver: GeoResolver, config: RoutingConfig) -> None:
    expansion = expand_legs(_build_legs("KLAX-KJFK"), _build_aircraft(), "cost", resolver=resolver, config=config)

    for stop, inbound in zip(expansion.refuel_stops, expansion.route_legs):
        airport = resolver.airport(stop.icao)
        assert airport.fuel_available
        assert airport.longest_runway_ft >= 4000
        assert stop.airport_name == airport.name
        assert stop.fuel_uplift_gal == pytest.approx(inbound.fuel_burn_gal)
        assert stop.ground_time_min == 30
        assert stop.reason.startswith("Range insufficiency: KLAX-KJFK direct 2146 nm")
        assert stop.leg_index == 0


def test_schedule_includes_ground_time(resolver: GeoResolver, config: RoutingConfig) -> None:
    expansion = expand_legs(_build_legs("KLAX-KJFK"), _build_aircraft(), "time", resolver=resolver, config=config)

    first = expansion.route_legs[0]
    assert first.departure_utc == datetime(2026, 3, 3, 14, 0, tzinfo=timezone.utc)
    for previous, current, stop in zip(expansion.route_legs, expansion.route_legs[1:], expansion.refuel_stops):
        assert current.departure_utc == previous.arrival_utc + timedelta(minutes=stop.ground_time_min)


def test_deicing_requirement_extends_ground_time(resolver: GeoResolver, config: RoutingConfig) -> None:
    expansion = expand_legs(
        _build_legs("KLAX-KJFK"),
        _build_aircraft(),
        "cost",
        resolver=resolver,
        config=config,
        deicing_required=lambda icao: True,
    )

    assert {stop.ground_time_min for stop in expansion.refuel_stops} == {45}


def test_time_mode_never_slower_than_cost_mode(resolver: GeoResolver, config: RoutingConfig) -> None:
    legs = _build_legs("KLAX-KJFK")
    aircraft = _build_aircraft()
    cheap = expand_legs(legs, aircraft, "cost", resolver=resolver, config=config)
    fast = expand_legs(legs, aircraft, "time", resolver=resolver, config=config)

    def block_hours(expansion: Any) -> float:
        flight = sum(leg.flight_time_hr for leg in expansion.route_legs)
        return flight + sum(stop.ground_time_min for stop in expansion.refuel_stops) / 60

    assert block_hours(fast) <= block_hours(cheap) + 1e-9


def test_expansion_is_deterministic(resolver: GeoResolver, config: RoutingConfig) -> None:
    legs = _build_legs("KLAX-KJFK", "KJFK-KTEB")
    first = expand_legs(legs, _build_aircraft(), "balanced", resolver=resolver, config=config)
    second = expand_legs(legs, _build_aircraft(), "balanced", resolver=resolver, config=config)

    assert first == second
    assert [leg.leg_index for leg in first.route_legs][-1] == 1


def test_no_route_reports_shortfall(resolver: GeoResolver, config: RoutingConfig) -> None:
    with pytest.raises(RoutingError) as excinfo:
        expand_legs(_build_legs("KLAX-KJFK"), _build_aircraft(range_nm=60), "cost", resolver=resolver, config=config)

    error = excinfo.value
    assert error.code == NO_ROUTE
    assert error.details["shortfall_nm"] > 0
    assert error.details["from"] == "KLAX"
    assert "nm beyond usable range" in str(error)


def test_runway_too_short_everywhere_means_no_route(resolver: GeoResolver, config: RoutingConfig) -> None:
    aircraft = _build_aircraft(min_runway_ft=20000)
    with pytest.raises(RoutingError) as excinfo:
        expand_legs(_build_legs("KLAX-KJFK"), aircraft, "cost", resolver=resolver, config=config)

    assert excinfo.value.code == NO_ROUTE


def test_unknown_airport_within_range_warns(resolver: GeoResolver, config: RoutingConfig) -> None:
    aircraft = _build_aircraft(range_nm=2000)
    expansion = expand_legs(_build_legs("KTEB-ZZZZ"), aircraft, "cost", resolver=resolver, config=config)

    assert expansion.route_legs[0].distance_nm == 500.0
    assert len(expansion.warnings) == 1
    assert "ZZZZ" in expansion.warnings[0]


def test_unknown_airport_beyond_range_fails(resolver: GeoResolver, config: RoutingConfig) -> None:
    with pytest.raises(RoutingError) as excinfo:
        expand_legs(_build_legs("KTEB-ZZZZ"), _build_aircraft(range_nm=400), "cost", resolver=resolver, config=config)

    assert excinfo.value.code == UNKNOWN_AIRPORT
    assert excinfo.value.details["airports"] == ["ZZZZ"]


def test_empty_itinerary_and_bad_mode_are_rejected(resolver: GeoResolver, config: RoutingConfig) -> None:
    with pytest.raises(RoutingError) as excinfo:
        expand_legs([], _build_aircraft(), "cost", resolver=resolver, config=config)
    assert excinfo.value.code == INVALID_INPUT

    with pytest.raises(RoutingError) as excinfo:
        expand_legs(_build_legs("KTEB-KBOS"), _build_aircraft(), "fastest", resolver=resolver, config=config)
    assert excinfo.value.code == INVALID_INPUT


def test_cancel_event_aborts_expansion(resolver: GeoResolver, config: RoutingConfig) -> None:
    event = threading.Event()
    event.set()
    with pytest.raises(RoutingError) as excinfo:
        expand_legs(
            _build_legs("KLAX-KJFK"), _build_aircraft(), "cost", resolver=resolver, config=config, cancel_event=event
        )

    assert excinfo.value.code == CANCELLED


def test_offset_departure_time_is_converted_to_utc(resolver: GeoResolver, config: RoutingConfig) -> None:
    leg = Leg.model_validate({"from_icao": "KTEB", "to_icao": "KBOS", "date": "2026-03-03", "time": "10:00:00+05:00"})
    expansion = expand_legs([leg], _build_aircraft(range_nm=2000), "cost", resolver=resolver, config=config)

    departure = expansion.route_legs[0].departure_utc
    assert departure == datetime(2026, 3, 3, 5, 0, tzinfo=timezone.utc)
    assert departure.utcoffset() == timedelta(0)


def test_naive_departure_time_is_read_as_utc() -> None:
    leg = _build_legs("KTEB-KBOS")[0]

    assert leg.departure_utc() == datetime(2026, 3, 3, 14, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("radius", [150.0, 300.0, 450.0])
def test_corridor_candidates_match_full_scan(resolver: GeoResolver, config: RoutingConfig, radius: float) -> None:
    planner = _LegPlanner(
        _build_aircraft(),
        "cost",
        resolver=resolver,
        config=config,
        airport_risk=None,
        deicing_required=None,
        fuel_price_override=None,
        cancel_event=None,
    )
    start, end = resolver.airport("KLAX"), resolver.airport("KJFK")
    direct = resolver.distance("KLAX", "KJFK")
    expected = sorted(
        code
        for code, airport in resolver.airports.items()
        if code not in ("KLAX", "KJFK")
        and airport.fuel_available
        and airport.longest_runway_ft is not None
        and airport.longest_runway_ft >= 4000
        and cross_track_nm(start, end, airport) <= radius
        and 0 < along_track_nm(start, end, airport) < direct
    )

    assert planner.corridor_candidates("KLAX", "KJFK", radius) == expected
    mid_lat, mid_lon = midpoint(start, end)
    for code in expected:
        airport = resolver.airport(code)
        assert gcd_nm(mid_lat, mid_lon, airport.lat, airport.lon) <= direct / 2 + radius
