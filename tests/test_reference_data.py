from datetime import date, time
from pathlib import Path
import sys

import pytest
from pydantic import ValidationError

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.airports import ReferenceData, load_aircraft, load_airports
from core.contracts import Aircraft, AircraftCategory, Airport, Leg, country_for_icao, normalize_icao
from core.reposition import reposition_estimate
from routing_engine.config import RoutingConfig, load_peak_days


def test_load_airports_parses_flags_and_optional_numbers() -> None:
    airports = load_airports()

    assert len(airports) == 115
    smo = airports["KSMO"]
    assert smo.fuel_available is False
    assert smo.fuel_price_usd_gal is None
    assert smo.longest_runway_ft == 3500
    jfk = airports["KJFK"]
    assert jfk.customs_available and jfk.deicing_available
    assert jfk.fbo_fee_usd == 1500
    assert jfk.country == "US"


def test_load_airports_drops_rows_without_coordinates(tmp_path: Path) -> None:
    csv_path = tmp_path / "airports.csv"
    csv_path.write_text(
        "icao,name,lat,lon,fuel_available\n"
        "kabc,Alpha,40.0,-100.0,yes\n"
        "KDEF,Delta,,-101.0,true\n"
        "CXYZ,Canada Field,50.0,-110.0,0\n",
        encoding="utf-8",
    )

    airports = load_airports(csv_path)

    assert sorted(airports) == ["CXYZ", "KABC"]
    assert airports["KABC"].fuel_available is True
    assert airports["CXYZ"].fuel_available is False
    assert airports["CXYZ"].country == "CA"


def test_load_aircraft_reads_fleet() -> None:
    fleet = load_aircraft()

    shorthop = fleet["ac-shorthop"]
    assert shorthop.category is AircraftCategory.LIGHT
    assert shorthop.range_nm == 556
    assert shorthop.home_base_icao == "KLAX"
    assert fleet["ac-challenger350"].category is AircraftCategory.SUPER_MID
    assert fleet["ac-g450"].pax_capacity == 14


def test_reference_data_lookup() -> None:
    reference = ReferenceData.from_csv()

    assert reference.find_aircraft(" ac-xls ").tail_number == "N560XL"
    assert reference.find_aircraft("missing") is None
    assert reference.resolver().known_airport("KTEB")


def test_normalize_icao_and_country_prefixes() -> None:
    assert normalize_icao(" kjfk ") == "KJFK"
    assert country_for_icao("CYYZ") == "CA"
    assert country_for_icao("MMMX") == "MX"
    assert country_for_icao("EGLL") == "GB"
    assert country_for_icao("KLAX") == "US"
    with pytest.raises(ValueError):
        normalize_icao("JFK")


def test_airport_country_derived_from_prefix_when_missing() -> None:
    airport = Airport(icao="mmun", lat=21.04, lon=-86.87)

    assert airport.icao == "MMUN"
    assert airport.country == "MX"


def test_airport_rejects_bad_coordinates() -> None:
    with pytest.raises(ValidationError):
        Airport(icao="KAAA", lat=120.0, lon=0.0)


def test_leg_validation() -> None:
    leg = Leg(from_icao="klax", to_icao="kjfk", date="2026-03-03")
    assert leg.from_icao == "KLAX"
    assert leg.time == time(0, 0)

    with pytest.raises(ValidationError):
        Leg(from_icao="KLAX", to_icao="klax", date=date(2026, 3, 3))
    with pytest.raises(ValidationError):
        Leg(from_icao="LAX", to_icao="KJFK", date=date(2026, 3, 3))


def test_aircraft_requires_positive_range() -> None:
    with pytest.raises(ValidationError):
        Aircraft(id="bad", category="light", range_nm=0)


def test_reposition_estimate() -> None:
    resolver = ReferenceData.from_csv().resolver()

    assert reposition_estimate("KTEB", "KTEB", 441, resolver) is None
    assert reposition_estimate(None, "KTEB", 441, resolver) is None

    estimate = reposition_estimate("KVNY", "KTEB", 416, resolver)
    assert estimate.used_fallback is False
    assert estimate.hours == pytest.approx(estimate.distance_nm / 416)

    fallback = reposition_estimate("ZZZZ", "KTEB", 400, resolver)
    assert fallback.used_fallback is True
    assert fallback.distance_nm == 500.0

    with pytest.raises(ValueError):
        reposition_estimate("KVNY", "KTEB", 0, resolver)


def test_peak_days_loaded_from_calendar() -> None:
    days = load_peak_days()

    assert date(2026, 1, 1) in days
    assert date(2026, 12, 24) in days


def test_routing_config_overrides_and_validation() -> None:
    config = RoutingConfig(peak_dates=frozenset())
    tweaked = config.with_overrides(reserve_fraction=0.2)

    assert tweaked.reserve_fraction == 0.2
    assert config.reserve_fraction == 0.10
    assert config.max_search_radius_nm == 450.0
    assert config.permit_fee_for("ca") == 250.0
    assert config.permit_fee_for("ZZ") == 750.0
    assert config.tax_rate_for("MX") == 0.16
    assert config.tax_rate_for(None) == 0.075
    assert config.is_peak_day(date(2026, 3, 6))  # Friday
    assert not config.is_peak_day(date(2026, 3, 3))

    with pytest.raises(ValueError):
        RoutingConfig(reserve_fraction=1.0)
    with pytest.raises(ValueError):
        RoutingConfig(international_basis="continent")
