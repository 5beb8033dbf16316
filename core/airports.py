"""Utilities for loading airport and aircraft reference data used by routing."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

import pandas as pd

from .contracts import Aircraft, Airport
from .geo import FALLBACK_DISTANCE_NM, GeoResolver

_PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_AIRPORTS_PATH = _PROJECT_ROOT / "data" / "airports.csv"
DEFAULT_AIRCRAFT_PATH = _PROJECT_ROOT / "data" / "aircraft.csv"

_TRUE_VALUES = {"TRUE", "T", "YES", "Y", "1"}


def _flag(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if not isinstance(value, str):
        return False
    return value.strip().upper() in _TRUE_VALUES


def _optional_float(value: object) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    return float(value)


def _optional_text(value: object) -> Optional[str]:
    if not isinstance(value, str):
        return None
    text = value.strip()
    return text or None


def load_airports(path: str | Path = DEFAULT_AIRPORTS_PATH) -> Dict[str, Airport]:
    """Load airport coordinates, runway, fuel and handling metadata.

    Parameters
    ----------
    path:
        CSV file exposing at least ``icao``, ``lat`` and ``lon`` columns.
        Optional columns: ``name``, ``country``, ``longest_runway_ft``,
        ``fuel_available``, ``fuel_price_usd_gal``, ``fbo_fee_usd``,
        ``customs_available`` and ``deicing_available``.

    Returns
    -------
    dict
        Mapping of uppercase ICAO code → :class:`Airport`. Rows without a
        code or usable coordinates are dropped.
    """

    csv_path = Path(path)
    df = pd.read_csv(csv_path, dtype=str)

    for col in ("lat", "lon", "longest_runway_ft", "fuel_price_usd_gal", "fbo_fee_usd"):
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")

    df["icao"] = df["icao"].str.upper().str.strip()
    df = df.dropna(subset=["icao", "lat", "lon"])

    airports: Dict[str, Airport] = {}
    for _, row in df.iterrows():
        icao = row["icao"]
        if not icao:
            continue
        airports[icao] = Airport(
            icao=icao,
            name=_optional_text(row.get("name")) or icao,
            country=_optional_text(row.get("country")),
            lat=float(row["lat"]),
            lon=float(row["lon"]),
            longest_runway_ft=_optional_float(row.get("longest_runway_ft")),
            fuel_available=_flag(row.get("fuel_available")),
            fuel_price_usd_gal=_optional_float(row.get("fuel_price_usd_gal")),
            fbo_fee_usd=_optional_float(row.get("fbo_fee_usd")),
            customs_available=_flag(row.get("customs_available")),
            deicing_available=_flag(row.get("deicing_available")),
        )

    return airports


def load_aircraft(path: str | Path = DEFAULT_AIRCRAFT_PATH) -> Dict[str, Aircraft]:
    """Load the fleet table keyed by aircraft id."""

    csv_path = Path(path)
    df = pd.read_csv(csv_path, dtype=str)

    for col in ("range_nm", "fuel_burn_gph", "cruise_speed_kts", "min_runway_ft", "pax_capacity"):
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")

    df["id"] = df["id"].str.strip()
    df = df.dropna(subset=["id", "category", "range_nm"])

    fleet: Dict[str, Aircraft] = {}
    for _, row in df.iterrows():
        pax = row.get("pax_capacity")
        fleet[row["id"]] = Aircraft(
            id=row["id"],
            tail_number=_optional_text(row.get("tail_number")) or "",
            category=row["category"].strip().lower(),
            range_nm=float(row["range_nm"]),
            fuel_burn_gph=_optional_float(row.get("fuel_burn_gph")),
            cruise_speed_kts=_optional_float(row.get("cruise_speed_kts")),
            min_runway_ft=_optional_float(row.get("min_runway_ft")),
            home_base_icao=_optional_text(row.get("home_base_icao")),
            pax_capacity=0 if pax is None or pd.isna(pax) else int(pax),
        )
    return fleet


@dataclass(frozen=True)
class ReferenceData:
    """Read-only airport and fleet tables shared by every routing computation."""

    airports: Mapping[str, Airport] = field(default_factory=dict)
    aircraft: Mapping[str, Aircraft] = field(default_factory=dict)

    @classmethod
    def from_records(
        cls,
        airports: Iterable[Airport],
        aircraft: Iterable[Aircraft] = (),
    ) -> "ReferenceData":
        return cls(
            airports={airport.icao: airport for airport in airports},
            aircraft={plane.id: plane for plane in aircraft},
        )

    @classmethod
    def from_csv(
        cls,
        airports_path: str | Path = DEFAULT_AIRPORTS_PATH,
        aircraft_path: str | Path = DEFAULT_AIRCRAFT_PATH,
    ) -> "ReferenceData":
        return cls(airports=load_airports(airports_path), aircraft=load_aircraft(aircraft_path))

    def resolver(self, fallback_distance_nm: float = FALLBACK_DISTANCE_NM) -> GeoResolver:
        return GeoResolver(self.airports, fallback_distance_nm=fallback_distance_nm)

    def find_aircraft(self, aircraft_id: str) -> Optional[Aircraft]:
        return self.aircraft.get((aircraft_id or "").strip())
