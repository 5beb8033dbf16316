"""Pydantic contracts for airport, aircraft and raw-leg reference data."""

from __future__ import annotations

import re
from datetime import date as Date, datetime, time as Time, timezone
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

_ICAO_PATTERN = re.compile(r"^[A-Z0-9]{4}$")

# Two-letter ICAO prefixes take precedence over the single-letter regions.
_ICAO_PREFIX_COUNTRIES: Dict[str, str] = {
    "K": "US",
    "P": "US",
    "TJ": "US",
    "TI": "US",
    "C": "CA",
    "MM": "MX",
    "MY": "BS",
    "TN": "SX",
    "BG": "GL",
    "BI": "IS",
    "EG": "GB",
    "EI": "IE",
    "EH": "NL",
    "EB": "BE",
    "ED": "DE",
    "LF": "FR",
    "LS": "CH",
    "LI": "IT",
    "LE": "ES",
    "LP": "PT",
    "LO": "AT",
    "OM": "AE",
    "OE": "SA",
    "VH": "HK",
    "RJ": "JP",
    "WS": "SG",
    "Y": "AU",
}


def normalize_icao(value: object) -> str:
    """Upper-case and validate a four character ICAO identifier."""

    text = str(value or "").strip().upper()
    if not _ICAO_PATTERN.match(text):
        raise ValueError(f"Malformed ICAO code: {value!r}")
    return text


def country_for_icao(icao: str) -> Optional[str]:
    """Best-effort ISO country derived from the ICAO location prefix."""

    code = (icao or "").strip().upper()
    if not code:
        return None
    return _ICAO_PREFIX_COUNTRIES.get(code[:2]) or _ICAO_PREFIX_COUNTRIES.get(code[:1])


class AircraftCategory(str, Enum):
    TURBOPROP = "turboprop"
    LIGHT = "light"
    MIDSIZE = "midsize"
    SUPER_MID = "super-mid"
    HEAVY = "heavy"
    ULTRA_LONG = "ultra-long"


class Airport(BaseModel):
    """Static airport reference record keyed by ICAO code."""

    model_config = ConfigDict(frozen=True)

    icao: str = Field(..., description="Four letter ICAO identifier")
    name: str = ""
    country: Optional[str] = Field(None, validate_default=True, description="ISO-2 country code")
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
    longest_runway_ft: Optional[float] = Field(None, ge=0)
    fuel_available: bool = False
    fuel_price_usd_gal: Optional[float] = Field(None, ge=0)
    fbo_fee_usd: Optional[float] = Field(None, ge=0)
    customs_available: bool = False
    deicing_available: bool = False

    @field_validator("icao", mode="before")
    @classmethod
    def validate_icao(cls, value: object) -> str:
        return normalize_icao(value)

    @field_validator("country", mode="before")
    @classmethod
    def validate_country(cls, value: object, info: ValidationInfo):  # type: ignore[override]
        text = str(value or "").strip().upper()
        if text:
            return text
        icao = info.data.get("icao")
        return country_for_icao(icao) if icao else None


class Aircraft(BaseModel):
    """Read-only aircraft performance and basing data used for routing."""

    model_config = ConfigDict(frozen=True)

    id: str
    tail_number: str = ""
    category: AircraftCategory
    range_nm: float = Field(..., gt=0, description="Nominal still-air range")
    fuel_burn_gph: Optional[float] = Field(None, ge=0)
    cruise_speed_kts: Optional[float] = Field(None, gt=0)
    min_runway_ft: Optional[float] = Field(None, ge=0)
    home_base_icao: Optional[str] = None
    pax_capacity: int = Field(0, ge=0)

    @field_validator("home_base_icao", mode="before")
    @classmethod
    def validate_home_base(cls, value: object) -> Optional[str]:
        if value is None or str(value).strip() == "":
            return None
        return normalize_icao(value)


class Leg(BaseModel):
    """A user or intake supplied leg: the unit the expander consumes."""

    model_config = ConfigDict(frozen=True)

    from_icao: str
    to_icao: str
    date: Date
    time: Time = Field(default_factory=lambda: Time(0, 0))

    @field_validator("from_icao", "to_icao", mode="before")
    @classmethod
    def validate_codes(cls, value: object) -> str:
        return normalize_icao(value)

    @field_validator("to_icao")
    @classmethod
    def validate_distinct(cls, to_icao: str, info: ValidationInfo):  # type: ignore[override]
        if info.data.get("from_icao") == to_icao:
            raise ValueError("Leg origin and destination must differ")
        return to_icao

    def departure_utc(self) -> datetime:
        """Scheduled departure in UTC. A naive time is read as UTC; an offset time is converted."""

        moment = datetime.combine(self.date, self.time)
        if moment.tzinfo is None:
            return moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(timezone.utc)
