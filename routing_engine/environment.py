"""Weather/NOTAM attachment, composite risk score and on-time probability.

Environmental data is injected by the caller. Missing weather for an airport
is treated as neutral risk and reported as a warning rather than a failure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .config import RoutingConfig
from .schemas import (
    ConvectiveRisk,
    GoNogo,
    IcingRisk,
    NotamAlert,
    NotamSeverity,
    NotamType,
    WeatherAssessment,
)

logger = logging.getLogger(__name__)

_TAXIWAY_KEYWORDS: tuple[str, ...] = (
    "TWY",
    "TXY",
    "TAXIWAY",
    "TAXILANE",
    "TAXI LANE",
    "TAXI ROUTE",
)

_RUNWAY_KEYWORDS: tuple[str, ...] = ("RWY", "RUNWAY")

_CLOSED_KEYWORDS: tuple[str, ...] = ("CLSD", "CLOSED", "CLOSURE")

_TFR_KEYWORDS: tuple[str, ...] = (
    "TFR",
    "TEMPORARY FLIGHT RESTRICTION",
    "FLIGHT RESTRICTIONS",
    "AIRSPACE CLOSED",
)

_FUEL_KEYWORDS: tuple[str, ...] = ("FUEL", "JET A", "JET-A", "AVGAS")

_FUEL_OUTAGE_KEYWORDS: tuple[str, ...] = ("NOT AVBL", "UNAVBL", "UNAVAILABLE", "U/S", "OUT OF SERVICE", "NIL")

_NAVAID_KEYWORDS: tuple[str, ...] = ("ILS", "VOR", "DME", "NDB", "LOC ", "GLIDESLOPE", "GS ", "NAVAID", "RNAV")

_DEICING_ICING: frozenset = frozenset({"moderate", "severe"})


def _contains_any(text_upper: str, keywords: Iterable[str]) -> bool:
    return any(keyword in text_upper for keyword in keywords)


def is_taxiway_only_notam(notam_text: Optional[str]) -> bool:
    """Taxiway keywords present and no runway reference."""

    if not notam_text:
        return False
    text_upper = notam_text.upper()
    if not _contains_any(text_upper, _TAXIWAY_KEYWORDS):
        return False
    return not _contains_any(text_upper, _RUNWAY_KEYWORDS)


def classify_notam_text(notam_text: Optional[str]) -> Tuple[NotamType, NotamSeverity]:
    """Map raw NOTAM text to a ``(type, severity)`` pair.

    TFRs and runway or aerodrome closures are critical, fuel and navaid
    outages are caution, taxiway-only notices and everything else are info.
    """

    text_upper = (notam_text or "").upper()
    if not text_upper.strip():
        return "other", "info"
    if _contains_any(text_upper, _TFR_KEYWORDS):
        return "tfr", "critical"
    if is_taxiway_only_notam(text_upper):
        return "taxiway", "info"
    if _contains_any(text_upper, _CLOSED_KEYWORDS) and (
        _contains_any(text_upper, _RUNWAY_KEYWORDS) or "AD " in text_upper or "AERODROME" in text_upper
    ):
        return "runway_closure", "critical"
    if _contains_any(text_upper, _FUEL_KEYWORDS) and _contains_any(text_upper, _FUEL_OUTAGE_KEYWORDS):
        return "fuel_outage", "caution"
    if _contains_any(text_upper, _NAVAID_KEYWORDS) and _contains_any(
        text_upper, _FUEL_OUTAGE_KEYWORDS + ("CLSD", "OTS")
    ):
        return "nav_aid", "caution"
    return "other", "info"


def build_notam(notam_id: str, icao: str, raw_text: str, **kwargs: object) -> NotamAlert:
    notam_type, severity = classify_notam_text(raw_text)
    return NotamAlert(
        notam_id=notam_id,
        icao=icao.strip().upper(),
        type=notam_type,
        severity=severity,
        raw_text=raw_text,
        **kwargs,  # type: ignore[arg-type]
    )


def classify_weather(
    ceiling_ft: Optional[float],
    visibility_sm: Optional[float],
    icing_risk: IcingRisk = "none",
    convective_risk: ConvectiveRisk = "none",
) -> GoNogo:
    """Go/marginal/nogo from observed conditions. Unknown ceiling or visibility does not degrade the call."""

    if icing_risk == "severe" or convective_risk == "high":
        return "nogo"
    if ceiling_ft is not None and ceiling_ft < 500:
        return "nogo"
    if visibility_sm is not None and visibility_sm < 1:
        return "nogo"
    if icing_risk == "moderate" or convective_risk == "moderate":
        return "marginal"
    if ceiling_ft is not None and ceiling_ft < 1000:
        return "marginal"
    if visibility_sm is not None and visibility_sm < 3:
        return "marginal"
    return "go"


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def weather_penalty(assessment: WeatherAssessment, config: RoutingConfig) -> float:
    return (
        config.weather_penalties.get(assessment.status, 0.0)
        + config.icing_penalties.get(assessment.icing_risk, 0.0)
        + config.convective_penalties.get(assessment.convective_risk, 0.0)
    )


def route_complexity_penalty(
    stop_count: int,
    flight_hours: float,
    international: bool,
    config: RoutingConfig,
) -> float:
    """Penalty for refuel stops, long total flight time and border crossings."""

    penalty = config.stop_penalty * max(stop_count, 0)
    penalty += config.long_haul_penalty * sum(1 for limit in config.long_haul_thresholds_hr if flight_hours > limit)
    if international:
        penalty += config.international_penalty
    return penalty


def risk_score(
    weather: Iterable[WeatherAssessment],
    notams: Iterable[NotamAlert],
    config: Optional[RoutingConfig] = None,
    *,
    stop_count: int = 0,
    flight_hours: float = 0.0,
    international: bool = False,
) -> float:
    """Composite itinerary risk in ``[0, 1]``; higher is riskier.

    Weather penalties are capped before NOTAM and route-complexity penalties
    are added on top of ``config.base_risk``.
    """

    config = config or RoutingConfig()
    weather_total = min(
        sum(weather_penalty(item, config) for item in weather),
        config.weather_penalty_cap,
    )
    notam_total = sum(config.notam_penalties.get(item.severity, 0.0) for item in notams)
    complexity = route_complexity_penalty(stop_count, flight_hours, international, config)
    return round(_clamp(config.base_risk + weather_total + notam_total + complexity), 4)


def on_time_probability(risk: float, stop_count: int, config: Optional[RoutingConfig] = None) -> float:
    """Monotonic non-increasing in both risk and stop count, bounded to ``[0, 1]``."""

    config = config or RoutingConfig()
    value = 1.0 - config.on_time_risk_weight * _clamp(risk) - config.on_time_stop_penalty * max(stop_count, 0)
    return round(_clamp(value), 3)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def notam_active(notam: NotamAlert, start: Optional[datetime], end: Optional[datetime] = None) -> bool:
    """True when the NOTAM's effective interval overlaps ``[start, end]``.

    Open bounds on either side match everything; ``end`` defaults to ``start``.
    """

    if start is None and end is None:
        return True
    if end is None:
        end = start
    if start is not None and notam.effective_to is not None and _as_utc(notam.effective_to) < _as_utc(start):
        return False
    if end is not None and notam.effective_from is not None and _as_utc(notam.effective_from) > _as_utc(end):
        return False
    return True


@dataclass(frozen=True)
class EnvironmentalData:
    """Pre-fetched weather keyed by ICAO and a flat NOTAM list."""

    weather: Mapping[str, WeatherAssessment] = field(default_factory=dict)
    notams: Tuple[NotamAlert, ...] = ()

    @classmethod
    def build(
        cls,
        weather: Union[Mapping[str, WeatherAssessment], Iterable[WeatherAssessment], None] = None,
        notams: Optional[Iterable[NotamAlert]] = None,
    ) -> "EnvironmentalData":
        if weather is None:
            by_icao: Dict[str, WeatherAssessment] = {}
        elif isinstance(weather, Mapping):
            by_icao = {code.strip().upper(): item for code, item in weather.items()}
        else:
            by_icao = {item.icao.strip().upper(): item for item in weather}
        return cls(weather=by_icao, notams=tuple(notams or ()))

    def weather_for(self, icao: str) -> Optional[WeatherAssessment]:
        return self.weather.get(icao.strip().upper())

    def notams_for(self, icao: str) -> List[NotamAlert]:
        code = icao.strip().upper()
        return [item for item in self.notams if item.icao.strip().upper() == code]


@dataclass(frozen=True)
class GateResult:
    weather: Tuple[WeatherAssessment, ...]
    notams: Tuple[NotamAlert, ...]
    risk_score: float
    on_time_probability: float
    warnings: Tuple[str, ...] = ()


class EnvironmentalGate:
    """Attach environmental data to the airports an itinerary touches."""

    def __init__(self, data: Optional[EnvironmentalData] = None, config: Optional[RoutingConfig] = None) -> None:
        self.data = data or EnvironmentalData()
        self.config = config or RoutingConfig()

    def airport_risk(self, icao: str) -> float:
        """Per-airport penalty used to weight candidate refuel stops."""

        penalty = 0.0
        assessment = self.data.weather_for(icao)
        if assessment is not None:
            penalty += weather_penalty(assessment, self.config)
        penalty += sum(self.config.notam_penalties.get(item.severity, 0.0) for item in self.data.notams_for(icao))
        return _clamp(penalty)

    def deicing_required(self, icao: str) -> bool:
        assessment = self.data.weather_for(icao)
        return assessment is not None and assessment.icing_risk in _DEICING_ICING

    def attach(
        self,
        icaos: Sequence[str],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Tuple[Tuple[WeatherAssessment, ...], Tuple[NotamAlert, ...], Tuple[str, ...]]:
        weather: List[WeatherAssessment] = []
        notams: List[NotamAlert] = []
        warnings: List[str] = []
        for icao in icaos:
            assessment = self.data.weather_for(icao)
            if assessment is None:
                message = f"No weather for {icao}; risk treated as neutral"
                logger.warning(message)
                warnings.append(message)
            else:
                weather.append(assessment)
            notams.extend(item for item in self.data.notams_for(icao) if notam_active(item, start, end))
        return tuple(weather), tuple(notams), tuple(warnings)

    def evaluate(
        self,
        icaos: Sequence[str],
        stop_count: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        *,
        flight_hours: float = 0.0,
        international: bool = False,
    ) -> GateResult:
        """Attach data active during ``[start, end]`` and score the itinerary."""

        weather, notams, warnings = self.attach(icaos, start, end)
        risk = risk_score(
            weather,
            notams,
            self.config,
            stop_count=stop_count,
            flight_hours=flight_hours,
            international=international,
        )
        return GateResult(
            weather=weather,
            notams=notams,
            risk_score=risk,
            on_time_probability=on_time_probability(risk, stop_count, self.config),
            warnings=warnings,
        )
