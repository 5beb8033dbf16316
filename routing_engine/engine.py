"""Request-level entry points: validate input, resolve the aircraft, plan."""

from __future__ import annotations

import logging
import threading
from typing import Any, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.airports import ReferenceData
from core.contracts import Aircraft, Leg

from .config import RoutingConfig
from .environment import EnvironmentalData
from .errors import AIRCRAFT_NOT_FOUND, INVALID_INPUT, RoutingError, RoutingFailure
from .optimizer import AircraftRanking, ModeComparison, PricingOptions, plan_all_modes, plan_mode, rank_aircraft
from .schemas import OptimizationMode, RoutePlan

logger = logging.getLogger(__name__)


class RoutePlanRequest(BaseModel):
    """Structured trip request handed over by intake or a caller UI."""

    model_config = ConfigDict(frozen=True)

    legs: Tuple[Leg, ...] = Field(..., min_length=1)
    aircraft_id: Optional[str] = None
    candidate_aircraft_ids: Tuple[str, ...] = ()
    mode: OptimizationMode = "balanced"
    margin_pct: float = Field(15.0, ge=0)
    catering_requested: bool = False
    is_international: Optional[bool] = None
    fuel_price_override: Optional[float] = Field(None, ge=0)
    tax_rate: Optional[float] = Field(None, ge=0)

    @field_validator("aircraft_id", mode="before")
    @classmethod
    def strip_aircraft_id(cls, value: object) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    def pricing(self) -> PricingOptions:
        return PricingOptions(
            margin_pct=self.margin_pct,
            catering_requested=self.catering_requested,
            is_international=self.is_international,
            fuel_price_override=self.fuel_price_override,
            tax_rate=self.tax_rate,
        )


RequestLike = Union[RoutePlanRequest, Mapping[str, Any]]


def parse_request(payload: RequestLike) -> RoutePlanRequest:
    """Validate ``payload``; pydantic errors surface as ``INVALID_INPUT``."""

    if isinstance(payload, RoutePlanRequest):
        return payload
    try:
        return RoutePlanRequest.model_validate(payload)
    except ValidationError as exc:
        problems = [f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()]
        raise RoutingError("Invalid route plan request", INVALID_INPUT, {"errors": problems}) from exc


def _require_aircraft(reference: ReferenceData, aircraft_id: Optional[str]) -> Aircraft:
    if not aircraft_id:
        raise RoutingError("Request does not name an aircraft", INVALID_INPUT)
    aircraft = reference.find_aircraft(aircraft_id)
    if aircraft is None:
        raise RoutingError(f"Aircraft {aircraft_id} not found", AIRCRAFT_NOT_FOUND, {"aircraft_id": aircraft_id})
    return aircraft


def compute_route_plan(
    payload: RequestLike,
    *,
    reference: ReferenceData,
    config: Optional[RoutingConfig] = None,
    environment: Optional[EnvironmentalData] = None,
    cancel_event: Optional[threading.Event] = None,
) -> RoutePlan:
    request = parse_request(payload)
    config = config or RoutingConfig()
    aircraft = _require_aircraft(reference, request.aircraft_id)
    return plan_mode(
        aircraft,
        request.legs,
        request.mode,
        resolver=reference.resolver(config.fallback_distance_nm),
        config=config,
        environment=environment,
        pricing=request.pricing(),
        cancel_event=cancel_event,
    )


def compare_modes(
    payload: RequestLike,
    *,
    reference: ReferenceData,
    config: Optional[RoutingConfig] = None,
    environment: Optional[EnvironmentalData] = None,
    timeout: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
) -> ModeComparison:
    request = parse_request(payload)
    config = config or RoutingConfig()
    aircraft = _require_aircraft(reference, request.aircraft_id)
    return plan_all_modes(
        aircraft,
        request.legs,
        resolver=reference.resolver(config.fallback_distance_nm),
        config=config,
        environment=environment,
        pricing=request.pricing(),
        timeout=timeout,
        cancel_event=cancel_event,
    )


def select_aircraft(
    payload: RequestLike,
    *,
    reference: ReferenceData,
    config: Optional[RoutingConfig] = None,
    environment: Optional[EnvironmentalData] = None,
    timeout: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
) -> AircraftRanking:
    """Rank the requested candidates (or the whole fleet) by balanced-plan total."""

    request = parse_request(payload)
    config = config or RoutingConfig()
    candidate_ids = request.candidate_aircraft_ids or tuple(sorted(reference.aircraft))
    candidates: List[Aircraft] = []
    missing: List[RoutingFailure] = []
    for aircraft_id in candidate_ids:
        aircraft = reference.find_aircraft(aircraft_id)
        if aircraft is None:
            logger.warning("Candidate aircraft %s not found", aircraft_id)
            missing.append(
                RoutingFailure(
                    code=AIRCRAFT_NOT_FOUND,
                    message=f"Aircraft {aircraft_id} not found",
                    aircraft_id=aircraft_id,
                    mode="balanced",
                )
            )
        else:
            candidates.append(aircraft)
    return rank_aircraft(
        candidates,
        request.legs,
        resolver=reference.resolver(config.fallback_distance_nm),
        config=config,
        environment=environment,
        pricing=request.pricing(),
        timeout=timeout,
        cancel_event=cancel_event,
        prior_failures=missing,
    )
