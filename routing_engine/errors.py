"""Routing failure codes and the typed failure record returned by fan-out work."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Mapping, Optional

FailureCode = Literal[
    "AIRCRAFT_NOT_FOUND",
    "UNKNOWN_AIRPORT",
    "NO_ROUTE",
    "NO_CANDIDATE",
    "INVALID_INPUT",
    "CANCELLED",
]

AIRCRAFT_NOT_FOUND: FailureCode = "AIRCRAFT_NOT_FOUND"
UNKNOWN_AIRPORT: FailureCode = "UNKNOWN_AIRPORT"
NO_ROUTE: FailureCode = "NO_ROUTE"
NO_CANDIDATE: FailureCode = "NO_CANDIDATE"
INVALID_INPUT: FailureCode = "INVALID_INPUT"
CANCELLED: FailureCode = "CANCELLED"


class RoutingError(RuntimeError):
    """Raised when a route plan cannot be produced for an (aircraft, mode) unit."""

    def __init__(
        self,
        message: str,
        code: FailureCode,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details: Dict[str, Any] = dict(details or {})

    def __str__(self) -> str:
        return f"[{self.code}] {self.args[0]}"


@dataclass(frozen=True)
class RoutingFailure:
    """Structured per-unit failure so one bad aircraft or mode never aborts the rest."""

    code: FailureCode
    message: str
    aircraft_id: Optional[str] = None
    mode: Optional[str] = None
    details: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_error(
        cls,
        error: RoutingError,
        *,
        aircraft_id: Optional[str] = None,
        mode: Optional[str] = None,
    ) -> "RoutingFailure":
        return cls(
            code=error.code,
            message=str(error.args[0]),
            aircraft_id=aircraft_id,
            mode=mode,
            details=dict(error.details),
        )

    def as_dict(self) -> Dict[str, object]:
        return {
            "code": self.code,
            "message": self.message,
            "aircraftId": self.aircraft_id,
            "mode": self.mode,
            "details": dict(self.details),
        }
