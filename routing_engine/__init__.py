"""Charter route planning and cost engine."""

from .assembler import PlanDiff, assemble_route_plan, diff_plans, trade_off_note
from .config import RoutingConfig, load_peak_days
from .cost_engine import calculate_costs
from .engine import RoutePlanRequest, compare_modes, compute_route_plan, select_aircraft
from .environment import EnvironmentalData, EnvironmentalGate, on_time_probability, risk_score
from .errors import RoutingError, RoutingFailure
from .expander import Expansion, expand_legs
from .optimizer import AircraftRanking, ModeComparison, PricingOptions, plan_all_modes, plan_mode, rank_aircraft
from .schemas import CostBreakdown, RefuelStop, RouteLeg, RoutePlan

__all__ = [
    "AircraftRanking",
    "CostBreakdown",
    "EnvironmentalData",
    "EnvironmentalGate",
    "Expansion",
    "ModeComparison",
    "PlanDiff",
    "PricingOptions",
    "RefuelStop",
    "RouteLeg",
    "RoutePlan",
    "RoutePlanRequest",
    "RoutingConfig",
    "RoutingError",
    "RoutingFailure",
    "assemble_route_plan",
    "calculate_costs",
    "compare_modes",
    "compute_route_plan",
    "diff_plans",
    "expand_legs",
    "load_peak_days",
    "on_time_probability",
    "plan_all_modes",
    "plan_mode",
    "rank_aircraft",
    "risk_score",
    "select_aircraft",
]
