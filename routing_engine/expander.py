"""Turn raw legs into flyable route legs, inserting refuel stops where range falls short.

Candidate stops come from a corridor around the great-circle track between a
leg's endpoints. The chain of stops is the cheapest path (under the active
optimization mode) through the graph of candidates whose hops fit the
aircraft's usable range. The corridor widens through
``RoutingConfig.detour_search_radii_nm`` until a chain exists.
"""

from __future__ import annotations

import heapq
import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from core.contracts import Aircraft, Leg
from core.geo import GeoResolver, along_track_nm, cross_track_nm, gcd_nm, midpoint

from .config import RoutingConfig
from .cost_engine import fbo_fee_at, fuel_price_at, leg_fuel_cost
from .errors import CANCELLED, INVALID_INPUT, NO_ROUTE, UNKNOWN_AIRPORT, RoutingError
from .performance import flight_time_hr, fuel_burn_gal, fuel_burn_gph, runway_adequate, usable_range_nm
from .schemas import MODES, OptimizationMode, RefuelStop, RouteLeg, to_money

logger = logging.getLogger(__name__)

AirportPredicate = Callable[[str], bool]
AirportRisk = Callable[[str], float]
Weight = Tuple[object, ...]


@dataclass(frozen=True)
class Expansion:
    """Ordered route legs and refuel stops for a whole itinerary."""

    route_legs: Tuple[RouteLeg, ...]
    refuel_stops: Tuple[RefuelStop, ...]
    warnings: Tuple[str, ...] = ()

    @property
    def stop_count(self) -> int:
        return len(self.refuel_stops)

    @property
    def total_distance_nm(self) -> float:
        return sum(leg.distance_nm for leg in self.route_legs)

    def touched_icaos(self) -> List[str]:
        """Every airport the itinerary touches, in flight order, without repeats."""

        ordered: List[str] = []
        for leg in self.route_legs:
            for code in (leg.from_icao, leg.to_icao):
                if code not in ordered:
                    ordered.append(code)
        return ordered


def _add(left: Weight, right: Weight) -> Weight:
    return tuple(a + b for a, b in zip(left, right))  # type: ignore[operator]


def _no_risk(_: str) -> float:
    return 0.0


def _never(_: str) -> bool:
    return False


class _LegPlanner:
    def __init__(
        self,
        aircraft: Aircraft,
        mode: OptimizationMode,
        *,
        resolver: GeoResolver,
        config: RoutingConfig,
        airport_risk: Optional[AirportRisk],
        deicing_required: Optional[AirportPredicate],
        fuel_price_override: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> None:
        self.aircraft = aircraft
        self.mode = mode
        self.resolver = resolver
        self.config = config
        self.airport_risk = airport_risk or _no_risk
        self.deicing_required = deicing_required or _never
        self.fuel_price_override = fuel_price_override
        self.cancel_event = cancel_event
        self.usable_range = usable_range_nm(aircraft, config)
        self.burn_gph = fuel_burn_gph(aircraft)
        self._distances: Dict[Tuple[str, str], float] = {}

    # geometry -----------------------------------------------------------

    def distance(self, a: str, b: str) -> float:
        key = (a, b) if a <= b else (b, a)
        cached = self._distances.get(key)
        if cached is None:
            cached = self.resolver.distance(a, b)
            self._distances[key] = cached
        return cached

    def check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise RoutingError("Route computation cancelled", CANCELLED)

    def corridor_candidates(self, origin: str, destination: str, radius_nm: float) -> List[str]:
        start = self.resolver.airport(origin)
        end = self.resolver.airport(destination)
        direct = self.distance(origin, destination)
        mid_lat, mid_lon = midpoint(start, end)
        # Anything within radius_nm of the track lies inside this circle.
        reach = direct / 2 + radius_nm + 1.0
        candidates = []
        for code, airport in self.resolver.airports.items():
            if code in (origin, destination):
                continue
            if gcd_nm(mid_lat, mid_lon, airport.lat, airport.lon) > reach:
                continue
            if not airport.fuel_available:
                continue
            if not runway_adequate(airport.longest_runway_ft, self.aircraft):
                continue
            if cross_track_nm(start, end, airport) > radius_nm:
                continue
            along = along_track_nm(start, end, airport)
            if not 0 < along < direct:
                continue
            candidates.append(code)
        return sorted(candidates)

    def clearance_required(self, previous: str, stop: str) -> bool:
        a = self.resolver.airport(previous)
        b = self.resolver.airport(stop)
        if a is None or b is None or not a.country or not b.country:
            return False
        return a.country != b.country

    def hop_allowed(self, previous: str, stop: str, destination: str) -> bool:
        if self.distance(previous, stop) > self.usable_range:
            return False
        if stop == destination:
            return True
        if self.clearance_required(previous, stop):
            airport = self.resolver.airport(stop)
            return bool(airport and airport.customs_available)
        return True

    def ground_time_min(self, previous: str, stop: str) -> int:
        if self.clearance_required(previous, stop) or self.deicing_required(stop):
            return self.config.ground_time_extended_min
        return self.config.ground_time_standard_min

    # weights ------------------------------------------------------------

    def segment_cost(self, a: str, b: str) -> Decimal:
        hours = flight_time_hr(self.distance(a, b), self.aircraft)
        price = fuel_price_at(a, self.resolver, self.config, self.fuel_price_override)
        return leg_fuel_cost(hours, self.burn_gph, price)

    def zero_weight(self) -> Weight:
        if self.mode == "cost":
            return (Decimal("0"), 0.0)
        if self.mode == "time":
            return (0.0, Decimal("0"))
        return (0.0,)

    def edge_weight(self, a: str, b: str, destination: str, refs: Tuple[float, float]) -> Weight:
        hours = flight_time_hr(self.distance(a, b), self.aircraft)
        cost = self.segment_cost(a, b) + fbo_fee_at(b, self.resolver, self.config)
        if b == destination:
            ground_hr = 0.0
            risk = 0.0
        else:
            ground_hr = self.ground_time_min(a, b) / 60.0
            risk = self.airport_risk(b)
        if self.mode == "cost":
            return (cost, risk)
        if self.mode == "time":
            return (hours + ground_hr, cost)
        ref_cost, ref_time = refs
        w_cost, w_time, w_risk = self.config.balanced_weights
        return (w_cost * float(cost) / ref_cost + w_time * (hours + ground_hr) / ref_time + w_risk * risk,)

    def reference_values(self, origin: str, destination: str) -> Tuple[float, float]:
        """Direct-leg cost and time used to normalize balanced weights."""

        ref_cost = float(self.segment_cost(origin, destination) + fbo_fee_at(destination, self.resolver, self.config))
        ref_time = flight_time_hr(self.distance(origin, destination), self.aircraft)
        return (ref_cost or 1.0, ref_time or 1.0)

    # search -------------------------------------------------------------

    def neighbours(self, node: str, candidates: Sequence[str], origin: str, destination: str) -> List[str]:
        options = []
        for code in list(candidates) + [destination]:
            if code in (node, origin):
                continue
            if self.hop_allowed(node, code, destination):
                options.append(code)
        return sorted(options)

    def shortest_chain(self, origin: str, destination: str, candidates: Sequence[str]) -> Optional[List[str]]:
        refs = self.reference_values(origin, destination)
        zero = self.zero_weight()
        best: Dict[str, Weight] = {origin: zero}
        previous: Dict[str, str] = {}
        visited = set()
        heap: List[Tuple[Weight, str]] = [(zero, origin)]
        while heap:
            self.check_cancelled()
            weight, node = heapq.heappop(heap)
            if node in visited:
                continue
            visited.add(node)
            if node == destination:
                break
            for nxt in self.neighbours(node, candidates, origin, destination):
                if nxt in visited:
                    continue
                tentative = _add(weight, self.edge_weight(node, nxt, destination, refs))
                if nxt not in best or tentative < best[nxt]:
                    best[nxt] = tentative
                    previous[nxt] = node
                    heapq.heappush(heap, (tentative, nxt))
        if destination not in visited:
            return None
        chain = [destination]
        while chain[-1] != origin:
            chain.append(previous[chain[-1]])
        chain.reverse()
        return chain

    def shortfall(self, origin: str, destination: str, candidates: Sequence[str]) -> Tuple[str, float]:
        """Closest point to the destination reachable from the origin, and how far short it falls."""

        reachable = {origin}
        queue = deque([origin])
        while queue:
            node = queue.popleft()
            for nxt in candidates:
                if nxt not in reachable and self.hop_allowed(node, nxt, destination):
                    reachable.add(nxt)
                    queue.append(nxt)
        closest = min(sorted(reachable), key=lambda code: self.distance(code, destination))
        return closest, self.distance(closest, destination) - self.usable_range

    def alternative_for(self, previous: str, stop: str, nxt: str, candidates: Sequence[str]) -> Optional[str]:
        options = []
        for code in candidates:
            if code in (previous, stop, nxt):
                continue
            if self.distance(previous, code) > self.usable_range or self.distance(code, nxt) > self.usable_range:
                continue
            options.append((self.distance(previous, code) + self.distance(code, nxt), code))
        if not options:
            return None
        return min(options)[1]

    # expansion ----------------------------------------------------------

    def plan_chain(self, leg: Leg, warnings: List[str]) -> Tuple[List[str], List[str]]:
        """Return the airport chain for ``leg`` plus the corridor candidates it was drawn from."""

        origin, destination = leg.from_icao, leg.to_icao
        direct = self.distance(origin, destination)
        unknown = [code for code in (origin, destination) if not self.resolver.known_airport(code)]
        if unknown:
            message = (
                f"Unknown airport(s) {', '.join(unknown)}: using fallback distance "
                f"{self.resolver.fallback_distance_nm:.0f} nm for {origin}-{destination}"
            )
            if direct > self.usable_range:
                raise RoutingError(
                    f"{message}, which exceeds usable range {self.usable_range:.0f} nm "
                    "and cannot be subdivided",
                    UNKNOWN_AIRPORT,
                    {"airports": unknown, "from": origin, "to": destination},
                )
            logger.warning(message)
            warnings.append(message)
            return [origin, destination], []

        if direct <= self.usable_range:
            return [origin, destination], []

        candidates: List[str] = []
        for radius in self.config.detour_search_radii_nm:
            self.check_cancelled()
            candidates = self.corridor_candidates(origin, destination, radius)
            logger.debug(
                "%s-%s: %d candidate stops within %.0f nm of track", origin, destination, len(candidates), radius
            )
            chain = self.shortest_chain(origin, destination, candidates)
            if chain is not None:
                return chain, candidates

        closest, short_by = self.shortfall(origin, destination, candidates)
        raise RoutingError(
            f"No refuel chain from {origin} to {destination} within "
            f"{self.config.max_search_radius_nm:.0f} nm of the direct track; best reachable point "
            f"{closest} is {short_by:.0f} nm beyond usable range {self.usable_range:.0f} nm",
            NO_ROUTE,
            {
                "from": origin,
                "to": destination,
                "closest_icao": closest,
                "shortfall_nm": round(short_by, 1),
                "usable_range_nm": round(self.usable_range, 1),
            },
        )

    def expand_leg(
        self, index: int, leg: Leg, warnings: List[str]
    ) -> Tuple[List[RouteLeg], List[RefuelStop]]:
        chain, candidates = self.plan_chain(leg, warnings)
        origin, destination = chain[0], chain[-1]
        direct = self.distance(origin, destination)
        has_stops = len(chain) > 2
        departure = leg.departure_utc()

        route_legs: List[RouteLeg] = []
        stops: List[RefuelStop] = []
        for position in range(len(chain) - 1):
            a, b = chain[position], chain[position + 1]
            distance = self.distance(a, b)
            hours = flight_time_hr(distance, self.aircraft)
            arrival = departure + timedelta(hours=hours)
            route_legs.append(
                RouteLeg(
                    leg_index=index,
                    from_icao=a,
                    to_icao=b,
                    distance_nm=distance,
                    flight_time_hr=hours,
                    fuel_burn_gal=fuel_burn_gal(distance, self.aircraft),
                    fuel_cost_usd=self.segment_cost(a, b),
                    is_fuel_stop_leg=has_stops,
                    departure_utc=departure,
                    arrival_utc=arrival,
                )
            )
            if b == destination:
                break
            stop = self.build_stop(index, a, b, chain[position + 2], leg, direct, candidates)
            stops.append(stop)
            departure = arrival + timedelta(minutes=stop.ground_time_min)
        return route_legs, stops

    def build_stop(
        self,
        index: int,
        previous: str,
        code: str,
        nxt: str,
        leg: Leg,
        direct: float,
        candidates: Sequence[str],
    ) -> RefuelStop:
        destination = leg.to_icao
        airport = self.resolver.airport(code)
        inbound = self.distance(previous, code)
        detour = inbound + self.distance(code, destination) - self.distance(previous, destination)
        uplift = fuel_burn_gal(inbound, self.aircraft)
        price = fuel_price_at(code, self.resolver, self.config, self.fuel_price_override)
        alternative = self.alternative_for(previous, code, nxt, candidates)
        reason = (
            f"Range insufficiency: {leg.from_icao}-{destination} direct {direct:.0f} nm exceeds "
            f"usable range {self.usable_range:.0f} nm; "
        )
        reason += f"chosen over {alternative}" if alternative else "no alternative within range"
        return RefuelStop(
            icao=code,
            airport_name=airport.name if airport else "",
            leg_index=index,
            added_distance_nm=detour,
            fuel_price_usd_gal=price,
            fuel_uplift_gal=uplift,
            fuel_cost_usd=to_money(Decimal(str(uplift)) * Decimal(str(price))),
            fbo_fee_usd=fbo_fee_at(code, self.resolver, self.config),
            ground_time_min=self.ground_time_min(previous, code),
            customs=bool(airport and airport.customs_available),
            deicing=bool(airport and airport.deicing_available),
            reason=reason,
        )

    def expand(self, legs: Sequence[Leg]) -> Expansion:
        warnings: List[str] = []
        route_legs: List[RouteLeg] = []
        stops: List[RefuelStop] = []
        for index, leg in enumerate(legs):
            self.check_cancelled()
            leg_routes, leg_stops = self.expand_leg(index, leg, warnings)
            route_legs.extend(leg_routes)
            stops.extend(leg_stops)
        logger.debug(
            "Expanded %d legs for %s (%s): %d route legs, %d stops",
            len(legs),
            self.aircraft.id,
            self.mode,
            len(route_legs),
            len(stops),
        )
        return Expansion(route_legs=tuple(route_legs), refuel_stops=tuple(stops), warnings=tuple(warnings))


def expand_legs(
    legs: Sequence[Leg],
    aircraft: Aircraft,
    mode: OptimizationMode,
    *,
    resolver: GeoResolver,
    config: Optional[RoutingConfig] = None,
    airport_risk: Optional[AirportRisk] = None,
    deicing_required: Optional[AirportPredicate] = None,
    fuel_price_override: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Expansion:
    """Expand ``legs`` into route legs no longer than the aircraft's usable range.

    Raises :class:`RoutingError` with ``NO_ROUTE`` when no refuel chain exists
    inside the widest search corridor, ``UNKNOWN_AIRPORT`` when a leg touches
    an unknown airport and the fallback distance is out of range, and
    ``INVALID_INPUT`` for an empty itinerary or unsupported mode.
    """

    if not legs:
        raise RoutingError("Itinerary has no legs", INVALID_INPUT)
    if mode not in MODES:
        raise RoutingError(f"Unsupported optimization mode: {mode!r}", INVALID_INPUT)
    planner = _LegPlanner(
        aircraft,
        mode,
        resolver=resolver,
        config=config or RoutingConfig(),
        airport_risk=airport_risk,
        deicing_required=deicing_required,
        fuel_price_override=fuel_price_override,
        cancel_event=cancel_event,
    )
    return planner.expand(legs)
