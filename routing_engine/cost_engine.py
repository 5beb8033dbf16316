"""Deterministic cost model: route legs and stops in, itemized quotation out.

All money is :class:`~decimal.Decimal` quantized to cents with ``ROUND_HALF_UP``
at the line-item level, so ``subtotal`` equals the sum of the cost fields and
``total == subtotal + margin_amount + tax`` exactly.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from core.contracts import Aircraft, Leg, country_for_icao
from core.geo import GeoResolver
from core.reposition import reposition_estimate

from .config import RoutingConfig
from .errors import INVALID_INPUT, RoutingError
from .performance import cruise_speed_kts, fuel_burn_gph
from .schemas import ZERO, CostBreakdown, LineItem, RefuelStop, RouteLeg, to_money

logger = logging.getLogger(__name__)


def _reject_negative(name: str, value: Optional[float]) -> None:
    if value is not None and value < 0:
        raise RoutingError(f"{name} must not be negative (got {value})", INVALID_INPUT, {name: value})


def fuel_price_at(
    icao: str,
    resolver: GeoResolver,
    config: RoutingConfig,
    override: Optional[float] = None,
) -> float:
    """Price per gallon when departing ``icao``: override, local price, then default."""

    if override is not None:
        _reject_negative("fuel_price_override", override)
        return float(override)
    airport = resolver.airport(icao)
    if airport is not None and airport.fuel_price_usd_gal is not None:
        return airport.fuel_price_usd_gal
    _reject_negative("default_fuel_price_usd_gal", config.default_fuel_price_usd_gal)
    return config.default_fuel_price_usd_gal


def fbo_fee_at(icao: str, resolver: GeoResolver, config: RoutingConfig) -> Decimal:
    airport = resolver.airport(icao)
    if airport is not None and airport.fbo_fee_usd is not None:
        return to_money(airport.fbo_fee_usd)
    _reject_negative("default_fbo_fee_usd", config.default_fbo_fee_usd)
    return to_money(config.default_fbo_fee_usd)


def leg_fuel_cost(flight_time_hr: float, burn_gph: float, price_usd_gal: float) -> Decimal:
    _reject_negative("fuel_burn_gph", burn_gph)
    return to_money(Decimal(str(flight_time_hr)) * Decimal(str(burn_gph)) * Decimal(str(price_usd_gal)))


def airport_country(icao: str, resolver: GeoResolver) -> Optional[str]:
    airport = resolver.airport(icao)
    if airport is not None and airport.country:
        return airport.country
    return country_for_icao(icao)


def _leg_qualifies(leg: Leg, resolver: GeoResolver, config: RoutingConfig) -> bool:
    origin = airport_country(leg.from_icao, resolver)
    destination = airport_country(leg.to_icao, resolver)
    if config.international_basis == "itinerary":
        home = config.home_jurisdiction.upper()
        return any(country is not None and country != home for country in (origin, destination))
    return origin is not None and destination is not None and origin != destination


def _permit_jurisdiction(leg: Leg, resolver: GeoResolver, config: RoutingConfig) -> Optional[str]:
    home = config.home_jurisdiction.upper()
    destination = airport_country(leg.to_icao, resolver)
    origin = airport_country(leg.from_icao, resolver)
    if destination and destination != home:
        return destination
    if origin and origin != home:
        return origin
    return destination


def international_legs(legs: Sequence[Leg], resolver: GeoResolver, config: RoutingConfig) -> List[int]:
    """Indexes of raw legs that need a permit under ``config.international_basis``."""

    return [index for index, leg in enumerate(legs) if _leg_qualifies(leg, resolver, config)]


def crew_nights(legs: Sequence[Leg], aircraft: Aircraft) -> int:
    dates = [leg.date for leg in legs]
    nights = (max(dates) - min(dates)).days
    home = aircraft.home_base_icao
    if home and legs[-1].to_icao != home:
        nights += 1
    return nights


def _sum(items: Sequence[LineItem]) -> Decimal:
    return sum((item.amount for item in items), ZERO)


def calculate_costs(
    route_legs: Sequence[RouteLeg],
    refuel_stops: Sequence[RefuelStop],
    aircraft: Aircraft,
    *,
    legs: Sequence[Leg],
    margin_pct: float,
    catering_requested: bool,
    is_international: Optional[bool],
    resolver: GeoResolver,
    config: Optional[RoutingConfig] = None,
    fuel_price_override: Optional[float] = None,
    tax_rate: Optional[float] = None,
) -> CostBreakdown:
    """Price a flyable itinerary.

    ``route_legs`` drive fuel and FBO fees. Permits, crew overnights,
    catering and the peak-day surcharge depend only on the raw ``legs``, so
    two routings of the same trip differ only in their route-dependent
    charges. ``is_international=None`` derives the flag from airport
    countries.
    """

    config = config or RoutingConfig()
    if not route_legs or not legs:
        raise RoutingError("Cannot price an empty itinerary", INVALID_INPUT)
    _reject_negative("margin_pct", margin_pct)
    _reject_negative("tax_rate", tax_rate)
    _reject_negative("fuel_price_override", fuel_price_override)
    burn = fuel_burn_gph(aircraft)
    _reject_negative("fuel_burn_gph", burn)

    fuel_items = [
        LineItem(
            category="fuel",
            label=f"Fuel {leg.from_icao}-{leg.to_icao}",
            amount=leg_fuel_cost(
                leg.flight_time_hr,
                burn,
                fuel_price_at(leg.from_icao, resolver, config, fuel_price_override),
            ),
            leg=leg.leg_index,
        )
        for leg in route_legs
    ]

    first = route_legs[0]
    fbo_items = [
        LineItem(
            category="fbo",
            label=f"FBO {first.from_icao}",
            amount=fbo_fee_at(first.from_icao, resolver, config),
            leg=first.leg_index,
        )
    ]
    fbo_items.extend(
        LineItem(
            category="fbo",
            label=f"FBO {leg.to_icao}",
            amount=fbo_fee_at(leg.to_icao, resolver, config),
            leg=leg.leg_index,
        )
        for leg in route_legs
    )

    repositioning_items: List[LineItem] = []
    repositioning_hours = 0.0
    estimate = reposition_estimate(
        aircraft.home_base_icao,
        first.from_icao,
        cruise_speed_kts(aircraft),
        resolver,
        route_factor=config.repositioning_route_factor,
    )
    if estimate is not None:
        repositioning_hours = estimate.hours
        rate = config.repositioning_rate_for(aircraft.category.value)
        _reject_negative("repositioning_hourly_usd", rate)
        repositioning_items.append(
            LineItem(
                category="repositioning",
                label=f"Repositioning {estimate.from_icao}-{estimate.to_icao}",
                amount=to_money(Decimal(str(estimate.hours)) * Decimal(str(rate))),
            )
        )
        if estimate.used_fallback:
            logger.warning(
                "Repositioning %s-%s priced on fallback distance", estimate.from_icao, estimate.to_icao
            )

    permit_items: List[LineItem] = []
    qualifying = international_legs(legs, resolver, config)
    if is_international is None:
        is_international = bool(qualifying)
    if is_international:
        if qualifying:
            for index in qualifying:
                jurisdiction = _permit_jurisdiction(legs[index], resolver, config)
                fee = config.permit_fee_for(jurisdiction)
                _reject_negative("permit_fee_usd", fee)
                permit_items.append(
                    LineItem(
                        category="permits",
                        label=f"Permit {jurisdiction or 'unknown'}",
                        amount=to_money(fee),
                        leg=index,
                    )
                )
        else:
            permit_items.append(
                LineItem(
                    category="permits",
                    label="Permit (declared international)",
                    amount=to_money(config.default_permit_fee_usd),
                )
            )

    crew_items: List[LineItem] = []
    nights = crew_nights(legs, aircraft)
    if nights > 0:
        crew_items.append(
            LineItem(
                category="crew_overnight",
                label=f"Crew overnight {nights} night(s) x {config.crew_count} crew",
                amount=to_money(
                    Decimal(nights) * Decimal(config.crew_count) * Decimal(str(config.crew_overnight_rate_usd))
                ),
            )
        )

    catering_items: List[LineItem] = []
    if catering_requested:
        catering_items = [
            LineItem(
                category="catering",
                label=f"Catering {leg.from_icao}-{leg.to_icao}",
                amount=to_money(config.catering_per_leg_usd),
                leg=index,
            )
            for index, leg in enumerate(legs)
        ]

    fuel_cost = _sum(fuel_items)
    fbo_fees = _sum(fbo_items)
    repositioning_cost = _sum(repositioning_items)
    permit_fees = _sum(permit_items)
    crew_cost = _sum(crew_items)
    catering_cost = _sum(catering_items)
    base = fuel_cost + fbo_fees + repositioning_cost + permit_fees + crew_cost + catering_cost

    peak_items: List[LineItem] = []
    peak_days = sorted({leg.date for leg in legs if config.is_peak_day(leg.date)})
    if peak_days:
        peak_items.append(
            LineItem(
                category="peak_day",
                label="Peak-day surcharge " + ", ".join(day.isoformat() for day in peak_days),
                amount=to_money(base * Decimal(str(config.peak_day_surcharge_rate))),
            )
        )
    peak_surcharge = _sum(peak_items)

    subtotal = base + peak_surcharge
    margin_amount = to_money(subtotal * Decimal(str(margin_pct)) / Decimal(100))
    if tax_rate is None:
        tax_rate = config.tax_rate_for(airport_country(first.from_icao, resolver))
    _reject_negative("tax_rate", tax_rate)
    tax = to_money((subtotal + margin_amount) * Decimal(str(tax_rate)))
    total = subtotal + margin_amount + tax

    line_items = (
        fuel_items + fbo_items + repositioning_items + permit_items + crew_items + catering_items + peak_items
    )
    breakdown = CostBreakdown(
        fuel_cost=fuel_cost,
        fbo_fees=fbo_fees,
        repositioning_cost=repositioning_cost,
        repositioning_hours=repositioning_hours,
        permit_fees=permit_fees,
        crew_overnight_cost=crew_cost,
        catering_cost=catering_cost,
        peak_day_surcharge=peak_surcharge,
        subtotal=subtotal,
        margin_pct=float(margin_pct),
        margin_amount=margin_amount,
        tax_rate=float(tax_rate),
        tax=tax,
        total=total,
        line_items=tuple(line_items),
    )
    logger.debug("Priced %s: subtotal %s total %s", aircraft.id, subtotal, total)
    return breakdown


def category_totals(breakdown: CostBreakdown) -> Dict[str, Decimal]:
    """Line items regrouped by category."""

    totals: Dict[str, Decimal] = {}
    for item in breakdown.line_items:
        totals[item.category] = totals.get(item.category, ZERO) + item.amount
    return totals
