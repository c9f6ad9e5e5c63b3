"""Distance, refuel cost and grouped consumption totals.

Everything here is pure: no store access, no clock. The price table is passed
in by the caller.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Hashable, Iterable, Mapping, Optional

from fleet_usage.core.config import settings
from fleet_usage.core.enums import FuelType, TripStatus


def compute_distance(start: int, end: int) -> int:
    # The engine has already checked end >= start.
    return end - start


def price_for(fuel_type: Optional[FuelType], price_table: Mapping[FuelType, float]) -> float:
    """Price per liter for ``fuel_type``. Missing entries cost 0."""
    if fuel_type is None:
        return 0.0
    return float(price_table.get(FuelType(fuel_type), 0.0) or 0.0)


def compute_refuel_cost(
    fuel_liters: Optional[float],
    fuel_type: Optional[FuelType],
    price_table: Mapping[FuelType, float],
) -> float:
    if not fuel_liters or fuel_liters <= 0 or fuel_type is None:
        return 0.0
    return fuel_liters * price_for(fuel_type, price_table)


def round_half_up(value: float, decimals: Optional[int] = None) -> float:
    if decimals is None:
        decimals = settings.COST_DECIMALS
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


@dataclass
class GroupTotals:
    key: Any
    label: str
    trip_count: int = 0
    total_km: float = 0.0
    total_liters: float = 0.0
    total_cost: float = 0.0

    @property
    def avg_consumption(self) -> float:
        """Kilometers per liter, 0 when nothing was refilled."""
        if self.total_liters <= 0:
            return 0.0
        return self.total_km / self.total_liters

    def rounded(self, decimals: Optional[int] = None) -> "GroupTotals":
        return GroupTotals(
            key=self.key,
            label=self.label,
            trip_count=self.trip_count,
            total_km=round_half_up(self.total_km, decimals),
            total_liters=round_half_up(self.total_liters, decimals),
            total_cost=round_half_up(self.total_cost, decimals),
        )


@dataclass
class Aggregation:
    rows: list = field(default_factory=list)
    totals: GroupTotals = field(default_factory=lambda: GroupTotals(key=None, label="Total"))


def aggregate_by_key(
    trips: Iterable[Any],
    key_fn: Callable[[Any], Hashable],
    label_fn: Optional[Callable[[Hashable], str]] = None,
    decimals: Optional[int] = None,
) -> Aggregation:
    """Group completed trips by ``key_fn`` and total them.

    The same routine backs the vehicle, user and purpose reports. Rows are
    rounded first and the totals row is summed from the rounded rows, so the
    displayed rows always add up to the displayed total.
    """
    groups: dict = {}
    for trip in trips:
        if trip.status != TripStatus.COMPLETED:
            continue
        key = key_fn(trip)
        group = groups.get(key)
        if group is None:
            label = label_fn(key) if label_fn else str(key)
            group = groups[key] = GroupTotals(key=key, label=label)
        group.trip_count += 1
        group.total_km += trip.distance_km or 0
        group.total_liters += trip.fuel_liters or 0.0
        group.total_cost += trip.refuel_cost or 0.0

    rows = sorted(
        (group.rounded(decimals) for group in groups.values()),
        key=lambda g: g.label,
    )
    totals = GroupTotals(key=None, label="Total")
    for row in rows:
        totals.trip_count += row.trip_count
        totals.total_km += row.total_km
        totals.total_liters += row.total_liters
        totals.total_cost += row.total_cost
    return Aggregation(rows=rows, totals=totals.rounded(decimals))
