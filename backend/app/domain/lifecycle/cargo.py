"""
Cargo list aggregation.

total_<count> / total_weight / total_volume are derived values: they are
recomputed whenever the cargo list is replaced, never edited directly.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, List

from backend.app.core.exceptions import ValidationFailedError


@dataclass(frozen=True)
class CargoTotals:
    count: int
    weight: float
    volume: float


def _number(item: Dict[str, Any], key: str, index: int) -> float:
    value = item.get(key, 0) or 0
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ValidationFailedError(
            f"Cargo item {index} has a non-numeric {key}",
            field=f"cargo[{index}].{key}"
        )
    if not math.isfinite(value):
        raise ValidationFailedError(
            f"Cargo item {index} has a non-finite {key}",
            field=f"cargo[{index}].{key}"
        )
    if value < 0:
        raise ValidationFailedError(
            f"Cargo item {index} has negative {key}",
            field=f"cargo[{index}].{key}"
        )
    return value


def _count(item: Dict[str, Any], key: str, index: int) -> int:
    value = _number(item, key, index)
    if not value.is_integer():
        raise ValidationFailedError(
            f"Cargo item {index} has a fractional {key}",
            field=f"cargo[{index}].{key}"
        )
    return int(value)


def compute_totals(items: List[Dict[str, Any]], count_key: str) -> CargoTotals:
    count = 0
    weight = 0.0
    volume = 0.0
    for index, item in enumerate(items):
        count += _count(item, count_key, index)
        weight += _number(item, "weight", index)
        volume += _number(item, "volume", index)
    return CargoTotals(count=count, weight=round(weight, 3), volume=round(volume, 3))


def replace_cargo(entity, items: List[Dict[str, Any]]) -> CargoTotals:
    """Replace the entity's cargo list and its aggregates together."""
    totals = compute_totals(items, entity.count_key)
    setattr(entity, entity.cargo_field, [dict(item) for item in items])
    setattr(entity, entity.count_field, totals.count)
    entity.total_weight = totals.weight
    entity.total_volume = totals.volume
    return totals
