"""
Charge Calculator (Domain Logic).

Pure function from booking attributes to a fee breakdown. Amounts are
accumulated as Decimal and rounded to cents only in the returned
breakdown.

Rules:
1. Freight = max(weight x rate per kg, volume x rate per cbm) for the
   shipment category (actual vs volumetric weight).
2. Product and package surcharges go to their fee buckets, never freight.
3. The route multiplier applies to freight only.
4. Customs = 8% of the route-adjusted freight.
5. Total = adjusted freight + every bucket - discount.
"""

from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

from backend.app.core.exceptions import ValidationFailedError
from backend.app.models.lifecycle_enums import ShipmentCategory, ProductCategory, PackageCategory

CENT = Decimal("0.01")

RATE_PER_KG = {
    ShipmentCategory.AIR_FREIGHT: Decimal("5.5"),
    ShipmentCategory.SEA_FREIGHT: Decimal("1.2"),
    ShipmentCategory.EXPRESS_COURIER: Decimal("8.0"),
}

RATE_PER_CBM = {
    ShipmentCategory.AIR_FREIGHT: Decimal("1800"),
    ShipmentCategory.SEA_FREIGHT: Decimal("120"),
    ShipmentCategory.EXPRESS_COURIER: Decimal("2200"),
}

BASE_HANDLING_FEE = Decimal("150")
PICKUP_FEE = Decimal("75")
DELIVERY_FEE = Decimal("100")
CUSTOMS_RATE = Decimal("0.08")

ROUTE_MULTIPLIERS = {
    "CHINA_USA": Decimal("1.0"),
    "CHINA_UK": Decimal("1.1"),
    "CHINA_CANADA": Decimal("1.05"),
    "THAILAND_USA": Decimal("1.05"),
    "THAILAND_UK": Decimal("1.0"),
    "THAILAND_CANADA": Decimal("1.0"),
}
DEFAULT_ROUTE_MULTIPLIER = Decimal("1.0")

# bucket -> amount added
PRODUCT_SURCHARGES = {
    ProductCategory.HAZARDOUS: {"handling": Decimal("200"), "other": Decimal("100")},
    ProductCategory.TEMPERATURE_CONTROLLED: {"warehouse": Decimal("300"), "other": Decimal("150")},
    ProductCategory.FRAGILE: {"handling": Decimal("100")},
    ProductCategory.OVERSIZED: {"handling": Decimal("250")},
    ProductCategory.PERISHABLE: {"warehouse": Decimal("200"), "other": Decimal("100")},
}

# product -> (rate on declared value, rate on raw freight when no declared value)
INSURANCE_RATES = {
    ProductCategory.HAZARDOUS: (Decimal("0.02"), Decimal("0.1")),
    ProductCategory.HIGH_VALUE: (Decimal("0.015"), Decimal("0.08")),
}

PACKAGE_SURCHARGES = {
    PackageCategory.WOODEN_CRATE: {"other": Decimal("50")},
    PackageCategory.PALLET: {"warehouse": Decimal("25")},
    PackageCategory.DRUM: {"handling": Decimal("75")},
    PackageCategory.CYLINDER: {"handling": Decimal("60")},
}


@dataclass(frozen=True)
class ChargeRequest:
    weight: float
    volume: float
    shipment_category: ShipmentCategory
    product_category: ProductCategory = ProductCategory.GENERAL
    package_category: PackageCategory = PackageCategory.CARTON
    origin: Optional[str] = None
    destination: Optional[str] = None
    pickup_required: bool = False
    delivery_required: bool = False
    declared_value: Optional[float] = None
    discount: float = 0.0
    currency: str = "USD"


@dataclass(frozen=True)
class ChargeBreakdown:
    freight_cost: float
    handling_fee: float
    warehouse_fee: float
    customs_fee: float
    insurance_fee: float
    pickup_fee: float
    delivery_fee: float
    other_charges: float
    discount: float
    route_multiplier: float
    total_amount: float
    currency: str
    
    def to_dict(self) -> Dict:
        return asdict(self)


def _decimal(value) -> Decimal:
    return Decimal(str(value or 0))


def _money(value: Decimal) -> float:
    return float(value.quantize(CENT, rounding=ROUND_HALF_UP))


def route_key(origin: Optional[str], destination: Optional[str]) -> str:
    def norm(place):
        return (place or "").strip().upper().replace(" ", "_")
    return f"{norm(origin)}_{norm(destination)}"


def route_multiplier(origin: Optional[str], destination: Optional[str]) -> Decimal:
    return ROUTE_MULTIPLIERS.get(route_key(origin, destination), DEFAULT_ROUTE_MULTIPLIER)


def chargeable_freight(weight, volume, category: ShipmentCategory) -> Decimal:
    """Greater of actual-weight and volumetric freight, before route adjustment."""
    if category not in RATE_PER_KG:
        raise ValidationFailedError(f"No rates for shipment category '{category}'", field="shipment_category")
    by_weight = _decimal(weight) * RATE_PER_KG[category]
    by_volume = _decimal(volume) * RATE_PER_CBM[category]
    return max(by_weight, by_volume)


def calculate_charges(request: ChargeRequest) -> ChargeBreakdown:
    if (request.weight or 0) < 0 or (request.volume or 0) < 0:
        raise ValidationFailedError("Weight and volume must not be negative", field="cargo")
    if (request.discount or 0) < 0:
        raise ValidationFailedError("Discount must not be negative", field="discount")
    
    buckets = {
        "handling": BASE_HANDLING_FEE,
        "warehouse": Decimal("0"),
        "insurance": Decimal("0"),
        "other": Decimal("0"),
        "pickup": PICKUP_FEE if request.pickup_required else Decimal("0"),
        "delivery": DELIVERY_FEE if request.delivery_required else Decimal("0"),
    }
    
    freight = chargeable_freight(request.weight, request.volume, request.shipment_category)
    
    for bucket, amount in PRODUCT_SURCHARGES.get(request.product_category, {}).items():
        buckets[bucket] += amount
    
    if request.product_category in INSURANCE_RATES:
        declared_rate, freight_rate = INSURANCE_RATES[request.product_category]
        if request.declared_value:
            buckets["insurance"] = _decimal(request.declared_value) * declared_rate
        else:
            buckets["insurance"] = freight * freight_rate
    
    for bucket, amount in PACKAGE_SURCHARGES.get(request.package_category, {}).items():
        buckets[bucket] += amount
    
    multiplier = route_multiplier(request.origin, request.destination)
    adjusted_freight = freight * multiplier
    customs = adjusted_freight * CUSTOMS_RATE
    discount = _decimal(request.discount)
    
    total = adjusted_freight + customs + sum(buckets.values()) - discount
    
    return ChargeBreakdown(
        freight_cost=_money(adjusted_freight),
        handling_fee=_money(buckets["handling"]),
        warehouse_fee=_money(buckets["warehouse"]),
        customs_fee=_money(customs),
        insurance_fee=_money(buckets["insurance"]),
        pickup_fee=_money(buckets["pickup"]),
        delivery_fee=_money(buckets["delivery"]),
        other_charges=_money(buckets["other"]),
        discount=_money(discount),
        route_multiplier=float(multiplier),
        total_amount=_money(total),
        currency=request.currency,
    )


def request_for(entity, currency: Optional[str] = None) -> ChargeRequest:
    """Build a ChargeRequest from a Booking or Shipment."""
    return ChargeRequest(
        weight=entity.total_weight or 0,
        volume=entity.total_volume or 0,
        shipment_category=entity.shipment_category,
        product_category=entity.product_category or ProductCategory.GENERAL,
        package_category=entity.package_category or PackageCategory.CARTON,
        origin=entity.origin,
        destination=entity.destination,
        pickup_required=bool(entity.pickup_required),
        delivery_required=bool(entity.delivery_required),
        declared_value=entity.declared_value,
        discount=entity.discount or 0,
        currency=currency or entity.currency or "USD",
    )
