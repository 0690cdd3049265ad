"""
Booking / Shipment Pydantic schemas.

Defines request and response models for the lifecycle endpoints.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List, Dict, Any
from backend.app.models.lifecycle_enums import (
    BookingStatus,
    ShipmentStatus,
    ShipmentCategory,
    ShippingMode,
    ProductCategory,
    PackageCategory,
)
from backend.app.domain.lifecycle.timeline import sorted_for_display


class CargoItem(BaseModel):
    """One line of a booking's cargo list."""
    description: str = Field(..., min_length=1, max_length=500)
    cartons: int = Field(..., ge=0)
    weight: float = Field(..., ge=0, allow_inf_nan=False, description="Weight in kilograms")
    volume: float = Field(..., ge=0, allow_inf_nan=False, description="Volume in cubic metres")
    product_category: Optional[ProductCategory] = None
    hs_code: Optional[str] = Field(None, max_length=20)


class PackageItem(BaseModel):
    """One line of a shipment's package list."""
    description: str = Field(..., min_length=1, max_length=500)
    packages: int = Field(..., ge=0)
    weight: float = Field(..., ge=0, allow_inf_nan=False)
    volume: float = Field(..., ge=0, allow_inf_nan=False)


class LifecycleCreateBase(BaseModel):
    shipment_category: ShipmentCategory
    product_category: ProductCategory = ProductCategory.GENERAL
    package_category: PackageCategory = PackageCategory.CARTON
    origin: str = Field(..., min_length=2, max_length=100, description="Origin country, e.g. CHINA")
    destination: str = Field(..., min_length=2, max_length=100, description="Destination country, e.g. USA")
    pickup_required: bool = False
    delivery_required: bool = False
    declared_value: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    customer_id: Optional[int] = Field(None, description="Required when staff create on behalf of a customer")


class BookingCreate(LifecycleCreateBase):
    """Schema for creating a new booking."""
    shipping_mode: ShippingMode = ShippingMode.DDP
    cargo_details: List[CargoItem] = Field(..., min_length=1)
    special_instructions: Optional[str] = Field(None, max_length=2000)
    requested_pickup_date: Optional[datetime] = None


class ShipmentCreate(LifecycleCreateBase):
    """Schema for creating a new shipment."""
    booking_id: Optional[int] = None
    packages: List[PackageItem] = Field(..., min_length=1)
    container_id: Optional[str] = Field(None, max_length=50)
    vessel_flight_number: Optional[str] = Field(None, max_length=50)


class TransitionRequest(BaseModel):
    status: str = Field(..., description="Target status (stored value or member name)")
    location: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    generate_tracking_number: bool = False


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class BookingCargoUpdate(BaseModel):
    items: List[CargoItem] = Field(..., min_length=1)


class ShipmentCargoUpdate(BaseModel):
    items: List[PackageItem] = Field(..., min_length=1)


class NoteCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)


class ChargeCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=200)
    amount: float = Field(..., allow_inf_nan=False)


class DiscountUpdate(BaseModel):
    discount: float = Field(..., ge=0, allow_inf_nan=False)


class AssignRequest(BaseModel):
    user_id: int


class SoftDeleteRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class HardDeleteRequest(BaseModel):
    confirm: bool = False


class QuoteRequest(BaseModel):
    """Inputs for a price preview without creating anything."""
    weight: float = Field(..., ge=0, allow_inf_nan=False)
    volume: float = Field(..., ge=0, allow_inf_nan=False)
    shipment_category: ShipmentCategory
    product_category: ProductCategory = ProductCategory.GENERAL
    package_category: PackageCategory = PackageCategory.CARTON
    origin: Optional[str] = None
    destination: Optional[str] = None
    pickup_required: bool = False
    delivery_required: bool = False
    declared_value: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    discount: float = Field(0.0, ge=0, allow_inf_nan=False)


class ChargeBreakdownResponse(BaseModel):
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


class TimelineEntry(BaseModel):
    event: str
    status: str
    location: Optional[str] = None
    description: Optional[str] = None
    actor_id: Optional[int] = None
    timestamp: str
    metadata: Dict[str, Any] = {}


class LifecycleResponseBase(BaseModel):
    id: int
    number: str
    tracking_number: Optional[str]
    customer_id: int
    shipment_category: ShipmentCategory
    product_category: ProductCategory
    package_category: PackageCategory
    origin: str
    destination: str
    pickup_required: bool
    delivery_required: bool
    declared_value: Optional[float]
    discount: float
    total_weight: float
    total_volume: float
    quoted_amount: Optional[float]
    currency: str
    charge_breakdown: Optional[Dict[str, Any]]
    additional_charges: List[Dict[str, Any]]
    progress_percentage: int
    timeline: List[TimelineEntry]
    assigned_to: Optional[int]
    confirmed_at: Optional[datetime]
    delivered_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    cancellation_reason: Optional[str]
    is_deleted: bool
    deleted_at: Optional[datetime]
    deletion_reason: Optional[str]
    internal_notes: Optional[List[Dict[str, Any]]] = None
    assignment_history: Optional[List[Dict[str, Any]]] = None
    version: int
    created_at: datetime
    updated_at: datetime
    
    @field_validator("timeline", mode="before")
    @classmethod
    def newest_first(cls, value):
        return sorted_for_display(value or [])
    
    class Config:
        from_attributes = True


class BookingResponse(LifecycleResponseBase):
    status: BookingStatus
    shipping_mode: ShippingMode
    cargo_details: List[Dict[str, Any]]
    total_cartons: int
    special_instructions: Optional[str]
    consolidation_id: Optional[int]


class ShipmentResponse(LifecycleResponseBase):
    status: ShipmentStatus
    booking_id: Optional[int]
    packages: List[Dict[str, Any]]
    total_packages: int
    container_id: Optional[str]
    vessel_flight_number: Optional[str]



class TrackingResponse(BaseModel):
    """Public view by tracking number."""
    number: str
    tracking_number: str
    status: str
    origin: str
    destination: str
    progress_percentage: int
    timeline: List[TimelineEntry]
    
    @field_validator("timeline", mode="before")
    @classmethod
    def newest_first(cls, value):
        return sorted_for_display(value or [])
    
    class Config:
        from_attributes = True


class BookingListResponse(BaseModel):
    items: List[BookingResponse]
    total: int
    skip: int
    limit: int


class ShipmentListResponse(BaseModel):
    items: List[ShipmentResponse]
    total: int
    skip: int
    limit: int


class StatisticsResponse(BaseModel):
    total: int
    by_status: Dict[str, int]
    in_trash: int


class EmptyTrashResponse(BaseModel):
    removed: int
