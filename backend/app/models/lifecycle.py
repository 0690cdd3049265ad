"""
Columns shared by Booking and Shipment.

Both documents carry the same status history, trash, assignment and
pricing fields; each concrete model adds its own status enum, cargo
list and version counter.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, JSON, Text, Enum
from backend.app.models.lifecycle_enums import (
    ShipmentCategory,
    ProductCategory,
    PackageCategory,
    enum_values,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LifecycleMixin:
    """
    Shared lifecycle document fields.
    
    JSON list columns (timeline, assignment_history, internal_notes,
    additional_charges) are never mutated in place: every change assigns
    a new list so SQLAlchemy sees the attribute as dirty.
    """
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    number = Column(String(20), unique=True, nullable=False, index=True)
    tracking_number = Column(String(40), unique=True, nullable=True, index=True)
    
    # Ownership
    customer_id = Column(Integer, nullable=False, index=True)
    
    # Route and classification
    shipment_category = Column(
        Enum(ShipmentCategory, values_callable=enum_values, native_enum=False, length=30),
        nullable=False,
        index=True,
    )
    product_category = Column(
        Enum(ProductCategory, values_callable=enum_values, native_enum=False, length=30),
        default=ProductCategory.GENERAL,
        nullable=False,
    )
    package_category = Column(
        Enum(PackageCategory, values_callable=enum_values, native_enum=False, length=30),
        default=PackageCategory.CARTON,
        nullable=False,
    )
    origin = Column(String(100), nullable=False, index=True)
    destination = Column(String(100), nullable=False, index=True)
    pickup_required = Column(Boolean, default=False, nullable=False)
    delivery_required = Column(Boolean, default=False, nullable=False)
    declared_value = Column(Float, nullable=True)
    discount = Column(Float, default=0.0, nullable=False)
    
    # Aggregates (always recomputed from the cargo list)
    total_weight = Column(Float, default=0.0, nullable=False)
    total_volume = Column(Float, default=0.0, nullable=False)
    
    # Pricing
    quoted_amount = Column(Float, nullable=True)
    currency = Column(String(3), default="USD", nullable=False)
    charge_breakdown = Column(JSON, nullable=True)
    additional_charges = Column(JSON, default=list, nullable=False)
    
    # Append-only history
    timeline = Column(JSON, default=list, nullable=False)
    
    # Assignment
    assigned_to = Column(Integer, nullable=True, index=True)
    assignment_history = Column(JSON, default=list, nullable=False)
    internal_notes = Column(JSON, default=list, nullable=False)
    
    # Status dates
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    actual_departure = Column(DateTime(timezone=True), nullable=True)
    actual_arrival = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    
    # Cancellation
    cancelled_by = Column(Integer, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    
    # Trash
    is_deleted = Column(Boolean, default=False, nullable=False, index=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    deleted_by = Column(Integer, nullable=True)
    deletion_reason = Column(Text, nullable=True)
    restored_at = Column(DateTime(timezone=True), nullable=True)
    restored_by = Column(Integer, nullable=True)
    
    # Actors
    created_by = Column(Integer, nullable=True)
    updated_by = Column(Integer, nullable=True)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    
    @property
    def progress_percentage(self) -> int:
        return self.lifecycle.progress_percentage(self.status)
