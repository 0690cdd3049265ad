"""
Booking database model.

A customer's request to move cargo; confirmed, priced and tracked by staff.
"""

from sqlalchemy import Column, Integer, Text, DateTime, JSON, Enum
from backend.app.db.session import Base
from backend.app.models.lifecycle import LifecycleMixin
from backend.app.models.lifecycle_enums import BookingStatus, ShippingMode, enum_values
from backend.app.domain.lifecycle.transitions import BOOKING_LIFECYCLE


class Booking(LifecycleMixin, Base):
    """
    Booking model.
    
    cargo_details items: {description, cartons, weight, volume,
    product_category?, hs_code?}. total_cartons / total_weight /
    total_volume always equal the sums over that list.
    """
    __tablename__ = "bookings"
    
    lifecycle = BOOKING_LIFECYCLE
    label = "Booking"
    cargo_field = "cargo_details"
    count_key = "cartons"
    count_field = "total_cartons"
    
    status = Column(
        Enum(BookingStatus, values_callable=enum_values, native_enum=False, length=40),
        default=BookingStatus.REQUESTED,
        nullable=False,
        index=True,
    )
    
    shipping_mode = Column(
        Enum(ShippingMode, values_callable=enum_values, native_enum=False, length=10),
        default=ShippingMode.DDP,
        nullable=False,
    )
    cargo_details = Column(JSON, default=list, nullable=False)
    total_cartons = Column(Integer, default=0, nullable=False)
    special_instructions = Column(Text, nullable=True)
    requested_pickup_date = Column(DateTime(timezone=True), nullable=True)
    consolidation_id = Column(Integer, nullable=True, index=True)
    
    # Optimistic concurrency: every UPDATE is "WHERE version = :seen"
    version = Column(Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version}
    
    def __repr__(self):
        return f"<Booking(id={self.id}, number='{self.number}', status='{self.status.value}')>"
