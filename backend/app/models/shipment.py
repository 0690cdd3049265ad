"""
Shipment database model.
"""

from sqlalchemy import Column, Integer, String, JSON, Enum
from backend.app.db.session import Base
from backend.app.models.lifecycle import LifecycleMixin
from backend.app.models.lifecycle_enums import ShipmentStatus, enum_values
from backend.app.domain.lifecycle.transitions import SHIPMENT_LIFECYCLE


class Shipment(LifecycleMixin, Base):
    """
    Shipment model.
    
    Same lifecycle as Booking with display-style status values.
    packages items: {description, packages, weight, volume}.
    """
    __tablename__ = "shipments"
    
    lifecycle = SHIPMENT_LIFECYCLE
    label = "Shipment"
    cargo_field = "packages"
    count_key = "packages"
    count_field = "total_packages"
    
    status = Column(
        Enum(ShipmentStatus, values_callable=enum_values, native_enum=False, length=40),
        default=ShipmentStatus.REQUESTED,
        nullable=False,
        index=True,
    )
    
    booking_id = Column(Integer, nullable=True, index=True)
    packages = Column(JSON, default=list, nullable=False)
    total_packages = Column(Integer, default=0, nullable=False)
    container_id = Column(String(50), nullable=True)
    vessel_flight_number = Column(String(50), nullable=True)
    
    version = Column(Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version}
    
    def __repr__(self):
        return f"<Shipment(id={self.id}, number='{self.number}', status='{self.status.value}')>"
