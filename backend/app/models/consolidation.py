"""
Consolidation database model.

Groups received bookings that travel together (same category and route).
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, JSON, Enum
from backend.app.db.session import Base
from backend.app.models.lifecycle import utcnow
from backend.app.models.lifecycle_enums import ShipmentCategory, enum_values


class Consolidation(Base):
    __tablename__ = "consolidations"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    consolidation_number = Column(String(20), unique=True, nullable=False, index=True)
    
    shipment_category = Column(
        Enum(ShipmentCategory, values_callable=enum_values, native_enum=False, length=30),
        nullable=False,
    )
    origin = Column(String(100), nullable=False)
    destination = Column(String(100), nullable=False)
    
    booking_ids = Column(JSON, default=list, nullable=False)
    total_weight = Column(Float, default=0.0, nullable=False)
    total_volume = Column(Float, default=0.0, nullable=False)
    container_id = Column(String(50), nullable=True)
    
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    
    def __repr__(self):
        return f"<Consolidation(id={self.id}, number='{self.consolidation_number}')>"
