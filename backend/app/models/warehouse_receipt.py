"""
Warehouse Receipt database model.

Written when cargo for a booking physically arrives at the warehouse.
"""

from sqlalchemy import Column, Integer, String, Float, Text, DateTime
from backend.app.db.session import Base
from backend.app.models.lifecycle import utcnow


class WarehouseReceipt(Base):
    __tablename__ = "warehouse_receipts"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    receipt_number = Column(String(20), unique=True, nullable=False, index=True)
    
    booking_id = Column(Integer, nullable=False, index=True)
    warehouse_location = Column(String(100), nullable=True)
    
    received_cartons = Column(Integer, nullable=False)
    received_weight = Column(Float, nullable=True)
    received_volume = Column(Float, nullable=True)
    condition_notes = Column(Text, nullable=True)
    
    received_by = Column(Integer, nullable=False)
    received_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    
    def __repr__(self):
        return f"<WarehouseReceipt(id={self.id}, number='{self.receipt_number}', booking_id={self.booking_id})>"
