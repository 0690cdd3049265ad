"""
Invoice database model.

One invoice per booking, issued once the booking is confirmed.
"""

import enum
from sqlalchemy import Column, Integer, String, Float, DateTime, JSON, Enum
from backend.app.db.session import Base
from backend.app.models.lifecycle import utcnow
from backend.app.models.lifecycle_enums import enum_values


class InvoiceStatus(str, enum.Enum):
    ISSUED = "ISSUED"
    PAID = "PAID"
    VOID = "VOID"


class Invoice(Base):
    """
    Invoice model.
    
    line_items: [{description, amount}] taken from the booking's charge
    breakdown plus any manually added charges.
    """
    __tablename__ = "invoices"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    invoice_number = Column(String(20), unique=True, nullable=False, index=True)
    
    booking_id = Column(Integer, unique=True, nullable=False, index=True)
    customer_id = Column(Integer, nullable=False, index=True)
    
    line_items = Column(JSON, default=list, nullable=False)
    subtotal = Column(Float, nullable=False)
    discount = Column(Float, default=0.0, nullable=False)
    total_amount = Column(Float, nullable=False)
    currency = Column(String(3), default="USD", nullable=False)
    
    status = Column(
        Enum(InvoiceStatus, values_callable=enum_values, native_enum=False, length=10),
        default=InvoiceStatus.ISSUED,
        nullable=False,
    )
    due_date = Column(DateTime(timezone=True), nullable=True)
    
    issued_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    
    def __repr__(self):
        return f"<Invoice(id={self.id}, number='{self.invoice_number}', booking_id={self.booking_id})>"
