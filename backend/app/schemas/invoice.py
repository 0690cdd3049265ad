"""
Invoice Pydantic schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List
from backend.app.models.invoice import InvoiceStatus


class InvoiceLineItem(BaseModel):
    description: str
    amount: float


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    booking_id: int
    customer_id: int
    line_items: List[InvoiceLineItem]
    subtotal: float
    discount: float
    total_amount: float
    currency: str
    status: InvoiceStatus
    due_date: Optional[datetime]
    issued_by: Optional[int]
    created_at: datetime
    
    class Config:
        from_attributes = True
