"""
Warehouse Pydantic schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from backend.app.models.lifecycle_enums import ShipmentCategory


class ReceiveCargoRequest(BaseModel):
    booking_id: int
    received_cartons: int = Field(..., ge=0)
    received_weight: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    received_volume: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    warehouse_location: Optional[str] = Field(None, max_length=100)
    condition_notes: Optional[str] = Field(None, max_length=2000)


class WarehouseReceiptResponse(BaseModel):
    id: int
    receipt_number: str
    booking_id: int
    warehouse_location: Optional[str]
    received_cartons: int
    received_weight: Optional[float]
    received_volume: Optional[float]
    condition_notes: Optional[str]
    received_by: int
    received_at: datetime
    
    class Config:
        from_attributes = True


class ConsolidationRequest(BaseModel):
    booking_ids: List[int] = Field(..., min_length=2)
    container_id: Optional[str] = Field(None, max_length=50)


class ConsolidationResponse(BaseModel):
    id: int
    consolidation_number: str
    shipment_category: ShipmentCategory
    origin: str
    destination: str
    booking_ids: List[int]
    total_weight: float
    total_volume: float
    container_id: Optional[str]
    created_by: Optional[int]
    created_at: datetime
    
    class Config:
        from_attributes = True
