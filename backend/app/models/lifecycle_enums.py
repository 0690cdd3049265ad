"""
Booking / Shipment enumerations.

Both entities share the same status members (and therefore the same
transition table); only the stored values differ.
"""

import enum


class BookingStatus(str, enum.Enum):
    """
    Booking status enumeration.
    
    Status flow:
        REQUESTED → CONFIRMED → [PICKUP_SCHEDULED] → RECEIVED_AT_WAREHOUSE
        → CONSOLIDATION_IN_PROGRESS → LOADED_IN_CONTAINER | LOADED_ON_FLIGHT
        → IN_TRANSIT → ARRIVED_AT_DESTINATION → [CUSTOMS_CLEARANCE]
        → OUT_FOR_DELIVERY → DELIVERED
        Early statuses can move to CANCELLED; customs can end in RETURNED.
    """
    REQUESTED = "booking_requested"
    CONFIRMED = "booking_confirmed"
    PICKUP_SCHEDULED = "pickup_scheduled"
    RECEIVED_AT_WAREHOUSE = "received_at_warehouse"
    CONSOLIDATION_IN_PROGRESS = "consolidation_in_progress"
    LOADED_IN_CONTAINER = "loaded_in_container"
    LOADED_ON_FLIGHT = "loaded_on_flight"
    IN_TRANSIT = "in_transit"
    ARRIVED_AT_DESTINATION = "arrived_at_destination"
    CUSTOMS_CLEARANCE = "customs_clearance"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class ShipmentStatus(str, enum.Enum):
    """Shipment status enumeration (display-style values)."""
    REQUESTED = "Booking Requested"
    CONFIRMED = "Confirmed"
    PICKUP_SCHEDULED = "Pickup Scheduled"
    RECEIVED_AT_WAREHOUSE = "Received at Warehouse"
    CONSOLIDATION_IN_PROGRESS = "Consolidation in Progress"
    LOADED_IN_CONTAINER = "Loaded in Container"
    LOADED_ON_FLIGHT = "Loaded on Flight"
    IN_TRANSIT = "In Transit"
    ARRIVED_AT_DESTINATION = "Arrived at Destination"
    CUSTOMS_CLEARANCE = "Customs Clearance"
    OUT_FOR_DELIVERY = "Out for Delivery"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    RETURNED = "Returned"


class ShipmentCategory(str, enum.Enum):
    AIR_FREIGHT = "AIR_FREIGHT"
    SEA_FREIGHT = "SEA_FREIGHT"
    EXPRESS_COURIER = "EXPRESS_COURIER"


class ShippingMode(str, enum.Enum):
    DDP = "DDP"
    DDU = "DDU"
    FOB = "FOB"
    EXW = "EXW"
    CIF = "CIF"


class ProductCategory(str, enum.Enum):
    GENERAL = "GENERAL"
    HAZARDOUS = "HAZARDOUS"
    TEMPERATURE_CONTROLLED = "TEMPERATURE_CONTROLLED"
    FRAGILE = "FRAGILE"
    HIGH_VALUE = "HIGH_VALUE"
    OVERSIZED = "OVERSIZED"
    PERISHABLE = "PERISHABLE"


class PackageCategory(str, enum.Enum):
    CARTON = "CARTON"
    WOODEN_CRATE = "WOODEN_CRATE"
    PALLET = "PALLET"
    DRUM = "DRUM"
    CYLINDER = "CYLINDER"
    BAG = "BAG"


def enum_values(enum_cls):
    """values_callable for SQLAlchemy Enum columns that store .value."""
    return [member.value for member in enum_cls]
