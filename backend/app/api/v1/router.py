"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import (
    auth, admin, admin_ops,
    bookings, shipments, trash,
    warehouse, tracking, notifications,
)

router = APIRouter()

# Authentication endpoints
router.include_router(auth.router)

# Admin endpoints
router.include_router(admin.router)
router.include_router(admin_ops.router)

# Booking / Shipment lifecycle
router.include_router(bookings.router)
router.include_router(shipments.router)
router.include_router(trash.router)

# Warehouse operations
router.include_router(warehouse.router)

# Public tracking and quotes
router.include_router(tracking.router)

# In-app notifications
router.include_router(notifications.router)
