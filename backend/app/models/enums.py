"""
User roles enumeration.

Defines the role types for the logistics booking system.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.
    
    Roles:
        ADMIN: Full access, including permanent deletion
        OPERATIONS: Confirms, prices, assigns and tracks bookings
        WAREHOUSE: Receives cargo and moves it through the warehouse
        CUSTOMER: Creates and follows their own bookings (default role)
    """
    ADMIN = "ADMIN"
    OPERATIONS = "OPERATIONS"
    WAREHOUSE = "WAREHOUSE"
    CUSTOMER = "CUSTOMER"
