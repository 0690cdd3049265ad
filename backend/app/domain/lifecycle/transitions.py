"""
Status transition tables.

The table is keyed by status member name so Booking and Shipment share
it even though their stored values differ.
"""

import enum
from typing import Dict, FrozenSet, List, Sequence, Type, Union

from backend.app.core.exceptions import ValidationFailedError
from backend.app.models.lifecycle_enums import BookingStatus, ShipmentStatus


TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "REQUESTED": frozenset({"CONFIRMED", "CANCELLED"}),
    "CONFIRMED": frozenset({"PICKUP_SCHEDULED", "RECEIVED_AT_WAREHOUSE", "CANCELLED"}),
    "PICKUP_SCHEDULED": frozenset({"RECEIVED_AT_WAREHOUSE", "CANCELLED"}),
    "RECEIVED_AT_WAREHOUSE": frozenset({"CONSOLIDATION_IN_PROGRESS", "CANCELLED"}),
    "CONSOLIDATION_IN_PROGRESS": frozenset({"LOADED_IN_CONTAINER", "LOADED_ON_FLIGHT", "CANCELLED"}),
    "LOADED_IN_CONTAINER": frozenset({"IN_TRANSIT"}),
    "LOADED_ON_FLIGHT": frozenset({"IN_TRANSIT"}),
    "IN_TRANSIT": frozenset({"ARRIVED_AT_DESTINATION"}),
    "ARRIVED_AT_DESTINATION": frozenset({"CUSTOMS_CLEARANCE", "OUT_FOR_DELIVERY"}),
    "CUSTOMS_CLEARANCE": frozenset({"OUT_FOR_DELIVERY", "RETURNED"}),
    "OUT_FOR_DELIVERY": frozenset({"DELIVERED"}),
    "DELIVERED": frozenset(),
    "CANCELLED": frozenset(),
    "RETURNED": frozenset(),
}

# Canonical forward path used for progress display; loading by sea or by
# air is the same step.
PROGRESS_PATH: Sequence[FrozenSet[str]] = (
    frozenset({"REQUESTED"}),
    frozenset({"CONFIRMED"}),
    frozenset({"PICKUP_SCHEDULED"}),
    frozenset({"RECEIVED_AT_WAREHOUSE"}),
    frozenset({"CONSOLIDATION_IN_PROGRESS"}),
    frozenset({"LOADED_IN_CONTAINER", "LOADED_ON_FLIGHT"}),
    frozenset({"IN_TRANSIT"}),
    frozenset({"ARRIVED_AT_DESTINATION"}),
    frozenset({"CUSTOMS_CLEARANCE"}),
    frozenset({"OUT_FOR_DELIVERY"}),
    frozenset({"DELIVERED"}),
)

DELETABLE: FrozenSet[str] = frozenset({"REQUESTED", "CONFIRMED", "PICKUP_SCHEDULED"})

# Date column stamped when a status is entered
STATUS_DATE_FIELDS: Dict[str, str] = {
    "CONFIRMED": "confirmed_at",
    "IN_TRANSIT": "actual_departure",
    "ARRIVED_AT_DESTINATION": "actual_arrival",
    "DELIVERED": "delivered_at",
}


class LifecycleDefinition:
    """
    A status enum bound to the shared transition table.
    
    All methods accept enum members; coerce() turns raw request input
    (stored value or member name) into a member.
    """
    
    INITIAL = "REQUESTED"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    
    def __init__(
        self,
        name: str,
        status_enum: Type[enum.Enum],
        transitions: Dict[str, FrozenSet[str]] = TRANSITIONS,
        progress_path: Sequence[FrozenSet[str]] = PROGRESS_PATH,
        deletable: FrozenSet[str] = DELETABLE,
    ):
        missing = set(transitions) ^ set(status_enum.__members__)
        if missing:
            raise ValueError(f"Transition table and {status_enum.__name__} disagree on: {sorted(missing)}")
        self.name = name
        self.status_enum = status_enum
        self._transitions = transitions
        self._progress_path = progress_path
        self._deletable = deletable
    
    @property
    def initial(self):
        return self.status_enum[self.INITIAL]
    
    @property
    def confirmed(self):
        return self.status_enum[self.CONFIRMED]
    
    @property
    def cancelled(self):
        return self.status_enum[self.CANCELLED]
    
    def coerce(self, value: Union[str, enum.Enum]):
        """
        Parse a requested status for this entity type.
        
        Raises:
            ValidationFailedError: value is not a status of this entity
        """
        if isinstance(value, self.status_enum):
            return value
        if isinstance(value, str) and not isinstance(value, enum.Enum):
            try:
                return self.status_enum(value)
            except ValueError:
                member = self.status_enum.__members__.get(value.upper())
                if member is not None:
                    return member
        raise ValidationFailedError(
            f"'{value}' is not a valid {self.name} status",
            field="status"
        )
    
    def allowed_targets(self, current) -> List:
        return [self.status_enum[name] for name in sorted(self._transitions[current.name])]
    
    def can_transition(self, current, target) -> bool:
        return target.name in self._transitions[current.name]
    
    def is_terminal(self, status) -> bool:
        return not self._transitions[status.name]
    
    def is_deletable(self, status) -> bool:
        return status.name in self._deletable
    
    def date_field_for(self, status):
        return STATUS_DATE_FIELDS.get(status.name)
    
    def progress_percentage(self, status) -> int:
        """Position on the forward path as 0-100; 0 for statuses off the path."""
        last = len(self._progress_path) - 1
        for index, step in enumerate(self._progress_path):
            if status.name in step:
                return round(index / last * 100)
        return 0


BOOKING_LIFECYCLE = LifecycleDefinition("booking", BookingStatus)
SHIPMENT_LIFECYCLE = LifecycleDefinition("shipment", ShipmentStatus)
