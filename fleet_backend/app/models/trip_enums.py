"""
Trip and maintenance enumerations.
"""

import enum


class TripStatus(str, enum.Enum):
    """Trip status enumeration."""
    SCHEDULED = "scheduled"  # Booked, vehicle reserved
    IN_PROGRESS = "in-progress"  # Passenger picked up
    COMPLETED = "completed"  # Trip finished
    CANCELLED = "cancelled"  # Trip cancelled
    DELAYED = "delayed"  # Pickup postponed


class MaintenanceType(str, enum.Enum):
    ROUTINE = "routine"
    REPAIR = "repair"
    INSPECTION = "inspection"
    ACCIDENT_REPAIR = "accident-repair"
    OTHER = "other"


class MaintenanceStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
