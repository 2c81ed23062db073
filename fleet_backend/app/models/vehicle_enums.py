"""
Vehicle and shuttle enumerations.
"""

import enum


class VehicleStatus(str, enum.Enum):
    """Vehicle lifecycle status."""
    AVAILABLE = "available"
    IN_USE = "in-use"
    MAINTENANCE = "maintenance"
    OUT_OF_SERVICE = "out-of-service"  # Terminal unless explicitly reactivated


class VehicleType(str, enum.Enum):
    CAR = "car"
    TRUCK = "truck"
    VAN = "van"
    BUS = "bus"
    MOTORCYCLE = "motorcycle"


class FuelType(str, enum.Enum):
    PETROL = "petrol"
    DIESEL = "diesel"
    ELECTRIC = "electric"
    HYBRID = "hybrid"
    CNG = "cng"


class ShuttleStatus(str, enum.Enum):
    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    INACTIVE = "inactive"
