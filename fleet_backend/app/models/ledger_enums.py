"""
Enumerations for fuel, parking and organisation records.
"""

import enum


class FuelingType(str, enum.Enum):
    FULL = "full"
    PARTIAL = "partial"
    EMERGENCY = "emergency"
    ROUTINE = "routine"


class ParkingType(str, enum.Enum):
    DAILY = "daily"
    MONTHLY = "monthly"
    EVENT = "event"
    RESERVED = "reserved"
    TEMPORARY = "temporary"


class PaymentStatus(str, enum.Enum):
    PAID = "paid"
    UNPAID = "unpaid"
    PENDING = "pending"
    WAIVED = "waived"


class SubsidiaryStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
