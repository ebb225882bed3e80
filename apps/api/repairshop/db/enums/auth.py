"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    Shop staff roles.

    - COORDINATOR: Service coordinator (front desk, triage, pickups)
    - ADMIN: Business admin (sees everything coordinators see)
    - PARTS_MANAGER: Orders and receives spare parts
    - TECHNICIAN: Diagnoses and repairs assigned orders
    - SALESPERSON: Intake and customer follow-up
    """

    COORDINATOR = "coordinator"
    ADMIN = "admin"
    PARTS_MANAGER = "parts_manager"
    TECHNICIAN = "technician"
    SALESPERSON = "salesperson"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_
