"""
Domain dataclasses and enums used across the application.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, Optional


class Role(str, Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT = "patient"


class Resource(str, Enum):
    USERS = "users"
    DOCTORS = "doctors"
    PATIENTS = "patients"
    APPOINTMENTS = "appointments"
    DOCUMENTS = "documents"


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class Permission:
    """A single (resource, action) pair a role may perform."""
    resource: Resource
    action: Action


@dataclass(frozen=True)
class ValidationError:
    """One rule violation on one input field."""
    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass
class UserProfile:
    """Represents the authenticated user's identity and role."""
    id: int
    email: str
    full_name: str
    role: Role
    phone: Optional[str] = None
    patient_id: Optional[int] = None   # set for patient role
    doctor_id: Optional[int] = None    # set for doctor role

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "user_type": self.role.value,
            "phone": self.phone,
            "patient_id": self.patient_id,
            "doctor_id": self.doctor_id,
        }
