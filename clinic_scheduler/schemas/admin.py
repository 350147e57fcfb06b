from typing import Dict, List

from pydantic import BaseModel

from ..core.security import UserRole
from .patient import PatientResponse


class DashboardCounts(BaseModel):
    total_doctors: int
    total_patients: int
    total_appointments: int
    pending_appointments: int


class ReportsResponse(BaseModel):
    success: bool = True
    counts: DashboardCounts
    appointments_by_status: Dict[str, int]
    recent_registrations: List[PatientResponse]


class UserRoleUpdate(BaseModel):
    role: UserRole


class UserDeleteResult(BaseModel):
    success: bool = True
    message: str
    patient_removed: bool = False
    doctor_outcome: str = "none"  # none, deleted, deactivated
