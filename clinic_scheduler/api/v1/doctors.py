from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...api.deps import get_current_principal, get_doctor_principal
from ...core.database import get_db
from ...repositories.appointment_store import AppointmentStore
from ...schemas.appointment import (
    AppointmentResponse, DoctorDashboardResponse, PatientHistoryResponse
)
from ...schemas.directory import Principal
from ...schemas.doctor import DoctorListResponse, DoctorResponse
from ...schemas.patient import PatientResponse
from ...services.appointment_service import AppointmentService

router = APIRouter(prefix="/doctors", tags=["Doctors"])

@router.get("", response_model=DoctorListResponse)
def list_doctors(
    db: Session = Depends(get_db),
    _: Principal = Depends(get_current_principal)
):
    """Active doctors open for booking."""
    doctors = AppointmentStore(db).list_active_doctors()
    return DoctorListResponse(doctors=[DoctorResponse.model_validate(d) for d in doctors])

@router.get("/me/dashboard", response_model=DoctorDashboardResponse)
def doctor_dashboard(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_doctor_principal)
):
    dashboard = AppointmentService(db).doctor_dashboard(principal)
    return DoctorDashboardResponse(
        doctor_id=dashboard.doctor.id,
        doctor_name=dashboard.doctor.name,
        today_appointments=[AppointmentResponse.from_appointment(a) for a in dashboard.today_appointments],
        upcoming_appointments=[AppointmentResponse.from_appointment(a) for a in dashboard.upcoming_appointments],
    )

@router.get("/me/patients/{patient_id}/history", response_model=PatientHistoryResponse)
def patient_history(
    patient_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_doctor_principal)
):
    patient, appointments = AppointmentService(db).patient_history(principal, patient_id)
    return PatientHistoryResponse(
        patient=PatientResponse.model_validate(patient),
        appointments=[AppointmentResponse.from_appointment(a) for a in appointments],
    )
