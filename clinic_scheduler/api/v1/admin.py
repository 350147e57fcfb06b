from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ...api.deps import get_admin_principal
from ...core.database import get_db
from ...schemas.admin import (
    DashboardCounts, ReportsResponse, UserDeleteResult, UserRoleUpdate
)
from ...schemas.appointment import MessageResult
from ...schemas.directory import Principal
from ...schemas.doctor import (
    DoctorCreate, DoctorDeleteResult, DoctorListResponse, DoctorResponse,
    DoctorResult, DoctorToggleResult, DoctorUpdate
)
from ...schemas.patient import (
    PatientCreate, PatientListResponse, PatientResponse, PatientResult,
    PatientUpdate
)
from ...services.admin_service import AdminService

router = APIRouter(
    prefix="/admin",
    tags=["Administration"],
    dependencies=[Depends(get_admin_principal)]
)

# Doctors

@router.get("/doctors", response_model=DoctorListResponse)
def list_doctors(db: Session = Depends(get_db)):
    """All doctors, active or not."""
    doctors = AdminService(db).list_doctors()
    return DoctorListResponse(doctors=[DoctorResponse.model_validate(d) for d in doctors])

@router.post("/doctors", response_model=DoctorResult, status_code=201)
def create_doctor(doctor_data: DoctorCreate, db: Session = Depends(get_db)):
    doctor = AdminService(db).create_doctor(doctor_data)
    return DoctorResult(
        message=f"Doctor {doctor.name} added successfully.",
        doctor=DoctorResponse.model_validate(doctor),
    )

@router.put("/doctors/{doctor_id}", response_model=DoctorResult)
def update_doctor(doctor_id: int, doctor_data: DoctorUpdate, db: Session = Depends(get_db)):
    doctor = AdminService(db).update_doctor(doctor_id, doctor_data)
    return DoctorResult(
        message=f"Doctor {doctor.name} updated successfully.",
        doctor=DoctorResponse.model_validate(doctor),
    )

@router.post("/doctors/{doctor_id}/toggle", response_model=DoctorToggleResult)
def toggle_doctor(doctor_id: int, db: Session = Depends(get_db)):
    doctor = AdminService(db).toggle_doctor(doctor_id)
    state = "activated" if doctor.is_active else "deactivated"
    return DoctorToggleResult(message=f"Doctor {doctor.name} {state}.", is_active=doctor.is_active)

@router.delete("/doctors/{doctor_id}", response_model=DoctorDeleteResult)
def delete_doctor(doctor_id: int, db: Session = Depends(get_db)):
    soft_deleted = AdminService(db).delete_doctor(doctor_id)
    message = (
        "Doctor has existing appointments and was deactivated instead of deleted."
        if soft_deleted
        else "Doctor deleted successfully."
    )
    return DoctorDeleteResult(message=message, soft_deleted=soft_deleted)

# Patients

@router.get("/patients", response_model=PatientListResponse)
def list_patients(db: Session = Depends(get_db)):
    patients = AdminService(db).list_patients()
    return PatientListResponse(patients=[PatientResponse.model_validate(p) for p in patients])

@router.get("/patients/{patient_id}", response_model=PatientResult)
def get_patient(patient_id: int, db: Session = Depends(get_db)):
    patient = AdminService(db).get_patient(patient_id)
    return PatientResult(
        message="Patient retrieved successfully.",
        patient=PatientResponse.model_validate(patient),
    )

@router.post("/patients", response_model=PatientResult, status_code=201)
def create_patient(patient_data: PatientCreate, db: Session = Depends(get_db)):
    patient = AdminService(db).create_patient(patient_data)
    return PatientResult(
        message=f"Patient {patient.name} added successfully.",
        patient=PatientResponse.model_validate(patient),
    )

@router.put("/patients/{patient_id}", response_model=PatientResult)
def update_patient(patient_id: int, patient_data: PatientUpdate, db: Session = Depends(get_db)):
    patient = AdminService(db).update_patient(patient_id, patient_data)
    return PatientResult(
        message=f"Patient {patient.name} updated successfully.",
        patient=PatientResponse.model_validate(patient),
    )

@router.delete("/patients/{patient_id}", response_model=MessageResult)
def delete_patient(patient_id: int, db: Session = Depends(get_db)):
    AdminService(db).delete_patient(patient_id)
    return MessageResult(message="Patient deleted successfully.")

# Users

@router.delete("/users/{user_id}", response_model=UserDeleteResult)
def delete_user(user_id: int, db: Session = Depends(get_db)):
    outcome = AdminService(db).delete_user(user_id)
    return UserDeleteResult(
        message="User deleted successfully.",
        patient_removed=outcome.patient_removed,
        doctor_outcome=outcome.doctor_outcome,
    )

@router.post("/users/{user_id}/deactivate", response_model=MessageResult)
def deactivate_user(user_id: int, db: Session = Depends(get_db)):
    user = AdminService(db).deactivate_user(user_id)
    return MessageResult(message=f"User {user.email} has been deactivated.")

@router.patch("/users/{user_id}/role", response_model=MessageResult)
def update_user_role(user_id: int, role_data: UserRoleUpdate, db: Session = Depends(get_db)):
    user = AdminService(db).update_user_role(user_id, role_data.role)
    return MessageResult(message=f"User {user.email} role updated to {role_data.role.value}.")

# Reports

@router.get("/reports", response_model=ReportsResponse)
def reports(db: Session = Depends(get_db)):
    """Dashboard counts, status breakdown and latest patient registrations."""
    service = AdminService(db)
    return ReportsResponse(
        counts=DashboardCounts(**service.dashboard_counts()),
        appointments_by_status=service.appointment_counts_by_status(),
        recent_registrations=[
            PatientResponse.model_validate(p) for p in service.recent_registrations()
        ],
    )

@router.get("/export")
def export_data(
    data_type: str = Query(...),
    format: str = Query("json"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_admin_principal)
):
    """Export patients, doctors or appointments as JSON or CSV."""
    payload = AdminService(db).export(data_type, format)
    if payload.format == "csv":
        return StreamingResponse(
            iter([payload.to_csv()]),
            media_type=payload.media_type,
            headers={
                "Content-Disposition": f"attachment; filename={payload.filename}",
                "Cache-Control": "no-cache",
            },
        )
    return {
        "success": True,
        "message": f"Exported {len(payload.records)} {payload.data_type}.",
        "data_type": payload.data_type,
        "exported_by": principal.id,
        "data": payload.records,
    }
