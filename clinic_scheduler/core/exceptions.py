"""
Scheduling error taxonomy.

Engines raise these; ``main`` turns them into structured JSON responses of
the form ``{"success": false, "error": <code>, "message": <text>}``.
"""
from fastapi import status


class SchedulingError(Exception):
    code = "Unexpected"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "An unexpected error occurred."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "error": self.code, "message": self.message}


class DoctorUnavailable(SchedulingError):
    code = "DoctorUnavailable"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Selected doctor is not available. Please choose a different doctor."


class PastDate(SchedulingError):
    code = "PastDate"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Appointment date cannot be in the past."


class InvalidDate(SchedulingError):
    code = "InvalidDate"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Cannot book appointments in the past."


class InvalidSlot(SchedulingError):
    code = "InvalidSlot"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Selected time is not a bookable slot."


class SlotConflict(SchedulingError):
    code = "SlotConflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "This time slot is already booked. Please choose a different time."


class NotFound(SchedulingError):
    code = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Appointment not found."


class TerminalState(SchedulingError):
    code = "TerminalState"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Cannot modify a completed or cancelled appointment."


class TerminalCompleted(SchedulingError):
    code = "TerminalCompleted"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Cannot cancel completed appointments."


class InvalidStatus(SchedulingError):
    code = "InvalidStatus"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid status provided."


class AccessDenied(SchedulingError):
    code = "AccessDenied"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied."


class PatientHasAppointments(SchedulingError):
    code = "PatientHasAppointments"
    status_code = status.HTTP_409_CONFLICT
    default_message = (
        "Cannot delete patient with existing appointments. "
        "Please cancel or reassign appointments first."
    )


class InvalidExport(SchedulingError):
    code = "InvalidExport"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid data type or format."


class TransientStoreFailure(SchedulingError):
    code = "TransientStoreFailure"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "The service is temporarily unavailable. Please try again."
