from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class PatientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    age: int = Field(0, ge=0, le=120)
    phone: str = Field("", max_length=15)
    address: str = Field("Not provided", max_length=200)
    medical_history: str = Field("", max_length=1000)
    user_id: Optional[int] = None


class PatientUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    age: Optional[int] = Field(None, ge=0, le=120)
    phone: Optional[str] = Field(None, max_length=15)
    address: Optional[str] = Field(None, max_length=200)
    medical_history: Optional[str] = Field(None, max_length=1000)


class PatientResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    name: str
    age: int
    phone: Optional[str] = None
    address: str
    medical_history: str
    registration_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class PatientListResponse(BaseModel):
    success: bool = True
    patients: List[PatientResponse]


class PatientResult(BaseModel):
    success: bool = True
    message: str
    patient: PatientResponse
