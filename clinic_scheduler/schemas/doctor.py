from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class DoctorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    specialization: str = Field("General", max_length=50)
    phone: str = Field("", max_length=15)
    address: str = Field("Not provided", max_length=200)
    user_id: Optional[int] = None

    @field_validator("name", "specialization")
    @classmethod
    def strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Value is required.")
        return value


class DoctorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    specialization: Optional[str] = Field(None, max_length=50)
    phone: Optional[str] = Field(None, max_length=15)
    address: Optional[str] = Field(None, max_length=200)
    is_active: Optional[bool] = None


class DoctorResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    name: str
    specialization: str
    phone: str
    address: str
    is_active: bool

    class Config:
        from_attributes = True


class DoctorDeleteResult(BaseModel):
    success: bool = True
    message: str
    soft_deleted: bool


class DoctorToggleResult(BaseModel):
    success: bool = True
    message: str
    is_active: bool


class DoctorListResponse(BaseModel):
    success: bool = True
    doctors: List[DoctorResponse]


class DoctorResult(BaseModel):
    success: bool = True
    message: str
    doctor: DoctorResponse
