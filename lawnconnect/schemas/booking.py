from pydantic import BaseModel, Field, field_validator
from enum import Enum
from datetime import datetime
from typing import Optional

class BookingStatus(str, Enum):
    pending   = "pending"
    accepted  = "accepted"
    ongoing   = "ongoing"
    completed = "completed"
    cancelled = "cancelled"
    rejected  = "rejected"

class BillingStatus(str, Enum):
    pending = "pending"
    billed  = "billed"
    paid    = "paid"

class BookingCreate(BaseModel):
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$", description="Fecha YYYY-MM-DD")
    time: str = Field(..., pattern=r"^\d{2}:\d{2}$", description="Hora HH:MM")
    address: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=1000)

    @field_validator('date')
    @classmethod
    def validate_date(cls, v: str) -> str:
        """Valida que la fecha exista en el calendario"""
        try:
            datetime.strptime(v, "%Y-%m-%d")
        except ValueError:
            raise ValueError("Fecha inexistente")
        return v

    @field_validator('time')
    @classmethod
    def validate_time(cls, v: str) -> str:
        try:
            datetime.strptime(v, "%H:%M")
        except ValueError:
            raise ValueError("Hora inválida (00:00-23:59)")
        return v

class RejectBody(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)

class CompleteBody(BaseModel):
    # El precio > 0 lo valida el servicio para devolver un invalid_input propio
    price: float = Field(..., allow_inf_nan=False)
    comment: Optional[str] = Field(None, max_length=1000)

class BookingOut(BaseModel):
    id: str
    customer_id: str
    mower_id: Optional[str] = None
    date: str
    time: str
    address: str
    description: str = ""
    status: BookingStatus
    price: float = 0
    billing_status: BillingStatus = BillingStatus.pending
    transaction_id: Optional[str] = None
    rejection_reason: Optional[str] = None
    completion_comment: Optional[str] = None
    proof_of_completion_url: Optional[str] = None
    accepted_time: Optional[datetime] = None
    completed_time: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
