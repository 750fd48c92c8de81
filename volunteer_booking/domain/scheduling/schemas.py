"""Scheduling domain schemas - Pydantic models for the booking API"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, field_validator


class BookingCreate(BaseModel):
    """Schema for a volunteer booking request"""

    slotId: int
    volunteerName: str
    volunteerEmail: str
    volunteerPhone: Optional[str] = None
    office: Optional[str] = None

    @field_validator("volunteerName", "volunteerEmail")
    @classmethod
    def strip_required(cls, v):
        return v.strip() if isinstance(v, str) else v


class BookingCreated(BaseModel):
    bookingId: int
    status: str
    hostEmail: Optional[str] = None
    meetLink: Optional[str] = None


class BookingCancel(BaseModel):
    reason: Optional[str] = None


class CancelResponse(BaseModel):
    status: str
    kind: Optional[str] = None


class HostReassign(BaseModel):
    newHostEmail: str


class BookingResponse(BaseModel):
    """Schema for booking detail"""

    id: int
    slotId: int
    companyId: int
    companyName: Optional[str] = None
    serviceTypeId: int
    serviceName: Optional[str] = None
    slotDate: Optional[date] = None
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    volunteerName: str
    volunteerEmail: str
    volunteerPhone: Optional[str] = None
    office: Optional[str] = None
    hostEmail: Optional[str] = None
    googleEventId: Optional[str] = None
    meetLink: Optional[str] = None
    status: str
    cancelledAt: Optional[datetime] = None
    cancellationReason: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SideEffectAttemptResponse(BaseModel):
    id: int
    effectType: str
    target: Optional[str] = None
    status: str
    error: Optional[str] = None
    attempts: int
    nextAttemptAt: Optional[datetime] = None
    payload: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None


class SlotResponse(BaseModel):
    id: int
    companyId: int
    companyName: Optional[str] = None
    serviceTypeId: int
    serviceName: Optional[str] = None
    modality: Optional[str] = None
    slotDate: date
    startTime: str
    endTime: str
    maxVolunteers: int
    currentVolunteers: int
    remaining: int
