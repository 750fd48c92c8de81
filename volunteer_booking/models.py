from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

BOOKING_CONFIRMED = "confirmed"
BOOKING_CANCELLED = "cancelled"

MODALITY_VIRTUAL = "virtual"
MODALITY_IN_PERSON = "in_person"


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    account_manager = Column(String(320), nullable=True)  # Staff email responsible for the account
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    slots = relationship("Slot", back_populates="company")


class ServiceType(Base):
    __tablename__ = "service_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)  # Mentoring, Styling, Shadowing
    slug = Column(String(100), unique=True, index=True, nullable=False)
    modality = Column(String(20), nullable=False, default=MODALITY_VIRTUAL)  # virtual, in_person
    max_volunteers_per_slot = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    slots = relationship("Slot", back_populates="service_type")

    @property
    def is_virtual(self) -> bool:
        return self.modality == MODALITY_VIRTUAL


class Slot(Base):
    __tablename__ = "slots"
    __table_args__ = (
        CheckConstraint(
            "current_volunteers >= 0 AND current_volunteers <= max_volunteers",
            name="ck_slots_capacity",
        ),
        Index("ix_slots_company_service_date", "company_id", "service_type_id", "date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    service_type_id = Column(Integer, ForeignKey("service_types.id"), nullable=False)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)  # HH:MM
    max_volunteers = Column(Integer, default=1, nullable=False)
    # Only ever changed through SlotLedger conditional updates
    current_volunteers = Column(Integer, default=0, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    company = relationship("Company", back_populates="slots")
    service_type = relationship("ServiceType", back_populates="slots")
    bookings = relationship("Booking", back_populates="slot")

    @property
    def remaining(self) -> int:
        return self.max_volunteers - self.current_volunteers


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (Index("ix_bookings_host_status", "host_email", "status"),)

    id = Column(Integer, primary_key=True, index=True)
    slot_id = Column(Integer, ForeignKey("slots.id"), nullable=False, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    service_type_id = Column(Integer, ForeignKey("service_types.id"), nullable=False)
    volunteer_name = Column(String(255), nullable=False)
    volunteer_email = Column(String(320), nullable=False, index=True)
    volunteer_phone = Column(String(50), nullable=True)
    office = Column(String(50), nullable=True)  # Only for in-person services
    host_email = Column(String(320), nullable=True)  # None when no host was available
    google_event_id = Column(String(255), nullable=True)
    meet_link = Column(Text, nullable=True)
    status = Column(String(20), default=BOOKING_CONFIRMED, nullable=False)  # confirmed, cancelled
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    reminder_sent_at = Column(DateTime, nullable=True)  # Day-before reminder
    soon_reminder_sent_at = Column(DateTime, nullable=True)  # Reminder shortly before the session
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    slot = relationship("Slot", back_populates="bookings")
    company = relationship("Company")
    service_type = relationship("ServiceType")
    side_effects = relationship(
        "SideEffectAttempt", back_populates="booking", order_by="SideEffectAttempt.id"
    )

    @property
    def is_cancelled(self) -> bool:
        return self.status == BOOKING_CANCELLED


class SideEffectAttempt(Base):
    """Outcome of one external call made on behalf of a booking"""

    __tablename__ = "side_effect_attempts"
    __table_args__ = (Index("ix_side_effect_attempts_retry", "status", "next_attempt_at"),)

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    effect_type = Column(String(50), nullable=False)  # calendar_create, calendar_delete, email, crm_sync
    target = Column(String(320), nullable=True)  # Recipient, host or event id
    payload = Column(JSON, default=dict, nullable=False)  # Everything needed to replay the effect
    status = Column(String(20), nullable=False)  # succeeded, failed, skipped
    error = Column(Text, nullable=True)
    attempts = Column(Integer, default=1, nullable=False)
    next_attempt_at = Column(DateTime, nullable=True)  # Set while a retry is pending
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    booking = relationship("Booking", back_populates="side_effects")
