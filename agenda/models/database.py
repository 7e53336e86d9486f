"""
Database Models

SQLAlchemy ORM models for the multi-tenant booking system.

Instants are stored as naive UTC ``DateTime`` columns. Occupying
appointments also own one ``AppointmentSlot`` row per 5-minute bucket they
cover; the primary key on (professional_id, bucket_start) is what makes
double-booking impossible at the store level.
"""

import uuid
from datetime import datetime, time
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, Time,
    UniqueConstraint, Uuid, Enum as SQLEnum, text
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from agenda.config import settings
from agenda.core.scheduling.types import AppointmentStatus, ExceptionType


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False
    )


class Business(Base, TimestampMixin):
    """
    Business model (Tenant).

    Reached publicly through its slug; owns professionals, services,
    opening hours and appointments.
    """

    __tablename__ = "businesses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    timezone: Mapped[str] = mapped_column(
        String(64),
        default=lambda: settings.default_timezone,
        nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    professionals: Mapped[List["Professional"]] = relationship(
        "Professional",
        back_populates="business"
    )

    def __repr__(self) -> str:
        return f"<Business(id={self.id}, slug='{self.slug}')>"


class Professional(Base, TimestampMixin):
    """Professional who can be booked."""

    __tablename__ = "professionals"
    __table_args__ = (
        Index("idx_professional_business", "business_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    business: Mapped["Business"] = relationship("Business", back_populates="professionals")

    def __repr__(self) -> str:
        return f"<Professional(id={self.id}, name='{self.name}')>"


class Service(Base, TimestampMixin):
    """Catalog service."""

    __tablename__ = "services"
    __table_args__ = (
        Index("idx_service_business", "business_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class WorkingWindow(Base, TimestampMixin):
    """
    Recurring working hours for one weekday (0 = Sunday).

    Rows with ``professional_id`` NULL are the business opening hours.
    """

    __tablename__ = "working_windows"
    __table_args__ = (
        UniqueConstraint(
            "business_id", "professional_id", "day_of_week",
            name="uq_working_window_day"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False
    )
    professional_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("professionals.id", ondelete="CASCADE"),
        nullable=True
    )
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    is_working: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    breaks: Mapped[List["RecurringBreak"]] = relationship(
        "RecurringBreak",
        back_populates="schedule",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="RecurringBreak.start_time",
    )


class RecurringBreak(Base):
    """Recurring break inside a working window."""

    __tablename__ = "recurring_breaks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    schedule_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("working_windows.id", ondelete="CASCADE"),
        nullable=False
    )
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)

    schedule: Mapped["WorkingWindow"] = relationship("WorkingWindow", back_populates="breaks")


class ScheduleException(Base, TimestampMixin):
    """Block or day off over an absolute range (naive UTC)."""

    __tablename__ = "schedule_exceptions"
    __table_args__ = (
        Index("idx_exception_professional_start", "professional_id", "start_datetime"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    professional_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("professionals.id", ondelete="CASCADE"),
        nullable=False
    )
    start_datetime: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_datetime: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    type: Mapped[ExceptionType] = mapped_column(SQLEnum(ExceptionType), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class Appointment(Base, TimestampMixin):
    """
    Appointment model.

    ``starts_at``/``ends_at`` are naive UTC. ``ends_at`` is derived from the
    duration and kept for range queries.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointment_business", "business_id"),
        Index("idx_appointment_professional_time", "professional_id", "starts_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False
    )
    professional_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("professionals.id", ondelete="SET NULL"),
        nullable=True
    )
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_phone: Mapped[str] = mapped_column(String(50), nullable=False)
    client_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    starts_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    ends_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    status: Mapped[AppointmentStatus] = mapped_column(
        SQLEnum(AppointmentStatus),
        default=AppointmentStatus.SCHEDULED,
        nullable=False
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    services: Mapped[List["AppointmentService"]] = relationship(
        "AppointmentService",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="AppointmentService.position",
    )
    slots: Mapped[List["AppointmentSlot"]] = relationship(
        "AppointmentSlot",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Appointment(id={self.id}, starts_at={self.starts_at}, status={self.status.value})>"


class AppointmentService(Base):
    """Service booked in an appointment; position 0 is the primary one."""

    __tablename__ = "appointment_services"

    appointment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        primary_key=True
    )
    position: Mapped[int] = mapped_column(Integer, primary_key=True)
    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("services.id"),
        nullable=False
    )


class AppointmentSlot(Base):
    """One 5-minute occupancy bucket of an occupying appointment."""

    __tablename__ = "appointment_slots"
    __table_args__ = (
        Index("idx_appointment_slot_appointment", "appointment_id"),
    )

    professional_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("professionals.id", ondelete="CASCADE"),
        primary_key=True
    )
    bucket_start: Mapped[datetime] = mapped_column(DateTime, primary_key=True)
    appointment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False
    )
