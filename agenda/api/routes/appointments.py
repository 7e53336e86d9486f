"""
Appointment Endpoints

Public booking commit plus tenant-scoped lifecycle operations
(status change, reschedule, delete).
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import Field

from agenda.api.dependencies import get_booking_committer, get_catalog, get_tenant_id
from agenda.api.middleware.rate_limit import enforce_public_rate_limit
from agenda.api.schemas import CamelModel
from agenda.core.scheduling import (
    Appointment,
    AppointmentStatus,
    BookingCommitter,
    BookingRequest,
    NotFound,
)
from agenda.infra.redis import RateLimiterStore, get_rate_limiter_store
from agenda.repositories.catalog import SqlCatalogRepository

logger = logging.getLogger(__name__)

public_router = APIRouter(prefix="/public/appointments", tags=["Booking"])
router = APIRouter(prefix="/appointments", tags=["Appointments"])


class BookingCreateRequest(CamelModel):
    """Public booking request."""
    business_slug: str = Field(..., min_length=1, description="Public business link")
    professional_id: Optional[UUID] = Field(
        None, description="Omit to book any available professional"
    )
    service_ids: list[UUID] = Field(..., min_length=1, description="First entry is primary")
    appointment_date_time: str = Field(
        ..., description="ISO-8601 instant with offset, e.g. 2025-03-10T14:00:00-03:00"
    )
    client_name: str = Field(..., min_length=1)
    client_phone: str = Field(..., min_length=1)
    client_email: Optional[str] = None
    notes: Optional[str] = None


class AppointmentResponse(CamelModel):
    """Appointment as returned to clients."""
    id: UUID
    professional_id: Optional[UUID]
    date_time: str
    duration: int = Field(..., description="Total duration in minutes")
    total_price: str
    status: AppointmentStatus
    service_ids: list[UUID]
    client_name: str

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> "AppointmentResponse":
        return cls.model_validate(appointment.to_dict())


class BookingCreateResponse(CamelModel):
    message: str
    appointment: AppointmentResponse


class StatusUpdateRequest(CamelModel):
    status: str = Field(..., description="Target status, e.g. CANCELLED")


class RescheduleRequest(CamelModel):
    appointment_date_time: str = Field(..., description="New ISO-8601 instant with offset")


@public_router.post(
    "",
    response_model=BookingCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment",
    responses={
        400: {"description": "Invalid input, ambiguous timezone or business closed"},
        404: {"description": "Business, professional or service not found"},
        409: {"description": "Slot taken or no professional available"},
        429: {"description": "Rate limit exceeded"},
    },
)
async def create_appointment(
    request: Request,
    payload: BookingCreateRequest,
    catalog: SqlCatalogRepository = Depends(get_catalog),
    committer: BookingCommitter = Depends(get_booking_committer),
    rate_limiter: RateLimiterStore = Depends(get_rate_limiter_store),
) -> BookingCreateResponse:
    """Validate the requested slot and book it."""
    await enforce_public_rate_limit(request, rate_limiter, payload.business_slug)

    business = await catalog.get_business_by_slug(payload.business_slug)
    if business is None or not business.is_active:
        raise NotFound("Business not found")

    appointment = await committer.commit(
        BookingRequest(
            business_id=business.id,
            professional_id=payload.professional_id,
            service_ids=tuple(payload.service_ids),
            starts_at=payload.appointment_date_time,
            client_name=payload.client_name,
            client_phone=payload.client_phone,
            client_email=payload.client_email,
            notes=payload.notes,
        )
    )
    return BookingCreateResponse(
        message="Appointment booked successfully",
        appointment=AppointmentResponse.from_appointment(appointment),
    )


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    summary="Change appointment status",
)
async def update_status(
    appointment_id: UUID,
    payload: StatusUpdateRequest,
    tenant_id: UUID = Depends(get_tenant_id),
    committer: BookingCommitter = Depends(get_booking_committer),
) -> AppointmentResponse:
    appointment = await committer.transition(tenant_id, appointment_id, payload.status)
    return AppointmentResponse.from_appointment(appointment)


@router.patch(
    "/{appointment_id}/reschedule",
    response_model=AppointmentResponse,
    summary="Move an appointment to a new time",
)
async def reschedule(
    appointment_id: UUID,
    payload: RescheduleRequest,
    tenant_id: UUID = Depends(get_tenant_id),
    committer: BookingCommitter = Depends(get_booking_committer),
) -> AppointmentResponse:
    appointment = await committer.reschedule(
        tenant_id, appointment_id, payload.appointment_date_time
    )
    return AppointmentResponse.from_appointment(appointment)


@router.delete(
    "/{appointment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an appointment",
)
async def delete_appointment(
    appointment_id: UUID,
    tenant_id: UUID = Depends(get_tenant_id),
    committer: BookingCommitter = Depends(get_booking_committer),
) -> Response:
    await committer.delete(tenant_id, appointment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
