"""
Availability Endpoints

Public read path: bookable slots for a professional on a given day.
Tenant-scoped variant for staff, which can also ignore one of the
business's own appointments while looking for a reschedule target.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from pydantic import Field

from agenda.api.dependencies import get_availability_engine, get_business_by_slug, get_tenant
from agenda.api.middleware.rate_limit import enforce_public_rate_limit
from agenda.api.schemas import CamelModel
from agenda.config import settings
from agenda.core.scheduling import AvailabilityEngine, Business, DayAvailability, resample
from agenda.infra.redis import RateLimiterStore, get_rate_limiter_store

logger = logging.getLogger(__name__)

public_router = APIRouter(prefix="/public/business", tags=["Availability"])
router = APIRouter(prefix="/professionals", tags=["Availability"])


class SlotResponse(CamelModel):
    """One grid entry."""
    time: str = Field(..., description="Start time, HH:MM business-local")
    available: bool
    reason: Optional[str] = Field(None, description="Why the slot is unavailable")


class WorkingHoursResponse(CamelModel):
    start_time: str
    end_time: str


class AvailabilityResponse(CamelModel):
    """Availability of one professional on one day."""
    date: str
    day_of_week: int = Field(..., description="0 = Sunday")
    professional_id: UUID
    professional_name: str
    working_hours: Optional[WorkingHoursResponse] = None
    slots: list[SlotResponse]
    message: str


def to_response(day: DayAvailability, step: Optional[int]) -> AvailabilityResponse:
    if step:
        day.slots = resample(day.slots, step)
    return AvailabilityResponse.model_validate(day.to_dict())


@public_router.get(
    "/{slug}/availability",
    response_model=AvailabilityResponse,
    summary="Available slots for a professional",
    responses={
        400: {"description": "Missing or malformed parameters"},
        404: {"description": "Business or professional not found"},
        429: {"description": "Rate limit exceeded"},
    },
)
async def get_availability(
    request: Request,
    date: str = Query(..., description="Business-local date, YYYY-MM-DD"),
    professional_id: UUID = Query(..., alias="professionalId"),
    service_duration: int = Query(
        settings.default_service_duration,
        alias="serviceDuration",
        description="Minutes the slot must accommodate",
    ),
    step: Optional[int] = Query(
        None,
        description="Resample the 5-minute grid for display, e.g. 15",
    ),
    business: Business = Depends(get_business_by_slug),
    engine: AvailabilityEngine = Depends(get_availability_engine),
    rate_limiter: RateLimiterStore = Depends(get_rate_limiter_store),
) -> AvailabilityResponse:
    """
    Compute the availability grid.

    Unavailable entries stay in the list with a reason; points inside
    breaks and exceptions are omitted.
    """
    await enforce_public_rate_limit(request, rate_limiter, business.slug)

    day = await engine.availability(business, professional_id, date, service_duration)
    return to_response(day, step)


@router.get(
    "/{professional_id}/availability",
    response_model=AvailabilityResponse,
    summary="Available slots for a professional (staff)",
    responses={
        400: {"description": "Missing or malformed parameters"},
        404: {"description": "Business, professional or excluded appointment not found"},
    },
)
async def get_professional_availability(
    professional_id: UUID,
    date: str = Query(..., description="Business-local date, YYYY-MM-DD"),
    service_duration: int = Query(
        settings.default_service_duration,
        alias="serviceDuration",
        description="Minutes the slot must accommodate",
    ),
    exclude_appointment_id: Optional[UUID] = Query(
        None,
        alias="excludeAppointmentId",
        description="Treat this appointment of the business as free (rescheduling)",
    ),
    step: Optional[int] = Query(None),
    business: Business = Depends(get_tenant),
    engine: AvailabilityEngine = Depends(get_availability_engine),
) -> AvailabilityResponse:
    """Availability for the tenant in ``X-Tenant-ID``."""
    day = await engine.availability(
        business,
        professional_id,
        date,
        service_duration,
        exclude_appointment_id=exclude_appointment_id,
    )
    return to_response(day, step)
