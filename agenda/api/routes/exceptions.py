"""
Schedule Exception Endpoints

Tenant-scoped management of blocks and days off.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import Field

from agenda.api.dependencies import get_exception_service, get_tenant, get_tenant_id
from agenda.api.schemas import CamelModel
from agenda.core.scheduling import (
    Business,
    ExceptionType,
    ScheduleException,
    ScheduleExceptionService,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Schedule Exceptions"])


class ExceptionCreateRequest(CamelModel):
    """New block or day off.

    Bounds are ISO-8601 instants with offset, or YYYY-MM-DD for whole
    business-local days (a date-only end is inclusive).
    """
    start_datetime: str
    end_datetime: str
    type: str = Field(..., description="BLOCK or DAY_OFF")
    reason: Optional[str] = None


class ExceptionResponse(CamelModel):
    id: UUID
    professional_id: UUID
    start_datetime: str
    end_datetime: str
    type: ExceptionType
    reason: Optional[str] = None

    @classmethod
    def from_exception(cls, exception: ScheduleException) -> "ExceptionResponse":
        return cls.model_validate(exception.to_dict())


@router.get(
    "/professionals/{professional_id}/exceptions",
    response_model=list[ExceptionResponse],
    summary="List exceptions in a date range",
)
async def list_exceptions(
    professional_id: UUID,
    start_date: str = Query(..., alias="startDate"),
    end_date: str = Query(..., alias="endDate"),
    business: Business = Depends(get_tenant),
    service: ScheduleExceptionService = Depends(get_exception_service),
) -> list[ExceptionResponse]:
    found = await service.list(business, professional_id, start_date, end_date)
    return [ExceptionResponse.from_exception(e) for e in found]


@router.post(
    "/professionals/{professional_id}/exceptions",
    response_model=ExceptionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a block or day off",
    responses={409: {"description": "Appointments already booked in the range"}},
)
async def create_exception(
    professional_id: UUID,
    payload: ExceptionCreateRequest,
    business: Business = Depends(get_tenant),
    service: ScheduleExceptionService = Depends(get_exception_service),
) -> ExceptionResponse:
    created = await service.create(
        business,
        professional_id,
        payload.start_datetime,
        payload.end_datetime,
        payload.type,
        payload.reason,
    )
    return ExceptionResponse.from_exception(created)


@router.delete(
    "/exceptions/{exception_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an exception",
)
async def delete_exception(
    exception_id: UUID,
    tenant_id: UUID = Depends(get_tenant_id),
    service: ScheduleExceptionService = Depends(get_exception_service),
) -> Response:
    await service.delete(tenant_id, exception_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
