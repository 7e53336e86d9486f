"""
Catalog Repository

Read-only SQLAlchemy lookups of businesses, professionals and services.
"""

from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.scheduling.types import Business, Professional, Service
from agenda.models import database as orm


def _business(row: orm.Business) -> Business:
    return Business(
        id=row.id,
        name=row.name,
        slug=row.slug,
        timezone=row.timezone,
        is_active=row.is_active,
    )


def _professional(row: orm.Professional) -> Professional:
    return Professional(
        id=row.id,
        business_id=row.business_id,
        name=row.name,
        is_active=row.is_active,
    )


def _service(row: orm.Service) -> Service:
    return Service(
        id=row.id,
        business_id=row.business_id,
        name=row.name,
        duration_minutes=row.duration_minutes,
        price=row.price,
    )


class SqlCatalogRepository:
    """Catalog lookups scoped by tenant."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_business(self, business_id: UUID) -> Optional[Business]:
        row = await self.session.get(orm.Business, business_id)
        return _business(row) if row else None

    async def get_business_by_slug(self, slug: str) -> Optional[Business]:
        result = await self.session.execute(
            select(orm.Business).where(orm.Business.slug == slug)
        )
        row = result.scalar_one_or_none()
        return _business(row) if row else None

    async def get_professional(
        self,
        business_id: UUID,
        professional_id: UUID,
    ) -> Optional[Professional]:
        result = await self.session.execute(
            select(orm.Professional).where(
                orm.Professional.id == professional_id,
                orm.Professional.business_id == business_id,
            )
        )
        row = result.scalar_one_or_none()
        return _professional(row) if row else None

    async def list_professionals(
        self,
        business_id: UUID,
        active_only: bool = True,
    ) -> list[Professional]:
        query = (
            select(orm.Professional)
            .where(orm.Professional.business_id == business_id)
            .order_by(orm.Professional.name, orm.Professional.id)
        )
        if active_only:
            query = query.where(orm.Professional.is_active.is_(True))
        result = await self.session.execute(query)
        return [_professional(row) for row in result.scalars().all()]

    async def get_services(
        self,
        business_id: UUID,
        service_ids: Sequence[UUID],
    ) -> dict[UUID, Service]:
        """Active services by id; ids that are unknown or inactive are absent."""
        if not service_ids:
            return {}
        result = await self.session.execute(
            select(orm.Service).where(
                orm.Service.business_id == business_id,
                orm.Service.id.in_(list(set(service_ids))),
                orm.Service.is_active.is_(True),
            )
        )
        return {row.id: _service(row) for row in result.scalars().all()}
