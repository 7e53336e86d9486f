"""
Professional Allocation

Picks a professional for bookings made with "any professional". The
order is stable (name, then id) so retries of the same request resolve
to the same professional while nothing changes.
"""

import logging
from datetime import datetime
from typing import Mapping, Optional, Sequence
from uuid import UUID

from agenda.core.scheduling.conflicts import find_conflicts
from agenda.core.scheduling.ports import AppointmentRepository
from agenda.core.scheduling.status import is_occupying
from agenda.core.scheduling.types import Appointment, Professional

logger = logging.getLogger(__name__)


def allocation_order(candidates: Sequence[Professional]) -> list[Professional]:
    """Sort candidates by name (case-insensitive), then id."""
    return sorted(candidates, key=lambda p: (p.name.casefold(), str(p.id)))


def select_first_free(
    candidates: Sequence[Professional],
    requested_start: datetime,
    requested_end: datetime,
    appointments_by_professional: Mapping[UUID, Sequence[Appointment]],
) -> Optional[Professional]:
    """Return the first candidate with no occupying overlap, or None."""
    for candidate in allocation_order(candidates):
        booked = [
            a for a in appointments_by_professional.get(candidate.id, ())
            if is_occupying(a.status)
        ]
        clashes = find_conflicts(
            requested_start, requested_end, booked, lambda a: (a.starts_at, a.ends_at)
        )
        if not clashes:
            return candidate
    return None


class ProfessionalAllocator:
    """Resolves the professional for an unassigned booking."""

    def __init__(self, appointments: AppointmentRepository):
        self.appointments = appointments

    async def allocate(
        self,
        candidates: Sequence[Professional],
        requested_start: datetime,
        requested_end: datetime,
        exclude_appointment_id: Optional[UUID] = None,
    ) -> Optional[Professional]:
        """Pick the first free professional among eligible candidates.

        Args:
            candidates: Professionals already known to work at that time
            requested_start: Aware UTC start
            requested_end: Aware UTC end
            exclude_appointment_id: Appointment to ignore when rescheduling

        Returns:
            Chosen professional, or None when every candidate is busy
        """
        appointments_by_professional = {}
        for candidate in candidates:
            appointments_by_professional[candidate.id] = await self.appointments.list_occupying(
                candidate.id,
                requested_start,
                requested_end,
                exclude_id=exclude_appointment_id,
            )

        chosen = select_first_free(
            candidates, requested_start, requested_end, appointments_by_professional
        )
        if chosen is None:
            logger.info(
                f"Allocation failed | Candidates: {len(candidates)} | "
                f"Start: {requested_start.isoformat()}"
            )
        else:
            logger.info(
                f"Allocated professional | Professional: {chosen.id} | "
                f"Start: {requested_start.isoformat()}"
            )
        return chosen
