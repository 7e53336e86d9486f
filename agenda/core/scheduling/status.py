"""Appointment status state machine."""

from typing import Set

from agenda.core.scheduling.types import AppointmentStatus


# Statuses that hold a place on the calendar
OCCUPYING_STATUSES: frozenset[AppointmentStatus] = frozenset({
    AppointmentStatus.SCHEDULED,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.IN_PROGRESS,
})

TERMINAL_STATUSES: frozenset[AppointmentStatus] = frozenset({
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
})

# Valid status transitions
VALID_TRANSITIONS: dict[AppointmentStatus, Set[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: {
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.NO_SHOW,
        AppointmentStatus.CANCELLED,
    },
    AppointmentStatus.CONFIRMED: {
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.NO_SHOW,
        AppointmentStatus.CANCELLED,
    },
    AppointmentStatus.IN_PROGRESS: {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
    },
    AppointmentStatus.NO_SHOW: {
        AppointmentStatus.CANCELLED,
    },
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.CANCELLED: set(),
}


def can_transition(from_status: AppointmentStatus, to_status: AppointmentStatus) -> bool:
    """Check if status transition is valid."""
    return to_status in VALID_TRANSITIONS.get(from_status, set())


def is_terminal(status: AppointmentStatus) -> bool:
    """Check if status is terminal."""
    return status in TERMINAL_STATUSES


def is_occupying(status: AppointmentStatus) -> bool:
    """Check if an appointment in this status blocks the calendar."""
    return status in OCCUPYING_STATUSES
