from typing import Dict, FrozenSet, Optional
from datetime import date, time

from app.core.errors import IllegalTransition, ValidationError
from app.db.models.appointment import AppointmentStatus

S = AppointmentStatus

ACTIVE_STATUSES: FrozenSet[AppointmentStatus] = frozenset({
    S.SCHEDULED, S.POSTPONED, S.CONFIRMED, S.IN_PROGRESS,
})
TERMINAL_STATUSES: FrozenSet[AppointmentStatus] = frozenset({
    S.COMPLETED, S.CANCELLED, S.NO_SHOW,
})

# target -> states it may be entered from
ALLOWED_SOURCES: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    S.CONFIRMED: frozenset({S.SCHEDULED, S.POSTPONED}),
    S.POSTPONED: frozenset({S.SCHEDULED, S.POSTPONED, S.CONFIRMED}),
    S.CANCELLED: frozenset({S.SCHEDULED, S.POSTPONED, S.CONFIRMED, S.IN_PROGRESS}),
    S.NO_SHOW: frozenset({S.SCHEDULED, S.POSTPONED, S.CONFIRMED}),
    S.IN_PROGRESS: frozenset({S.CONFIRMED}),
    S.COMPLETED: frozenset({S.IN_PROGRESS}),
}


class StatusStateMachine:
    """Legal appointment status transitions and the data each one needs.

    Pure: it never touches storage. Callers apply the change after
    ``validate`` returns.
    """

    def __init__(self, default_postpone_reason: str = "Rescheduled"):
        self.default_postpone_reason = default_postpone_reason

    @staticmethod
    def is_terminal(status) -> bool:
        return AppointmentStatus(status) in TERMINAL_STATUSES

    @staticmethod
    def can_transition(current, requested) -> bool:
        sources = ALLOWED_SOURCES.get(AppointmentStatus(requested), frozenset())
        return AppointmentStatus(current) in sources

    def validate(
        self,
        current,
        requested,
        *,
        reason: Optional[str] = None,
        appointment_date: Optional[date] = None,
        appointment_time: Optional[time] = None,
    ) -> Optional[str]:
        """Check ``current -> requested`` and return the reason to record.

        Raises IllegalTransition for a transition outside the table and
        ValidationError when the side data the transition needs is missing.
        """
        current = AppointmentStatus(current)
        requested = AppointmentStatus(requested)
        if not self.can_transition(current, requested):
            raise IllegalTransition(current.value, requested.value)

        reason = (reason or "").strip() or None
        if requested == S.CANCELLED and not reason:
            raise ValidationError("A reason is required to cancel an appointment")
        if requested == S.POSTPONED:
            if appointment_date is None or appointment_time is None:
                raise ValidationError("Postponing requires a new appointment date and time")
            return reason or self.default_postpone_reason
        return reason
