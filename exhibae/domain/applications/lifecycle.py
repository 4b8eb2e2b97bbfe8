"""
Stall application lifecycle

Transition planning is pure: given the current and requested status it
returns what must happen (new status, stall instance status, notification
events) without touching storage. The service executes the plan.

    pending ──► approved ──► payment_pending ──► booking_confirmed
       │
       └──────► rejected
"""

from dataclasses import dataclass
from typing import Optional

from ...errors import InvalidTransitionError

APPLICATION_STATUSES = {"pending", "approved", "rejected", "payment_pending", "booking_confirmed"}

VALID_TRANSITIONS = {
    "pending": {"approved", "rejected"},
    "approved": {"payment_pending"},
    "payment_pending": {"booking_confirmed"},
    "rejected": set(),  # Terminal state
    "booking_confirmed": set(),  # Terminal state
}

# requested status -> (stall instance status, notification events)
TRANSITION_EFFECTS = {
    "approved": (None, ("application_approved",)),
    "rejected": ("available", ("application_rejected",)),
    "payment_pending": (None, ("payment_required",)),
    "booking_confirmed": ("booked", ("booking_confirmed",)),
}


@dataclass(frozen=True)
class TransitionPlan:
    current_status: str
    next_status: str
    instance_status: Optional[str] = None
    events: tuple = ()

    @property
    def confirms_booking(self) -> bool:
        return self.next_status == "booking_confirmed"


def is_valid_transition(current_status: str, new_status: str) -> bool:
    """Same-status requests are not transitions and are rejected"""
    return new_status in VALID_TRANSITIONS.get(current_status, set())


def plan_transition(current_status: str, new_status: str) -> TransitionPlan:
    if not is_valid_transition(current_status, new_status):
        raise InvalidTransitionError(current_status, new_status)
    instance_status, events = TRANSITION_EFFECTS[new_status]
    return TransitionPlan(
        current_status=current_status,
        next_status=new_status,
        instance_status=instance_status,
        events=events,
    )


def plan_submission() -> TransitionPlan:
    """A new application starts pending and reserves its stall instance"""
    return TransitionPlan(
        current_status="",
        next_status="pending",
        instance_status="pending",
        events=("application_received",),
    )
