"""Milestone State Machine Guard.

Uses python-statemachine to enforce legal milestone transitions at the domain
level. No matter what the API or a service does, an illegal transition
(e.g., PENDING -> REVIEW) raises before any row is written.

The state machine is instantiated per-milestone and validates transitions
before the ORM model's status field is updated.

Transition table:
    PENDING   -> FUNDED      (lock_funds)        client, sufficient balance
    FUNDED    -> REVIEW      (submit_work)       assigned worker
    REVIEW    -> COMPLETED   (release_payment)   client
    FUNDED    -> DISPUTED    (raise_dispute)     client or worker
    REVIEW    -> DISPUTED    (raise_dispute)     client or worker
    DISPUTED  -> PENDING     (resolve_refund)    platform admin
    DISPUTED  -> COMPLETED   (resolve_release)   platform admin, worker assigned

Job status is never set directly; it is derived from milestone transitions by
job_status_after_funding() and job_status_after_completion().
"""

from __future__ import annotations

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from milestone_escrow.domain.enums import JobStatus, MilestoneStatus
from milestone_escrow.domain.exceptions import InvalidStateError


class MilestoneStateMachine(StateMachine):
    """State machine that guards milestone lifecycle transitions.

    Usage:
        sm = MilestoneStateMachine(current_status="FUNDED")
        sm.submit_work()   # transitions to REVIEW
        sm.status          # "REVIEW"
    """

    # --- States ---
    PENDING = State("PENDING", initial=True)
    FUNDED = State("FUNDED")
    REVIEW = State("REVIEW")
    COMPLETED = State("COMPLETED", final=True)
    DISPUTED = State("DISPUTED")

    # --- Events / Transitions ---

    # Escrow
    lock_funds = PENDING.to(FUNDED)

    # Delivery
    submit_work = FUNDED.to(REVIEW)
    release_payment = REVIEW.to(COMPLETED)

    # Disputes
    raise_dispute = FUNDED.to(DISPUTED) | REVIEW.to(DISPUTED)
    resolve_refund = DISPUTED.to(PENDING)
    resolve_release = DISPUTED.to(COMPLETED)

    def __init__(self, current_status: str = "PENDING") -> None:
        """Initialize the state machine at a given status.

        Args:
            current_status: The current MilestoneStatus value (e.g., "FUNDED").
        """
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown status '{current_status}'. Valid states: {valid}"
            )
        super().__init__(start_value=str(current_status))

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches MilestoneStatus enum)."""
        return str(self.current_state.value)


# Source statuses per event. Mirrors the transitions declared above and is used
# to report "required vs current" without firing anything.
REQUIRED_STATUSES: dict[str, tuple[MilestoneStatus, ...]] = {
    "lock_funds": (MilestoneStatus.PENDING,),
    "submit_work": (MilestoneStatus.FUNDED,),
    "release_payment": (MilestoneStatus.REVIEW,),
    "raise_dispute": (MilestoneStatus.FUNDED, MilestoneStatus.REVIEW),
    "resolve_refund": (MilestoneStatus.DISPUTED,),
    "resolve_release": (MilestoneStatus.DISPUTED,),
}

_ACTION_LABELS = {
    "lock_funds": "fund",
    "submit_work": "submit work",
    "release_payment": "release payment",
    "raise_dispute": "dispute",
    "resolve_refund": "resolve a dispute",
    "resolve_release": "resolve a dispute",
}


def allowed_events(current_status: str) -> list[str]:
    """Return the event names that can fire from the given status."""
    return [
        event_name
        for event_name, sources in REQUIRED_STATUSES.items()
        if current_status in sources
    ]


def validate_transition(current_status: str, event_name: str) -> MilestoneStatus:
    """Validate a state transition and return the new status.

    Creates a temporary state machine, fires the named event, and returns the
    resulting status.

    Raises:
        InvalidStateError: If the transition is illegal from current_status.
        ValueError: If the status or event name is unknown.
    """
    sm = MilestoneStateMachine(current_status=current_status)

    event_method = getattr(sm, event_name, None)
    if event_name not in REQUIRED_STATUSES or not callable(event_method):
        raise ValueError(
            f"Unknown event '{event_name}'. "
            f"Allowed events from {current_status}: {allowed_events(current_status)}"
        )

    try:
        event_method()
    except TransitionNotAllowed as err:
        required = REQUIRED_STATUSES[event_name]
        raise InvalidStateError(
            message=(
                f"Milestone must be {' or '.join(required)} to "
                f"{_ACTION_LABELS[event_name]}. Current status: {current_status}"
            ),
            current_status=current_status,
            required_statuses=required,
        ) from err
    return MilestoneStatus(sm.status)


def job_status_after_funding(job_status: str) -> JobStatus:
    """A job leaves ASSIGNED the first time one of its milestones is funded."""
    if job_status == JobStatus.ASSIGNED:
        return JobStatus.IN_PROGRESS
    return JobStatus(job_status)


def job_status_after_completion(job_status: str, remaining_milestones: int) -> JobStatus:
    """A job is COMPLETED once none of its milestones remain outside COMPLETED."""
    if remaining_milestones == 0:
        return JobStatus.COMPLETED
    return JobStatus(job_status)
