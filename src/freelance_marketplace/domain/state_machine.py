"""Job Lifecycle State Machine Guard.

Uses python-statemachine to enforce legal job transitions at the domain level.
No matter what the API or the MCP tools ask for, an illegal transition
(e.g., open -> completed) raises TransitionNotAllowed before any row is written.

The state machine is instantiated per-job from the stored status and is only a
guard: the authoritative write is the compare-and-set UPDATE in the job
repository, which catches races the guard cannot see.

Transition table:
    open          -> in_progress   (claim)
    in_progress   -> submitted     (submit)
    submitted     -> completed     (approve)
    in_progress   -> cancelled     (withdraw)
    submitted     -> cancelled     (withdraw)

Deleting is not a transition: only an `open` job may be removed, and the row
is gone afterwards. See can_delete().
"""

from __future__ import annotations

from statemachine import State, StateMachine

from freelance_marketplace.domain.enums import JobStatus


class JobStateMachine(StateMachine):
    """State machine that guards job lifecycle transitions.

    Usage:
        sm = JobStateMachine(current_status="open")
        sm.claim()          # transitions to in_progress
        sm.status           # "in_progress"
    """

    # --- States ---
    open = State("open", value="open", initial=True)
    in_progress = State("in_progress", value="in_progress")
    submitted = State("submitted", value="submitted")
    completed = State("completed", value="completed", final=True)
    cancelled = State("cancelled", value="cancelled", final=True)

    # --- Events / Transitions ---
    claim = open.to(in_progress)
    submit = in_progress.to(submitted)
    approve = submitted.to(completed)
    withdraw = in_progress.to(cancelled) | submitted.to(cancelled)

    def __init__(self, current_status: str = "open") -> None:
        """Initialize the state machine at a given status.

        Args:
            current_status: The stored JobStatus value (e.g., "submitted").
        """
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown status '{current_status}'. Valid states: {valid}"
            )
        super().__init__(start_value=current_status)

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches JobStatus)."""
        return str(self.current_state.value)

    def get_allowed_events(self) -> list[str]:
        """Return the event ids that can fire from the current state.

        `Event.name` is a display label ("Claim"); the id matches JobEvent.
        """
        return [event.id for event in self.allowed_events]


def sources_for(event_name: str) -> list[str]:
    """Return the statuses an event may fire from.

    Used to build the `WHERE status IN (...)` clause of the conditional update.
    """
    sources = [
        status.value
        for status in JobStatus
        if event_name in JobStateMachine(status.value).get_allowed_events()
    ]
    if not sources:
        raise ValueError(f"Unknown event '{event_name}'")
    return sources


def validate_transition(current_status: str, event_name: str) -> str:
    """Validate a transition and return the status it leads to.

    Raises:
        TransitionNotAllowed: If the transition is illegal.
        ValueError: If the status or event name is invalid.
    """
    sm = JobStateMachine(current_status=current_status)

    event_method = getattr(sm, event_name, None)
    if event_method is None or not callable(event_method):
        raise ValueError(
            f"Unknown event '{event_name}'. "
            f"Allowed events from {current_status}: {sm.get_allowed_events()}"
        )

    event_method()
    return sm.status


def can_delete(current_status: str) -> bool:
    """Only unclaimed jobs may be hard-deleted."""
    return current_status == JobStatus.OPEN
