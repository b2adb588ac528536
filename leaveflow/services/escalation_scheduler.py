"""
Escalation scheduler - derived SLA state for pending requests.

A PENDING_* request is escalated once now > assigned_at + escalation_days.
Stored status never changes here; callers may run this on every read.
"""
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict

from leaveflow.services.approval_router import PENDING_STATUSES, LeaveStatus, RequestState
from leaveflow.utils.datetime_utils import ensure_utc

ESCALATED = "ESCALATED"


class EscalationStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    request_id: int
    status: LeaveStatus
    is_escalated: bool
    due_at: Optional[datetime] = None
    display_status: str


def due_at(assigned_at: Optional[datetime], escalation_days: int) -> Optional[datetime]:
    if assigned_at is None:
        return None
    return ensure_utc(assigned_at) + timedelta(days=escalation_days)


def escalation_status(state: RequestState, now: datetime, escalation_days: int) -> EscalationStatus:
    if escalation_days <= 0:
        raise ValueError("escalation_days must be greater than 0")

    if state.status not in PENDING_STATUSES:
        return EscalationStatus(
            request_id=state.id,
            status=state.status,
            is_escalated=False,
            due_at=None,
            display_status=state.status.value,
        )

    due = due_at(state.assigned_at, escalation_days)
    escalated = due is not None and ensure_utc(now) > due
    return EscalationStatus(
        request_id=state.id,
        status=state.status,
        is_escalated=escalated,
        due_at=due,
        display_status=ESCALATED if escalated else state.status.value,
    )


def scan_pending(
    states: Iterable[RequestState],
    now: datetime,
    escalation_days: int,
) -> List[EscalationStatus]:
    """Escalation state for every pending request in states; others are skipped."""
    return [
        escalation_status(state, now, escalation_days)
        for state in states
        if state.status in PENDING_STATUSES
    ]
