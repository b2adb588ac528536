"""
Approval router - state machine for leave requests.

DRAFT -> PENDING_LM -> PENDING_GM -> APPROVED | REJECTED
PENDING_LM | PENDING_GM -> CANCELLED (requester only)
APPROVED, REJECTED and CANCELLED are terminal.

Every transition is given the status the caller expects to find and raises
StaleState when the request has moved on. The balance ledger is applied only
for the PENDING_GM -> APPROVED transition; decide() hands the consumption
back to the caller in Transition.apply_consumption for exactly that case.
"""
import enum
import logging
from datetime import datetime
from typing import Dict, FrozenSet, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from leaveflow.core.exceptions import IllegalTransition, MissingApprover, StaleState, Unauthorized
from leaveflow.services.balance_ledger import Consumption

logger = logging.getLogger(__name__)


class LeaveStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_LM = "PENDING_LM"
    PENDING_GM = "PENDING_GM"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class RequesterRole(str, enum.Enum):
    STAFF = "STAFF"
    LINE_MANAGER = "LINE_MANAGER"
    GENERAL_MANAGER = "GENERAL_MANAGER"
    ADMIN = "ADMIN"


class Decision(str, enum.Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class RouterAction(str, enum.Enum):
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"


PENDING_STATUSES: FrozenSet[LeaveStatus] = frozenset({LeaveStatus.PENDING_LM, LeaveStatus.PENDING_GM})

TERMINAL_STATUSES: FrozenSet[LeaveStatus] = frozenset({
    LeaveStatus.APPROVED,
    LeaveStatus.REJECTED,
    LeaveStatus.CANCELLED,
})

# (from status, action) -> statuses the action may lead to
TRANSITIONS: Dict[Tuple[LeaveStatus, RouterAction], FrozenSet[LeaveStatus]] = {
    (LeaveStatus.DRAFT, RouterAction.SUBMIT): frozenset({LeaveStatus.PENDING_LM, LeaveStatus.PENDING_GM}),
    (LeaveStatus.PENDING_LM, RouterAction.APPROVE): frozenset({LeaveStatus.PENDING_GM}),
    (LeaveStatus.PENDING_LM, RouterAction.REJECT): frozenset({LeaveStatus.REJECTED}),
    (LeaveStatus.PENDING_LM, RouterAction.CANCEL): frozenset({LeaveStatus.CANCELLED}),
    (LeaveStatus.PENDING_GM, RouterAction.APPROVE): frozenset({LeaveStatus.APPROVED}),
    (LeaveStatus.PENDING_GM, RouterAction.REJECT): frozenset({LeaveStatus.REJECTED}),
    (LeaveStatus.PENDING_GM, RouterAction.CANCEL): frozenset({LeaveStatus.CANCELLED}),
}


class ApprovalChain(BaseModel):
    """Org-chart approvers for one requester, resolved at assignment time."""
    model_config = ConfigDict(frozen=True)

    line_manager_id: Optional[int] = None
    general_manager_id: Optional[int] = None
    backup_approver_id: Optional[int] = None


class RequestState(BaseModel):
    """Routing-relevant view of a leave request."""
    model_config = ConfigDict(frozen=True)

    id: int
    requester_id: int
    status: LeaveStatus = LeaveStatus.DRAFT
    current_approver_id: Optional[int] = None
    assigned_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    decided_at: Optional[datetime] = None
    decided_by: Optional[int] = None
    decision_note: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    consumption: Consumption = Consumption()


class Transition(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: RouterAction
    previous_status: LeaveStatus
    state: RequestState
    # Set only on PENDING_GM -> APPROVED
    apply_consumption: Optional[Consumption] = None


def allowed_actions(current: LeaveStatus) -> FrozenSet[RouterAction]:
    return frozenset(action for (status, action) in TRANSITIONS if status == current)


def _guard(state: RequestState, expected_status: LeaveStatus, action: RouterAction) -> FrozenSet[LeaveStatus]:
    if state.status != expected_status:
        raise StaleState(
            f"Leave request {state.id} is {state.status.value}, expected {expected_status.value}",
            meta={"current_status": state.status.value, "expected_status": expected_status.value},
        )
    targets = TRANSITIONS.get((state.status, action))
    if not targets:
        raise IllegalTransition(
            f"Cannot {action.value.lower()} leave request {state.id} with status {state.status.value}",
            meta={"status": state.status.value, "action": action.value},
        )
    return targets


def _log_transition(state: RequestState, before: LeaveStatus, action: RouterAction) -> None:
    logger.info(
        "leave status transition: leave_request_id=%s before=%s after=%s action=%s",
        state.id, before.value, state.status.value, action.value.lower(),
    )


def submit(
    state: RequestState,
    requester_role: RequesterRole,
    chain: ApprovalChain,
    expected_status: LeaveStatus,
    now: datetime,
) -> Transition:
    """
    Route a draft to its first approver.

    Staff go to their line manager (PENDING_LM); managers booking their own
    leave go straight to the general manager (PENDING_GM).

    Raises:
        StaleState, IllegalTransition, MissingApprover
    """
    _guard(state, expected_status, RouterAction.SUBMIT)

    if requester_role == RequesterRole.STAFF:
        next_status = LeaveStatus.PENDING_LM
        approver_id = chain.line_manager_id
    else:
        next_status = LeaveStatus.PENDING_GM
        approver_id = chain.general_manager_id

    if approver_id is None:
        raise MissingApprover(
            f"No approver configured for {next_status.value} of employee {state.requester_id}. "
            "Ask an administrator to set the line manager / general manager mapping.",
            meta={"requester_id": state.requester_id, "target_status": next_status.value},
        )
    if approver_id == state.requester_id:
        raise MissingApprover(
            f"Employee {state.requester_id} is configured as their own approver",
            meta={"requester_id": state.requester_id, "target_status": next_status.value},
        )

    new_state = state.model_copy(update={
        "status": next_status,
        "current_approver_id": approver_id,
        "assigned_at": now,
        "submitted_at": now,
        "decided_at": None,
        "decided_by": None,
    })
    _log_transition(new_state, state.status, RouterAction.SUBMIT)
    return Transition(action=RouterAction.SUBMIT, previous_status=state.status, state=new_state)


def decide(
    state: RequestState,
    acting_approver_id: int,
    decision: Decision,
    chain: ApprovalChain,
    expected_status: LeaveStatus,
    now: datetime,
    note: Optional[str] = None,
) -> Transition:
    """
    Apply an approver's decision.

    REJECT ends the request. APPROVE at PENDING_LM moves it to the general
    manager and restarts the SLA clock. APPROVE at PENDING_GM ends it as
    APPROVED and returns the stored consumption for the ledger.

    Raises:
        StaleState, IllegalTransition, Unauthorized, MissingApprover
    """
    action = RouterAction.APPROVE if decision == Decision.APPROVE else RouterAction.REJECT
    _guard(state, expected_status, action)

    if acting_approver_id != state.current_approver_id:
        raise Unauthorized(
            f"Employee {acting_approver_id} is not the current approver of leave request {state.id}",
            meta={"current_approver_id": state.current_approver_id},
        )

    if decision == Decision.REJECT:
        new_state = state.model_copy(update={
            "status": LeaveStatus.REJECTED,
            "current_approver_id": None,
            "decided_at": now,
            "decided_by": acting_approver_id,
            "decision_note": note,
        })
        _log_transition(new_state, state.status, action)
        return Transition(action=action, previous_status=state.status, state=new_state)

    if state.status == LeaveStatus.PENDING_LM:
        if chain.general_manager_id is None:
            raise MissingApprover(
                f"No general manager configured for employee {state.requester_id}",
                meta={"requester_id": state.requester_id, "target_status": LeaveStatus.PENDING_GM.value},
            )
        new_state = state.model_copy(update={
            "status": LeaveStatus.PENDING_GM,
            "current_approver_id": chain.general_manager_id,
            "assigned_at": now,
            "decision_note": note,
        })
        _log_transition(new_state, state.status, action)
        return Transition(action=action, previous_status=state.status, state=new_state)

    new_state = state.model_copy(update={
        "status": LeaveStatus.APPROVED,
        "current_approver_id": None,
        "decided_at": now,
        "decided_by": acting_approver_id,
        "decision_note": note,
    })
    _log_transition(new_state, state.status, action)
    return Transition(
        action=action,
        previous_status=state.status,
        state=new_state,
        apply_consumption=state.consumption,
    )


def cancel(
    state: RequestState,
    requester_id: int,
    expected_status: LeaveStatus,
    now: datetime,
) -> Transition:
    """
    Requester withdraws a pending request. Nothing was consumed, so nothing is re-credited.

    Raises:
        StaleState, IllegalTransition, Unauthorized
    """
    _guard(state, expected_status, RouterAction.CANCEL)

    if requester_id != state.requester_id:
        raise Unauthorized(
            f"Only the requester can cancel leave request {state.id}",
            meta={"requester_id": state.requester_id},
        )

    new_state = state.model_copy(update={
        "status": LeaveStatus.CANCELLED,
        "current_approver_id": None,
        "cancelled_at": now,
    })
    _log_transition(new_state, state.status, RouterAction.CANCEL)
    return Transition(action=RouterAction.CANCEL, previous_status=state.status, state=new_state)


def escalation_target(state: RequestState, chain: ApprovalChain) -> Optional[int]:
    """Who an overdue request would be escalated to. Informational only."""
    if state.status == LeaveStatus.PENDING_LM:
        return chain.general_manager_id
    if state.status == LeaveStatus.PENDING_GM:
        return chain.backup_approver_id
    return None
