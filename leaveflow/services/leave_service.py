"""
Leave service - drafts, routing and final approval against the balance ledger.

Every state change is a compare-and-swap on leave_requests.status: the UPDATE
only matches when the row still has the status the caller expected. Final
approval writes the status, the balance counters, the journal entry and the
audit row in one commit, or none of them.
"""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from leaveflow.core.exceptions import (
    InsufficientBalance,
    LeaveCoreError,
    NotFound,
    OverlappingLeave,
    PolicyViolation,
    StaleState,
    Unauthorized,
)
from leaveflow.models.employee import ApprovalChainConfig, Employee
from leaveflow.models.leave import LeaveRequest, LeaveTransaction, LeaveTransactionAction
from leaveflow.services import approval_router as router
from leaveflow.services import balance_ledger as ledger
from leaveflow.services.approval_router import (
    PENDING_STATUSES,
    ApprovalChain,
    Decision,
    LeaveStatus,
    RequesterRole,
    RequestState,
    Transition,
)
from leaveflow.services.audit_service import log_audit
from leaveflow.services.balance_ledger import Consumption
from leaveflow.services.balance_service import ensure_balance_account, get_balance_row, to_account, write_account
from leaveflow.services.consumption_planner import (
    PlanResult,
    Strategy,
    plan_consumption,
    requirement_blocks,
    validate_date_range,
)
from leaveflow.services.escalation_scheduler import EscalationStatus, escalation_status
from leaveflow.services.policy_catalog import normalize_code
from leaveflow.services.policy_service import load_catalog
from leaveflow.utils.datetime_utils import ensure_utc, now_utc

logger = logging.getLogger(__name__)

JOURNAL_KEY = "uq_leave_transactions_request_action"
# SQLite names the columns instead of the constraint
JOURNAL_KEY_COLUMNS = "leave_transactions.leave_request_id, leave_transactions.action"


def get_employee(db: Session, employee_id: int) -> Employee:
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee:
        raise NotFound(f"Employee with id {employee_id} not found")
    return employee


def get_leave(db: Session, leave_id: int) -> LeaveRequest:
    leave = db.query(LeaveRequest).filter(LeaveRequest.id == leave_id).first()
    if not leave:
        raise NotFound(f"Leave request with id {leave_id} not found")
    return leave


def to_request_state(leave: LeaveRequest) -> RequestState:
    return RequestState(
        id=leave.id,
        requester_id=leave.employee_id,
        status=leave.status,
        current_approver_id=leave.current_approver_id,
        assigned_at=ensure_utc(leave.assigned_at),
        submitted_at=ensure_utc(leave.submitted_at),
        decided_at=ensure_utc(leave.decided_at),
        decided_by=leave.decided_by_id,
        decision_note=leave.decision_note,
        cancelled_at=ensure_utc(leave.cancelled_at),
        consumption=Consumption(
            carry_forward=leave.carry_forward_days or Decimal("0"),
            current_year=leave.current_year_days or Decimal("0"),
        ),
    )


def _state_values(state: RequestState) -> Dict[str, Any]:
    """Columns written back for a routed state."""
    return {
        "status": state.status,
        "current_approver_id": state.current_approver_id,
        "assigned_at": state.assigned_at,
        "submitted_at": state.submitted_at,
        "decided_at": state.decided_at,
        "decided_by_id": state.decided_by,
        "decision_note": state.decision_note,
        "cancelled_at": state.cancelled_at,
    }


def _active_or_backup(db: Session, approver_id: Optional[int], backup_id: Optional[int]) -> Optional[int]:
    """Primary approver when active; the backup when the primary is inactive. A missing primary stays missing."""
    if approver_id is None:
        return None
    approver = db.query(Employee).filter(Employee.id == approver_id).first()
    if approver and approver.active:
        return approver_id
    if backup_id is not None:
        logger.info("Approver %s is inactive, routing to backup approver %s", approver_id, backup_id)
        return backup_id
    return None


def resolve_approval_chain(db: Session, employee_id: int) -> ApprovalChain:
    """
    Org-chart approvers for an employee.

    An inactive line manager or general manager is replaced by the configured
    backup approver; with no backup the slot is empty and routing raises MissingApprover.
    """
    config = db.query(ApprovalChainConfig).filter(ApprovalChainConfig.employee_id == employee_id).first()
    if not config:
        return ApprovalChain()
    backup_id = config.backup_approver_id
    return ApprovalChain(
        line_manager_id=_active_or_backup(db, config.line_manager_id, backup_id),
        general_manager_id=_active_or_backup(db, config.general_manager_id, backup_id),
        backup_approver_id=backup_id,
    )


def validate_overlap(
    db: Session,
    employee_id: int,
    from_date: date,
    to_date: date,
    exclude_leave_id: Optional[int] = None,
) -> None:
    """
    Reject dates overlapping another PENDING_* or APPROVED request of the employee.

    Raises:
        OverlappingLeave
    """
    query = db.query(LeaveRequest).filter(
        LeaveRequest.employee_id == employee_id,
        LeaveRequest.status.in_(list(PENDING_STATUSES) + [LeaveStatus.APPROVED]),
        LeaveRequest.to_date >= from_date,
        LeaveRequest.from_date <= to_date,
    )
    if exclude_leave_id is not None:
        query = query.filter(LeaveRequest.id != exclude_leave_id)

    existing = query.first()
    if existing:
        raise OverlappingLeave(
            f"Leave request overlaps with {existing.booking_ref} "
            f"({existing.from_date} to {existing.to_date}, status {existing.status.value})",
            meta={"leave_request_id": existing.id, "booking_ref": existing.booking_ref},
        )


def plan_leave(
    db: Session,
    employee_id: int,
    leave_type_code: str,
    from_date: date,
    to_date: date,
    strategy: Strategy = Strategy.SMART,
    reason: Optional[str] = None,
    has_attachment: bool = False,
) -> PlanResult:
    """
    Preview how a request would consume balance. Nothing is stored beyond
    opening the balance account when it does not exist yet.

    The carry-forward window is judged on the last day of the leave.

    Raises:
        InvalidDateRange: bad range, cross-year range, or no working days
        NotFound: unknown or inactive leave type
    """
    working_days = validate_date_range(from_date, to_date)
    year = from_date.year

    catalog = load_catalog(db, [year])
    rule = catalog.leave_type_rule(leave_type_code)
    account = ensure_balance_account(db, employee_id, year, catalog)

    plan = plan_consumption(
        Decimal(working_days),
        ledger.remaining(to_account(account)),
        catalog.carry_forward_window_open(to_date, year),
        strategy,
        rule=rule,
        carry_forward_expiry=catalog.carry_forward_expiry(year),
    )

    missing = requirement_blocks(rule, reason, has_attachment)
    if missing:
        plan = plan.model_copy(update={
            "feasible": False,
            "blocks": plan.blocks + tuple(missing),
            "policy_blocks": plan.policy_blocks + tuple(missing),
        })
    return plan


def create_draft(
    db: Session,
    employee_id: int,
    leave_type_code: str,
    from_date: date,
    to_date: date,
    strategy: Strategy = Strategy.SMART,
    reason: Optional[str] = None,
    has_attachment: bool = False,
) -> LeaveRequest:
    """
    Store a DRAFT with the consumption split fixed at planning time.

    Raises:
        PolicyViolation: leave-type rule not met (reason, attachment, strict duration)
        InsufficientBalance: the strategy cannot cover the requested days
        OverlappingLeave
    """
    employee = get_employee(db, employee_id)
    plan = plan_leave(
        db, employee.id, leave_type_code, from_date, to_date, strategy, reason, has_attachment,
    )
    if plan.policy_blocks:
        raise PolicyViolation(" ".join(plan.policy_blocks), meta={"blocks": list(plan.policy_blocks)})
    if not plan.feasible:
        raise InsufficientBalance(" ".join(plan.blocks), meta={"blocks": list(plan.blocks)})

    validate_overlap(db, employee.id, from_date, to_date)

    leave = LeaveRequest(
        employee_id=employee.id,
        leave_type_code=normalize_code(leave_type_code),
        from_date=from_date,
        to_date=to_date,
        working_days=plan.working_days,
        reason=reason,
        has_attachment=has_attachment,
        strategy=strategy,
        status=LeaveStatus.DRAFT,
        carry_forward_days=plan.consumption.carry_forward,
        current_year_days=plan.consumption.current_year,
    )
    db.add(leave)
    db.flush()

    log_audit(
        db=db,
        actor_id=employee.id,
        action="LEAVE_DRAFT",
        entity_type="leave_requests",
        entity_id=leave.id,
        meta={
            "leave_type_code": leave.leave_type_code,
            "from_date": str(from_date),
            "to_date": str(to_date),
            "working_days": plan.working_days,
            "strategy": strategy.value,
            "carry_forward_days": plan.consumption.carry_forward,
            "current_year_days": plan.consumption.current_year,
            "warnings": list(plan.warnings),
        },
    )
    db.commit()
    db.refresh(leave)
    logger.info(
        "Leave draft created: leave_request_id=%s employee_id=%s days=%s split=cf:%s/cy:%s",
        leave.id, employee.id, plan.working_days, plan.consumption.carry_forward, plan.consumption.current_year,
    )
    return leave


def is_journal_conflict(exc: IntegrityError) -> bool:
    """True when the violated constraint is the (leave_request_id, action) journal key."""
    message = str(exc.orig)
    return JOURNAL_KEY in message or JOURNAL_KEY_COLUMNS in message


def _compare_and_swap(db: Session, leave_id: int, expected_status: LeaveStatus, values: Dict[str, Any]) -> None:
    """UPDATE ... WHERE id = :id AND status = :expected; no match means another writer got there first."""
    updated = (
        db.query(LeaveRequest)
        .filter(LeaveRequest.id == leave_id, LeaveRequest.status == expected_status)
        .update(values, synchronize_session=False)
    )
    if updated != 1:
        db.rollback()
        current = db.query(LeaveRequest.status).filter(LeaveRequest.id == leave_id).scalar()
        raise StaleState(
            f"Leave request {leave_id} is no longer {expected_status.value}",
            meta={
                "current_status": current.value if current is not None else None,
                "expected_status": expected_status.value,
            },
        )


def _commit_transition(
    db: Session,
    leave: LeaveRequest,
    transition: Transition,
    expected_status: LeaveStatus,
    actor_id: int,
    audit_action: str,
    now: datetime,
) -> LeaveRequest:
    leave_id = leave.id
    try:
        _compare_and_swap(db, leave_id, expected_status, _state_values(transition.state))
        if transition.apply_consumption is not None:
            _apply_to_ledger(db, leave, transition.apply_consumption, actor_id, now)
        log_audit(
            db=db,
            actor_id=actor_id,
            action=audit_action,
            entity_type="leave_requests",
            entity_id=leave_id,
            meta={
                "before": transition.previous_status.value,
                "after": transition.state.status.value,
                "current_approver_id": transition.state.current_approver_id,
                "note": transition.state.decision_note,
            },
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if not is_journal_conflict(exc):
            logger.error("leave status transition failed: leave_request_id=%s error=%s", leave_id, exc.orig)
            raise
        # Journal key already taken: a concurrent approval won
        raise StaleState(
            f"Leave request {leave_id} was already applied to the balance",
            meta={"expected_status": expected_status.value},
        ) from exc
    except LeaveCoreError:
        db.rollback()
        raise

    logger.info(
        "leave status transition: leave_request_id=%s before=%s after=%s action=%s",
        leave_id, transition.previous_status.value, transition.state.status.value, transition.action.value.lower(),
    )
    return get_leave(db, leave_id)


def _apply_to_ledger(
    db: Session,
    leave: LeaveRequest,
    consumption: Consumption,
    actor_id: int,
    now: datetime,
) -> None:
    """Deduct the stored consumption and journal it. Runs inside the caller's transaction."""
    balance = get_balance_row(db, leave.employee_id, leave.policy_year, for_update=True)
    if balance is None:
        raise NotFound(f"No balance account for employee {leave.employee_id} in {leave.policy_year}")

    write_account(balance, ledger.apply(to_account(balance), consumption))
    db.add(LeaveTransaction(
        employee_id=leave.employee_id,
        leave_request_id=leave.id,
        policy_year=leave.policy_year,
        carry_forward_delta=-consumption.carry_forward,
        current_year_delta=-consumption.current_year,
        action=LeaveTransactionAction.APPROVE_DEDUCT.value,
        remarks=f"Approved {leave.booking_ref}",
        action_by_employee_id=actor_id,
        action_at=now,
    ))
    db.flush()


def submit_leave(
    db: Session,
    leave_id: int,
    actor_id: int,
    expected_status: LeaveStatus = LeaveStatus.DRAFT,
    now: Optional[datetime] = None,
) -> LeaveRequest:
    """
    Route a draft to its first approver.

    Raises:
        Unauthorized: actor is not the requester
        StaleState, IllegalTransition, MissingApprover
        InsufficientBalance: balance fell below the stored split since drafting
        OverlappingLeave
    """
    now = now or now_utc()
    leave = get_leave(db, leave_id)
    if leave.employee_id != actor_id:
        raise Unauthorized(
            f"Only the requester can submit leave request {leave_id}",
            meta={"requester_id": leave.employee_id},
        )

    requester = get_employee(db, leave.employee_id)
    chain = resolve_approval_chain(db, requester.id)
    transition = router.submit(to_request_state(leave), RequesterRole(requester.role), chain, expected_status, now)

    # The split was checked at drafting; other approvals may have spent the balance since
    account = ensure_balance_account(db, leave.employee_id, leave.policy_year)
    left = ledger.remaining(to_account(account))
    consumption = transition.state.consumption
    if consumption.carry_forward > left.carry_forward or consumption.current_year > left.current_year:
        raise InsufficientBalance(
            f"Balance no longer covers {leave.booking_ref}: remaining carry_forward={left.carry_forward}, "
            f"current_year={left.current_year}",
            meta={
                "remaining": {"carry_forward": left.carry_forward, "current_year": left.current_year},
            },
        )
    validate_overlap(db, leave.employee_id, leave.from_date, leave.to_date, exclude_leave_id=leave.id)

    return _commit_transition(db, leave, transition, expected_status, actor_id, "LEAVE_SUBMIT", now)


def decide_leave(
    db: Session,
    leave_id: int,
    actor_id: int,
    decision: Decision,
    expected_status: LeaveStatus,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> LeaveRequest:
    """
    Approve or reject at the current stage.

    PENDING_GM -> APPROVED deducts the stored consumption from the balance in
    the same transaction as the status change. If the ledger refuses, the
    request stays PENDING_GM and nothing is written.

    Raises:
        StaleState: status moved on, or the approval was already applied
        IllegalTransition, Unauthorized, MissingApprover
        InsufficientBalance: the balance can no longer cover the request
    """
    now = now or now_utc()
    leave = get_leave(db, leave_id)
    chain = resolve_approval_chain(db, leave.employee_id)
    transition = router.decide(to_request_state(leave), actor_id, decision, chain, expected_status, now, note)

    if transition.apply_consumption is not None:
        # Open the account outside the approval transaction
        ensure_balance_account(db, leave.employee_id, leave.policy_year)

    if decision == Decision.REJECT:
        audit_action = "LEAVE_REJECT"
    elif transition.state.status == LeaveStatus.APPROVED:
        audit_action = "LEAVE_APPROVE"
    else:
        audit_action = "LEAVE_FORWARD"
    return _commit_transition(db, leave, transition, expected_status, actor_id, audit_action, now)


def cancel_leave(
    db: Session,
    leave_id: int,
    actor_id: int,
    expected_status: LeaveStatus,
    now: Optional[datetime] = None,
) -> LeaveRequest:
    """
    Requester withdraws a pending request. The balance is untouched.

    Raises:
        StaleState, IllegalTransition, Unauthorized
    """
    now = now or now_utc()
    leave = get_leave(db, leave_id)
    transition = router.cancel(to_request_state(leave), actor_id, expected_status, now)
    return _commit_transition(db, leave, transition, expected_status, actor_id, "LEAVE_CANCEL", now)


def get_escalation_status(
    db: Session,
    leave_id: int,
    now: Optional[datetime] = None,
) -> Tuple[EscalationStatus, Optional[int]]:
    """
    Derived SLA state of a request and who it would escalate to.

    The stored status is never changed here.
    """
    leave = get_leave(db, leave_id)
    days = load_catalog(db, [leave.policy_year]).escalation_days(leave.policy_year)
    state = to_request_state(leave)
    result = escalation_status(state, now or now_utc(), days)
    target = None
    if result.is_escalated:
        target = router.escalation_target(state, resolve_approval_chain(db, leave.employee_id))
    return result, target


def list_pending_for_approver(
    db: Session,
    approver_id: int,
    now: Optional[datetime] = None,
) -> List[Tuple[LeaveRequest, EscalationStatus]]:
    """Requests waiting on approver_id, oldest assignment first, with their SLA state."""
    now = now or now_utc()
    leaves = (
        db.query(LeaveRequest)
        .filter(
            LeaveRequest.current_approver_id == approver_id,
            LeaveRequest.status.in_(list(PENDING_STATUSES)),
        )
        .order_by(LeaveRequest.assigned_at.asc(), LeaveRequest.id.asc())
        .all()
    )
    if not leaves:
        return []

    catalog = load_catalog(db, {leave.policy_year for leave in leaves})
    return [
        (leave, escalation_status(to_request_state(leave), now, catalog.escalation_days(leave.policy_year)))
        for leave in leaves
    ]


def list_my_leaves(
    db: Session,
    employee_id: int,
    year: Optional[int] = None,
    status: Optional[LeaveStatus] = None,
) -> List[LeaveRequest]:
    query = db.query(LeaveRequest).filter(LeaveRequest.employee_id == employee_id)
    if year is not None:
        query = query.filter(
            LeaveRequest.from_date >= date(year, 1, 1),
            LeaveRequest.from_date <= date(year, 12, 31),
        )
    if status is not None:
        query = query.filter(LeaveRequest.status == status)
    return query.order_by(LeaveRequest.from_date.desc(), LeaveRequest.id.desc()).all()
