"""
Leave endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from leaveflow.core.deps import get_current_employee, get_db
from leaveflow.core.exceptions import Unauthorized
from leaveflow.models.employee import Employee, Role
from leaveflow.models.leave import LeaveRequest
from leaveflow.schemas.leave import (
    CancelRequest,
    ConsumptionOut,
    DecisionRequest,
    EscalationOut,
    LeaveDraftRequest,
    LeaveListResponse,
    LeaveOut,
    LeavePlanOut,
    LeavePlanRequest,
    PendingItemOut,
    PendingListResponse,
    SubmitRequest,
)
from leaveflow.services.approval_router import LeaveStatus
from leaveflow.services.consumption_planner import PlanResult
from leaveflow.services.leave_service import (
    cancel_leave,
    create_draft,
    decide_leave,
    get_escalation_status,
    get_leave,
    list_my_leaves,
    list_pending_for_approver,
    plan_leave,
    submit_leave,
)

router = APIRouter()


def _plan_out(plan: PlanResult) -> LeavePlanOut:
    return LeavePlanOut(
        working_days=plan.working_days,
        strategy=plan.strategy,
        consumption=ConsumptionOut(
            carry_forward=plan.consumption.carry_forward,
            current_year=plan.consumption.current_year,
            total=plan.consumption.total,
        ),
        feasible=plan.feasible,
        warnings=list(plan.warnings),
        blocks=list(plan.blocks),
    )


@router.post("/plan", response_model=LeavePlanOut)
async def plan_leave_endpoint(
    plan_data: LeavePlanRequest,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee)
):
    """
    Preview how a leave request would consume balance

    Returns working days, the carry-forward / current-year split for the chosen
    strategy, warnings, and blocks when the request could not be drafted.
    Nothing is booked.
    """
    plan = plan_leave(
        db=db,
        employee_id=current_employee.id,
        leave_type_code=plan_data.leave_type_code,
        from_date=plan_data.from_date,
        to_date=plan_data.to_date,
        strategy=plan_data.strategy,
        reason=plan_data.reason,
        has_attachment=plan_data.has_attachment,
    )
    return _plan_out(plan)


@router.post("", response_model=LeaveOut, status_code=201)
async def create_draft_endpoint(
    draft_data: LeaveDraftRequest,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee)
):
    """
    Create a DRAFT leave request for the current employee

    The consumption split is fixed here and applied on final approval.
    Infeasible plans are rejected (INSUFFICIENT_BALANCE / POLICY_VIOLATION).
    """
    return create_draft(
        db=db,
        employee_id=current_employee.id,
        leave_type_code=draft_data.leave_type_code,
        from_date=draft_data.from_date,
        to_date=draft_data.to_date,
        strategy=draft_data.strategy,
        reason=draft_data.reason,
        has_attachment=draft_data.has_attachment,
    )


@router.get("/my", response_model=LeaveListResponse)
async def list_my_leaves_endpoint(
    year: Optional[int] = Query(None, description="Policy year filter"),
    status: Optional[LeaveStatus] = Query(None, description="Status filter"),
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee)
):
    """List the current employee's leave requests, newest first"""
    leaves = list_my_leaves(db, current_employee.id, year=year, status=status)
    return LeaveListResponse(
        items=[LeaveOut.model_validate(leave) for leave in leaves],
        total=len(leaves)
    )


@router.get("/pending", response_model=PendingListResponse)
async def list_pending_leaves_endpoint(
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee)
):
    """
    List requests waiting on the current employee's decision

    Oldest assignment first. Overdue requests show display_status ESCALATED;
    their stored status is unchanged.
    """
    pending = list_pending_for_approver(db, current_employee.id)
    return PendingListResponse(
        items=[
            PendingItemOut(
                leave=LeaveOut.model_validate(leave),
                is_escalated=escalation.is_escalated,
                due_at=escalation.due_at,
                display_status=escalation.display_status,
            )
            for leave, escalation in pending
        ],
        total=len(pending)
    )


def _ensure_can_view(leave: LeaveRequest, employee: Employee) -> None:
    """Requester, current approver, decider or ADMIN"""
    allowed = {leave.employee_id, leave.current_approver_id, leave.decided_by_id}
    if employee.id not in allowed and employee.role != Role.ADMIN.value:
        raise Unauthorized(f"Employee {employee.id} cannot view leave request {leave.id}")


@router.get("/{leave_request_id}", response_model=LeaveOut)
async def get_leave_endpoint(
    leave_request_id: int,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee)
):
    """Get one leave request (requester, current approver, decider or ADMIN)"""
    leave = get_leave(db, leave_request_id)
    _ensure_can_view(leave, current_employee)
    return leave


@router.post("/{leave_request_id}/submit", response_model=LeaveOut)
async def submit_leave_endpoint(
    leave_request_id: int,
    submit_data: SubmitRequest,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee)
):
    """
    Submit a draft for approval

    Staff requests go to the line manager (PENDING_LM); managers' own
    requests go to the general manager (PENDING_GM).
    """
    return submit_leave(
        db=db,
        leave_id=leave_request_id,
        actor_id=current_employee.id,
        expected_status=submit_data.expected_status,
    )


@router.post("/{leave_request_id}/decide", response_model=LeaveOut)
async def decide_leave_endpoint(
    leave_request_id: int,
    decision_data: DecisionRequest,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee)
):
    """
    Approve or reject a pending request

    Only the current approver may decide. expected_status must match the
    stored status, otherwise 409 STALE_STATE. Final approval deducts the
    balance in the same transaction.
    """
    return decide_leave(
        db=db,
        leave_id=leave_request_id,
        actor_id=current_employee.id,
        decision=decision_data.decision,
        expected_status=decision_data.expected_status,
        note=decision_data.note,
    )


@router.post("/{leave_request_id}/cancel", response_model=LeaveOut)
async def cancel_leave_endpoint(
    leave_request_id: int,
    cancel_data: CancelRequest,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee)
):
    """Requester withdraws a pending request; the balance is not touched"""
    return cancel_leave(
        db=db,
        leave_id=leave_request_id,
        actor_id=current_employee.id,
        expected_status=cancel_data.expected_status,
    )


@router.get("/{leave_request_id}/escalation", response_model=EscalationOut)
async def get_escalation_endpoint(
    leave_request_id: int,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee)
):
    """Derived SLA state of a request and who it would escalate to"""
    _ensure_can_view(get_leave(db, leave_request_id), current_employee)
    escalation, target = get_escalation_status(db, leave_request_id)
    return EscalationOut(
        leave_request_id=escalation.request_id,
        status=escalation.status,
        is_escalated=escalation.is_escalated,
        due_at=escalation.due_at,
        display_status=escalation.display_status,
        escalation_target_id=target,
    )
