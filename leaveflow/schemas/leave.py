"""
Leave schemas
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from leaveflow.services.approval_router import Decision, LeaveStatus
from leaveflow.services.consumption_planner import Strategy
from leaveflow.utils.datetime_utils import iso_8601_utc


class LeavePlanRequest(BaseModel):
    """Schema for previewing a leave request's consumption"""
    leave_type_code: str = Field(..., min_length=1, description="Leave type code, e.g. ANNUAL")
    from_date: date = Field(..., description="Start date of leave")
    to_date: date = Field(..., description="End date of leave")
    strategy: Strategy = Field(Strategy.SMART, description="Balance consumption strategy")
    reason: Optional[str] = Field(None, description="Reason for leave")
    has_attachment: bool = Field(False, description="Whether a supporting document is attached")


class LeaveDraftRequest(LeavePlanRequest):
    """Schema for creating a leave draft (same fields as the plan preview)"""


class ConsumptionOut(BaseModel):
    carry_forward: Decimal
    current_year: Decimal
    total: Decimal


class LeavePlanOut(BaseModel):
    """Consumption preview; infeasible plans list the reasons in blocks"""
    working_days: Decimal
    strategy: Strategy
    consumption: ConsumptionOut
    feasible: bool
    warnings: List[str] = []
    blocks: List[str] = []


class SubmitRequest(BaseModel):
    expected_status: LeaveStatus = Field(LeaveStatus.DRAFT, description="Status the caller last saw")


class DecisionRequest(BaseModel):
    """Schema for an approver's decision"""
    decision: Decision
    expected_status: LeaveStatus = Field(..., description="Status the approver last saw")
    note: Optional[str] = Field(None, max_length=2000, description="Optional remarks")


class CancelRequest(BaseModel):
    expected_status: LeaveStatus = Field(..., description="Status the requester last saw")


class LeaveOut(BaseModel):
    """Schema for leave output. Datetimes in UTC ISO-8601."""
    id: int
    booking_ref: str
    employee_id: int
    leave_type_code: str
    from_date: date
    to_date: date
    working_days: Decimal
    reason: Optional[str] = None
    has_attachment: bool
    strategy: Strategy
    status: LeaveStatus
    carry_forward_days: Decimal
    current_year_days: Decimal
    current_approver_id: Optional[int] = None
    assigned_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    decided_at: Optional[datetime] = None
    decided_by_id: Optional[int] = None
    decision_note: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer(
        "assigned_at", "submitted_at", "decided_at", "cancelled_at", "created_at", "updated_at",
        when_used="always",
    )
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_8601_utc(dt)


class LeaveListResponse(BaseModel):
    """Schema for leave list response"""
    items: List[LeaveOut]
    total: int


class EscalationOut(BaseModel):
    """Derived SLA state; status is the stored status, display_status shows ESCALATED when overdue"""
    leave_request_id: int
    status: LeaveStatus
    is_escalated: bool
    due_at: Optional[datetime] = None
    display_status: str
    escalation_target_id: Optional[int] = None

    @field_serializer("due_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_8601_utc(dt)


class PendingItemOut(BaseModel):
    leave: LeaveOut
    is_escalated: bool
    due_at: Optional[datetime] = None
    display_status: str

    @field_serializer("due_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_8601_utc(dt)


class PendingListResponse(BaseModel):
    items: List[PendingItemOut]
    total: int


class BalanceOut(BaseModel):
    """One balance account with remaining days per bucket"""
    employee_id: int
    policy_year: int
    entitlement_days: Decimal
    used_days: Decimal
    carried_forward_days: Decimal
    carried_forward_used_days: Decimal
    remaining_current_year: Decimal
    remaining_carry_forward: Decimal
    remaining_total: Decimal
    carry_forward_expiry_date: Optional[date] = None
