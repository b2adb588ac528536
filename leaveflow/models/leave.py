"""
Leave models: requests, balance accounts, balance journal
"""
from sqlalchemy import (
    Column,
    Integer,
    Date,
    DateTime,
    ForeignKey,
    String,
    Text,
    Numeric,
    Enum as SQLEnum,
    Boolean,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text
import enum
from leaveflow.db.base import Base
from leaveflow.services.approval_router import LeaveStatus
from leaveflow.services.consumption_planner import Strategy
from leaveflow.utils.booking import format_booking_ref


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type_code = Column(String(40), nullable=False)
    from_date = Column(Date, nullable=False)
    to_date = Column(Date, nullable=False)
    working_days = Column(Numeric(5, 2), nullable=False)
    reason = Column(Text, nullable=True)
    has_attachment = Column(Boolean, nullable=False, default=False)
    strategy = Column(SQLEnum(Strategy), nullable=False, default=Strategy.SMART)
    status = Column(SQLEnum(LeaveStatus), nullable=False, server_default=text("'DRAFT'"), index=True)

    # Consumption plan captured at draft time, applied on final approval
    carry_forward_days = Column(Numeric(5, 2), nullable=False, server_default=text("'0'"))
    current_year_days = Column(Numeric(5, 2), nullable=False, server_default=text("'0'"))

    current_approver_id = Column(Integer, ForeignKey("employees.id"), nullable=True, index=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)  # SLA clock start for current approver
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    decided_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    decision_note = Column(Text, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    employee = relationship("Employee", foreign_keys=[employee_id], back_populates="leave_requests")
    current_approver = relationship("Employee", foreign_keys=[current_approver_id])
    decided_by = relationship("Employee", foreign_keys=[decided_by_id])

    __table_args__ = (
        Index("ix_leave_requests_employee_dates", "employee_id", "from_date", "to_date"),
        CheckConstraint("from_date <= to_date", name="check_from_date_le_to_date"),
    )

    @property
    def policy_year(self) -> int:
        return self.from_date.year

    @property
    def booking_ref(self) -> str:
        return format_booking_ref(self.id, self.policy_year)


class LeaveBalance(Base):
    """
    Balance account: one row per (employee_id, policy_year).
    remaining current-year = entitlement_days - used_days
    remaining carry-forward = carried_forward_days - carried_forward_used_days
    """
    __tablename__ = "balance_accounts"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    policy_year = Column(Integer, nullable=False, index=True)
    entitlement_days = Column(Numeric(5, 2), nullable=False, default=0)
    used_days = Column(Numeric(5, 2), nullable=False, default=0)
    carried_forward_days = Column(Numeric(5, 2), nullable=False, default=0)
    carried_forward_used_days = Column(Numeric(5, 2), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    employee = relationship("Employee", backref="balance_accounts")

    __table_args__ = (
        UniqueConstraint("employee_id", "policy_year", name="uq_balance_accounts_employee_year"),
        CheckConstraint("used_days >= 0 AND carried_forward_used_days >= 0", name="check_used_non_negative"),
        CheckConstraint("carried_forward_used_days <= carried_forward_days", name="check_cf_used_le_cf"),
        CheckConstraint("used_days <= entitlement_days + carried_forward_days", name="check_used_le_available"),
    )


class LeaveTransactionAction(str, enum.Enum):
    APPROVE_DEDUCT = "APPROVE_DEDUCT"
    YEAR_CLOSE = "YEAR_CLOSE"


class LeaveTransaction(Base):
    """
    Journal of balance mutations.
    (leave_request_id, action) is unique so a replayed approval cannot deduct twice.
    """
    __tablename__ = "leave_transactions"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id", ondelete="SET NULL"), nullable=True, index=True)
    policy_year = Column(Integer, nullable=False, index=True)
    carry_forward_delta = Column(Numeric(5, 2), nullable=False, default=0)  # + credit, - deduct
    current_year_delta = Column(Numeric(5, 2), nullable=False, default=0)
    action = Column(String(30), nullable=False)
    remarks = Column(Text, nullable=True)
    action_by_employee_id = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    action_at = Column(DateTime(timezone=True), nullable=False)

    leave_request = relationship("LeaveRequest", foreign_keys=[leave_request_id])

    __table_args__ = (
        UniqueConstraint("leave_request_id", "action", name="uq_leave_transactions_request_action"),
    )
