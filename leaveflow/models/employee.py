"""
Employee and approval chain models
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from leaveflow.db.base import Base
from leaveflow.services.approval_router import RequesterRole as Role


class Employee(Base):
    """Read-only profile snapshot owned by the identity service."""
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    emp_code = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    role = Column(String, nullable=False, default=Role.STAFF.value)
    grade = Column(Integer, nullable=False, default=1)
    contract_id = Column(Integer, nullable=True, index=True)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    approval_chain = relationship(
        "ApprovalChainConfig",
        foreign_keys="ApprovalChainConfig.employee_id",
        back_populates="employee",
        uselist=False,
    )
    leave_requests = relationship("LeaveRequest", foreign_keys="LeaveRequest.employee_id", back_populates="employee")


class ApprovalChainConfig(Base):
    """Org-chart mapping: who approves an employee's leave."""
    __tablename__ = "approval_chains"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, unique=True, index=True)
    line_manager_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    general_manager_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    backup_approver_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    employee = relationship("Employee", foreign_keys=[employee_id], back_populates="approval_chain")
    line_manager = relationship("Employee", foreign_keys=[line_manager_id])
    general_manager = relationship("Employee", foreign_keys=[general_manager_id])
    backup_approver = relationship("Employee", foreign_keys=[backup_approver_id])
