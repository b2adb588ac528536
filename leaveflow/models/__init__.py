"""
Database models
"""
from leaveflow.models.employee import Employee, ApprovalChainConfig, Role
from leaveflow.models.audit_log import AuditLog
from leaveflow.models.leave import (
    LeaveRequest,
    LeaveBalance,
    LeaveTransaction,
    LeaveTransactionAction,
    LeaveStatus,
)
from leaveflow.models.policy import PolicySetting, EntitlementBand, LeaveTypeConfig

__all__ = [
    "Employee",
    "ApprovalChainConfig",
    "Role",
    "AuditLog",
    "LeaveRequest",
    "LeaveBalance",
    "LeaveTransaction",
    "LeaveTransactionAction",
    "LeaveStatus",
    "PolicySetting",
    "EntitlementBand",
    "LeaveTypeConfig",
]
