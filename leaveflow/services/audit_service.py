"""
Audit logging service
"""
from sqlalchemy.orm import Session
from typing import Optional, Dict, Any
from leaveflow.models.audit_log import AuditLog
from leaveflow.utils.datetime_utils import now_utc
from leaveflow.utils.json_serializer import to_json_safe


def log_audit(
    db: Session,
    actor_id: int,
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    meta: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Stage an audit log entry in the caller's transaction

    The row is committed together with the state change it describes, so a
    rolled-back transition leaves no audit trace.

    Args:
        db: Database session
        actor_id: ID of the employee performing the action
        action: Action type (e.g., "LEAVE_SUBMIT", "LEAVE_APPROVE", "YEAR_CLOSE_RUN")
        entity_type: Type of entity (e.g., "leave_requests", "year_close")
        entity_id: ID of the affected entity (optional)
        meta: Additional metadata as dictionary (optional)

    Returns:
        Staged AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_json=to_json_safe(meta) if meta is not None else None,
        created_at=now_utc()
    )
    db.add(audit_log)
    return audit_log
