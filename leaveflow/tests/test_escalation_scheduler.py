"""
Tests for SLA escalation
"""
from datetime import datetime, timedelta, timezone

import pytest

from leaveflow.services.approval_router import LeaveStatus, RequestState
from leaveflow.services.escalation_scheduler import ESCALATED, escalation_status, scan_pending

T0 = datetime(2026, 1, 12, 9, 0, tzinfo=timezone.utc)


def _pending(request_id=1, status=LeaveStatus.PENDING_LM, assigned_at=T0) -> RequestState:
    return RequestState(id=request_id, requester_id=10, status=status, current_approver_id=20, assigned_at=assigned_at)


def test_overdue_request_is_escalated_but_status_unchanged():
    result = escalation_status(_pending(), T0 + timedelta(days=8), 7)
    assert result.is_escalated is True
    assert result.status == LeaveStatus.PENDING_LM
    assert result.display_status == ESCALATED
    assert result.due_at == T0 + timedelta(days=7)


def test_exactly_at_due_time_is_not_escalated():
    result = escalation_status(_pending(), T0 + timedelta(days=7), 7)
    assert result.is_escalated is False
    assert result.display_status == "PENDING_LM"


def test_naive_assigned_at_is_treated_as_utc():
    naive = T0.replace(tzinfo=None)
    result = escalation_status(_pending(assigned_at=naive), T0 + timedelta(days=8), 7)
    assert result.is_escalated is True
    assert result.due_at.tzinfo is not None


def test_non_pending_request_never_escalates():
    approved = _pending(status=LeaveStatus.APPROVED)
    result = escalation_status(approved, T0 + timedelta(days=30), 7)
    assert result.is_escalated is False
    assert result.due_at is None
    assert result.display_status == "APPROVED"


def test_escalation_days_must_be_positive():
    with pytest.raises(ValueError):
        escalation_status(_pending(), T0, 0)


def test_scan_pending_skips_finished_requests():
    states = [
        _pending(1),
        _pending(2, status=LeaveStatus.PENDING_GM, assigned_at=T0 + timedelta(days=5)),
        _pending(3, status=LeaveStatus.REJECTED),
    ]
    results = scan_pending(states, T0 + timedelta(days=10), 7)
    assert [r.request_id for r in results] == [1, 2]
    assert [r.is_escalated for r in results] == [True, False]
