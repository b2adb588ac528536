"""
Tests for year-end close (carry forward capped by policy)
"""
from decimal import Decimal

from fastapi import status
from sqlalchemy.orm import Session

from leaveflow.models.audit_log import AuditLog
from leaveflow.models.leave import LeaveBalance, LeaveTransaction, LeaveTransactionAction
from leaveflow.services.year_close_service import run_year_close


def _row(db: Session, employee_id: int, year: int) -> LeaveBalance:
    db.expire_all()
    return db.query(LeaveBalance).filter(
        LeaveBalance.employee_id == employee_id,
        LeaveBalance.policy_year == year,
    ).first()


def test_year_close_caps_carry_forward(db, staff_employee, staff_balance, admin_employee):
    staff_balance.used_days = Decimal("12")
    db.commit()

    summary = run_year_close(db, 2026, admin_employee.id)

    # 10 unused days, limit 5
    assert summary["total_employees_processed"] == 1
    assert summary["total_carry_forward"] == Decimal("5")
    assert summary["details"][0]["lapsed_days"] == Decimal("5")

    next_year = _row(db, staff_employee.id, 2027)
    assert next_year.carried_forward_days == Decimal("5")
    assert next_year.carried_forward_used_days == Decimal("0")
    assert next_year.used_days == Decimal("0")
    # Grade 10 falls in the default 1-15 band
    assert next_year.entitlement_days == Decimal("22")

    journal = db.query(LeaveTransaction).filter(
        LeaveTransaction.action == LeaveTransactionAction.YEAR_CLOSE.value
    ).one()
    assert journal.policy_year == 2027
    assert journal.carry_forward_delta == Decimal("5")
    assert db.query(AuditLog).filter(AuditLog.action == "YEAR_CLOSE_RUN").count() == 1


def test_year_close_carries_less_than_limit(db, staff_employee, staff_balance, admin_employee):
    staff_balance.used_days = Decimal("18")
    db.commit()

    run_year_close(db, 2026, admin_employee.id)

    assert _row(db, staff_employee.id, 2027).carried_forward_days == Decimal("4")


def test_year_close_rerun_skips_closed_employees(db, staff_employee, staff_balance, admin_employee):
    run_year_close(db, 2026, admin_employee.id)
    summary = run_year_close(db, 2026, admin_employee.id)

    assert summary["total_employees_processed"] == 0
    assert summary["employees_skipped"] == 1
    assert db.query(LeaveTransaction).count() == 1
    assert _row(db, staff_employee.id, 2027).carried_forward_days == Decimal("5")


def test_year_close_keeps_existing_next_year_entitlement(db, staff_employee, staff_balance, admin_employee):
    db.add(LeaveBalance(
        employee_id=staff_employee.id,
        policy_year=2027,
        entitlement_days=Decimal("25"),
        used_days=Decimal("1"),
        carried_forward_days=Decimal("0"),
        carried_forward_used_days=Decimal("0"),
    ))
    db.commit()

    run_year_close(db, 2026, admin_employee.id)

    next_year = _row(db, staff_employee.id, 2027)
    assert next_year.entitlement_days == Decimal("25")
    assert next_year.used_days == Decimal("1")
    assert next_year.carried_forward_days == Decimal("5")


def test_year_close_endpoint_is_admin_only(client, auth_headers, staff_employee, staff_balance, admin_employee):
    response = client.post("/api/v1/policy/2026/year-close", headers=auth_headers(staff_employee))
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.post("/api/v1/policy/2026/year-close", headers=auth_headers(admin_employee))
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["next_year"] == 2027
    assert Decimal(data["total_carry_forward"]) == Decimal("5")
    assert data["details"][0]["emp_code"] == "EMP001"


def test_policy_endpoint(client, auth_headers, staff_employee, leave_policy):
    response = client.get("/api/v1/policy/2026", headers=auth_headers(staff_employee))

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["escalation_days"] == 7
    assert data["carry_forward_expiry_date"] == "2026-03-31"
    assert [(r["grade_min"], r["grade_max"]) for r in data["entitlement_rules"]] == [(1, 15), (16, 99)]
    codes = {t["code"] for t in data["leave_types"]}
    assert {"ANNUAL", "BIRTHDAY", "SICK_FULL", "SICK_HALF", "COMPASSIONATE", "UNPAID"} == codes
