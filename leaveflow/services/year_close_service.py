"""
Year-end close - carry unused current-year days into next year's account.
Carry forward is capped by the policy year's carry_forward_limit; unused
carry-forward from the closing year lapses.
"""
import logging
from decimal import Decimal
from typing import Dict

from sqlalchemy.orm import Session

from leaveflow.models.employee import Employee
from leaveflow.models.leave import LeaveBalance, LeaveTransaction, LeaveTransactionAction
from leaveflow.services import balance_ledger as ledger
from leaveflow.services.audit_service import log_audit
from leaveflow.services.balance_service import get_balance_row, to_account
from leaveflow.services.policy_service import ANNUAL_LEAVE_CODE, load_catalog
from leaveflow.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)


def _already_closed(db: Session, employee_id: int, next_year: int) -> bool:
    return db.query(LeaveTransaction).filter(
        LeaveTransaction.employee_id == employee_id,
        LeaveTransaction.policy_year == next_year,
        LeaveTransaction.action == LeaveTransactionAction.YEAR_CLOSE.value,
    ).first() is not None


def run_year_close(
    db: Session,
    year: int,
    actor_id: int
) -> Dict:
    """
    For each balance account of `year`: carry min(remaining current-year, limit) to next year.

    Next year's account is opened with the grade entitlement of next year's
    policy and the carried days as carried_forward_days. An account opened
    earlier (e.g. by planning next year's leave) gets its carry-forward set.
    Employees already closed into next_year are skipped, so reruns are safe.
    """
    next_year = year + 1
    catalog = load_catalog(db, [year, next_year])
    limit = catalog.policy_year(year).carry_forward_limit
    now = now_utc()

    rows = (
        db.query(LeaveBalance)
        .filter(LeaveBalance.policy_year == year)
        .order_by(LeaveBalance.employee_id)
        .all()
    )

    processed = 0
    skipped = 0
    with_carry = 0
    total_carry_forward = Decimal("0")
    details = []

    for row in rows:
        employee = db.query(Employee).filter(Employee.id == row.employee_id).first()
        if not employee:
            continue
        if _already_closed(db, employee.id, next_year):
            skipped += 1
            continue
        processed += 1

        unused = ledger.remaining(to_account(row)).current_year
        carry_forward = min(unused, limit)

        next_row = get_balance_row(db, employee.id, next_year)
        if next_row is None:
            next_row = LeaveBalance(
                employee_id=employee.id,
                policy_year=next_year,
                entitlement_days=catalog.resolve_annual_entitlement(employee.grade, next_year, ANNUAL_LEAVE_CODE),
                used_days=Decimal("0"),
                carried_forward_days=carry_forward,
                carried_forward_used_days=Decimal("0"),
            )
            db.add(next_row)
        else:
            next_row.carried_forward_days = carry_forward

        db.add(LeaveTransaction(
            employee_id=employee.id,
            leave_request_id=None,
            policy_year=next_year,
            carry_forward_delta=carry_forward,
            current_year_delta=Decimal("0"),
            action=LeaveTransactionAction.YEAR_CLOSE.value,
            remarks=f"Carry forward from {year}",
            action_by_employee_id=actor_id,
            action_at=now,
        ))
        db.flush()

        if carry_forward > 0:
            with_carry += 1
            total_carry_forward += carry_forward

        details.append({
            "employee_id": employee.id,
            "emp_code": employee.emp_code,
            "name": employee.name,
            "unused_days": unused,
            "carry_forward": carry_forward,
            "lapsed_days": unused - carry_forward,
        })

    summary = {
        "year": year,
        "next_year": next_year,
        "carry_forward_limit": limit,
        "total_employees_processed": processed,
        "employees_skipped": skipped,
        "employees_with_carry_forward": with_carry,
        "total_carry_forward": total_carry_forward,
    }
    log_audit(
        db=db,
        actor_id=actor_id,
        action="YEAR_CLOSE_RUN",
        entity_type="year_close",
        entity_id=None,
        meta=summary,
    )
    db.commit()
    logger.info(
        "Year close %s -> %s: processed=%s skipped=%s carried=%s total=%s",
        year, next_year, processed, skipped, with_carry, total_carry_forward,
    )

    return {**summary, "details": details}
