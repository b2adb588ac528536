"""
Balance service - persistence around the pure balance ledger.

- One balance account per (employee, policy year), opened with the resolved annual entitlement.
- Rows are converted to BalanceAccount values; only ledger.apply/reverse compute new values.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from leaveflow.core.exceptions import NotFound
from leaveflow.models.employee import Employee
from leaveflow.models.leave import LeaveBalance
from leaveflow.services import balance_ledger as ledger
from leaveflow.services.balance_ledger import BalanceAccount, Remaining
from leaveflow.services.policy_catalog import PolicyCatalog
from leaveflow.services.policy_service import ANNUAL_LEAVE_CODE, load_catalog

logger = logging.getLogger(__name__)


def to_account(row: LeaveBalance) -> BalanceAccount:
    return BalanceAccount(
        employee_id=row.employee_id,
        policy_year=row.policy_year,
        entitlement_days=row.entitlement_days,
        used_days=row.used_days,
        carried_forward_days=row.carried_forward_days,
        carried_forward_used_days=row.carried_forward_used_days,
    )


def write_account(row: LeaveBalance, account: BalanceAccount) -> None:
    """Copy ledger-computed counters back onto the row (caller commits)."""
    row.used_days = account.used_days
    row.carried_forward_used_days = account.carried_forward_used_days


def get_balance_row(
    db: Session,
    employee_id: int,
    year: int,
    for_update: bool = False,
) -> Optional[LeaveBalance]:
    query = db.query(LeaveBalance).filter(
        LeaveBalance.employee_id == employee_id,
        LeaveBalance.policy_year == year,
    )
    if for_update:
        query = query.with_for_update()
    return query.first()


def ensure_balance_account(
    db: Session,
    employee_id: int,
    year: int,
    catalog: Optional[PolicyCatalog] = None,
) -> LeaveBalance:
    """
    Get the employee's account for the year, opening it when missing.

    A new account gets the annual entitlement resolved from the policy
    (grade band -> policy fallback -> Annual type default -> 0) and no carry-forward.
    """
    row = get_balance_row(db, employee_id, year)
    if row:
        return row

    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee:
        raise NotFound(f"Employee with id {employee_id} not found")

    catalog = catalog or load_catalog(db, [year])
    entitlement = catalog.resolve_annual_entitlement(employee.grade, year, ANNUAL_LEAVE_CODE)
    row = LeaveBalance(
        employee_id=employee_id,
        policy_year=year,
        entitlement_days=entitlement,
        used_days=0,
        carried_forward_days=0,
        carried_forward_used_days=0,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info(
        "Opened balance account: employee_id=%s year=%s entitlement=%s grade=%s",
        employee_id, year, entitlement, employee.grade,
    )
    return row


def get_remaining(db: Session, employee_id: int, year: int) -> Remaining:
    return ledger.remaining(to_account(ensure_balance_account(db, employee_id, year)))
