"""
Balance endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from leaveflow.core.deps import get_current_employee, get_db
from leaveflow.models.employee import Employee
from leaveflow.schemas.leave import BalanceOut
from leaveflow.services import balance_ledger as ledger
from leaveflow.services.balance_service import ensure_balance_account, to_account
from leaveflow.services.policy_service import load_catalog
from leaveflow.utils.datetime_utils import now_utc

router = APIRouter()


@router.get("/me", response_model=BalanceOut)
async def balance_me(
    year: Optional[int] = Query(None, description="Policy year (defaults to the current year)"),
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee),
):
    """
    Get the current employee's balance account for the year.
    The account is opened with the resolved entitlement on first access.
    """
    year = year or now_utc().year
    catalog = load_catalog(db, [year])
    row = ensure_balance_account(db, current_employee.id, year, catalog)
    left = ledger.remaining(to_account(row))
    return BalanceOut(
        employee_id=row.employee_id,
        policy_year=row.policy_year,
        entitlement_days=row.entitlement_days,
        used_days=row.used_days,
        carried_forward_days=row.carried_forward_days,
        carried_forward_used_days=row.carried_forward_used_days,
        remaining_current_year=left.current_year,
        remaining_carry_forward=left.carry_forward,
        remaining_total=left.total,
        carry_forward_expiry_date=catalog.carry_forward_expiry(year),
    )
