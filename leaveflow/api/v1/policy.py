"""
Policy endpoints (read for everyone; year close is Admin-only).
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from leaveflow.core.deps import get_current_employee, get_db, require_roles
from leaveflow.models.employee import Employee, Role
from leaveflow.schemas.policy import EntitlementRuleOut, LeaveTypeRuleOut, PolicyOut, YearCloseOut
from leaveflow.services.policy_service import load_catalog
from leaveflow.services.year_close_service import run_year_close

router = APIRouter()


@router.get("/{year}", response_model=PolicyOut)
async def get_policy_endpoint(
    year: int,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(get_current_employee)
):
    """
    Policy for a year with grade bands and active leave types.
    If the year does not exist, it is created with defaults.
    """
    catalog = load_catalog(db, [year])
    policy = catalog.policy_year(year)
    return PolicyOut(
        year=policy.year,
        entitlement_rules=[EntitlementRuleOut(**rule.model_dump()) for rule in policy.entitlement_rules],
        carry_forward_limit=policy.carry_forward_limit,
        carry_forward_expiry_date=policy.carry_forward_expiry_date,
        escalation_days=policy.escalation_days,
        annual_entitlement_fallback=policy.annual_entitlement_fallback,
        leave_types=[
            LeaveTypeRuleOut(**rule.model_dump(exclude={"active"}))
            for rule in catalog.active_leave_types()
        ],
    )


@router.post("/{year}/year-close", response_model=YearCloseOut)
async def year_close_endpoint(
    year: int,
    db: Session = Depends(get_db),
    current_employee: Employee = Depends(require_roles(Role.ADMIN))
):
    """
    Year-end close (Admin-only): carry unused current-year days, capped by
    the policy's carry-forward limit, into next year's accounts.
    Safe to rerun; employees already closed are skipped.
    """
    return run_year_close(db=db, year=year, actor_id=current_employee.id)
