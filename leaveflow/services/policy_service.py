"""
Policy service - loads policy rows into a PolicyCatalog, seeding defaults when a year is missing
"""
import calendar
import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session, selectinload

from leaveflow.core.config import settings
from leaveflow.models.policy import PolicySetting, EntitlementBand, LeaveTypeConfig
from leaveflow.services.policy_catalog import (
    EntitlementRule,
    LeaveTypeRule,
    PayCategory,
    PolicyCatalog,
    PolicyYear,
    normalize_code,
)

logger = logging.getLogger(__name__)

ANNUAL_LEAVE_CODE = "ANNUAL"

# grade_min, grade_max, annual_days
DEFAULT_ENTITLEMENT_BANDS = (
    (1, 15, Decimal("22")),
    (16, 99, Decimal("33")),
)

DEFAULT_LEAVE_TYPES = (
    {"code": "ANNUAL", "name": "Annual Leave"},
    {"code": "BIRTHDAY", "name": "Birthday Leave", "fixed_duration_days": Decimal("1"), "fixed_duration_strict": True},
    {"code": "SICK_FULL", "name": "Sick Leave (Full Pay)", "requires_reason": True, "requires_attachment": True},
    {
        "code": "SICK_HALF",
        "name": "Sick Leave (Half Pay)",
        "pay_category": PayCategory.HALF.value,
        "requires_reason": True,
        "requires_attachment": True,
    },
    {"code": "COMPASSIONATE", "name": "Compassionate Leave", "fixed_duration_days": Decimal("3"), "requires_reason": True},
    {"code": "UNPAID", "name": "Unpaid Leave", "pay_category": PayCategory.UNPAID.value, "requires_reason": True},
)


def default_carry_forward_expiry(year: int) -> date:
    """Configured month/day in the given year, clamped to the month's last day."""
    month = settings.CARRY_FORWARD_EXPIRY_MONTH
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(settings.CARRY_FORWARD_EXPIRY_DAY, last_day))


def get_policy_settings(db: Session, year: int) -> Optional[PolicySetting]:
    return (
        db.query(PolicySetting)
        .options(selectinload(PolicySetting.entitlement_bands))
        .filter(PolicySetting.year == year)
        .first()
    )


def get_or_create_policy_settings(db: Session, year: int) -> PolicySetting:
    """
    Get policy settings for a year, creating defaults if not exists.

    Defaults:
    - Grade bands 1-15: 22 days, 16-99: 33 days
    - Carry-forward limit and expiry from settings (5 days, Mar 31)
    - Escalation after DEFAULT_ESCALATION_DAYS (7)
    """
    policy = get_policy_settings(db, year)
    if policy:
        return policy

    policy = PolicySetting(
        year=year,
        carry_forward_limit=Decimal(settings.DEFAULT_CARRY_FORWARD_LIMIT),
        carry_forward_expiry_date=default_carry_forward_expiry(year),
        escalation_days=settings.DEFAULT_ESCALATION_DAYS,
        annual_entitlement_fallback=None,
    )
    for grade_min, grade_max, annual_days in DEFAULT_ENTITLEMENT_BANDS:
        policy.entitlement_bands.append(
            EntitlementBand(grade_min=grade_min, grade_max=grade_max, annual_days=annual_days)
        )
    db.add(policy)
    db.commit()
    db.refresh(policy)
    logger.info("Seeded default leave policy for year %s", year)
    return policy


def seed_default_leave_types(db: Session) -> int:
    """Insert the default leave types that are missing. Returns how many were created."""
    existing = {normalize_code(code) for (code,) in db.query(LeaveTypeConfig.code).all()}
    created = 0
    for row in DEFAULT_LEAVE_TYPES:
        if row["code"] in existing:
            continue
        db.add(LeaveTypeConfig(**row))
        created += 1
    if created:
        db.commit()
        logger.info("Seeded %s default leave types", created)
    return created


def to_policy_year(row: PolicySetting) -> PolicyYear:
    return PolicyYear(
        year=row.year,
        entitlement_rules=tuple(
            EntitlementRule(grade_min=b.grade_min, grade_max=b.grade_max, annual_days=b.annual_days)
            for b in row.entitlement_bands
        ),
        carry_forward_limit=row.carry_forward_limit,
        carry_forward_expiry_date=row.carry_forward_expiry_date,
        escalation_days=row.escalation_days,
        annual_entitlement_fallback=row.annual_entitlement_fallback,
    )


def to_leave_type_rule(row: LeaveTypeConfig) -> LeaveTypeRule:
    return LeaveTypeRule(
        code=normalize_code(row.code),
        name=row.name,
        fixed_duration_days=row.fixed_duration_days,
        fixed_duration_strict=bool(row.fixed_duration_strict),
        pay_category=PayCategory(row.pay_category),
        requires_reason=bool(row.requires_reason),
        requires_attachment=bool(row.requires_attachment),
        active=bool(row.active),
    )


def list_leave_type_rules(db: Session) -> List[LeaveTypeRule]:
    return [to_leave_type_rule(row) for row in db.query(LeaveTypeConfig).order_by(LeaveTypeConfig.name).all()]


def load_catalog(db: Session, years: Iterable[int]) -> PolicyCatalog:
    """Catalog for the given policy years plus every leave-type rule."""
    policy_years = [to_policy_year(get_or_create_policy_settings(db, year)) for year in sorted(set(years))]
    return PolicyCatalog(policy_years=policy_years, leave_types=list_leave_type_rules(db))
