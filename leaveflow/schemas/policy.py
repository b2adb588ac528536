"""
Policy schemas
"""
from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

from leaveflow.services.policy_catalog import PayCategory


class EntitlementRuleOut(BaseModel):
    grade_min: int
    grade_max: int
    annual_days: Decimal


class LeaveTypeRuleOut(BaseModel):
    code: str
    name: str
    fixed_duration_days: Optional[Decimal] = None
    fixed_duration_strict: bool
    pay_category: PayCategory
    requires_reason: bool
    requires_attachment: bool


class PolicyOut(BaseModel):
    """Policy year with its grade bands and the active leave types"""
    year: int
    entitlement_rules: List[EntitlementRuleOut]
    carry_forward_limit: Decimal
    carry_forward_expiry_date: date
    escalation_days: int
    annual_entitlement_fallback: Optional[Decimal] = None
    leave_types: List[LeaveTypeRuleOut]


class YearCloseDetailOut(BaseModel):
    employee_id: int
    emp_code: str
    name: str
    unused_days: Decimal
    carry_forward: Decimal
    lapsed_days: Decimal


class YearCloseOut(BaseModel):
    year: int
    next_year: int
    carry_forward_limit: Decimal
    total_employees_processed: int
    employees_skipped: int
    employees_with_carry_forward: int
    total_carry_forward: Decimal
    details: List[YearCloseDetailOut]
