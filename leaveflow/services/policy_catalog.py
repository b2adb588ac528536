"""
Policy catalog - read-only view over the yearly leave policy.

- Entitlement bands by grade (first matching band wins, bands never overlap).
- Carry-forward limit and expiry date per policy year.
- Leave-type rules (fixed duration, pay category, reason/attachment requirements).
- SLA escalation window per policy year.

Nothing here touches the database; rows are converted by policy_service.
"""
import enum
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from leaveflow.core.exceptions import NotFound


class PayCategory(str, enum.Enum):
    FULL = "FULL"
    HALF = "HALF"
    UNPAID = "UNPAID"


class EntitlementRule(BaseModel):
    """Annual days for every grade in [grade_min, grade_max]."""
    model_config = ConfigDict(frozen=True)

    grade_min: int = Field(..., ge=0)
    grade_max: int = Field(..., ge=0)
    annual_days: Decimal = Field(..., ge=0)

    @model_validator(mode="after")
    def check_range(self) -> "EntitlementRule":
        if self.grade_min > self.grade_max:
            raise ValueError(f"grade_min {self.grade_min} is greater than grade_max {self.grade_max}")
        return self

    def covers(self, grade: int) -> bool:
        return self.grade_min <= grade <= self.grade_max


class PolicyYear(BaseModel):
    model_config = ConfigDict(frozen=True)

    year: int
    entitlement_rules: Tuple[EntitlementRule, ...] = ()
    carry_forward_limit: Decimal = Field(default=Decimal("0"), ge=0)
    carry_forward_expiry_date: date
    escalation_days: int = Field(..., gt=0)
    # Used when no grade band matches
    annual_entitlement_fallback: Optional[Decimal] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_bands_do_not_overlap(self) -> "PolicyYear":
        bands = sorted(self.entitlement_rules, key=lambda r: r.grade_min)
        for prev, nxt in zip(bands, bands[1:]):
            if nxt.grade_min <= prev.grade_max:
                raise ValueError(
                    f"Grade bands {prev.grade_min}-{prev.grade_max} and "
                    f"{nxt.grade_min}-{nxt.grade_max} overlap"
                )
        return self

    def entitlement_for_grade(self, grade: int) -> Optional[Decimal]:
        for rule in self.entitlement_rules:
            if rule.covers(grade):
                return rule.annual_days
        return None


class LeaveTypeRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str = Field(..., min_length=1)
    name: str
    fixed_duration_days: Optional[Decimal] = Field(default=None, gt=0)
    # True when the type may never run longer than fixed_duration_days (e.g. BIRTHDAY)
    fixed_duration_strict: bool = False
    pay_category: PayCategory = PayCategory.FULL
    requires_reason: bool = False
    requires_attachment: bool = False
    active: bool = True


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


class PolicyCatalog:
    """
    Immutable lookup over policy years and leave-type rules.

    Inactive leave types are invisible: leave_type_rule() raises NotFound for them.
    """

    def __init__(
        self,
        policy_years: Iterable[PolicyYear] = (),
        leave_types: Iterable[LeaveTypeRule] = (),
    ):
        self._years: Dict[int, PolicyYear] = {}
        for policy in policy_years:
            self._years[policy.year] = policy

        self._leave_types: Dict[str, LeaveTypeRule] = {}
        for rule in leave_types:
            code = normalize_code(rule.code)
            if code in self._leave_types:
                raise ValueError(f"Duplicate leave type code: {code}")
            self._leave_types[code] = rule

    def policy_year(self, year: int) -> PolicyYear:
        policy = self._years.get(year)
        if policy is None:
            raise NotFound(f"No leave policy configured for year {year}")
        return policy

    def has_policy_year(self, year: int) -> bool:
        return year in self._years

    def entitlement_for_grade(self, grade: int, year: int) -> Optional[Decimal]:
        """Annual days for the grade, or None when the year or band is missing."""
        policy = self._years.get(year)
        if policy is None:
            return None
        return policy.entitlement_for_grade(grade)

    def leave_type_rule(self, code: str) -> LeaveTypeRule:
        rule = self._leave_types.get(normalize_code(code))
        if rule is None or not rule.active:
            raise NotFound(f"Leave type {code!r} not found or inactive")
        return rule

    def active_leave_types(self) -> List[LeaveTypeRule]:
        return sorted(
            (r for r in self._leave_types.values() if r.active),
            key=lambda r: r.name,
        )

    def carry_forward_window_open(self, on_date: date, year: int) -> bool:
        policy = self._years.get(year)
        if policy is None:
            return False
        return on_date <= policy.carry_forward_expiry_date

    def carry_forward_expiry(self, year: int) -> Optional[date]:
        policy = self._years.get(year)
        return policy.carry_forward_expiry_date if policy else None

    def escalation_days(self, year: int) -> int:
        return self.policy_year(year).escalation_days

    def resolve_annual_entitlement(
        self,
        grade: int,
        year: int,
        leave_type_code: Optional[str] = None,
    ) -> Decimal:
        """
        Annual entitlement with fallbacks, in order:
        grade band -> policy fallback -> leave-type default days -> 0.
        """
        by_grade = self.entitlement_for_grade(grade, year)
        if by_grade is not None:
            return by_grade

        policy = self._years.get(year)
        if policy is not None and policy.annual_entitlement_fallback is not None:
            return policy.annual_entitlement_fallback

        if leave_type_code:
            rule = self._leave_types.get(normalize_code(leave_type_code))
            if rule is not None and rule.active and rule.fixed_duration_days is not None:
                return rule.fixed_duration_days

        return Decimal("0")
