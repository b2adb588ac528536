"""
Tests for the policy catalog (entitlement bands, leave-type rules, carry-forward window)
"""
from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from leaveflow.core.exceptions import NotFound
from leaveflow.services.policy_catalog import (
    EntitlementRule,
    LeaveTypeRule,
    PolicyCatalog,
    PolicyYear,
)


def _policy(**overrides) -> PolicyYear:
    values = {
        "year": 2026,
        "entitlement_rules": (
            EntitlementRule(grade_min=1, grade_max=15, annual_days=Decimal("22")),
            EntitlementRule(grade_min=16, grade_max=99, annual_days=Decimal("33")),
        ),
        "carry_forward_limit": Decimal("5"),
        "carry_forward_expiry_date": date(2026, 3, 31),
        "escalation_days": 7,
    }
    values.update(overrides)
    return PolicyYear(**values)


@pytest.fixture
def catalog():
    return PolicyCatalog(
        policy_years=[_policy()],
        leave_types=[
            LeaveTypeRule(code="ANNUAL", name="Annual Leave"),
            LeaveTypeRule(code="BIRTHDAY", name="Birthday Leave", fixed_duration_days=Decimal("1"), fixed_duration_strict=True),
            LeaveTypeRule(code="STUDY", name="Study Leave", active=False),
        ],
    )


def test_entitlement_for_grade_uses_matching_band(catalog):
    assert catalog.entitlement_for_grade(5, 2026) == Decimal("22")
    assert catalog.entitlement_for_grade(15, 2026) == Decimal("22")
    assert catalog.entitlement_for_grade(16, 2026) == Decimal("33")


def test_entitlement_for_grade_without_band_or_year_is_none(catalog):
    assert catalog.entitlement_for_grade(0, 2026) is None
    assert catalog.entitlement_for_grade(5, 2030) is None


def test_overlapping_grade_bands_rejected():
    with pytest.raises(ValidationError, match="overlap"):
        _policy(entitlement_rules=(
            EntitlementRule(grade_min=1, grade_max=10, annual_days=Decimal("20")),
            EntitlementRule(grade_min=10, grade_max=20, annual_days=Decimal("25")),
        ))


def test_inverted_grade_band_rejected():
    with pytest.raises(ValidationError):
        EntitlementRule(grade_min=10, grade_max=5, annual_days=Decimal("20"))


def test_escalation_days_must_be_positive():
    with pytest.raises(ValidationError):
        _policy(escalation_days=0)


def test_negative_carry_forward_limit_rejected():
    with pytest.raises(ValidationError):
        _policy(carry_forward_limit=Decimal("-1"))


def test_leave_type_lookup_normalizes_code(catalog):
    assert catalog.leave_type_rule(" birthday ").name == "Birthday Leave"


def test_inactive_leave_type_is_not_found(catalog):
    with pytest.raises(NotFound):
        catalog.leave_type_rule("STUDY")
    assert [r.code for r in catalog.active_leave_types()] == ["ANNUAL", "BIRTHDAY"]


def test_unknown_policy_year_is_not_found(catalog):
    with pytest.raises(NotFound):
        catalog.policy_year(2030)
    with pytest.raises(NotFound):
        catalog.escalation_days(2030)


def test_duplicate_leave_type_codes_rejected():
    with pytest.raises(ValueError, match="Duplicate"):
        PolicyCatalog(leave_types=[
            LeaveTypeRule(code="ANNUAL", name="Annual"),
            LeaveTypeRule(code="annual", name="Annual again"),
        ])


def test_carry_forward_window_is_inclusive_of_expiry_date(catalog):
    assert catalog.carry_forward_window_open(date(2026, 3, 31), 2026) is True
    assert catalog.carry_forward_window_open(date(2026, 4, 1), 2026) is False
    # No policy for the year: window closed
    assert catalog.carry_forward_window_open(date(2030, 1, 2), 2030) is False


def test_resolve_annual_entitlement_prefers_grade_band(catalog):
    assert catalog.resolve_annual_entitlement(20, 2026, "ANNUAL") == Decimal("33")


def test_resolve_annual_entitlement_falls_back_to_policy_default():
    catalog = PolicyCatalog(
        policy_years=[_policy(entitlement_rules=(), annual_entitlement_fallback=Decimal("18"))],
        leave_types=[LeaveTypeRule(code="ANNUAL", name="Annual", fixed_duration_days=Decimal("21"))],
    )
    assert catalog.resolve_annual_entitlement(5, 2026, "ANNUAL") == Decimal("18")


def test_resolve_annual_entitlement_falls_back_to_leave_type_default():
    catalog = PolicyCatalog(
        policy_years=[_policy(entitlement_rules=())],
        leave_types=[LeaveTypeRule(code="ANNUAL", name="Annual", fixed_duration_days=Decimal("21"))],
    )
    assert catalog.resolve_annual_entitlement(5, 2026, "ANNUAL") == Decimal("21")


def test_resolve_annual_entitlement_defaults_to_zero():
    catalog = PolicyCatalog(policy_years=[_policy(entitlement_rules=())])
    assert catalog.resolve_annual_entitlement(5, 2026, "ANNUAL") == Decimal("0")
    assert catalog.resolve_annual_entitlement(5, 2030) == Decimal("0")
