"""
Tests for the consumption planner (working days, strategies, leave-type rules)
"""
from datetime import date
from decimal import Decimal

import pytest

from leaveflow.core.exceptions import InvalidDateRange
from leaveflow.services.balance_ledger import Remaining
from leaveflow.services.consumption_planner import (
    Strategy,
    count_working_days,
    plan_consumption,
    requirement_blocks,
    validate_date_range,
)
from leaveflow.services.policy_catalog import LeaveTypeRule

BIRTHDAY = LeaveTypeRule(code="BIRTHDAY", name="Birthday Leave", fixed_duration_days=Decimal("1"), fixed_duration_strict=True)
COMPASSIONATE = LeaveTypeRule(code="COMPASSIONATE", name="Compassionate Leave", fixed_duration_days=Decimal("3"), requires_reason=True)
SICK = LeaveTypeRule(code="SICK_FULL", name="Sick Leave", requires_reason=True, requires_attachment=True)


def _left(current_year="20", carry_forward="3") -> Remaining:
    return Remaining(current_year=Decimal(current_year), carry_forward=Decimal(carry_forward))


def test_count_working_days_skips_weekends():
    # Mon 2 Feb 2026 - Sun 8 Feb 2026
    assert count_working_days(date(2026, 2, 2), date(2026, 2, 8)) == 5
    assert count_working_days(date(2026, 2, 7), date(2026, 2, 8)) == 0
    assert count_working_days(date(2026, 2, 4), date(2026, 2, 4)) == 1


def test_count_working_days_rejects_end_before_start():
    with pytest.raises(InvalidDateRange):
        count_working_days(date(2026, 2, 6), date(2026, 2, 2))


def test_validate_date_range_rejects_cross_year():
    with pytest.raises(InvalidDateRange, match="policy years"):
        validate_date_range(date(2026, 12, 30), date(2027, 1, 2))


def test_validate_date_range_rejects_weekend_only():
    with pytest.raises(InvalidDateRange, match="working day"):
        validate_date_range(date(2026, 2, 7), date(2026, 2, 8))


def test_requested_days_must_be_positive():
    with pytest.raises(InvalidDateRange):
        plan_consumption(Decimal("0"), _left(), True, Strategy.SMART)


def test_smart_uses_carry_forward_first_inside_window():
    plan = plan_consumption(Decimal("5"), _left(), True, Strategy.SMART)
    assert plan.feasible
    assert plan.consumption.carry_forward == Decimal("3")
    assert plan.consumption.current_year == Decimal("2")
    assert plan.warnings == ()


def test_smart_outside_window_uses_current_year_only():
    plan = plan_consumption(Decimal("5"), _left(), False, Strategy.SMART)
    assert plan.feasible
    assert plan.consumption.carry_forward == Decimal("0")
    assert plan.consumption.current_year == Decimal("5")
    assert any("expired" in w for w in plan.warnings)


def test_current_only_warns_about_unused_carry_forward():
    plan = plan_consumption(Decimal("5"), _left(), True, Strategy.CURRENT_ONLY, carry_forward_expiry=date(2026, 3, 31))
    assert plan.feasible
    assert plan.consumption.carry_forward == Decimal("0")
    assert plan.consumption.current_year == Decimal("5")
    assert len(plan.warnings) == 1
    assert "2026-03-31" in plan.warnings[0]


def test_carry_only_outside_window_is_blocked():
    plan = plan_consumption(Decimal("2"), _left(), False, Strategy.CARRY_ONLY)
    assert not plan.feasible
    assert plan.consumption.carry_forward == Decimal("2")
    assert plan.blocks


def test_carry_only_more_than_carried_is_blocked():
    plan = plan_consumption(Decimal("4"), _left(), True, Strategy.CARRY_ONLY)
    assert not plan.feasible
    assert plan.policy_blocks == ()


def test_smart_insufficient_balance_is_blocked_but_split_sums_to_request():
    plan = plan_consumption(Decimal("25"), _left(), True, Strategy.SMART)
    assert not plan.feasible
    assert plan.consumption.total == Decimal("25")


def test_smart_without_carry_forward_equals_current_only():
    left = _left(carry_forward="0")
    smart = plan_consumption(Decimal("4"), left, True, Strategy.SMART)
    current = plan_consumption(Decimal("4"), left, True, Strategy.CURRENT_ONLY)
    assert smart.consumption == current.consumption


def test_smart_without_current_year_equals_carry_only():
    left = _left(current_year="0", carry_forward="5")
    smart = plan_consumption(Decimal("4"), left, True, Strategy.SMART)
    carry = plan_consumption(Decimal("4"), left, True, Strategy.CARRY_ONLY)
    assert smart.consumption == carry.consumption
    assert smart.feasible and carry.feasible


def test_strict_fixed_duration_longer_than_allowed_is_a_policy_block():
    plan = plan_consumption(Decimal("2"), _left(), True, Strategy.SMART, rule=BIRTHDAY)
    assert not plan.feasible
    assert plan.policy_blocks == ("Birthday Leave is limited to 1 working day(s).",)


def test_non_strict_fixed_duration_mismatch_is_a_warning():
    plan = plan_consumption(Decimal("2"), _left(), True, Strategy.CURRENT_ONLY, rule=COMPASSIONATE)
    assert plan.feasible
    assert any("default duration is 3" in w for w in plan.warnings)


def test_requirement_blocks():
    assert requirement_blocks(SICK, None, False) == [
        "Reason is required for Sick Leave.",
        "Attachment is required for Sick Leave.",
    ]
    assert requirement_blocks(SICK, "   ", True) == ["Reason is required for Sick Leave."]
    assert requirement_blocks(SICK, "Flu", True) == []
