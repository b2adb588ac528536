"""
Tests for the balance ledger (remaining, apply, reverse)
"""
from decimal import Decimal

import pytest

from leaveflow.core.exceptions import InsufficientBalance, InvalidConsumption
from leaveflow.services import balance_ledger as ledger
from leaveflow.services.balance_ledger import BalanceAccount, Consumption


@pytest.fixture
def account():
    return BalanceAccount(
        employee_id=1,
        policy_year=2026,
        entitlement_days=Decimal("20"),
        used_days=Decimal("0"),
        carried_forward_days=Decimal("3"),
        carried_forward_used_days=Decimal("0"),
    )


def test_remaining_per_bucket(account):
    left = ledger.remaining(account)
    assert left.current_year == Decimal("20")
    assert left.carry_forward == Decimal("3")
    assert left.total == Decimal("23")


def test_remaining_is_clamped_at_zero():
    account = BalanceAccount(
        employee_id=1,
        policy_year=2026,
        entitlement_days=Decimal("10"),
        used_days=Decimal("12"),
    )
    assert ledger.remaining(account).current_year == Decimal("0")


def test_apply_deducts_each_bucket(account):
    updated = ledger.apply(account, Consumption(carry_forward=Decimal("3"), current_year=Decimal("2")))
    assert updated.used_days == Decimal("2")
    assert updated.carried_forward_used_days == Decimal("3")
    left = ledger.remaining(updated)
    assert left.current_year == Decimal("18")
    assert left.carry_forward == Decimal("0")


def test_apply_supports_half_days(account):
    updated = ledger.apply(account, Consumption(current_year=Decimal("0.5")))
    assert ledger.remaining(updated).current_year == Decimal("19.5")


def test_apply_insufficient_carry_forward_leaves_account_unchanged(account):
    with pytest.raises(InsufficientBalance) as exc_info:
        ledger.apply(account, Consumption(carry_forward=Decimal("4")))
    assert exc_info.value.meta["remaining"]["carry_forward"] == "3"
    assert account.carried_forward_used_days == Decimal("0")
    assert account.used_days == Decimal("0")


def test_apply_insufficient_current_year(account):
    with pytest.raises(InsufficientBalance):
        ledger.apply(account, Consumption(current_year=Decimal("21")))


def test_negative_consumption_rejected(account):
    with pytest.raises(InvalidConsumption):
        ledger.apply(account, Consumption(current_year=Decimal("-1")))
    with pytest.raises(InvalidConsumption):
        ledger.reverse(account, Consumption(carry_forward=Decimal("-1")))


def test_reverse_restores_account(account):
    consumption = Consumption(carry_forward=Decimal("2"), current_year=Decimal("4.5"))
    restored = ledger.reverse(ledger.apply(account, consumption), consumption)
    assert restored == account


def test_reverse_never_goes_below_zero(account):
    with pytest.raises(InvalidConsumption):
        ledger.reverse(account, Consumption(current_year=Decimal("1")))
