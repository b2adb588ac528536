"""
Balance ledger - per employee, per policy year.

remaining: current_year = entitlement - used, carry_forward = carried_forward - carried_forward_used.
apply: deduct a decided request's consumption; fails closed on insufficient balance.
reverse: compensating re-credit of an earlier apply; never takes a used counter below zero.

Accounts are immutable values; apply/reverse return a new account.
"""
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from leaveflow.core.exceptions import InsufficientBalance, InvalidConsumption

ZERO = Decimal("0")


class Consumption(BaseModel):
    """How many days a request takes from each bucket."""
    model_config = ConfigDict(frozen=True)

    carry_forward: Decimal = ZERO
    current_year: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.carry_forward + self.current_year


class Remaining(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_year: Decimal
    carry_forward: Decimal

    @property
    def total(self) -> Decimal:
        return self.current_year + self.carry_forward


class BalanceAccount(BaseModel):
    model_config = ConfigDict(frozen=True)

    employee_id: int
    policy_year: int
    entitlement_days: Decimal = Field(default=ZERO, ge=0)
    used_days: Decimal = ZERO
    carried_forward_days: Decimal = Field(default=ZERO, ge=0)
    carried_forward_used_days: Decimal = ZERO


def remaining(account: BalanceAccount) -> Remaining:
    """Remaining days per bucket, clamped at zero."""
    return Remaining(
        current_year=max(ZERO, account.entitlement_days - account.used_days),
        carry_forward=max(ZERO, account.carried_forward_days - account.carried_forward_used_days),
    )


def _check_consumption(consumption: Consumption) -> None:
    if consumption.carry_forward < 0 or consumption.current_year < 0:
        raise InvalidConsumption(
            "Consumption days cannot be negative",
            meta={
                "carry_forward": str(consumption.carry_forward),
                "current_year": str(consumption.current_year),
            },
        )


def apply(account: BalanceAccount, consumption: Consumption) -> BalanceAccount:
    """
    Deduct consumption from the account.

    Raises:
        InsufficientBalance: either bucket lacks the days; the account is unchanged.
    """
    _check_consumption(consumption)
    left = remaining(account)
    if consumption.carry_forward > left.carry_forward or consumption.current_year > left.current_year:
        raise InsufficientBalance(
            f"Insufficient balance for employee {account.employee_id} in {account.policy_year}: "
            f"requested carry_forward={consumption.carry_forward}, current_year={consumption.current_year}; "
            f"remaining carry_forward={left.carry_forward}, current_year={left.current_year}",
            meta={
                "requested": {
                    "carry_forward": str(consumption.carry_forward),
                    "current_year": str(consumption.current_year),
                },
                "remaining": {
                    "carry_forward": str(left.carry_forward),
                    "current_year": str(left.current_year),
                },
            },
        )
    return account.model_copy(update={
        "used_days": account.used_days + consumption.current_year,
        "carried_forward_used_days": account.carried_forward_used_days + consumption.carry_forward,
    })


def reverse(account: BalanceAccount, consumption: Consumption) -> BalanceAccount:
    """Undo an earlier apply with the same consumption."""
    _check_consumption(consumption)
    used = account.used_days - consumption.current_year
    carried_used = account.carried_forward_used_days - consumption.carry_forward
    if used < 0 or carried_used < 0:
        raise InvalidConsumption(
            f"Reversal would take used days below zero for employee {account.employee_id} "
            f"in {account.policy_year}"
        )
    return account.model_copy(update={
        "used_days": used,
        "carried_forward_used_days": carried_used,
    })
