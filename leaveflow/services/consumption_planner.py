"""
Consumption planner - splits requested days between carry-forward and current-year balance.

Strategies:
- SMART: carry-forward first (while the window is open), then current-year.
- CURRENT_ONLY: current-year only, carry-forward untouched.
- CARRY_ONLY: carry-forward only, and only inside the carry-forward window.

The planner never mutates anything. An infeasible plan still carries the
split the strategy would use, with feasible=False and the reasons in blocks.
"""
import enum
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from leaveflow.core.exceptions import InvalidDateRange
from leaveflow.services.balance_ledger import ZERO, Consumption, Remaining
from leaveflow.services.policy_catalog import LeaveTypeRule


class Strategy(str, enum.Enum):
    SMART = "SMART"
    CURRENT_ONLY = "CURRENT_ONLY"
    CARRY_ONLY = "CARRY_ONLY"


class PlanResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    working_days: Decimal
    strategy: Strategy
    consumption: Consumption
    feasible: bool
    warnings: Tuple[str, ...] = ()
    blocks: Tuple[str, ...] = ()
    # Subset of blocks that come from leave-type rules rather than balance
    policy_blocks: Tuple[str, ...] = ()


def count_working_days(from_date: date, to_date: date) -> int:
    """Mon-Fri days in the inclusive range. No holiday calendar."""
    if to_date < from_date:
        raise InvalidDateRange(
            f"End date {to_date} is before start date {from_date}",
            meta={"from_date": str(from_date), "to_date": str(to_date)},
        )
    days = 0
    current = from_date
    while current <= to_date:
        if current.weekday() < 5:
            days += 1
        current += timedelta(days=1)
    return days


def validate_date_range(from_date: date, to_date: date) -> int:
    """
    Working days for a leave request, rejecting ranges the ledger cannot book.

    Raises:
        InvalidDateRange: end before start, range crosses a policy year, or zero working days
    """
    days = count_working_days(from_date, to_date)
    if from_date.year != to_date.year:
        raise InvalidDateRange(
            f"Leave cannot span across policy years ({from_date.year} to {to_date.year})",
            meta={"from_date": str(from_date), "to_date": str(to_date)},
        )
    if days == 0:
        raise InvalidDateRange(
            "Date range must contain at least one working day",
            meta={"from_date": str(from_date), "to_date": str(to_date)},
        )
    return days


def requirement_blocks(
    rule: LeaveTypeRule,
    reason: Optional[str] = None,
    has_attachment: bool = False,
) -> List[str]:
    """Blocking messages for reason/attachment requirements of a leave type."""
    blocks = []
    if rule.requires_reason and not (reason or "").strip():
        blocks.append(f"Reason is required for {rule.name}.")
    if rule.requires_attachment and not has_attachment:
        blocks.append(f"Attachment is required for {rule.name}.")
    return blocks


def _split(
    requested: Decimal,
    left: Remaining,
    within_carry_window: bool,
    strategy: Strategy,
) -> Tuple[Consumption, List[str]]:
    blocks = []
    if strategy == Strategy.SMART:
        usable_carry = min(left.carry_forward, requested) if within_carry_window else ZERO
        current_portion = requested - usable_carry
        if current_portion > left.current_year:
            blocks.append(
                f"Not enough balance: {requested} day(s) requested, "
                f"{usable_carry + left.current_year} day(s) usable."
            )
        return Consumption(carry_forward=usable_carry, current_year=current_portion), blocks

    if strategy == Strategy.CURRENT_ONLY:
        if requested > left.current_year:
            blocks.append(
                f"Not enough current-year balance: {requested} day(s) requested, "
                f"{left.current_year} day(s) remaining."
            )
        return Consumption(carry_forward=ZERO, current_year=requested), blocks

    if not within_carry_window:
        blocks.append("Carry-forward can only be used inside the carry-forward window.")
    elif requested > left.carry_forward:
        blocks.append(
            f"Not enough carry-forward balance: {requested} day(s) requested, "
            f"{left.carry_forward} day(s) remaining."
        )
    return Consumption(carry_forward=requested, current_year=ZERO), blocks


def plan_consumption(
    requested_days: Decimal,
    left: Remaining,
    within_carry_window: bool,
    strategy: Strategy,
    rule: Optional[LeaveTypeRule] = None,
    carry_forward_expiry: Optional[date] = None,
) -> PlanResult:
    """
    Compute the consumption split for requested_days under a strategy.

    Args:
        requested_days: working days requested (must be > 0)
        left: remaining balances from the ledger
        within_carry_window: whether carry-forward may be spent
        strategy: SMART, CURRENT_ONLY or CARRY_ONLY
        rule: leave-type rule, for fixed-duration checks
        carry_forward_expiry: only used to word warnings

    Returns:
        PlanResult; consumption.total always equals requested_days
    """
    requested = Decimal(requested_days)
    if requested <= 0:
        raise InvalidDateRange("Requested days must be greater than zero")

    consumption, blocks = _split(requested, left, within_carry_window, strategy)
    policy_blocks = []
    warnings = []

    if rule is not None and rule.fixed_duration_days is not None and requested != rule.fixed_duration_days:
        if rule.fixed_duration_strict and requested > rule.fixed_duration_days:
            policy_blocks.append(
                f"{rule.name} is limited to {rule.fixed_duration_days} working day(s)."
            )
        else:
            warnings.append(
                f"{rule.name}: default duration is {rule.fixed_duration_days} day(s), "
                f"selected {requested} day(s)."
            )

    expiry_text = f" on {carry_forward_expiry.isoformat()}" if carry_forward_expiry else ""
    unused_carry = left.carry_forward - consumption.carry_forward
    if strategy == Strategy.CURRENT_ONLY and within_carry_window and unused_carry > 0:
        warnings.append(
            f"Carry-forward balance of {unused_carry} day(s) is not used and may expire{expiry_text}."
        )
    if not within_carry_window and left.carry_forward > 0:
        warnings.append(f"Carry-forward balance expired{expiry_text} and cannot be used.")

    return PlanResult(
        working_days=requested,
        strategy=strategy,
        consumption=consumption,
        feasible=not (blocks or policy_blocks),
        warnings=tuple(warnings),
        blocks=tuple(blocks + policy_blocks),
        policy_blocks=tuple(policy_blocks),
    )
