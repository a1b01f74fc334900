from __future__ import annotations

from decimal import Decimal, ROUND_FLOOR
from typing import Iterable, Sequence, Union

from partyledger.models import BalanceStats, ExpenseInput, UserDiff

_HUNDRED = Decimal(100)
_HALF = Decimal("0.5")


def convert_to_units(amount: Union[float, int, str, Decimal]) -> int:
    """Convert a display amount (10.50) into minor units (1050).

    Floats go through their shortest decimal repr, so 0.3 becomes 30 even
    though ``0.3 * 100`` is 30.000000000000004 in binary.
    """
    if isinstance(amount, bool):
        raise TypeError("amount must be a number")
    if isinstance(amount, float):
        value = Decimal(repr(amount))
    else:
        value = Decimal(amount)
    if not value.is_finite():
        raise ValueError(f"amount must be finite, got {amount!r}")
    # Ties round toward +inf: -0.005 becomes 0, 0.005 becomes 1.
    return int((value * _HUNDRED + _HALF).to_integral_value(rounding=ROUND_FLOOR))


def _split_total(expenses: Iterable[ExpenseInput], payer: str, participant: str) -> int:
    return sum(record.paid_for.get(participant, 0) for record in expenses if record.paid_by == payer)


def calculate_log_stats_between_two_users(
    user: str,
    other_user: str,
    expenses: Sequence[ExpenseInput],
) -> UserDiff:
    # Positive: other_user owes user.
    what_other_owes = _split_total(expenses, user, other_user)
    what_user_owes = _split_total(expenses, other_user, user)
    return UserDiff(diff_unsplitted=what_other_owes - what_user_owes)


def calculate_log_stats_of_user(
    user: str,
    other_users: Iterable[str],
    expenses: Sequence[ExpenseInput],
) -> BalanceStats:
    diffs: dict[str, UserDiff] = {}
    for other_user in other_users:
        if other_user == user:
            continue
        diffs[other_user] = calculate_log_stats_between_two_users(user, other_user, expenses)

    user_owes = sum(-diff.diff_unsplitted for diff in diffs.values() if diff.diff_unsplitted < 0)
    owed_to_user = sum(diff.diff_unsplitted for diff in diffs.values() if diff.diff_unsplitted > 0)

    return BalanceStats(
        user_owes=user_owes,
        owed_to_user=owed_to_user,
        diffs=diffs,
        balance=owed_to_user - user_owes,
    )
