from __future__ import annotations

from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_EVEN
from typing import Callable, Mapping, Sequence

from partyledger.logging import get_logger
from partyledger.models import DivideShare, ExactShare, Expense, ExpenseInput, ExpenseShare

_ONE = Decimal(1)
_HALF = Decimal("0.5")


class ExpenseIntegrityError(ValueError):
    """An amount or weight that should be integer minor units is not."""

    def __init__(self, expense_id: str | None, participant_id: str, value: object, field: str) -> None:
        self.expense_id = expense_id
        self.participant_id = participant_id
        self.value = value
        self.field = field
        super().__init__(
            f"Invalid {field} value for participant {participant_id!r} in expense {expense_id!r}: "
            f"expected integer but got {value!r} (type: {type(value).__name__})"
        )


def _as_units(value: object, expense_id: str | None, participant_id: str, field: str) -> int:
    if isinstance(value, bool):
        raise ExpenseIntegrityError(expense_id, participant_id, value, field)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, Decimal) and value.is_finite() and value == value.to_integral_value():
        return int(value)
    raise ExpenseIntegrityError(expense_id, participant_id, value, field)


def _validate(
    expense_id: str | None,
    paid_by: Mapping[str, object],
    shares: Mapping[str, ExpenseShare],
) -> tuple[dict[str, int], dict[str, int], dict[str, int]]:
    paid = {pid: _as_units(amount, expense_id, pid, "paid_by") for pid, amount in paid_by.items()}

    exacts: dict[str, int] = {}
    weights: dict[str, int] = {}
    for pid, share in shares.items():
        if isinstance(share, ExactShare):
            exacts[pid] = _as_units(share.value, expense_id, pid, "shares")
        elif isinstance(share, DivideShare):
            weights[pid] = _as_units(share.weight, expense_id, pid, "shares")
        else:
            raise TypeError(f"Unsupported share for participant {pid!r}: {share!r}")

    return paid, exacts, weights


def _round_half_even(value: Decimal) -> int:
    return int(value.quantize(_ONE, rounding=ROUND_HALF_EVEN))


def _round_half_up(value: Decimal) -> int:
    return int((value + _HALF).to_integral_value(rounding=ROUND_FLOOR))


def _distribute_remainder(amounts: dict[str, int], candidates: Sequence[str], remainder: int) -> None:
    if remainder == 0 or not candidates:
        return

    # Positive remainder goes to the smallest amounts first, negative is taken from the largest.
    ordered = sorted(candidates, key=lambda pid: amounts[pid], reverse=remainder < 0)
    step = 1 if remainder > 0 else -1
    rounds, extra = divmod(abs(remainder), len(ordered))

    for idx, pid in enumerate(ordered):
        amounts[pid] += step * (rounds + (1 if idx < extra else 0))


def _allocate(
    amount: int,
    exacts: Mapping[str, int],
    weights: Mapping[str, int],
    numerator: int,
    denominator: int,
    expense_id: str | None,
    round_divide: Callable[[Decimal], int],
) -> dict[str, int]:
    allocated: dict[str, int] = {}

    for pid, value in exacts.items():
        allocated[pid] = _round_half_even(Decimal(value * numerator) / Decimal(denominator))

    amount_left = amount - sum(allocated.values())
    if amount_left < 0:
        get_logger(__name__).error("expense.negative_amount_left", expense_id=expense_id, amount_left=amount_left)

    total_weight = sum(weights.values())
    for pid, weight in weights.items():
        if total_weight > 0:
            allocated[pid] = round_divide(Decimal(amount_left * weight) / Decimal(total_weight))
        else:
            allocated[pid] = 0

    candidates = list(weights) if total_weight > 0 else list(allocated)
    _distribute_remainder(allocated, candidates, amount - sum(allocated.values()))
    return allocated


def export_into_input(expense: Expense) -> list[ExpenseInput]:
    """Split an expense into one "who paid for whom" record per payer.

    Every record's ``paid_for`` sums exactly to that payer's amount, so the
    records together sum to the expense total.
    """
    if not expense.paid_by:
        get_logger(__name__).warning("expense.no_payers", expense_id=expense.id)
        return []

    paid, exacts, weights = _validate(expense.id, expense.paid_by, expense.shares)
    total = sum(paid.values())

    inputs: list[ExpenseInput] = []
    for payer, partial in paid.items():
        numerator, denominator = (partial, total) if total else (0, 1)
        paid_for = _allocate(partial, exacts, weights, numerator, denominator, expense.id, _round_half_up)
        inputs.append(ExpenseInput(paid_by=payer, expense=partial, paid_for=paid_for))
    return inputs


def get_expense_unit_shares(
    paid_by: Mapping[str, object],
    shares: Mapping[str, ExpenseShare],
    expense_id: str | None = None,
) -> dict[str, int]:
    """What each participant ultimately owes for the combined paid total."""
    paid, exacts, weights = _validate(expense_id, paid_by, shares)
    return _allocate(sum(paid.values()), exacts, weights, 1, 1, expense_id, _round_half_even)
