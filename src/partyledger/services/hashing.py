from __future__ import annotations

from datetime import datetime, timezone
from typing import Mapping

from partyledger.models import Expense, ExpenseShare, share_to_dict


def _sort_key(key: str) -> tuple[str, str]:
    # Case-insensitive first, lowercase before uppercase on ties, as browsers' localeCompare.
    return key.casefold(), key.swapcase()


def _format_number(value: object) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return f"{value:%Y-%m-%dT%H:%M:%S}.{value.microsecond // 1000:03d}Z"


def _serialize_paid_by(paid_by: Mapping[str, int]) -> str:
    return ",".join(f"{key}:{_format_number(paid_by[key])}" for key in sorted(paid_by, key=_sort_key))


def _serialize_shares(shares: Mapping[str, ExpenseShare]) -> str:
    parts = []
    for key in sorted(shares, key=_sort_key):
        raw = share_to_dict(shares[key])
        parts.append(f"{key}:{raw['type']}:{_format_number(raw['value'])}")
    return ",".join(parts)


def _djb2(text: str) -> str:
    # Hashes UTF-16 code units so non-BMP characters match JavaScript strings.
    data = text.encode("utf-16-le")
    value = 5381
    for idx in range(0, len(data), 2):
        unit = data[idx] | (data[idx + 1] << 8)
        value = ((value * 33) ^ unit) & 0xFFFFFFFF
    return f"{value:08x}"


def calculate_expense_hash(expense: Expense) -> str:
    """Short deterministic fingerprint of an expense, for conflict detection."""
    payload = "|".join(
        [
            expense.id,
            expense.name,
            _format_timestamp(expense.paid_at),
            _serialize_paid_by(expense.paid_by),
            _serialize_shares(expense.shares),
            ",".join(expense.photos),
        ]
    )
    return _djb2(payload)
