from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Sequence, Union

DEFAULT_CHUNK_MAX_SIZE = 500


@dataclass(frozen=True, slots=True)
class ExactShare:
    value: int


@dataclass(frozen=True, slots=True)
class DivideShare:
    weight: int


ExpenseShare = Union[ExactShare, DivideShare]


@dataclass(frozen=True, slots=True)
class Expense:
    id: str
    name: str
    paid_at: datetime
    paid_by: dict[str, int]
    shares: dict[str, ExpenseShare]
    photos: list[str] = field(default_factory=list)
    is_transfer: bool = False


@dataclass(frozen=True, slots=True)
class ExpenseInput:
    paid_by: str
    expense: int
    paid_for: dict[str, int]


@dataclass(frozen=True, slots=True)
class UserDiff:
    diff_unsplitted: int


@dataclass(frozen=True, slots=True)
class BalanceStats:
    user_owes: int
    owed_to_user: int
    diffs: dict[str, UserDiff]
    balance: int


@dataclass(frozen=True, slots=True)
class Balance:
    participant_id: str
    stats: BalanceStats
    visual_ratio: float = 0.0


BalancesByParticipant = dict[str, Balance]


@dataclass(frozen=True, slots=True)
class Participant:
    id: str
    name: str
    is_archived: bool = False


@dataclass(frozen=True, slots=True)
class ChunkRef:
    chunk_id: str
    created_at: datetime
    balances_id: str


@dataclass(frozen=True, slots=True)
class Party:
    id: str
    name: str
    participants: dict[str, Participant]
    chunk_refs: list[ChunkRef] = field(default_factory=list)
    currency: str = "EUR"
    description: str = ""


@dataclass(frozen=True, slots=True)
class Chunk:
    id: str
    created_at: datetime
    expenses: list[Expense]
    max_size: int = DEFAULT_CHUNK_MAX_SIZE
    party_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ChunkBalances:
    id: str
    balances: BalancesByParticipant
    party_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ChunkPaginationState:
    loaded_chunk_ids: list[str]
    available_chunk_ids: list[str]
    has_more: bool
    total_chunks: int
    loaded_chunks: int


@dataclass(frozen=True, slots=True)
class PaginatedExpenses:
    expenses: list[Expense]
    pagination: ChunkPaginationState


def expense_total_amount(expense: Expense) -> int:
    return sum(expense.paid_by.values())


def create_expense_id(chunk_id: str, ulid: Callable[[Optional[int]], str], timestamp: Optional[int] = None) -> str:
    return f"{ulid(timestamp)}:{chunk_id}"


def decode_expense_id(expense_id: str) -> tuple[str, str]:
    """Split an encoded expense id into ``(ulid, chunk_id)``."""
    ulid, _, chunk_id = expense_id.partition(":")
    return ulid, chunk_id


def find_expense_by_id(expenses: Sequence[Expense], encoded_id: str) -> tuple[Optional[Expense], int]:
    """Binary search over expenses sorted by descending ULID."""
    target, _ = decode_expense_id(encoded_id)
    start, end = 0, len(expenses) - 1

    while start <= end:
        mid = (start + end) // 2
        expense = expenses[mid]
        mid_id, _ = decode_expense_id(expense.id)

        if mid_id == target:
            return expense, mid
        if mid_id > target:
            start = mid + 1
        else:
            end = mid - 1

    return None, -1


def active_participants(party: Party) -> dict[str, Participant]:
    return {pid: p for pid, p in party.participants.items() if not p.is_archived}


def archived_participants(party: Party) -> dict[str, Participant]:
    return {pid: p for pid, p in party.participants.items() if p.is_archived}


# Document loaders. The document layer stores camelCase mappings.


def share_from_dict(raw: Mapping[str, Any]) -> ExpenseShare:
    share_type = raw.get("type")
    if share_type == "exact":
        return ExactShare(value=raw["value"])
    if share_type == "divide":
        return DivideShare(weight=raw["value"])
    raise ValueError(f"Unknown share type: {share_type!r}")


def share_to_dict(share: ExpenseShare) -> dict[str, Any]:
    if isinstance(share, ExactShare):
        return {"type": "exact", "value": share.value}
    if isinstance(share, DivideShare):
        return {"type": "divide", "value": share.weight}
    raise TypeError(f"Unsupported share: {share!r}")


def expense_from_dict(raw: Mapping[str, Any]) -> Expense:
    paid_at = raw["paidAt"]
    if isinstance(paid_at, str):
        paid_at = datetime.fromisoformat(paid_at)
    return Expense(
        id=raw["id"],
        name=raw.get("name", ""),
        paid_at=paid_at,
        paid_by=dict(raw.get("paidBy", {})),
        shares={pid: share_from_dict(share) for pid, share in raw.get("shares", {}).items()},
        photos=list(raw.get("photos", [])),
        is_transfer=bool(raw.get("isTransfer", False)),
    )


def balances_from_dict(raw: Mapping[str, Mapping[str, Any]]) -> BalancesByParticipant:
    result: BalancesByParticipant = {}
    for participant_id, entry in raw.items():
        stats = entry["stats"]
        result[participant_id] = Balance(
            participant_id=entry.get("participantId", participant_id),
            stats=BalanceStats(
                user_owes=stats["userOwes"],
                owed_to_user=stats["owedToUser"],
                diffs={
                    other: UserDiff(diff_unsplitted=diff["diffUnsplitted"])
                    for other, diff in stats.get("diffs", {}).items()
                },
                balance=stats["balance"],
            ),
            visual_ratio=entry.get("visualRatio", 0.0),
        )
    return result


def balances_to_dict(balances: BalancesByParticipant) -> dict[str, dict[str, Any]]:
    return {
        participant_id: {
            "participantId": balance.participant_id,
            "stats": {
                "userOwes": balance.stats.user_owes,
                "owedToUser": balance.stats.owed_to_user,
                "diffs": {
                    other: {"diffUnsplitted": diff.diff_unsplitted}
                    for other, diff in balance.stats.diffs.items()
                },
                "balance": balance.stats.balance,
            },
            "visualRatio": balance.visual_ratio,
        }
        for participant_id, balance in balances.items()
    }
