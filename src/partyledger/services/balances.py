from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from partyledger.models import Balance, BalancesByParticipant, BalanceStats, Expense, UserDiff
from partyledger.services.shares import export_into_input, get_expense_unit_shares
from partyledger.services.stats import calculate_log_stats_of_user


def _impact(paid_by: Mapping[str, int], unit_shares: Mapping[str, int], user_id: str) -> int:
    return int(paid_by.get(user_id, 0)) - unit_shares.get(user_id, 0)


def get_impact_on_balance_for_user(expense: Expense, user_id: str) -> int:
    """Paid minus owed for one participant. Positive means out of pocket."""
    if not expense.paid_by:
        return 0
    unit_shares = get_expense_unit_shares(expense.paid_by, expense.shares, expense.id)
    return _impact(expense.paid_by, unit_shares, user_id)


def _with_visual_ratios(stats_by_participant: Mapping[str, BalanceStats]) -> BalancesByParticipant:
    reference = max((abs(stats.balance) for stats in stats_by_participant.values()), default=0)
    return {
        pid: Balance(
            participant_id=pid,
            stats=stats,
            visual_ratio=stats.balance / reference if reference else 0.0,
        )
        for pid, stats in stats_by_participant.items()
    }


def calculate_balances_by_participant(
    expenses: Sequence[Expense],
    participants: Iterable[str],
) -> BalancesByParticipant:
    """Balances for every participant in the roster over the given expenses.

    ``participants`` is the party roster: a mapping keyed by participant id
    or any iterable of ids.
    """
    participant_ids = list(participants)
    inputs = [record for expense in expenses for record in export_into_input(expense)]

    totals = dict.fromkeys(participant_ids, 0)
    for expense in expenses:
        if not expense.paid_by:
            continue
        unit_shares = get_expense_unit_shares(expense.paid_by, expense.shares, expense.id)
        for pid in participant_ids:
            totals[pid] += _impact(expense.paid_by, unit_shares, pid)

    stats_by_participant: dict[str, BalanceStats] = {}
    for pid in participant_ids:
        pairwise = calculate_log_stats_of_user(pid, participant_ids, inputs)
        stats_by_participant[pid] = BalanceStats(
            user_owes=pairwise.user_owes,
            owed_to_user=pairwise.owed_to_user,
            diffs=pairwise.diffs,
            balance=totals[pid],
        )

    return _with_visual_ratios(stats_by_participant)


def _empty_stats() -> BalanceStats:
    return BalanceStats(user_owes=0, owed_to_user=0, diffs={}, balance=0)


def _add_stats(left: BalanceStats, right: BalanceStats) -> BalanceStats:
    diffs = dict(left.diffs)
    for other, diff in right.diffs.items():
        current = diffs.get(other)
        total = diff.diff_unsplitted + (current.diff_unsplitted if current else 0)
        diffs[other] = UserDiff(diff_unsplitted=total)

    return BalanceStats(
        user_owes=left.user_owes + right.user_owes,
        owed_to_user=left.owed_to_user + right.owed_to_user,
        diffs=diffs,
        balance=left.balance + right.balance,
    )


def merge_balances_by_participant(
    *snapshots: BalancesByParticipant,
    participants: Iterable[str] = (),
) -> BalancesByParticipant:
    """Sum balance snapshots computed over disjoint sets of expenses.

    Visual ratios of the inputs are discarded and recomputed from the merged
    balances. Every id in ``participants`` gets a row, zeroed if no snapshot
    mentions it. Inputs are never mutated.

    ``diffs`` keys are the union over the inputs, so an all-zero snapshot is a
    neutral element only when it was computed over the same roster; a wider
    one leaves every amount unchanged but adds its zero-valued rows and keys.
    """
    merged: dict[str, BalanceStats] = {pid: _empty_stats() for pid in participants}

    for snapshot in snapshots:
        for pid, balance in snapshot.items():
            merged[pid] = _add_stats(merged.get(pid) or _empty_stats(), balance.stats)

    return _with_visual_ratios(merged)
