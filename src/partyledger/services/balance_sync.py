from __future__ import annotations

from typing import Iterable, Protocol, Sequence

from partyledger.logging import get_logger
from partyledger.models import BalancesByParticipant, Chunk, ChunkBalances, Expense, Party
from partyledger.services.balances import calculate_balances_by_participant, merge_balances_by_participant


class ChunkStore(Protocol):
    async def get_chunk(self, chunk_id: str) -> Chunk | None: ...

    async def get_chunk_balances(self, balances_id: str) -> ChunkBalances | None: ...

    async def save_chunk_balances(self, balances: ChunkBalances) -> None: ...


async def recalculate_chunk_balances(
    store: ChunkStore,
    balances_id: str,
    expenses: Sequence[Expense],
    participants: Iterable[str],
) -> ChunkBalances:
    current = await store.get_chunk_balances(balances_id)
    if current is None:
        raise LookupError(f"Chunk balances {balances_id!r} not found")

    updated = ChunkBalances(
        id=current.id,
        balances=calculate_balances_by_participant(expenses, participants),
        party_id=current.party_id,
    )
    await store.save_chunk_balances(updated)
    get_logger(__name__).info("balances.recalculated", balances_id=balances_id, expenses=len(expenses))
    return updated


async def recalculate_all_chunk_balances(store: ChunkStore, party: Party) -> None:
    log = get_logger(__name__)
    for ref in party.chunk_refs:
        chunk = await store.get_chunk(ref.chunk_id)
        if chunk is None:
            raise LookupError(f"Chunk {ref.chunk_id!r} not found")
        await recalculate_chunk_balances(store, ref.balances_id, chunk.expenses, party.participants)
    log.info("balances.party_recalculated", party_id=party.id, chunks=len(party.chunk_refs))


async def load_party_balances(store: ChunkStore, party: Party) -> BalancesByParticipant:
    """Party-wide balances from the precomputed per-chunk snapshots."""
    log = get_logger(__name__)
    snapshots: list[BalancesByParticipant] = []
    for ref in party.chunk_refs:
        chunk_balances = await store.get_chunk_balances(ref.balances_id)
        if chunk_balances is None:
            log.warning("balances.missing", chunk_id=ref.chunk_id, balances_id=ref.balances_id)
            continue
        snapshots.append(chunk_balances.balances)
    return merge_balances_by_participant(*snapshots, participants=party.participants)
