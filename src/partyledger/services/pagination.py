from __future__ import annotations

from typing import Iterable, Optional, Sequence

from partyledger.logging import get_logger
from partyledger.models import Chunk, ChunkPaginationState, Expense, PaginatedExpenses, Party


def _unique(ids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(ids))


def create_chunk_pagination(party: Party, loaded_chunk_ids: Sequence[str] = ()) -> ChunkPaginationState:
    # Chunk refs are stored oldest to newest.
    all_chunk_ids = [ref.chunk_id for ref in reversed(party.chunk_refs)]
    loaded = _unique(loaded_chunk_ids)
    loaded_set = set(loaded)
    available = [chunk_id for chunk_id in all_chunk_ids if chunk_id not in loaded_set]

    return ChunkPaginationState(
        loaded_chunk_ids=loaded,
        available_chunk_ids=available,
        has_more=len(available) > 0,
        total_chunks=len(all_chunk_ids),
        loaded_chunks=len(loaded),
    )


def get_next_chunk_ids(party: Party, loaded_chunk_ids: Sequence[str], count: int = 1) -> list[str]:
    if count <= 0:
        return []
    return create_chunk_pagination(party, loaded_chunk_ids).available_chunk_ids[:count]


def needs_initial_chunk_load(party: Party, loaded_chunk_ids: Sequence[str]) -> bool:
    newest = get_initial_chunk_id(party)
    return newest is not None and newest not in loaded_chunk_ids


def get_initial_chunk_id(party: Party) -> Optional[str]:
    if not party.chunk_refs:
        return None
    return party.chunk_refs[-1].chunk_id


def _present(chunks: Iterable[Optional[Chunk]]) -> list[Chunk]:
    return [chunk for chunk in chunks if chunk is not None]


def collect_expenses_from_chunks(chunks: Iterable[Optional[Chunk]]) -> list[Expense]:
    """Expenses of all chunks, newest chunk first, stored order inside a chunk.

    ``None`` stands for a chunk that was requested but is not loaded yet; it
    contributes nothing.
    """
    chunks = list(chunks)
    present = _present(chunks)
    missing = len(chunks) - len(present)
    if missing:
        get_logger(__name__).warning("chunks.missing", count=missing)

    ordered = sorted(present, key=lambda chunk: chunk.created_at, reverse=True)
    return [expense for chunk in ordered for expense in chunk.expenses]


def update_pagination_after_load(
    party: Party,
    previous_state: ChunkPaginationState,
    newly_loaded_ids: Sequence[str],
) -> ChunkPaginationState:
    return create_chunk_pagination(party, [*previous_state.loaded_chunk_ids, *newly_loaded_ids])


def create_paginated_expenses(party: Party, loaded_chunks: Sequence[Optional[Chunk]]) -> PaginatedExpenses:
    loaded_chunk_ids = [chunk.id for chunk in _present(loaded_chunks)]
    return PaginatedExpenses(
        expenses=collect_expenses_from_chunks(loaded_chunks),
        pagination=create_chunk_pagination(party, loaded_chunk_ids),
    )
