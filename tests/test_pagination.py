from dataclasses import replace
from datetime import datetime, timezone

from structlog.testing import capture_logs

from partyledger.models import Chunk, ChunkRef, Expense, Party
from partyledger.services.pagination import (
    collect_expenses_from_chunks,
    create_chunk_pagination,
    create_paginated_expenses,
    get_initial_chunk_id,
    get_next_chunk_ids,
    needs_initial_chunk_load,
    update_pagination_after_load,
)


def make_party(chunk_ids):
    return Party(
        id="party-1",
        name="Test Party",
        participants={},
        chunk_refs=[
            ChunkRef(
                chunk_id=chunk_id,
                created_at=datetime(2024, 1, index + 1, tzinfo=timezone.utc),
                balances_id=f"balances-{index}",
            )
            for index, chunk_id in enumerate(chunk_ids)
        ],
    )


def make_chunk(chunk_id, names, day):
    return Chunk(
        id=chunk_id,
        created_at=datetime(2024, 1, day, tzinfo=timezone.utc),
        expenses=[
            Expense(
                id=f"expense-{i}:{chunk_id}",
                name=name,
                paid_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
                paid_by={},
                shares={},
            )
            for i, name in enumerate(names)
        ],
        party_id="party-1",
    )


def test_pagination_without_loaded_chunks():
    state = create_chunk_pagination(make_party(["c1", "c2", "c3"]))

    assert state.loaded_chunk_ids == []
    assert state.available_chunk_ids == ["c3", "c2", "c1"]
    assert state.has_more is True
    assert state.total_chunks == 3
    assert state.loaded_chunks == 0


def test_pagination_tracks_loaded_chunks():
    state = create_chunk_pagination(make_party(["c1", "c2", "c3"]), ["c3"])

    assert state.loaded_chunk_ids == ["c3"]
    assert state.available_chunk_ids == ["c2", "c1"]
    assert state.has_more is True
    assert state.loaded_chunks == 1


def test_pagination_fully_loaded():
    state = create_chunk_pagination(make_party(["c1", "c2"]), ["c1", "c2"])

    assert state.has_more is False
    assert state.loaded_chunks == 2
    assert state.total_chunks == 2


def test_pagination_without_chunks():
    state = create_chunk_pagination(make_party([]))

    assert state.has_more is False
    assert state.total_chunks == 0
    assert state.available_chunk_ids == []


def test_pagination_ignores_duplicate_loaded_ids():
    state = create_chunk_pagination(make_party(["c1", "c2"]), ["c2", "c2"])

    assert state.loaded_chunk_ids == ["c2"]
    assert state.loaded_chunks == 1


def test_next_chunk_ids():
    party = make_party(["c1", "c2", "c3"])

    assert get_next_chunk_ids(party, []) == ["c3"]
    assert get_next_chunk_ids(party, [], 2) == ["c3", "c2"]
    assert get_next_chunk_ids(party, ["c3"], count=2) == ["c2", "c1"]
    assert get_next_chunk_ids(party, ["c1", "c2", "c3"]) == []
    assert get_next_chunk_ids(party, [], 0) == []


def test_collect_expenses_newest_chunk_first():
    older = make_chunk("c1", ["Expense A", "Expense B"], day=1)
    newer = make_chunk("c2", ["Expense C"], day=2)

    expenses = collect_expenses_from_chunks([older, newer])

    assert [e.name for e in expenses] == ["Expense C", "Expense A", "Expense B"]


def test_collect_expenses_keeps_stored_order_inside_chunk():
    chunk = make_chunk("c1", ["Newest", "Backdated", "Oldest"], day=1)
    chunk.expenses[1] = replace(chunk.expenses[1], paid_at=datetime(2020, 1, 1, tzinfo=timezone.utc))

    expenses = collect_expenses_from_chunks([chunk])

    assert [e.name for e in expenses] == ["Newest", "Backdated", "Oldest"]


def test_collect_expenses_empty_inputs():
    assert collect_expenses_from_chunks([]) == []
    assert collect_expenses_from_chunks([make_chunk("c1", [], day=1)]) == []


def test_collect_expenses_tolerates_missing_chunks():
    chunk = make_chunk("c1", ["Expense A"], day=1)

    with capture_logs() as logs:
        expenses = collect_expenses_from_chunks([None, chunk])

    assert [e.name for e in expenses] == ["Expense A"]
    assert logs[0]["event"] == "chunks.missing"
    assert logs[0]["count"] == 1


def test_update_after_load():
    party = make_party(["c1", "c2", "c3"])
    previous = create_chunk_pagination(party, ["c3"])

    state = update_pagination_after_load(party, previous, ["c2"])

    assert state.loaded_chunk_ids == ["c3", "c2"]
    assert state.available_chunk_ids == ["c1"]
    assert state.loaded_chunks == 2
    assert previous.loaded_chunk_ids == ["c3"]


def test_pagination_lifecycle_is_monotonic():
    party = make_party(["c1", "c2", "c3"])
    state = create_chunk_pagination(party)

    while state.has_more:
        before = state.loaded_chunks
        state = update_pagination_after_load(party, state, get_next_chunk_ids(party, state.loaded_chunk_ids))
        assert state.loaded_chunks == before + 1

    assert state.loaded_chunk_ids == ["c3", "c2", "c1"]


def test_needs_initial_chunk_load():
    party = make_party(["c1", "c2"])

    assert needs_initial_chunk_load(party, []) is True
    assert needs_initial_chunk_load(party, ["c1"]) is True
    assert needs_initial_chunk_load(party, ["c2"]) is False
    assert needs_initial_chunk_load(make_party([]), []) is False


def test_initial_chunk_id():
    assert get_initial_chunk_id(make_party(["c1", "c2", "c3"])) == "c3"
    assert get_initial_chunk_id(make_party([])) is None


def test_paginated_expenses():
    party = make_party(["c1", "c2"])

    result = create_paginated_expenses(party, [make_chunk("c2", ["Expense A"], day=2)])

    assert [e.name for e in result.expenses] == ["Expense A"]
    assert result.pagination.loaded_chunks == 1
    assert result.pagination.has_more is True
    assert result.pagination.available_chunk_ids == ["c1"]


def test_paginated_expenses_with_missing_chunk():
    party = make_party(["c1", "c2"])

    result = create_paginated_expenses(party, [make_chunk("c2", ["Expense A"], day=2), None])

    assert len(result.expenses) == 1
    assert result.pagination.loaded_chunk_ids == ["c2"]
    assert get_next_chunk_ids(party, result.pagination.loaded_chunk_ids) == ["c1"]
