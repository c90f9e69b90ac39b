"""
Tests for the document store port, run against both adapters.
"""

import asyncio

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from resilience_game.crud import SqlDocumentStore
from resilience_game.document_store import BatchOperation, MemoryDocumentStore, match_filters, sort_and_limit
from resilience_game.errors import NotFoundError


@pytest.fixture(params=["memory", "sql"])
def run_with_store(request, tmp_path):
    """Run ``scenario(store)`` in one event loop against a fresh store."""

    def run(scenario):
        async def main():
            engine = None
            if request.param == "memory":
                store = MemoryDocumentStore()
            else:
                engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'documents.sqlite3'}")
                store = SqlDocumentStore(async_sessionmaker(bind=engine, class_=AsyncSession), engine)
            await store.initialize()
            try:
                return await scenario(store)
            finally:
                if engine is not None:
                    await engine.dispose()

        return asyncio.run(main())

    return run


def test_create_generates_id_and_get_returns_it(run_with_store):
    async def scenario(store):
        doc_id = await store.create("towns", {"name": "Town 1", "effort_points": 100})
        return doc_id, await store.get("towns", doc_id)

    doc_id, document = run_with_store(scenario)

    assert doc_id
    assert document == {"id": doc_id, "name": "Town 1", "effort_points": 100}


def test_get_missing_returns_none(run_with_store):
    async def scenario(store):
        return await store.get("towns", "missing")

    assert run_with_store(scenario) is None


def test_create_with_explicit_id_overwrites(run_with_store):
    async def scenario(store):
        await store.create("round_events", {"hazard_ids": ["flood"], "round_number": 1}, "s1_1")
        await store.create("round_events", {"hazard_ids": ["heatwave"]}, "s1_1")
        return await store.get("round_events", "s1_1")

    assert run_with_store(scenario) == {"id": "s1_1", "hazard_ids": ["heatwave"]}


def test_update_merges_fields(run_with_store):
    async def scenario(store):
        await store.create("game_sessions", {"name": "Old", "current_round": 2}, "s1")
        await store.update("game_sessions", "s1", {"name": "New"})
        return await store.get("game_sessions", "s1")

    assert run_with_store(scenario) == {"id": "s1", "name": "New", "current_round": 2}


def test_update_missing_raises_not_found(run_with_store):
    async def scenario(store):
        await store.update("game_sessions", "missing", {"name": "x"})

    with pytest.raises(NotFoundError):
        run_with_store(scenario)


def test_delete_reports_existence(run_with_store):
    async def scenario(store):
        await store.create("card_plays", {"card_id": "flood1"}, "p1")
        first = await store.delete("card_plays", "p1")
        second = await store.delete("card_plays", "p1")
        return first, second, await store.get("card_plays", "p1")

    assert run_with_store(scenario) == (True, False, None)


def test_query_filters_orders_and_limits(run_with_store):
    async def scenario(store):
        await store.create("game_sessions", {"user_id": "u1", "is_active": True, "created_at": "2025-03-01T10:00:00.000000+00:00"}, "a")
        await store.create("game_sessions", {"user_id": "u1", "is_active": True, "created_at": "2025-03-02T10:00:00.000000+00:00"}, "b")
        await store.create("game_sessions", {"user_id": "u1", "is_active": False, "created_at": "2025-03-03T10:00:00.000000+00:00"}, "c")
        await store.create("game_sessions", {"user_id": "u2", "is_active": True, "created_at": "2025-03-04T10:00:00.000000+00:00"}, "d")
        newest = await store.query(
            "game_sessions",
            filters=[("user_id", "==", "u1"), ("is_active", "==", True)],
            order_by=("created_at", "desc"),
        )
        limited = await store.query("game_sessions", order_by=("created_at", "asc"), limit=2)
        return [doc["id"] for doc in newest], [doc["id"] for doc in limited]

    newest, limited = run_with_store(scenario)

    assert newest == ["b", "a"]
    assert limited == ["a", "b"]


def test_query_isolates_collections(run_with_store):
    async def scenario(store):
        await store.create("towns", {"session_id": "s1"}, "s1_town_1")
        await store.create("card_plays", {"session_id": "s1"}, "p1")
        return await store.query("towns", filters=[("session_id", "==", "s1")])

    assert [doc["id"] for doc in run_with_store(scenario)] == ["s1_town_1"]


def test_query_on_mixed_collection(run_with_store):
    async def scenario(store):
        for number in (10, 2, 1):
            await store.create("towns", {"session_id": "s1", "town_number": number}, f"s1_town_{number}")
        await store.create("towns", {"session_id": "s2", "town_number": 3}, "s2_town_3")
        await store.create("round_events", {"session_id": "s1", "hazard_ids": ["flood"], "round_number": 1}, "s1_1")
        await store.create("round_events", {"session_id": "s1", "hazard_ids": ["heatwave"], "round_number": 2}, "s1_2")
        await store.create("round_events", {"session_id": "s1", "hazard_ids": ["flood"], "round_number": 3}, "s1_3")

        ordered = await store.query("towns", filters=[("session_id", "==", "s1")], order_by=("town_number", "asc"))
        newest = await store.query("towns", order_by=("town_number", "desc"), limit=2)
        selected = await store.query("towns", filters=[("town_number", "in", [2, 3]), ("town_number", ">", 1)])
        flooded = await store.query(
            "round_events",
            filters=[("session_id", "==", "s1"), ("hazard_ids", "array-contains", "flood")],
            order_by=("round_number", "desc"),
            limit=1,
        )
        return [
            [doc["id"] for doc in result] for result in (ordered, newest, selected, flooded)
        ]

    ordered, newest, selected, flooded = run_with_store(scenario)

    assert ordered == ["s1_town_1", "s1_town_2", "s1_town_10"]
    assert newest == ["s1_town_10", "s2_town_3"]
    assert selected == ["s1_town_2", "s2_town_3"]
    assert flooded == ["s1_3"]


def test_sql_query_filters_and_limits_in_the_database(tmp_path):
    async def scenario():
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'documents.sqlite3'}")
        store = SqlDocumentStore(async_sessionmaker(bind=engine, class_=AsyncSession), engine)
        statements = []

        @event.listens_for(engine.sync_engine, "before_cursor_execute")
        def record(conn, cursor, statement, parameters, context, executemany):
            statements.append(statement)

        try:
            await store.initialize()
            await store.batch(
                [
                    BatchOperation("create", "towns", f"s{n}_town_{t}", {"session_id": f"s{n}", "town_number": t})
                    for n in range(1, 51)
                    for t in range(1, 5)
                ]
            )
            statements.clear()
            documents = await store.query(
                "towns", filters=[("session_id", "==", "s1")], order_by=("town_number", "desc"), limit=1
            )
            return documents, statements
        finally:
            await engine.dispose()

    documents, statements = asyncio.run(scenario())

    assert documents == [{"id": "s1_town_4", "session_id": "s1", "town_number": 4}]
    selects = [statement.lower() for statement in statements if statement.lstrip().lower().startswith("select")]
    assert len(selects) == 1
    sql = selects[0]
    assert "json_extract" in sql
    assert "order by" in sql
    assert "limit" in sql


def test_batch_applies_all_operations(run_with_store):
    async def scenario(store):
        await store.create("towns", {"effort_points": 100}, "t1")
        await store.batch(
            [
                BatchOperation("update", "towns", "t1", {"effort_points": 85}),
                BatchOperation("create", "card_plays", "p1", {"town_id": "t1"}),
            ]
        )
        return await store.get("towns", "t1"), await store.get("card_plays", "p1")

    town, card_play = run_with_store(scenario)

    assert town["effort_points"] == 85
    assert card_play == {"id": "p1", "town_id": "t1"}


def test_batch_is_atomic(run_with_store):
    async def scenario(store):
        with pytest.raises(NotFoundError):
            await store.batch(
                [
                    BatchOperation("create", "towns", "t1", {"effort_points": 100}),
                    BatchOperation("update", "towns", "missing", {"effort_points": 0}),
                ]
            )
        return await store.get("towns", "t1")

    assert run_with_store(scenario) is None


def test_returned_documents_are_copies():
    async def scenario():
        store = MemoryDocumentStore()
        await store.create("round_events", {"hazard_ids": ["flood"]}, "s1_1")
        document = await store.get("round_events", "s1_1")
        document["hazard_ids"].append("heatwave")
        return await store.get("round_events", "s1_1")

    assert asyncio.run(scenario())["hazard_ids"] == ["flood"]


class TestFilterHelpers:
    document = {"id": "x", "round_number": 3, "hazard_ids": ["flood", "heatwave"], "is_active": False}

    @pytest.mark.parametrize(
        "flt, expected",
        [
            (("round_number", "==", 3), True),
            (("round_number", "!=", 3), False),
            (("round_number", "<", 4), True),
            (("round_number", "<=", 3), True),
            (("round_number", ">", 3), False),
            (("round_number", ">=", 3), True),
            (("round_number", "in", [1, 2, 3]), True),
            (("hazard_ids", "array-contains", "flood"), True),
            (("hazard_ids", "array-contains", "biohazard"), False),
            (("missing", "==", None), False),
        ],
    )
    def test_match_filters(self, flt, expected):
        assert match_filters(self.document, [flt]) is expected

    def test_unknown_operator_is_rejected(self):
        with pytest.raises(ValueError):
            match_filters(self.document, [("round_number", "~", 3)])

    def test_missing_sort_values_go_last(self):
        documents = [{"id": "a"}, {"id": "b", "completed_at": "2025"}, {"id": "c", "completed_at": "2026"}]
        ordered = sort_and_limit(documents, ("completed_at", "desc"))
        assert [doc["id"] for doc in ordered] == ["c", "b", "a"]
