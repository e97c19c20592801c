"""Storage tests against a real SQLite file."""

import asyncio
from unittest.mock import AsyncMock

import aiosqlite
import pytest

from async_database import ConnectionPool, open_store
from errors import StorageUnavailable
from models import Match, Prediction
from scoring import Score


def make_match(match_id, date="2025-03-21", team="India vs Australia"):
    return Match(id=match_id, team_name=team, toss="India bat first", venue="Wankhede", match_date=date)


def make_prediction(match_id, user_id, score, username=None, comment=None):
    return Prediction(match_id, user_id, username or f"user{user_id}", score, comment)


def test_insert_and_get_match(run_with_store):
    async def scenario(store):
        await store.insert_match(make_match("1"))
        return await store.get_match("1"), await store.get_match("missing")

    match, missing = run_with_store(scenario)
    assert match == make_match("1")
    assert match.is_open is True
    assert match.actual is None
    assert missing is None


def test_update_match_only_touches_given_fields(run_with_store):
    async def scenario(store):
        await store.insert_match(make_match("1"))
        await store.update_match("1", venue="Eden Gardens")
        await store.update_match("1", is_open=False, actual=Score(240, 5))
        changed = await store.update_match("nope", venue="x")
        return await store.get_match("1"), changed

    match, changed = run_with_store(scenario)
    assert match.venue == "Eden Gardens"
    assert match.team_name == "India vs Australia"
    assert match.is_open is False
    assert match.actual == Score(240, 5)
    assert changed is False


def test_upsert_replaces_and_keeps_first_submission_order(run_with_store):
    async def scenario(store):
        await store.insert_match(make_match("1"))
        await store.upsert_prediction(make_prediction("1", 10, Score(180, 5), comment="spin friendly"))
        await store.upsert_prediction(make_prediction("1", 20, Score(175, 6)))
        await store.upsert_prediction(make_prediction("1", 10, Score(190, 4), username="renamed"))
        return await store.get_predictions_for_match("1"), await store.get_prediction("1", 10)

    predictions, mine = run_with_store(scenario)
    assert [p.user_id for p in predictions] == [10, 20]
    assert mine.score == Score(190, 4)
    assert mine.username == "renamed"
    assert mine.comment is None


def test_delete_match_removes_predictions(run_with_store, db_path):
    async def scenario(store):
        await store.insert_match(make_match("1"))
        await store.insert_match(make_match("2"))
        await store.upsert_prediction(make_prediction("1", 10, Score(180, 5)))
        await store.upsert_prediction(make_prediction("2", 10, Score(150, 3)))
        deleted = await store.delete_match("1")
        async with aiosqlite.connect(db_path) as conn:
            cursor = await conn.execute("SELECT match_id FROM predictions")
            remaining = [row[0] for row in await cursor.fetchall()]
        return deleted, await store.get_match("1"), remaining

    deleted, match, remaining = run_with_store(scenario)
    assert deleted is True
    assert match is None
    assert remaining == ["2"]


def test_past_matches_closed_only_latest_date_first(run_with_store):
    async def scenario(store):
        await store.insert_match(make_match("1", date="2025-03-01"))
        await store.insert_match(make_match("2", date="2025-03-20"))
        await store.insert_match(make_match("3", date="2025-03-10"))
        await store.update_match("1", is_open=False, actual=Score(160, 8))
        await store.update_match("2", is_open=False)
        return await store.get_past_matches()

    past = run_with_store(scenario)
    assert [m.id for m in past] == ["2", "1"]


def test_unfinished_match_is_latest_without_result(run_with_store):
    async def scenario(store):
        empty = await store.get_unfinished_match()
        await store.insert_match(make_match("1"))
        await store.update_match("1", is_open=False, actual=Score(160, 8))
        await store.insert_match(make_match("2"))
        await store.update_match("2", is_open=False)
        return empty, await store.get_unfinished_match()

    empty, unfinished = run_with_store(scenario)
    assert empty is None
    assert unfinished.id == "2"
    assert unfinished.is_open is False


def test_finalized_predictions_join_their_own_match(run_with_store):
    async def scenario(store):
        await store.insert_match(make_match("1"))
        await store.insert_match(make_match("2"))
        await store.insert_match(make_match("3"))
        await store.upsert_prediction(make_prediction("1", 10, Score(180, 5)))
        await store.upsert_prediction(make_prediction("2", 10, Score(150, 3)))
        await store.upsert_prediction(make_prediction("2", 20, Score(155, 4)))
        await store.upsert_prediction(make_prediction("3", 10, Score(999, 9)))
        await store.update_match("1", is_open=False, actual=Score(178, 5))
        await store.update_match("2", is_open=False, actual=Score(152, 3))
        # match 3 only closed, no result
        await store.update_match("3", is_open=False)
        return await store.get_finalized_predictions(), await store.get_finalized_predictions(10)

    everyone, user10 = run_with_store(scenario)
    assert [(p.match_id, p.user_id, actual) for p, actual in everyone] == [
        ("1", 10, Score(178, 5)),
        ("2", 10, Score(152, 3)),
        ("2", 20, Score(152, 3)),
    ]
    assert [p.match_id for p, _ in user10] == ["1", "2"]


def test_sqlite_errors_become_storage_unavailable(run_with_store, db_path):
    async def scenario(store):
        async with aiosqlite.connect(db_path) as conn:
            await conn.execute("DROP TABLE predictions")
            await conn.commit()
        with pytest.raises(StorageUnavailable):
            await store.get_predictions_for_match("1")
        # the connection went back to the pool and still works
        await store.insert_match(make_match("1"))
        return await store.get_match("1")

    assert run_with_store(scenario).id == "1"


def test_cancelled_block_is_rolled_back(db_path):
    async def scenario():
        store = await open_store(db_path, pool_size=1)
        try:
            with pytest.raises(asyncio.CancelledError):
                async with store.pool.acquire() as conn:
                    await conn.execute(
                        "INSERT INTO matches (id, team_name, toss, venue, match_date) VALUES ('1', 't', 't', 'v', 'd')"
                    )
                    raise asyncio.CancelledError()
            # same single connection; it must not still see the uncommitted row
            return await store.get_match("1")
        finally:
            await store.pool.close_all()

    assert asyncio.run(scenario()) is None


def test_failed_initialize_closes_opened_connections(db_path, monkeypatch):
    opened = []

    async def flaky_connect(name):
        if opened:
            raise aiosqlite.OperationalError("unable to open database file")
        conn = AsyncMock()
        opened.append(conn)
        return conn

    monkeypatch.setattr(aiosqlite, "connect", flaky_connect)
    pool = ConnectionPool(db_path, pool_size=3)
    with pytest.raises(StorageUnavailable):
        asyncio.run(pool.initialize())
    assert len(opened) == 1
    opened[0].close.assert_awaited_once()
    assert pool._pool.empty()
