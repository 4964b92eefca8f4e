import asyncio

import pytest

from orchestrator.attempts.gatekeeper import AttemptGatekeeper
from orchestrator.attempts.store import LocalAttemptStore, SupabaseAttemptStore, _is_unique_violation
from orchestrator.errors import DuplicateAttempt, PersistenceFailed

from session_fakes import FlakyStore, make_feedback


@pytest.mark.asyncio
async def test_check_attempted_normalizes_email():
    gatekeeper = AttemptGatekeeper(LocalAttemptStore())
    await gatekeeper.record_attempt("int-1", "Ada@Example.COM", make_feedback())

    assert await gatekeeper.check_attempted("int-1", " ada@example.com ") is True
    assert await gatekeeper.check_attempted("int-2", "ada@example.com") is False


@pytest.mark.asyncio
async def test_second_record_raises_duplicate():
    gatekeeper = AttemptGatekeeper(LocalAttemptStore())
    await gatekeeper.record_attempt("int-1", "ada@example.com", make_feedback())

    with pytest.raises(DuplicateAttempt):
        await gatekeeper.record_attempt("int-1", "ADA@example.com", make_feedback())


@pytest.mark.asyncio
async def test_concurrent_records_have_exactly_one_winner():
    store = LocalAttemptStore()
    gatekeeper = AttemptGatekeeper(store)

    results = await asyncio.gather(
        *[gatekeeper.record_attempt("int-1", "ada@example.com", make_feedback()) for _ in range(5)],
        return_exceptions=True,
    )

    winners = [item for item in results if not isinstance(item, Exception)]
    losers = [item for item in results if isinstance(item, DuplicateAttempt)]
    assert len(winners) == 1
    assert len(losers) == 4
    assert store.count() == 1


@pytest.mark.asyncio
async def test_unreachable_store_does_not_block_precheck():
    gatekeeper = AttemptGatekeeper(FlakyStore(lookup_fails=True))

    assert await gatekeeper.check_attempted("int-1", "ada@example.com") is False


@pytest.mark.asyncio
async def test_insert_failure_propagates():
    gatekeeper = AttemptGatekeeper(FlakyStore(insert_failures=1))

    with pytest.raises(PersistenceFailed):
        await gatekeeper.record_attempt("int-1", "ada@example.com", make_feedback())


def test_unique_violation_detection():
    class _PgError(Exception):
        code = "23505"

    assert _is_unique_violation(_PgError("conflict"))
    assert _is_unique_violation(RuntimeError('duplicate key value violates unique constraint "attempts_pkey"'))
    assert not _is_unique_violation(RuntimeError("connection reset"))


class _Result:
    def __init__(self, data):
        self.data = data


class _Query:
    def __init__(self, table):
        self._table = table
        self._filters = {}
        self._insert = None

    def select(self, *args):
        return self

    def eq(self, column, value):
        self._filters[column] = value
        return self

    def limit(self, n):
        return self

    def insert(self, row):
        self._insert = row
        return self

    def execute(self):
        if self._insert is not None:
            key = (self._insert["interview_id"], self._insert["candidate_email"])
            if key in self._table.rows:
                raise RuntimeError("duplicate key value violates unique constraint")
            self._table.rows[key] = self._insert
            return _Result([self._insert])
        key = (self._filters.get("interview_id"), self._filters.get("candidate_email"))
        return _Result([self._table.rows[key]] if key in self._table.rows else [])


class _FakeSupabase:
    def __init__(self):
        self.rows = {}
        self.tables = []

    def table(self, name):
        self.tables.append(name)
        return _Query(self)


@pytest.mark.asyncio
async def test_supabase_store_maps_unique_violation_to_duplicate():
    client = _FakeSupabase()
    store = SupabaseAttemptStore(url="", key="", table="attempts", client=client)
    gatekeeper = AttemptGatekeeper(store)

    await gatekeeper.record_attempt("int-1", "ada@example.com", make_feedback())
    assert await gatekeeper.check_attempted("int-1", "ada@example.com") is True

    with pytest.raises(DuplicateAttempt):
        await gatekeeper.record_attempt("int-1", "ada@example.com", make_feedback())
    assert set(client.tables) == {"attempts"}
