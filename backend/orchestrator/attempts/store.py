from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from core.config import ATTEMPT_STORE, ATTEMPTS_TABLE, SUPABASE_SERVICE_KEY, SUPABASE_URL
from orchestrator.errors import DuplicateAttempt, PersistenceFailed

logger = logging.getLogger("attempt_store")

UNIQUE_VIOLATION_CODE = "23505"


class AttemptStore(Protocol):
    async def exists(self, interview_id: str, candidate_email: str) -> bool:
        ...

    async def insert(self, row: dict) -> dict:
        """Insert one attempt row; DuplicateAttempt on key collision, PersistenceFailed otherwise."""
        ...


class LocalAttemptStore:
    """In-process store with the same unique constraint as the attempts table."""

    def __init__(self):
        self._lock = asyncio.Lock()
        self._rows: dict[tuple[str, str], dict] = {}

    async def exists(self, interview_id: str, candidate_email: str) -> bool:
        async with self._lock:
            return (interview_id, candidate_email) in self._rows

    async def insert(self, row: dict) -> dict:
        key = (str(row.get("interview_id") or ""), str(row.get("candidate_email") or ""))
        async with self._lock:
            if key in self._rows:
                raise DuplicateAttempt(*key)
            self._rows[key] = dict(row)
            return dict(row)

    async def get(self, interview_id: str, candidate_email: str) -> dict | None:
        async with self._lock:
            row = self._rows.get((interview_id, candidate_email))
            return dict(row) if row else None

    def count(self) -> int:
        return len(self._rows)


def _is_unique_violation(exc: Exception) -> bool:
    code = str(getattr(exc, "code", "") or "")
    if code == UNIQUE_VIOLATION_CODE:
        return True
    text = str(exc).lower()
    return UNIQUE_VIOLATION_CODE in text or "duplicate key" in text


class SupabaseAttemptStore:
    """
    Attempts table in Supabase/Postgres.
    The table carries UNIQUE (interview_id, candidate_email); that constraint,
    not anything in this process, decides which of two racing attempts wins.
    """

    def __init__(self, url: str, key: str, table: str = ATTEMPTS_TABLE, client=None):
        if client is None:
            try:
                from supabase import create_client
            except Exception as exc:
                raise RuntimeError("supabase package not installed; install 'supabase' to enable the attempts table") from exc
            if not url or not key:
                raise RuntimeError("ATTEMPT_STORE=supabase requires SUPABASE_URL and SUPABASE_SERVICE_KEY")
            client = create_client(url, key)
        self._client = client
        self._table = table

    def _exists_sync(self, interview_id: str, candidate_email: str) -> bool:
        res = (
            self._client
            .table(self._table)
            .select("interview_id")
            .eq("interview_id", interview_id)
            .eq("candidate_email", candidate_email)
            .limit(1)
            .execute()
        )
        return bool(getattr(res, "data", None))

    def _insert_sync(self, row: dict) -> dict:
        res = self._client.table(self._table).insert(row).execute()
        rows = getattr(res, "data", None) or []
        return dict(rows[0]) if rows else dict(row)

    async def exists(self, interview_id: str, candidate_email: str) -> bool:
        try:
            return await asyncio.to_thread(self._exists_sync, interview_id, candidate_email)
        except Exception as exc:
            logger.warning("attempt lookup failed | interview_id=%s err=%s", interview_id, exc)
            raise PersistenceFailed(f"attempt lookup failed: {exc}") from exc

    async def insert(self, row: dict) -> dict:
        try:
            return await asyncio.to_thread(self._insert_sync, row)
        except Exception as exc:
            if _is_unique_violation(exc):
                raise DuplicateAttempt(str(row.get("interview_id") or ""), str(row.get("candidate_email") or "")) from exc
            logger.warning("attempt insert failed | interview_id=%s err=%s", row.get("interview_id"), exc)
            raise PersistenceFailed(f"attempt insert failed: {exc}") from exc


def build_attempt_store() -> AttemptStore:
    if ATTEMPT_STORE != "supabase":
        return LocalAttemptStore()
    return SupabaseAttemptStore(url=SUPABASE_URL, key=SUPABASE_SERVICE_KEY, table=ATTEMPTS_TABLE)
