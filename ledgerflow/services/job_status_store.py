"""
LedgerFlow - Job Status Store

Redis-backed ticket state for the report pipeline. Every report build is
tracked by one JSON document under a typed key (``<prefix>:<ticket>``) with
a TTL; pollers read it, exactly one builder writes it.

State transitions are guarded here:
- queued -> running -> done | error, never out of a terminal state
- progress never decreases
"""

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

import redis.asyncio as redis

from ledgerflow.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class ReportKind(str, Enum):
    """Report types; the value is the URL slug."""
    GENERAL_LEDGER = "general-ledger"
    TRIAL_BALANCE = "trial-balance"
    CHECK_REGISTER = "check-register"
    CASH_RECEIPT_BOOK = "cash-receipt-book"
    CASH_DISBURSEMENT_BOOK = "cash-disbursement-book"
    GENERAL_JOURNAL_BOOK = "general-journal-book"
    ACCOUNTS_PAYABLE_JOURNAL = "accounts-payable-journal"
    ACCOUNTS_RECEIVABLE_JOURNAL = "accounts-receivable-journal"
    RECEIPT_REGISTER = "receipt-register"

    @property
    def prefix(self) -> str:
        return _KEY_PREFIXES[self]

    @property
    def ttl_seconds(self) -> int:
        if self in (ReportKind.GENERAL_LEDGER, ReportKind.TRIAL_BALANCE):
            return settings.report_state_ttl_hours * 3600
        return settings.report_short_state_ttl_hours * 3600


_KEY_PREFIXES = {
    ReportKind.GENERAL_LEDGER: "gl",
    ReportKind.TRIAL_BALANCE: "tb",
    ReportKind.CHECK_REGISTER: "cr",
    ReportKind.CASH_RECEIPT_BOOK: "crb",
    ReportKind.CASH_DISBURSEMENT_BOOK: "cdb",
    ReportKind.GENERAL_JOURNAL_BOOK: "gjb",
    ReportKind.ACCOUNTS_PAYABLE_JOURNAL: "apj",
    ReportKind.ACCOUNTS_RECEIVABLE_JOURNAL: "arj",
    ReportKind.RECEIPT_REGISTER: "rr",
}


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.DONE, JobStatus.ERROR)


def job_key(kind: ReportKind, ticket: str) -> str:
    """Namespaced store key for one ticket."""
    return f"{kind.prefix}:{ticket}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class JobStatusStore:
    """Ticket state on Redis."""

    def __init__(self, redis_url: Optional[str] = None):
        self.redis_url = redis_url or settings.redis_url
        self._client: Optional[redis.Redis] = None

    async def get_client(self) -> redis.Redis:
        """Get or create Redis client."""
        if self._client is None:
            self._client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._client

    async def close(self):
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # RAW ACCESS
    # =========================================================================

    async def _read(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            client = await self.get_client()
            value = await client.get(key)
        except Exception as e:
            logger.warning(f"Job store read failed for {key}: {e}")
            return None
        if not value:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON in job store for {key}")
            return None

    async def _write(self, key: str, state: Dict[str, Any], ttl: int) -> bool:
        try:
            client = await self.get_client()
            await client.setex(key, ttl, json.dumps(state, default=str))
            return True
        except Exception as e:
            logger.warning(f"Job store write failed for {key}: {e}")
            return False

    # =========================================================================
    # TICKET STATE
    # =========================================================================

    async def seed(
        self,
        kind: ReportKind,
        ticket: str,
        company_id: int,
        format: str,
        params: Dict[str, Any],
        message: str = "Queued",
    ) -> bool:
        """Write the initial queued state for a fresh ticket."""
        now = _now_iso()
        state = {
            "ticket": ticket,
            "report": kind.value,
            "status": JobStatus.QUEUED.value,
            "progress": 0,
            "message": message,
            "format": format,
            "params": params,
            "company_id": company_id,
            "file": None,
            "download_name": None,
            "error": None,
            "created_at": now,
            "updated_at": now,
        }
        return await self._write(job_key(kind, ticket), state, kind.ttl_seconds)

    async def get(self, kind: ReportKind, ticket: str) -> Optional[Dict[str, Any]]:
        """Current state, or None when the ticket is unknown or expired."""
        return await self._read(job_key(kind, ticket))

    async def patch(self, kind: ReportKind, ticket: str, **changes: Any) -> Optional[Dict[str, Any]]:
        """
        Merge ``changes`` into the ticket state and refresh its TTL.

        Updates to a terminal ticket are dropped. Progress is clamped so it
        never goes backwards. Returns the stored state, or None when the
        ticket is gone or the write failed.
        """
        key = job_key(kind, ticket)
        current = await self._read(key)
        if current is None:
            logger.warning(f"Job state missing for {key}; update dropped")
            return None

        current_status = JobStatus(current.get("status", JobStatus.QUEUED.value))
        if current_status.is_terminal:
            logger.warning(f"Ignoring update to terminal ticket {key} ({current_status.value})")
            return current

        merged = dict(current)
        merged.update(changes)
        if "progress" in changes:
            merged["progress"] = max(int(current.get("progress") or 0), min(100, int(changes["progress"])))
        merged["updated_at"] = _now_iso()

        if not await self._write(key, merged, kind.ttl_seconds):
            return None
        return merged

    async def mark_running(self, kind: ReportKind, ticket: str, progress: int = 1, message: str = "Loading...") -> Optional[Dict[str, Any]]:
        return await self.patch(kind, ticket, status=JobStatus.RUNNING.value, progress=progress, message=message)

    async def progress(self, kind: ReportKind, ticket: str, progress: int, message: Optional[str] = None) -> Optional[Dict[str, Any]]:
        changes: Dict[str, Any] = {"progress": progress}
        if message is not None:
            changes["message"] = message
        return await self.patch(kind, ticket, **changes)

    async def mark_done(
        self,
        kind: ReportKind,
        ticket: str,
        file: str,
        download_name: str,
        format: str,
    ) -> Optional[Dict[str, Any]]:
        return await self.patch(
            kind,
            ticket,
            status=JobStatus.DONE.value,
            progress=100,
            message="Done",
            file=file,
            download_name=download_name,
            format=format,
            error=None,
        )

    async def mark_error(self, kind: ReportKind, ticket: str, error: str) -> Optional[Dict[str, Any]]:
        return await self.patch(
            kind,
            ticket,
            status=JobStatus.ERROR.value,
            progress=100,
            message=error,
            file=None,
            download_name=None,
            error=error or "Report generation failed.",
        )


# Global job store instance
_job_store: Optional[JobStatusStore] = None


def get_job_store() -> JobStatusStore:
    """Get the global job store instance (also a FastAPI dependency)."""
    global _job_store
    if _job_store is None:
        _job_store = JobStatusStore()
    return _job_store


async def close_job_store():
    """Close the global job store."""
    global _job_store
    if _job_store:
        await _job_store.close()
        _job_store = None
