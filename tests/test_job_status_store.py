"""
LedgerFlow - Job Status Store Tests

Ticket state on Redis, with the client mocked.
"""

import json

import pytest
from unittest.mock import AsyncMock

from ledgerflow.services.job_status_store import JobStatus, JobStatusStore, ReportKind, job_key


class TestKeys:

    def test_key_format(self):
        """Test key format."""
        assert job_key(ReportKind.GENERAL_LEDGER, "abc") == "gl:abc"
        assert job_key(ReportKind.CASH_RECEIPT_BOOK, "abc") == "crb:abc"

    def test_prefixes_are_unique(self):
        """Test prefixes are unique."""
        prefixes = [kind.prefix for kind in ReportKind]
        assert len(prefixes) == len(set(prefixes))

    def test_ledger_tickets_live_longer(self):
        """Test ledger tickets live longer."""
        assert ReportKind.GENERAL_LEDGER.ttl_seconds == 6 * 3600
        assert ReportKind.TRIAL_BALANCE.ttl_seconds == 6 * 3600
        assert ReportKind.CHECK_REGISTER.ttl_seconds == 2 * 3600

    def test_terminal_states(self):
        """Test terminal states."""
        assert JobStatus.DONE.is_terminal
        assert JobStatus.ERROR.is_terminal
        assert not JobStatus.RUNNING.is_terminal


class TestTicketState:

    @pytest.mark.asyncio
    async def test_seed_writes_queued_state(self, job_store, redis_mock):
        """Test seed writes queued state."""
        assert await job_store.seed(ReportKind.GENERAL_LEDGER, "t1", 1, "pdf", {"company_id": 1})

        redis_mock.setex.assert_called_once()
        key, ttl, _ = redis_mock.setex.call_args.args
        assert key == "gl:t1"
        assert ttl == 6 * 3600

        state = await job_store.get(ReportKind.GENERAL_LEDGER, "t1")
        assert state["status"] == "queued"
        assert state["progress"] == 0
        assert state["company_id"] == 1
        assert state["file"] is None

    @pytest.mark.asyncio
    async def test_unknown_ticket(self, job_store):
        """Test unknown ticket."""
        assert await job_store.get(ReportKind.TRIAL_BALANCE, "missing") is None
        assert await job_store.patch(ReportKind.TRIAL_BALANCE, "missing", progress=10) is None

    @pytest.mark.asyncio
    async def test_kinds_do_not_share_tickets(self, job_store):
        """Test kinds do not share tickets."""
        await job_store.seed(ReportKind.GENERAL_LEDGER, "t1", 1, "pdf", {})
        assert await job_store.get(ReportKind.TRIAL_BALANCE, "t1") is None

    @pytest.mark.asyncio
    async def test_progress_never_decreases(self, job_store):
        """Test progress never decreases."""
        await job_store.seed(ReportKind.CHECK_REGISTER, "t1", 1, "pdf", {})
        await job_store.mark_running(ReportKind.CHECK_REGISTER, "t1")
        await job_store.progress(ReportKind.CHECK_REGISTER, "t1", 50, "Halfway")
        state = await job_store.progress(ReportKind.CHECK_REGISTER, "t1", 30)

        assert state["progress"] == 50
        assert state["message"] == "Halfway"

    @pytest.mark.asyncio
    async def test_progress_capped_at_100(self, job_store):
        """Test progress capped at 100."""
        await job_store.seed(ReportKind.CHECK_REGISTER, "t1", 1, "pdf", {})
        state = await job_store.progress(ReportKind.CHECK_REGISTER, "t1", 250)
        assert state["progress"] == 100

    @pytest.mark.asyncio
    async def test_done_is_final(self, job_store):
        """Test done is final."""
        kind = ReportKind.RECEIPT_REGISTER
        await job_store.seed(kind, "t1", 1, "pdf", {})
        await job_store.mark_running(kind, "t1")
        await job_store.mark_done(kind, "t1", file="reports/c1/rr_t1.pdf", download_name="rr.pdf", format="pdf")

        await job_store.mark_running(kind, "t1")
        await job_store.mark_error(kind, "t1", "late failure")

        state = await job_store.get(kind, "t1")
        assert state["status"] == "done"
        assert state["progress"] == 100
        assert state["file"] == "reports/c1/rr_t1.pdf"
        assert state["error"] is None

    @pytest.mark.asyncio
    async def test_error_is_final(self, job_store):
        """Test error is final."""
        kind = ReportKind.TRIAL_BALANCE
        await job_store.seed(kind, "t1", 1, "xls", {})
        await job_store.mark_error(kind, "t1", "Boom")
        await job_store.mark_done(kind, "t1", file="x", download_name="x", format="xls")

        state = await job_store.get(kind, "t1")
        assert state["status"] == "error"
        assert state["error"] == "Boom"
        assert state["message"] == "Boom"
        assert state["file"] is None

    @pytest.mark.asyncio
    async def test_updates_refresh_ttl(self, job_store, redis_mock):
        """Test updates refresh the TTL."""
        await job_store.seed(ReportKind.GENERAL_LEDGER, "t1", 1, "pdf", {})
        await job_store.progress(ReportKind.GENERAL_LEDGER, "t1", 10)

        assert redis_mock.setex.call_count == 2
        assert redis_mock.setex.call_args.args[1] == 6 * 3600


class TestStoreFailures:

    @pytest.mark.asyncio
    async def test_write_failure_reported(self):
        """Test write failure reported."""
        store = JobStatusStore(redis_url="redis://test:6379/0")
        client = AsyncMock()
        client.setex = AsyncMock(side_effect=ConnectionError("down"))
        store._client = client

        assert await store.seed(ReportKind.GENERAL_LEDGER, "t1", 1, "pdf", {}) is False

    @pytest.mark.asyncio
    async def test_read_failure_reads_as_missing(self):
        """Test read failure reads as missing."""
        store = JobStatusStore(redis_url="redis://test:6379/0")
        client = AsyncMock()
        client.get = AsyncMock(side_effect=ConnectionError("down"))
        store._client = client

        assert await store.get(ReportKind.GENERAL_LEDGER, "t1") is None

    @pytest.mark.asyncio
    async def test_corrupt_state_reads_as_missing(self, job_store, redis_mock):
        """Test corrupt state reads as missing."""
        redis_mock.data["gl:t1"] = "{not json"
        assert await job_store.get(ReportKind.GENERAL_LEDGER, "t1") is None

    @pytest.mark.asyncio
    async def test_state_is_json(self, job_store, redis_mock):
        """Test stored state is JSON."""
        await job_store.seed(ReportKind.GENERAL_LEDGER, "t1", 4, "pdf", {"start_date": "2025-01-01"})
        stored = json.loads(redis_mock.data["gl:t1"])
        assert stored["params"] == {"start_date": "2025-01-01"}
        assert stored["report"] == "general-ledger"

    @pytest.mark.asyncio
    async def test_close_releases_client(self, job_store, redis_mock):
        """Test close releases client."""
        await job_store.close()
        redis_mock.aclose.assert_awaited_once()
        assert job_store._client is None
