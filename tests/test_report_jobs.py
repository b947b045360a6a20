"""
LedgerFlow - Report Job Service Tests

Ticket scheduling, execution disciplines and the gated ticket reads.
"""

import pytest
import pytest_asyncio
from datetime import date
from unittest.mock import AsyncMock, MagicMock

from fastapi import BackgroundTasks

from ledgerflow.schemas.reports import (
    AccountRangeReportRequest,
    DateRangeReportRequest,
    PeriodReportRequest,
    TrialBalanceRequest,
)
from ledgerflow.services.job_status_store import ReportKind
from ledgerflow.services.journal_modules import CASH_DISBURSEMENT, GENERAL_ACCOUNTING
from ledgerflow.services.report_jobs import ReportJobService
from ledgerflow.utils.error_handling import (
    JobStoreUnavailableException,
    MissingCompanyScopeException,
    ReportGoneException,
    ReportNotReadyException,
    TenantMismatchException,
    TicketNotFoundException,
    UnsupportedMediaTypeException,
    ValidationException,
)
from tests.conftest import COMPANY_ID, OTHER_COMPANY_ID


def _gl_request(**overrides):
    data = dict(
        company_id=COMPANY_ID,
        format="pdf",
        start_account="1000",
        end_account="9999",
        start_date=date(2025, 3, 1),
        end_date=date(2025, 3, 31),
    )
    data.update(overrides)
    return AccountRangeReportRequest(**data)


def _tb_request(**overrides):
    data = dict(
        company_id=COMPANY_ID,
        format="pdf",
        start_account="1000",
        end_account="9999",
        start_date=date(2025, 3, 1),
        end_date=date(2025, 3, 31),
    )
    data.update(overrides)
    return TrialBalanceRequest(**data)


@pytest_asyncio.fixture
async def march_activity(chart, post_journal):
    await post_journal(CASH_DISBURSEMENT, date(2025, 3, 5), [("6000", 150, 0)], bank_id="BDO", vend_id="V001")


class TestStartReport:

    @pytest.mark.asyncio
    async def test_general_ledger_runs_inline(self, report_service, storage_root, march_activity):
        """Test general ledger runs inline."""
        ticket = await report_service.start_report(ReportKind.GENERAL_LEDGER, _gl_request())

        state = await report_service.get_status(ReportKind.GENERAL_LEDGER, ticket, COMPANY_ID)
        assert state["status"] == "done"
        assert state["progress"] == 100
        assert state["file"] == f"reports/c{COMPANY_ID}/gl_{ticket}.pdf"
        assert state["download_name"] == "GeneralLedger_1000-9999_2025-03-01_to_2025-03-31.pdf"
        assert (storage_root / state["file"]).read_bytes().startswith(b"%PDF")

    @pytest.mark.asyncio
    async def test_trial_balance_waits_for_response(self, report_service, march_activity):
        """Test trial balance waits for response."""
        tasks = BackgroundTasks()
        ticket = await report_service.start_report(ReportKind.TRIAL_BALANCE, _tb_request(), tasks)

        state = await report_service.get_status(ReportKind.TRIAL_BALANCE, ticket, COMPANY_ID)
        assert state["status"] == "queued"
        assert len(tasks.tasks) == 1

        await tasks()

        state = await report_service.get_status(ReportKind.TRIAL_BALANCE, ticket, COMPANY_ID)
        assert state["status"] == "done"

    @pytest.mark.asyncio
    async def test_without_background_tasks_runs_inline(self, report_service, march_activity):
        """Test without background tasks runs inline."""
        ticket = await report_service.start_report(ReportKind.TRIAL_BALANCE, _tb_request(format="excel"))

        state = await report_service.get_status(ReportKind.TRIAL_BALANCE, ticket, COMPANY_ID)
        assert state["status"] == "done"
        assert state["format"] == "xls"
        assert state["file"].endswith(".xlsx")

    @pytest.mark.asyncio
    async def test_each_request_gets_its_own_ticket(self, report_service, march_activity):
        """Test each request gets its own ticket."""
        first = await report_service.start_report(ReportKind.GENERAL_LEDGER, _gl_request())
        second = await report_service.start_report(ReportKind.GENERAL_LEDGER, _gl_request())
        assert first != second

    @pytest.mark.asyncio
    async def test_params_are_stored_with_the_ticket(self, report_service, march_activity):
        """Test params are stored with the ticket."""
        ticket = await report_service.start_report(ReportKind.GENERAL_LEDGER, _gl_request())

        state = await report_service.get_status(ReportKind.GENERAL_LEDGER, ticket, COMPANY_ID)
        assert state["params"]["start_account"] == "1000"
        assert state["params"]["start_date"] == "2025-03-01"

    @pytest.mark.asyncio
    async def test_wrong_request_model_rejected(self, report_service):
        """Test wrong request model rejected."""
        request = PeriodReportRequest(company_id=COMPANY_ID, month=3, year=2025)
        with pytest.raises(ValidationException):
            await report_service.start_report(ReportKind.GENERAL_LEDGER, request)

    @pytest.mark.asyncio
    async def test_store_down_refuses_ticket(self, job_store, session_factory, storage_root):
        """Test store down refuses ticket."""
        job_store._client.setex = AsyncMock(side_effect=ConnectionError("down"))
        service = ReportJobService(job_store, session_factory, storage_root=storage_root)

        with pytest.raises(JobStoreUnavailableException):
            await service.start_report(ReportKind.GENERAL_LEDGER, _gl_request())

    @pytest.mark.asyncio
    async def test_celery_executor_enqueues(self, report_service, monkeypatch, march_activity):
        """Test Celery executor enqueues the build."""
        from ledgerflow.config import settings
        from ledgerflow.tasks import report_tasks

        task = MagicMock()
        monkeypatch.setattr(settings, "report_executor", "celery")
        monkeypatch.setattr(report_tasks, "build_report_task", task)

        ticket = await report_service.start_report(ReportKind.TRIAL_BALANCE, _tb_request())

        task.delay.assert_called_once_with("trial-balance", ticket)
        state = await report_service.get_status(ReportKind.TRIAL_BALANCE, ticket, COMPANY_ID)
        assert state["status"] == "queued"


class TestBuildOutcomes:

    @pytest.mark.asyncio
    async def test_unbalanced_ledger_ends_in_error(self, report_service, chart, post_journal):
        """Test unbalanced ledger ends in error."""
        await post_journal(GENERAL_ACCOUNTING, date(2025, 3, 10), [("6000", 100, 0)])

        ticket = await report_service.start_report(ReportKind.GENERAL_LEDGER, _gl_request())

        state = await report_service.get_status(ReportKind.GENERAL_LEDGER, ticket, COMPANY_ID)
        assert state["status"] == "error"
        assert state["error"].startswith("Report not generated: debits and credits are not balanced")
        assert "100.00" in state["error"]
        assert state["file"] is None

    @pytest.mark.asyncio
    async def test_unbalanced_trial_balance_ends_in_error(self, report_service, chart, post_journal):
        """Test trial balance over an unbalanced voucher ends in error without a file."""
        await post_journal(GENERAL_ACCOUNTING, date(2025, 3, 10), [("6000", 100, 0), ("1010", 0, 60)])

        ticket = await report_service.start_report(ReportKind.TRIAL_BALANCE, _tb_request())

        state = await report_service.get_status(ReportKind.TRIAL_BALANCE, ticket, COMPANY_ID)
        assert state["status"] == "error"
        assert state["error"] == (
            "Report not generated: debits and credits are not balanced (debit 100.00, credit 60.00)."
        )
        assert state["file"] is None

    @pytest.mark.asyncio
    async def test_unbalanced_general_journal_book_ends_in_error(self, report_service, chart, post_journal):
        """Test general journal book over an unbalanced voucher ends in error without a file."""
        await post_journal(GENERAL_ACCOUNTING, date(2025, 3, 10), [("6000", 100, 0), ("1010", 0, 60)])
        request = DateRangeReportRequest(
            company_id=COMPANY_ID, start_date=date(2025, 3, 1), end_date=date(2025, 3, 31)
        )

        ticket = await report_service.start_report(ReportKind.GENERAL_JOURNAL_BOOK, request)

        state = await report_service.get_status(ReportKind.GENERAL_JOURNAL_BOOK, ticket, COMPANY_ID)
        assert state["status"] == "error"
        assert "(debit 100.00, credit 60.00)" in state["error"]
        assert state["file"] is None
        with pytest.raises(ReportNotReadyException):
            await report_service.get_artifact(ReportKind.GENERAL_JOURNAL_BOOK, ticket, COMPANY_ID)

    @pytest.mark.asyncio
    async def test_unbalanced_check_register_ends_in_error(self, report_service, chart, post_journal):
        """Test check register over a disbursement with no bank row ends in error without a file."""
        await post_journal(CASH_DISBURSEMENT, date(2025, 3, 5), [("6000", 100, 0)], vend_id="V001")
        request = PeriodReportRequest(company_id=COMPANY_ID, year=2025, month=3)

        ticket = await report_service.start_report(ReportKind.CHECK_REGISTER, request)

        state = await report_service.get_status(ReportKind.CHECK_REGISTER, ticket, COMPANY_ID)
        assert state["status"] == "error"
        assert state["error"].startswith("Report not generated: debits and credits are not balanced")
        assert "(debit 100.00, credit 0.00)" in state["error"]
        assert state["file"] is None

    @pytest.mark.asyncio
    async def test_empty_account_range_ends_in_error(self, report_service, chart):
        """Test empty account range ends in error."""
        ticket = await report_service.start_report(
            ReportKind.GENERAL_LEDGER, _gl_request(start_account="8000", end_account="8999")
        )

        state = await report_service.get_status(ReportKind.GENERAL_LEDGER, ticket, COMPANY_ID)
        assert state["status"] == "error"
        assert state["error"] == "No accounts in range."

    @pytest.mark.asyncio
    async def test_unexpected_failure_ends_in_error(self, report_service, chart, monkeypatch):
        """Test unexpected failure ends in error."""
        from ledgerflow.services.reports.general_ledger import GeneralLedgerBuilder

        async def explode(self, db, request):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(GeneralLedgerBuilder, "build", explode)
        ticket = await report_service.start_report(ReportKind.GENERAL_LEDGER, _gl_request())

        state = await report_service.get_status(ReportKind.GENERAL_LEDGER, ticket, COMPANY_ID)
        assert state["status"] == "error"
        assert state["error"] == "Report generation failed: disk on fire"

    @pytest.mark.asyncio
    async def test_repeat_book_keeps_earlier_ticket_downloadable(self, report_service, storage_root, march_activity):
        """Test a second book for the same company leaves the first ticket's file in place."""
        request = DateRangeReportRequest(
            company_id=COMPANY_ID, start_date=date(2025, 3, 1), end_date=date(2025, 3, 31)
        )
        first = await report_service.start_report(ReportKind.CASH_DISBURSEMENT_BOOK, request)
        second = await report_service.start_report(ReportKind.CASH_DISBURSEMENT_BOOK, request)

        for ticket in (first, second):
            artifact = await report_service.get_artifact(ReportKind.CASH_DISBURSEMENT_BOOK, ticket, COMPANY_ID)
            assert artifact.path.is_file()
            assert artifact.path.name == f"cdb_{ticket}.pdf"

    @pytest.mark.asyncio
    async def test_keep_latest_prunes_books_past_ticket_ttl(self, report_service, storage_root, march_activity):
        """Test keep latest removes sibling books only once their tickets have expired."""
        import os
        import time

        folder = storage_root / "reports" / f"c{COMPANY_ID}"
        folder.mkdir(parents=True, exist_ok=True)
        expired = folder / "cdb_expired.pdf"
        live = folder / "cdb_live.pdf"
        expired.write_bytes(b"%PDF")
        live.write_bytes(b"%PDF")
        ttl = ReportKind.CASH_DISBURSEMENT_BOOK.ttl_seconds
        os.utime(expired, (time.time() - ttl - 60,) * 2)
        os.utime(live, (time.time() - ttl // 2,) * 2)

        request = DateRangeReportRequest(
            company_id=COMPANY_ID, start_date=date(2025, 3, 1), end_date=date(2025, 3, 31)
        )
        ticket = await report_service.start_report(ReportKind.CASH_DISBURSEMENT_BOOK, request)

        assert not expired.exists()
        assert live.exists()
        assert (folder / f"cdb_{ticket}.pdf").exists()

    @pytest.mark.asyncio
    async def test_malformed_stored_state_ends_in_error(self, report_service, job_store):
        """Test a ticket whose stored company or format cannot be parsed ends in error."""
        kind = ReportKind.CHECK_REGISTER
        params = {"company_id": COMPANY_ID, "format": "pdf", "year": 2025, "month": 3}
        await job_store.seed(kind, "bad-format", COMPANY_ID, "docx", params)
        await job_store.seed(kind, "bad-company", COMPANY_ID, "pdf", params)

        await report_service.make_builder(kind, "bad-format", params, COMPANY_ID, "docx").run()
        await report_service.make_builder(kind, "bad-company", params, None, "pdf").run()

        for ticket in ("bad-format", "bad-company"):
            state = await job_store.get(kind, ticket)
            assert state["status"] == "error"
            assert state["error"].startswith("Report generation failed:")
            assert state["file"] is None

    @pytest.mark.asyncio
    async def test_by_age_keeps_recent_ledgers(self, report_service, storage_root, march_activity):
        """Test by age keeps recent ledgers."""
        first = await report_service.start_report(ReportKind.GENERAL_LEDGER, _gl_request())
        second = await report_service.start_report(ReportKind.GENERAL_LEDGER, _gl_request())

        folder = storage_root / "reports" / f"c{COMPANY_ID}"
        assert (folder / f"gl_{first}.pdf").exists()
        assert (folder / f"gl_{second}.pdf").exists()


class TestTicketReads:

    @pytest.mark.asyncio
    async def test_company_scope_required(self, report_service):
        """Test company scope required."""
        with pytest.raises(MissingCompanyScopeException):
            await report_service.get_status(ReportKind.GENERAL_LEDGER, "t1", None)

    @pytest.mark.asyncio
    async def test_unknown_ticket(self, report_service):
        """Test unknown ticket."""
        with pytest.raises(TicketNotFoundException):
            await report_service.get_status(ReportKind.GENERAL_LEDGER, "nope", COMPANY_ID)

    @pytest.mark.asyncio
    async def test_other_company_forbidden(self, report_service, job_store):
        """Test other company forbidden."""
        await job_store.seed(ReportKind.GENERAL_LEDGER, "t1", COMPANY_ID, "pdf", {})
        with pytest.raises(TenantMismatchException):
            await report_service.get_status(ReportKind.GENERAL_LEDGER, "t1", OTHER_COMPANY_ID)

    @pytest.mark.asyncio
    async def test_artifact_not_ready(self, report_service, job_store):
        """Test artifact not ready."""
        await job_store.seed(ReportKind.CHECK_REGISTER, "t1", COMPANY_ID, "pdf", {})
        with pytest.raises(ReportNotReadyException):
            await report_service.get_artifact(ReportKind.CHECK_REGISTER, "t1", COMPANY_ID)

    @pytest.mark.asyncio
    async def test_failed_ticket_not_downloadable(self, report_service, job_store):
        """Test failed ticket not downloadable."""
        await job_store.seed(ReportKind.CHECK_REGISTER, "t1", COMPANY_ID, "pdf", {})
        await job_store.mark_error(ReportKind.CHECK_REGISTER, "t1", "nope")
        with pytest.raises(ReportNotReadyException):
            await report_service.get_artifact(ReportKind.CHECK_REGISTER, "t1", COMPANY_ID)

    @pytest.mark.asyncio
    async def test_spreadsheet_cannot_be_viewed_inline(self, report_service, job_store):
        """Test spreadsheet cannot be viewed inline."""
        await job_store.seed(ReportKind.CHECK_REGISTER, "t1", COMPANY_ID, "xls", {})
        with pytest.raises(UnsupportedMediaTypeException):
            await report_service.get_artifact(ReportKind.CHECK_REGISTER, "t1", COMPANY_ID, inline=True)

    @pytest.mark.asyncio
    async def test_missing_file_is_gone(self, report_service, job_store):
        """Test missing file is gone."""
        kind = ReportKind.CHECK_REGISTER
        await job_store.seed(kind, "t1", COMPANY_ID, "pdf", {})
        await job_store.mark_done(kind, "t1", file="reports/c1/cr_t1.pdf", download_name="x.pdf", format="pdf")
        with pytest.raises(ReportGoneException):
            await report_service.get_artifact(kind, "t1", COMPANY_ID)

    @pytest.mark.asyncio
    async def test_path_outside_storage_is_gone(self, report_service, job_store, tmp_path):
        """Test path outside storage is gone."""
        kind = ReportKind.CHECK_REGISTER
        outside = tmp_path / "secret.pdf"
        outside.write_bytes(b"%PDF-1.4")
        await job_store.seed(kind, "t1", COMPANY_ID, "pdf", {})
        await job_store.mark_done(kind, "t1", file="../secret.pdf", download_name="x.pdf", format="pdf")
        with pytest.raises(ReportGoneException):
            await report_service.get_artifact(kind, "t1", COMPANY_ID)

    @pytest.mark.asyncio
    async def test_finished_artifact(self, report_service, march_activity):
        """Test finished artifact."""
        ticket = await report_service.start_report(ReportKind.GENERAL_LEDGER, _gl_request())

        artifact = await report_service.get_artifact(ReportKind.GENERAL_LEDGER, ticket, COMPANY_ID, inline=True)
        assert artifact.media_type == "application/pdf"
        assert artifact.download_name.startswith("GeneralLedger_")
        assert artifact.path.is_file()


class TestExpiredSweep:

    def test_old_artifacts_removed(self, storage_root):
        """Test old artifacts removed."""
        import os
        import time

        from ledgerflow.services.reports.base import prune_expired_artifacts

        folder = storage_root / "reports" / "c1"
        folder.mkdir(parents=True, exist_ok=True)
        old = folder / "crb_old.pdf"
        fresh = folder / "crb_new.pdf"
        old.write_bytes(b"%PDF")
        fresh.write_bytes(b"%PDF")
        three_days_ago = time.time() - 3 * 86400
        os.utime(old, (three_days_ago, three_days_ago))

        removed = prune_expired_artifacts(storage_root, retention_days=2)

        assert removed == 1
        assert not old.exists()
        assert fresh.exists()

    def test_missing_storage_root(self, tmp_path):
        """Test missing storage root."""
        from ledgerflow.services.reports.base import prune_expired_artifacts

        assert prune_expired_artifacts(tmp_path / "nowhere", retention_days=2) == 0
