"""
LedgerFlow - Report Builder Base

Drives one ticket from queued to a terminal state:

    queued -> running -> done | error

Subclasses only aggregate data into a ``ReportDocument``. Rendering,
storage, pruning and every state transition happen here. ``run`` never
raises: each failure path ends in the ticket's ``error`` state, so a
client polling the ticket cannot see it stuck in ``running``.
"""

import logging
import os
import tempfile
import time
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledgerflow.config import settings
from ledgerflow.schemas.reports import ReportFormat, normalize_format
from ledgerflow.services.balance_engine import BalanceTotals
from ledgerflow.services.job_status_store import JobStatusStore, ReportKind
from ledgerflow.services.reports.rendering import ReportDocument, ReportRenderer

logger = logging.getLogger(__name__)

FILE_EXTENSIONS = {
    ReportFormat.PDF: "pdf",
    ReportFormat.XLS: "xlsx",
}

MEDIA_TYPES = {
    ReportFormat.PDF: "application/pdf",
    ReportFormat.XLS: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

REPORTS_DIR = "reports"

UNBALANCED_MESSAGE = "Report not generated: debits and credits are not balanced (debit {debit:,.2f}, credit {credit:,.2f})."
NO_ACCOUNTS_MESSAGE = "No accounts in range."


class ExecutionDiscipline(str, Enum):
    """How the scheduler runs a build relative to the request."""
    INLINE = "inline"
    AFTER_RESPONSE = "after_response"


class PrunePolicy(str, Enum):
    BY_AGE = "by_age"  # drop artifacts older than the retention window
    KEEP_LATEST = "keep_latest"  # drop older artifacts once their tickets have expired


class ReportBuildError(Exception):
    """Expected build failure; the message is shown to the user as-is."""


class UnbalancedReportError(ReportBuildError):
    def __init__(self, totals: BalanceTotals):
        self.totals = totals
        super().__init__(UNBALANCED_MESSAGE.format(debit=totals.debit, credit=totals.credit))


def company_dir(storage_root: Path, company_id: int) -> Path:
    return storage_root / REPORTS_DIR / f"c{company_id}"


class ReportBuilder:
    """Base class for every report type."""

    kind: ReportKind
    params_model: Type[BaseModel]
    discipline: ExecutionDiscipline = ExecutionDiscipline.AFTER_RESPONSE
    prune_policy: PrunePolicy = PrunePolicy.KEEP_LATEST

    def __init__(
        self,
        ticket: str,
        params: Dict[str, Any],
        company_id: int,
        format: str,
        session_factory: async_sessionmaker,
        store: JobStatusStore,
        storage_root: Optional[Path] = None,
    ):
        self.ticket = ticket
        self.params = params
        self._company_id = company_id
        self._format = format
        self.session_factory = session_factory
        self.store = store
        self.storage_root = Path(storage_root) if storage_root else settings.reports_root
        self.renderer = ReportRenderer()

    # =========================================================================
    # HOOKS
    # =========================================================================

    async def build(self, db: AsyncSession, request: BaseModel) -> ReportDocument:
        """Aggregate the report; raise ReportBuildError for user-facing refusals."""
        raise NotImplementedError

    def download_name(self, request: BaseModel) -> str:
        raise NotImplementedError

    # =========================================================================
    # ORCHESTRATION
    # =========================================================================

    @property
    def company_id(self) -> int:
        return int(self._company_id)

    @property
    def format(self) -> ReportFormat:
        # Parsed on use so a malformed stored ticket fails inside run()
        return normalize_format(self._format)

    @property
    def extension(self) -> str:
        return FILE_EXTENSIONS[self.format]

    async def progress(self, value: int, message: Optional[str] = None) -> None:
        await self.store.progress(self.kind, self.ticket, value, message)

    def ensure_balanced(self, totals: BalanceTotals) -> None:
        if not totals.balanced:
            raise UnbalancedReportError(totals)

    async def run(self) -> None:
        """Build, render and store the report, then finish the ticket."""
        await self.store.mark_running(self.kind, self.ticket)
        try:
            logger.info(
                f"Building {self.kind.value} report {self.ticket} for company {self.company_id} ({self.format.value})"
            )
            request = self.params_model.model_validate(self.params)
            async with self.session_factory() as db:
                document = await self.build(db, request)

            await self.progress(70, "Rendering...")
            content = self.renderer.render(document, self.format)

            await self.progress(90, "Saving...")
            relative = self.write_artifact(content)
            self.prune()

            await self.store.mark_done(
                self.kind,
                self.ticket,
                file=relative,
                download_name=self.download_name(request),
                format=self.format.value,
            )
            logger.info(f"Report {self.kind.value} {self.ticket} done: {relative}")
        except ReportBuildError as e:
            logger.warning(f"Report {self.kind.value} {self.ticket} refused: {e}")
            await self.store.mark_error(self.kind, self.ticket, str(e))
        except Exception as e:
            logger.error(f"Report {self.kind.value} {self.ticket} failed: {e}", exc_info=True)
            await self.store.mark_error(self.kind, self.ticket, f"Report generation failed: {e}")

    # =========================================================================
    # STORAGE
    # =========================================================================

    def relative_path(self) -> str:
        return f"{REPORTS_DIR}/c{self.company_id}/{self.kind.prefix}_{self.ticket}.{self.extension}"

    def write_artifact(self, content: bytes) -> str:
        """Write to a temp file and move it into place, so no partial file is ever referenced."""
        relative = self.relative_path()
        target = self.storage_root / relative
        target.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=target.parent, prefix=".tmp_", suffix=f".{self.extension}")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(content)
            os.replace(tmp_path, target)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        return relative

    def prune(self) -> int:
        """Remove stale artifacts of this report type; returns how many were removed."""
        folder = company_dir(self.storage_root, self.company_id)
        current = Path(self.relative_path()).name
        pattern = f"{self.kind.prefix}_*.{self.extension}"
        if self.prune_policy == PrunePolicy.BY_AGE:
            cutoff = time.time() - settings.report_retention_days * 86400
        else:
            # A sibling may still back a live done ticket until its state expires
            cutoff = time.time() - self.kind.ttl_seconds
        removed = 0

        for path in folder.glob(pattern):
            if path.name == current:
                continue
            try:
                if path.stat().st_mtime >= cutoff:
                    continue
                path.unlink()
                removed += 1
            except OSError as e:
                logger.warning(f"Could not prune report artifact {path}: {e}")

        if removed:
            logger.info(f"Pruned {removed} {self.kind.prefix} artifacts for company {self.company_id}")
        return removed


def prune_expired_artifacts(storage_root: Optional[Path] = None, retention_days: Optional[int] = None) -> int:
    """
    Sweep every company folder for artifacts older than the retention window.

    Runs on a schedule so report types that are rarely rebuilt do not keep
    their files forever. Returns the number of files removed.
    """
    root = Path(storage_root) if storage_root else settings.reports_root
    days = settings.report_retention_days if retention_days is None else retention_days
    cutoff = time.time() - days * 86400
    removed = 0

    for path in (root / REPORTS_DIR).glob("c*/*.*"):
        try:
            if not path.is_file() or path.stat().st_mtime >= cutoff:
                continue
            path.unlink()
            removed += 1
        except OSError as e:
            logger.warning(f"Could not prune report artifact {path}: {e}")

    logger.info(f"Expired report sweep removed {removed} files")
    return removed
