"""
LedgerFlow - Report Job Service

Single entry point of the report pipeline:
- start_report mints a ticket, seeds its queued state and hands the build
  to the report's execution discipline (inline, after the response, or a
  Celery worker)
- get_status / get_artifact gate every ticket read on the caller's company

Each call mints a fresh ticket; identical concurrent requests are not
coalesced.
"""

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import BackgroundTasks
from sqlalchemy.ext.asyncio import async_sessionmaker

from ledgerflow.config import settings
from ledgerflow.schemas.reports import ReportFormat, ReportRequestBase
from ledgerflow.services.job_status_store import JobStatus, JobStatusStore, ReportKind
from ledgerflow.services.reports import ExecutionDiscipline, ReportBuilder, get_builder_class
from ledgerflow.services.reports.base import MEDIA_TYPES
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

logger = logging.getLogger(__name__)


@dataclass
class ReportArtifact:
    path: Path
    download_name: str
    media_type: str


class ReportJobService:
    """Ticket scheduling and ticket reads."""

    def __init__(
        self,
        store: JobStatusStore,
        session_factory: async_sessionmaker,
        storage_root: Optional[Path] = None,
    ):
        self.store = store
        self.session_factory = session_factory
        self.storage_root = Path(storage_root) if storage_root else settings.reports_root

    def make_builder(
        self,
        kind: ReportKind,
        ticket: str,
        params: Dict[str, Any],
        company_id: int,
        format: str,
    ) -> ReportBuilder:
        builder_class = get_builder_class(kind)
        return builder_class(
            ticket=ticket,
            params=params,
            company_id=company_id,
            format=format,
            session_factory=self.session_factory,
            store=self.store,
            storage_root=self.storage_root,
        )

    # =========================================================================
    # START
    # =========================================================================

    async def start_report(
        self,
        kind: ReportKind,
        request: ReportRequestBase,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> str:
        """Create a ticket for ``request`` and schedule its build. Returns the ticket."""
        builder_class = get_builder_class(kind)
        if not isinstance(request, builder_class.params_model):
            raise ValidationException(f"Invalid parameters for {kind.value} report.")

        ticket = str(uuid.uuid4())
        params = request.model_dump(mode="json")
        format_value = request.format.value

        seeded = await self.store.seed(kind, ticket, request.company_id, format_value, params)
        if not seeded:
            raise JobStoreUnavailableException(ticket)

        logger.info(f"Ticket {ticket} queued: {kind.value} for company {request.company_id} ({format_value})")
        builder = self.make_builder(kind, ticket, params, request.company_id, format_value)

        if builder.discipline == ExecutionDiscipline.INLINE:
            await builder.run()
        elif settings.report_executor == "celery":
            from ledgerflow.tasks.report_tasks import build_report_task

            build_report_task.delay(kind.value, ticket)
        elif background_tasks is not None:
            background_tasks.add_task(builder.run)
        else:
            await builder.run()

        return ticket

    # =========================================================================
    # READS
    # =========================================================================

    async def get_status(self, kind: ReportKind, ticket: str, company_id: Optional[int]) -> Dict[str, Any]:
        """Ticket state, enforcing the tenant boundary on every read."""
        if company_id is None:
            raise MissingCompanyScopeException()
        state = await self.store.get(kind, ticket)
        if state is None:
            raise TicketNotFoundException(ticket)
        if int(state.get("company_id") or 0) != int(company_id):
            logger.warning(f"Ticket {ticket} read with company {company_id}; owned by {state.get('company_id')}")
            raise TenantMismatchException()
        return state

    async def get_artifact(
        self,
        kind: ReportKind,
        ticket: str,
        company_id: Optional[int],
        inline: bool = False,
    ) -> ReportArtifact:
        """Resolve the finished file of a ticket for download or inline view."""
        state = await self.get_status(kind, ticket, company_id)
        format_value = ReportFormat(state.get("format") or ReportFormat.PDF.value)

        if inline and format_value != ReportFormat.PDF:
            raise UnsupportedMediaTypeException(format_value.value)

        status_value = state.get("status")
        if status_value != JobStatus.DONE.value:
            raise ReportNotReadyException(status_value)

        relative = state.get("file")
        if not relative:
            raise ReportGoneException(ticket)

        root = self.storage_root.resolve()
        path = (root / relative).resolve()
        if root not in path.parents or not path.is_file():
            raise ReportGoneException(ticket)

        return ReportArtifact(
            path=path,
            download_name=state.get("download_name") or path.name,
            media_type=MEDIA_TYPES[format_value],
        )
