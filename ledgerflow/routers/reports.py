"""
LedgerFlow - Reports Router

Ticket-based report API. Each report type has its own start endpoint;
status, download and view are shared and keyed by the report type slug:

    POST /{report-type}/report                      -> {"ticket": ...}
    GET  /{report-type}/report/{ticket}/status      -> job state
    GET  /{report-type}/report/{ticket}/download    -> attachment
    GET  /{report-type}/report/{ticket}/view        -> inline PDF
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from fastapi.responses import FileResponse

from ledgerflow.dependencies import get_report_job_service
from ledgerflow.schemas.reports import (
    AccountRangeReportRequest,
    DateRangeReportRequest,
    JobStateResponse,
    PeriodReportRequest,
    TicketResponse,
    TrialBalanceRequest,
)
from ledgerflow.services.job_status_store import ReportKind
from ledgerflow.services.report_jobs import ReportJobService

router = APIRouter()


# ===========================================
# START REPORTS
# ===========================================

@router.post("/general-ledger/report", response_model=TicketResponse)
async def start_general_ledger(
    request: AccountRangeReportRequest,
    background_tasks: BackgroundTasks,
    service: ReportJobService = Depends(get_report_job_service),
):
    """
    Generate the General Ledger.

    Built inside the request; the response still carries a ticket so the
    client polls it like every other report.
    """
    ticket = await service.start_report(ReportKind.GENERAL_LEDGER, request, background_tasks)
    return TicketResponse(ticket=ticket)


@router.post("/trial-balance/report", response_model=TicketResponse)
async def start_trial_balance(
    request: TrialBalanceRequest,
    background_tasks: BackgroundTasks,
    service: ReportJobService = Depends(get_report_job_service),
):
    """Generate the Trial Balance after the response is sent."""
    ticket = await service.start_report(ReportKind.TRIAL_BALANCE, request, background_tasks)
    return TicketResponse(ticket=ticket)


@router.post("/check-register/report", response_model=TicketResponse)
async def start_check_register(
    request: PeriodReportRequest,
    background_tasks: BackgroundTasks,
    service: ReportJobService = Depends(get_report_job_service),
):
    """Monthly check register of cash disbursements."""
    ticket = await service.start_report(ReportKind.CHECK_REGISTER, request, background_tasks)
    return TicketResponse(ticket=ticket)


@router.post("/receipt-register/report", response_model=TicketResponse)
async def start_receipt_register(
    request: PeriodReportRequest,
    background_tasks: BackgroundTasks,
    service: ReportJobService = Depends(get_report_job_service),
):
    """Monthly receipt register; blocked while any receipt of the month is unbalanced."""
    ticket = await service.start_report(ReportKind.RECEIPT_REGISTER, request, background_tasks)
    return TicketResponse(ticket=ticket)


@router.post("/cash-receipt-book/report", response_model=TicketResponse)
async def start_cash_receipt_book(
    request: DateRangeReportRequest,
    background_tasks: BackgroundTasks,
    service: ReportJobService = Depends(get_report_job_service),
):
    ticket = await service.start_report(ReportKind.CASH_RECEIPT_BOOK, request, background_tasks)
    return TicketResponse(ticket=ticket)


@router.post("/cash-disbursement-book/report", response_model=TicketResponse)
async def start_cash_disbursement_book(
    request: DateRangeReportRequest,
    background_tasks: BackgroundTasks,
    service: ReportJobService = Depends(get_report_job_service),
):
    ticket = await service.start_report(ReportKind.CASH_DISBURSEMENT_BOOK, request, background_tasks)
    return TicketResponse(ticket=ticket)


@router.post("/general-journal-book/report", response_model=TicketResponse)
async def start_general_journal_book(
    request: DateRangeReportRequest,
    background_tasks: BackgroundTasks,
    service: ReportJobService = Depends(get_report_job_service),
):
    ticket = await service.start_report(ReportKind.GENERAL_JOURNAL_BOOK, request, background_tasks)
    return TicketResponse(ticket=ticket)


@router.post("/accounts-payable-journal/report", response_model=TicketResponse)
async def start_accounts_payable_journal(
    request: DateRangeReportRequest,
    background_tasks: BackgroundTasks,
    service: ReportJobService = Depends(get_report_job_service),
):
    ticket = await service.start_report(ReportKind.ACCOUNTS_PAYABLE_JOURNAL, request, background_tasks)
    return TicketResponse(ticket=ticket)


@router.post("/accounts-receivable-journal/report", response_model=TicketResponse)
async def start_accounts_receivable_journal(
    request: DateRangeReportRequest,
    background_tasks: BackgroundTasks,
    service: ReportJobService = Depends(get_report_job_service),
):
    ticket = await service.start_report(ReportKind.ACCOUNTS_RECEIVABLE_JOURNAL, request, background_tasks)
    return TicketResponse(ticket=ticket)


# ===========================================
# TICKETS
# ===========================================

@router.get("/{report_type}/report/{ticket}/status", response_model=JobStateResponse)
async def get_report_status(
    report_type: ReportKind,
    ticket: str,
    company_id: Optional[int] = Query(None, description="Tenant scope of the caller"),
    service: ReportJobService = Depends(get_report_job_service),
):
    """
    Poll a ticket.

    404 when the ticket is unknown or expired, 422 without company_id,
    403 when the ticket belongs to another company.
    """
    return await service.get_status(report_type, ticket, company_id)


@router.get("/{report_type}/report/{ticket}/download")
async def download_report(
    report_type: ReportKind,
    ticket: str,
    company_id: Optional[int] = Query(None, description="Tenant scope of the caller"),
    service: ReportJobService = Depends(get_report_job_service),
):
    """Download a finished report (409 until done, 410 when the file is gone)."""
    artifact = await service.get_artifact(report_type, ticket, company_id)
    return FileResponse(
        artifact.path,
        media_type=artifact.media_type,
        filename=artifact.download_name,
    )


@router.get("/{report_type}/report/{ticket}/view")
async def view_report(
    report_type: ReportKind,
    ticket: str,
    company_id: Optional[int] = Query(None, description="Tenant scope of the caller"),
    service: ReportJobService = Depends(get_report_job_service),
):
    """Open a finished PDF inline; spreadsheets answer 415."""
    artifact = await service.get_artifact(report_type, ticket, company_id, inline=True)
    return FileResponse(
        artifact.path,
        media_type=artifact.media_type,
        filename=artifact.download_name,
        content_disposition_type="inline",
    )
