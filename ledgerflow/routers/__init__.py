"""
LedgerFlow - Routers Package

FastAPI route handlers.

Routers:
- reports: Ticket-based report generation, status and downloads
- journals: Journal headers and detail lines
- approvals: Edit approvals for posted records
"""

from ledgerflow.routers import approvals, journals, reports

__all__ = ["approvals", "journals", "reports"]
