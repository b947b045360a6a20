"""
LedgerFlow - Multi-tenant accounting backend

Journals with auto-balancing, edit approvals and ticket-based reports.
"""

__version__ = "1.0.0"
