"""
LedgerFlow - Utilities Package
"""
