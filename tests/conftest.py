"""
LedgerFlow - Test Configuration

Pytest fixtures and configuration.
"""

import os

# Settings are read once at import time; point them at throwaway backends first.
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite://")

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

import ledgerflow.models  # noqa: F401  registers every table
from ledgerflow.database import Base, get_async_session
from ledgerflow.dependencies import get_report_job_service
from ledgerflow.models.reference import AccountCode, Bank, BeginningBalance, Customer, Vendor
from ledgerflow.services.job_status_store import JobStatusStore
from ledgerflow.services.journal_service import JournalService
from ledgerflow.services.report_jobs import ReportJobService
from main import app


COMPANY_ID = 1
OTHER_COMPANY_ID = 2
SNAPSHOT_DATE = date(2024, 12, 31)


def make_redis_mock():
    """AsyncMock Redis client backed by a plain dict."""
    data = {}

    async def _get(key):
        return data.get(key)

    async def _setex(key, ttl, value):
        data[key] = value
        return True

    client = AsyncMock()
    client.get = AsyncMock(side_effect=_get)
    client.setex = AsyncMock(side_effect=_setex)
    client.data = data
    return client


# ===========================================
# DATABASE FIXTURES
# ===========================================

@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """One SQLite file per test; every session gets its own connection."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledgerflow_test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# ===========================================
# REPORT PIPELINE FIXTURES
# ===========================================

@pytest.fixture
def redis_mock():
    return make_redis_mock()


@pytest.fixture
def job_store(redis_mock) -> JobStatusStore:
    store = JobStatusStore(redis_url="redis://test:6379/0")
    store._client = redis_mock
    return store


@pytest.fixture
def storage_root(tmp_path):
    root = tmp_path / "storage"
    root.mkdir()
    return root


@pytest.fixture
def report_service(job_store, session_factory, storage_root) -> ReportJobService:
    return ReportJobService(job_store, session_factory, storage_root=storage_root)


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, report_service) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database and job store overrides."""

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_get_session
    app.dependency_overrides[get_report_job_service] = lambda: report_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ===========================================
# DATA FIXTURES
# ===========================================

@pytest_asyncio.fixture
async def chart(db_session: AsyncSession):
    """
    Chart of accounts, banks and counterparties for two companies.

    Company 1 opens with 1,000.00 cash against retained earnings.
    """
    rows = [
        AccountCode(company_id=COMPANY_ID, acct_code="1010", acct_desc="Cash in Bank", fs="BS", bank_id="BDO"),
        AccountCode(company_id=COMPANY_ID, acct_code="1200", acct_desc="Accounts Receivable", fs="BS"),
        AccountCode(company_id=COMPANY_ID, acct_code="2000", acct_desc="Accounts Payable", fs="BS"),
        AccountCode(company_id=COMPANY_ID, acct_code="4031", acct_desc="Retained Earnings", fs="BS"),
        AccountCode(company_id=COMPANY_ID, acct_code="5000", acct_desc="Sales", fs="IS"),
        AccountCode(company_id=COMPANY_ID, acct_code="6000", acct_desc="Office Expense", fs="IS"),
        AccountCode(
            company_id=COMPANY_ID, acct_code="6100", acct_desc="Old Expense", fs="IS", active_flag=False,
        ),
        Bank(company_id=COMPANY_ID, bank_id="BDO", bank_name="BDO Unibank", bank_account_number="001-22"),
        Vendor(company_id=COMPANY_ID, vend_code="V001", vend_name="Acme Supplies"),
        Customer(company_id=COMPANY_ID, cust_id="C001", cust_name="Juan Traders"),
        BeginningBalance(company_id=COMPANY_ID, account_code="1010", amount=Decimal("1000.00"), as_of=SNAPSHOT_DATE),
        BeginningBalance(company_id=COMPANY_ID, account_code="4031", amount=Decimal("-1000.00"), as_of=SNAPSHOT_DATE),
        # Same codes, different tenant
        AccountCode(company_id=OTHER_COMPANY_ID, acct_code="1010", acct_desc="Other Cash", fs="BS", bank_id="BDO"),
        AccountCode(company_id=OTHER_COMPANY_ID, acct_code="6000", acct_desc="Other Expense", fs="IS"),
        AccountCode(company_id=OTHER_COMPANY_ID, acct_code="7000", acct_desc="Other Only", fs="IS"),
        Bank(company_id=OTHER_COMPANY_ID, bank_id="BDO", bank_name="Other Bank"),
        Vendor(company_id=OTHER_COMPANY_ID, vend_code="V001", vend_name="Other Vendor"),
    ]
    db_session.add_all(rows)
    await db_session.commit()
    return rows


@pytest.fixture
def post_journal(db_session: AsyncSession):
    """
    Create a committed journal through the journal service.

    ``lines`` is a list of (acct_code, debit, credit); bank rows are added
    by the balance engine.
    """

    async def _post(module, entry_date, lines, company_id=COMPANY_ID, **fields):
        service = JournalService(db_session)
        header = await service.create_header(module, company_id, {module.date_field: entry_date, **fields})
        for acct_code, debit, credit in lines:
            await service.add_detail(
                module, header.id, company_id, acct_code, Decimal(str(debit)), Decimal(str(credit))
            )
        await db_session.commit()
        return header

    return _post
