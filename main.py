"""
LedgerFlow - API Server

Mounts the report, journal and approval routers under /api/v1. The database
schema is created on startup only in development; elsewhere run
scripts/create_tables.py.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ledgerflow import __version__
from ledgerflow.config import settings
from ledgerflow.database import init_db, close_db
from ledgerflow.routers import approvals, journals, reports
from ledgerflow.services.job_status_store import close_job_store
from ledgerflow.utils.error_handling import setup_exception_handlers

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        f"{settings.app_name} {__version__} up ({settings.app_env}); "
        f"reports in {settings.reports_root} via {settings.report_executor}"
    )
    if settings.is_development:
        await init_db()
        logger.info("Schema created for development database")

    yield

    await close_job_store()
    await close_db()
    logger.info(f"{settings.app_name} stopped; job store and engine released")


app = FastAPI(
    title=settings.app_name,
    description="Multi-tenant accounting backend: journals, edit approvals and ticket-based reports",
    version=__version__,
    docs_url="/api/docs" if settings.is_development else None,
    redoc_url=None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

setup_exception_handlers(app)

app.include_router(reports.router, prefix="/api/v1", tags=["Reports"])
app.include_router(journals.router, prefix="/api/v1/journals", tags=["Journals"])
app.include_router(approvals.router, prefix="/api/v1/approvals", tags=["Approvals"])


@app.get("/health")
async def health_check():
    """Liveness probe."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.is_development)
