"""
LedgerFlow - Error Handling

Every error leaves the API as ``{"detail": {code, message, timestamp}}``,
with ``field`` and ``details`` added when known. Services raise the
``AppException`` subclasses below; routers never build error bodies.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError, IntegrityError, OperationalError, DataError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("ledgerflow.errors")


class ErrorCode(str, Enum):
    """Machine readable codes returned in ``detail.code``."""

    # 422
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    MISSING_COMPANY_SCOPE = "MISSING_COMPANY_SCOPE"

    # 403
    FORBIDDEN = "FORBIDDEN"
    TENANT_MISMATCH = "TENANT_MISMATCH"
    APPROVAL_REQUIRED = "APPROVAL_REQUIRED"
    RECORD_CLOSED = "RECORD_CLOSED"

    # 404 / 409 / 410 / 415
    NOT_FOUND = "NOT_FOUND"
    TICKET_NOT_FOUND = "TICKET_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    REPORT_NOT_READY = "REPORT_NOT_READY"
    REPORT_GONE = "REPORT_GONE"
    UNSUPPORTED_MEDIA_TYPE = "UNSUPPORTED_MEDIA_TYPE"

    # Ledger rules (422)
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    DEBIT_CREDIT_EXCLUSIVITY = "DEBIT_CREDIT_EXCLUSIVITY"
    INACTIVE_ACCOUNT = "INACTIVE_ACCOUNT"
    DUPLICATE_ACCOUNT = "DUPLICATE_ACCOUNT"
    BANK_ROW_PROTECTED = "BANK_ROW_PROTECTED"

    # 500 / 503
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DATA_INTEGRITY_ERROR = "DATA_INTEGRITY_ERROR"
    JOB_STORE_UNAVAILABLE = "JOB_STORE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class AppException(Exception):
    """Base for every error the API reports with a code."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.field = field
        super().__init__(message)


# ============================================================================
# Validation Exceptions
# ============================================================================

class ValidationException(AppException):
    """Input the ledger cannot accept"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
            field=field,
        )


class InvalidAmountException(ValidationException):
    """Debit/credit pair violates the one-sided posting rule"""

    def __init__(self, debit: Any, credit: Any, message: Optional[str] = None):
        super().__init__(
            message=message or "Exactly one of debit or credit must be greater than zero.",
            code=ErrorCode.DEBIT_CREDIT_EXCLUSIVITY,
            details={"debit": str(debit), "credit": str(credit)},
        )


class MissingCompanyScopeException(ValidationException):
    """company_id was not supplied"""

    def __init__(self):
        super().__init__(
            message="company_id is required.",
            field="company_id",
            code=ErrorCode.MISSING_COMPANY_SCOPE,
        )


# ============================================================================
# Authorization Exceptions
# ============================================================================

class AuthorizationException(AppException):
    """Authorization denied exception"""

    def __init__(
        self,
        message: str = "Permission denied",
        code: ErrorCode = ErrorCode.FORBIDDEN,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            details=details,
        )


class TenantMismatchException(AuthorizationException):
    """Resource belongs to another company"""

    def __init__(self, message: str = "Forbidden (company mismatch)."):
        super().__init__(message=message, code=ErrorCode.TENANT_MISMATCH)


class ApprovalRequiredException(AuthorizationException):
    """No usable edit approval for the record"""

    def __init__(self, module: str, record_id: int):
        super().__init__(
            message="Edit requires an active supervisor approval.",
            code=ErrorCode.APPROVAL_REQUIRED,
            details={"module": module, "record_id": record_id},
        )


class RecordClosedException(AuthorizationException):
    """Record is cancelled or deleted and can no longer be modified"""

    def __init__(self, module: str, record_id: int, state: str):
        super().__init__(
            message=f"Transaction is {state.lower()}; modifications are not allowed.",
            code=ErrorCode.RECORD_CLOSED,
            details={"module": module, "record_id": record_id, "state": state},
        )


# ============================================================================
# Resource Exceptions
# ============================================================================

class NotFoundException(AppException):
    """Resource not found exception"""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[Union[str, int]] = None,
        message: Optional[str] = None,
        code: ErrorCode = ErrorCode.NOT_FOUND,
    ):
        if message is None:
            if resource_id is not None:
                message = f"{resource_type} with ID '{resource_id}' not found"
            else:
                message = f"{resource_type} not found"
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": str(resource_id) if resource_id is not None else None},
        )


class TicketNotFoundException(NotFoundException):
    """Unknown or expired report ticket"""

    def __init__(self, ticket: str):
        super().__init__(
            resource_type="Report ticket",
            resource_id=ticket,
            message="Ticket not found or expired.",
            code=ErrorCode.TICKET_NOT_FOUND,
        )


class ConflictException(AppException):
    """Resource conflict exception"""

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        code: ErrorCode = ErrorCode.RESOURCE_CONFLICT,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if resource_type:
            _details["resource_type"] = resource_type
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=_details,
        )


class ReportNotReadyException(ConflictException):
    """Report has not reached the done state"""

    def __init__(self, status_value: str):
        super().__init__(
            message="Report is not ready yet.",
            code=ErrorCode.REPORT_NOT_READY,
            details={"status": status_value},
        )


class ReportGoneException(AppException):
    """Report artifact was removed from storage"""

    def __init__(self, ticket: str):
        super().__init__(
            code=ErrorCode.REPORT_GONE,
            message="Report file is no longer available. Generate it again.",
            status_code=status.HTTP_410_GONE,
            details={"ticket": ticket},
        )


class UnsupportedMediaTypeException(AppException):
    """Inline view requested for a non-PDF artifact"""

    def __init__(self, format_value: str):
        super().__init__(
            code=ErrorCode.UNSUPPORTED_MEDIA_TYPE,
            message="Inline view is only available for PDF reports.",
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            details={"format": format_value},
        )


# ============================================================================
# Business Logic Exceptions
# ============================================================================

class BusinessRuleException(AppException):
    """Business rule violation exception"""

    def __init__(
        self,
        message: str,
        rule: Optional[str] = None,
        code: ErrorCode = ErrorCode.BUSINESS_RULE_VIOLATION,
        details: Optional[Dict[str, Any]] = None,
    ):
        _details = details or {}
        if rule:
            _details["violated_rule"] = rule
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=_details,
        )


class InactiveAccountException(BusinessRuleException):
    """Account code is missing or inactive for the company"""

    def __init__(self, acct_code: str):
        super().__init__(
            message=f"Account code {acct_code} is invalid or inactive.",
            rule="ACTIVE_ACCOUNT_REQUIRED",
            code=ErrorCode.INACTIVE_ACCOUNT,
            details={"acct_code": acct_code},
        )


class DuplicateAccountException(BusinessRuleException):
    """Account code already used in the same transaction"""

    def __init__(self, acct_code: str):
        super().__init__(
            message=f"Account code {acct_code} already exists in this transaction.",
            rule="UNIQUE_ACCOUNT_PER_TRANSACTION",
            code=ErrorCode.DUPLICATE_ACCOUNT,
            details={"acct_code": acct_code},
        )


class BankRowProtectedException(BusinessRuleException):
    """The system-maintained bank row cannot be edited or removed"""

    def __init__(self):
        super().__init__(
            message="The bank row is maintained automatically and cannot be changed.",
            rule="BANK_ROW_SYSTEM_MAINTAINED",
            code=ErrorCode.BANK_ROW_PROTECTED,
        )


# ============================================================================
# Infrastructure Exceptions
# ============================================================================

class JobStoreUnavailableException(AppException):
    """The job status store did not accept a write"""

    def __init__(self, ticket: str):
        super().__init__(
            code=ErrorCode.JOB_STORE_UNAVAILABLE,
            message="Report queue is unavailable. Try again shortly.",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"ticket": ticket},
        )


# ============================================================================
# Exception Handlers
# ============================================================================

_HTTP_STATUS_CODES = {
    400: ErrorCode.INVALID_INPUT,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.RESOURCE_CONFLICT,
    410: ErrorCode.REPORT_GONE,
    415: ErrorCode.UNSUPPORTED_MEDIA_TYPE,
    422: ErrorCode.VALIDATION_ERROR,
}


def create_error_response(
    code: ErrorCode,
    message: str,
    status_code: int,
    details: Optional[Dict[str, Any]] = None,
    field: Optional[str] = None,
) -> JSONResponse:
    body: Dict[str, Any] = {"code": code.value, "message": message, "timestamp": _timestamp()}
    if field:
        body["field"] = field
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content={"detail": body})


def _where(request: Request) -> str:
    return f"{request.method} {request.url.path}"


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    # Client errors are routine (not ready, wrong tenant); only 5xx are errors
    log = logger.error if exc.status_code >= 500 else logger.info
    log(f"{_where(request)} -> {exc.status_code} {exc.code.value}: {exc.message}")
    return create_error_response(exc.code, exc.message, exc.status_code, exc.details, exc.field)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    logger.warning(f"{_where(request)} -> {exc.status_code}: {message}")
    return create_error_response(
        _HTTP_STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR),
        message,
        exc.status_code,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(f"{_where(request)} -> 422 with {len(errors)} field error(s)")
    return create_error_response(
        ErrorCode.VALIDATION_ERROR,
        "Request validation failed",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        details={"errors": errors},
    )


def _classify_database_error(exc: SQLAlchemyError):
    """(code, message, status) for a database failure."""
    if isinstance(exc, IntegrityError):
        reason = str(exc.orig).lower() if exc.orig else ""
        if "unique" in reason or "duplicate" in reason:
            return ErrorCode.DUPLICATE_ENTRY, "A record with this value already exists", status.HTTP_409_CONFLICT
        if "foreign key" in reason:
            return (
                ErrorCode.DATA_INTEGRITY_ERROR,
                "Referenced record does not exist",
                status.HTTP_422_UNPROCESSABLE_ENTITY,
            )
        return ErrorCode.DATA_INTEGRITY_ERROR, "Data integrity constraint violated", status.HTTP_500_INTERNAL_SERVER_ERROR
    if isinstance(exc, OperationalError):
        return ErrorCode.CONNECTION_ERROR, "Database operation failed", status.HTTP_500_INTERNAL_SERVER_ERROR
    if isinstance(exc, DataError):
        return ErrorCode.DATABASE_ERROR, "Invalid data format for database", status.HTTP_422_UNPROCESSABLE_ENTITY
    return ErrorCode.DATABASE_ERROR, "A database error occurred", status.HTTP_500_INTERNAL_SERVER_ERROR


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    code, message, status_code = _classify_database_error(exc)
    logger.error(f"{_where(request)} -> {status_code} {type(exc).__name__}", exc_info=True)
    return create_error_response(code, message, status_code)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.critical(f"{_where(request)} -> unhandled {type(exc).__name__}: {exc}", exc_info=True)
    return create_error_response(
        ErrorCode.INTERNAL_ERROR,
        "An unexpected error occurred. Please try again later.",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the LedgerFlow error renderers on ``app``."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


__all__ = [
    "AppException",
    "ErrorCode",
    "ValidationException",
    "InvalidAmountException",
    "MissingCompanyScopeException",
    "AuthorizationException",
    "TenantMismatchException",
    "ApprovalRequiredException",
    "RecordClosedException",
    "NotFoundException",
    "TicketNotFoundException",
    "ConflictException",
    "ReportNotReadyException",
    "ReportGoneException",
    "UnsupportedMediaTypeException",
    "BusinessRuleException",
    "InactiveAccountException",
    "DuplicateAccountException",
    "BankRowProtectedException",
    "JobStoreUnavailableException",
    "setup_exception_handlers",
    "create_error_response",
]
