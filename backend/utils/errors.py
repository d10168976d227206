from typing import Optional, Dict, Any


class LedgerError(Exception):
    """Base error for commission, wallet and withdrawal operations"""
    def __init__(
        self,
        message: str,
        error_code: str = "LEDGER_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(LedgerError):
    def __init__(self, message: str = "Resource not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="NOT_FOUND", details=details)


class InvalidStateError(LedgerError):
    def __init__(self, message: str = "Invalid state for this operation", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="INVALID_STATE", details=details)


class AlreadyProcessedError(LedgerError):
    def __init__(self, message: str = "Request is already processed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="ALREADY_PROCESSED", details=details)


class AlreadyDistributedError(AlreadyProcessedError):
    def __init__(self, message: str = "Commissions already distributed for this order", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)
        self.error_code = "ALREADY_DISTRIBUTED"


class ValidationError(LedgerError):
    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="VALIDATION_ERROR", details=details)


class MissingReferenceError(ValidationError):
    def __init__(self, message: str = "Settlement reference is required", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)
        self.error_code = "MISSING_REFERENCE"


class InsufficientFundsError(LedgerError):
    def __init__(self, message: str = "Insufficient wallet balance", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="INSUFFICIENT_FUNDS", details=details)


# error_code of a failed result -> HTTP status when it reaches a route (default 400)
ERROR_STATUS_CODES = {
    "NOT_FOUND": 404,
    "INVALID_STATE": 400,
    "ALREADY_PROCESSED": 400,
    "ALREADY_DISTRIBUTED": 400,
    "VALIDATION_ERROR": 400,
    "MISSING_REFERENCE": 400,
    "INSUFFICIENT_FUNDS": 400,
    "STORAGE_ERROR": 500,
}


def http_status_for(error_code: str | None) -> int:
    return ERROR_STATUS_CODES.get(error_code, 400)


def failure_result(error: LedgerError) -> dict:
    return {
        "success": False,
        "message": error.message,
        "error_code": error.error_code,
    }


def storage_failure(message: str) -> dict:
    return {
        "success": False,
        "message": message,
        "error_code": "STORAGE_ERROR",
    }
