"""
Custom Exceptions for the Churn Analytics Engine

This module defines custom exception classes used throughout the engine
for better error handling and debugging.
"""

from typing import Any, Dict, List, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for the engine"""
    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_DATE_FORMAT = "INVALID_DATE_FORMAT"
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"

    # Data source errors
    DATA_SOURCE_ERROR = "DATA_SOURCE_ERROR"

    # Cache errors
    CACHE_ERROR = "CACHE_ERROR"

    # Configuration errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


class BaseAppException(Exception):
    """
    Base exception class for all engine exceptions.

    Provides consistent error handling across the package with
    structured error information.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary format"""
        return {
            "error": {
                "message": self.message,
                "code": self.error_code.value,
                "details": self.details,
                "type": self.__class__.__name__
            }
        }

    def __str__(self) -> str:
        return f"{self.error_code.value}: {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message='{self.message}', error_code='{self.error_code.value}')"


# ========================================
# Validation Exceptions
# ========================================

class ValidationError(BaseAppException):
    """Exception raised when data validation fails"""

    def __init__(
        self,
        message: str = "Validation failed",
        field_errors: Optional[Dict[str, List[str]]] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        status_code: int = 422
    ):
        details = {"field_errors": field_errors} if field_errors else {}
        super().__init__(message, error_code, details, status_code)
        self.field_errors = field_errors or {}


class InvalidDateFormatError(ValidationError):
    """Exception raised when a raw date parameter cannot be parsed"""

    def __init__(
        self,
        message: str = "Invalid date format",
        value: Optional[str] = None,
        field: Optional[str] = None
    ):
        super().__init__(
            message,
            field_errors={field: [message]} if field else None,
            error_code=ErrorCode.INVALID_DATE_FORMAT,
        )
        self.details.update({"value": value, "field": field})


class InvalidDateRangeError(ValidationError):
    """Exception raised when end date precedes start date"""

    def __init__(
        self,
        message: str = "Invalid date range",
        start_date: Optional[str] = None,
        end_date: Optional[str] = None
    ):
        super().__init__(
            message,
            field_errors={"end_date": ["must be greater than or equal to start_date"]},
            error_code=ErrorCode.INVALID_DATE_RANGE,
        )
        self.details.update({"start_date": start_date, "end_date": end_date})


# ========================================
# Infrastructure Exceptions
# ========================================

class DataSourceError(BaseAppException):
    """Exception raised when a churn data source is misconfigured"""

    def __init__(
        self,
        message: str = "Data source error",
        source: Optional[str] = None
    ):
        super().__init__(message, ErrorCode.DATA_SOURCE_ERROR, {"source": source}, 500)


class CacheError(BaseAppException):
    """Exception raised when cache operations fail"""

    def __init__(
        self,
        message: str = "Cache operation failed",
        operation: Optional[str] = None,
        key: Optional[str] = None
    ):
        details = {
            "operation": operation,
            "key": key
        }
        super().__init__(message, ErrorCode.CACHE_ERROR, details, 503)


class ConfigurationError(BaseAppException):
    """Exception raised for configuration errors"""

    def __init__(
        self,
        message: str = "Configuration error",
        error_code: ErrorCode = ErrorCode.CONFIGURATION_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details, 500)


__all__ = [
    "ErrorCode",
    "BaseAppException",
    "ValidationError",
    "InvalidDateFormatError",
    "InvalidDateRangeError",
    "DataSourceError",
    "CacheError",
    "ConfigurationError",
]
