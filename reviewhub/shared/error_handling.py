"""
Error handling utilities for ReviewHub request handlers.
Provides standardized error responses and the application exception hierarchy.
"""

import json
import logging
from typing import Dict, Any, Optional, Union
from enum import Enum
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import wraps

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    'Content-Type': 'application/json',
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'Content-Type,X-Amz-Date,Authorization,X-Api-Key,X-Amz-Security-Token',
    'Access-Control-Allow-Methods': 'GET,POST,OPTIONS'
}

class ErrorCode(Enum):
    """Standardized error codes for the application."""

    # Validation Errors
    INVALID_INPUT = "VAL_001"
    MISSING_REQUIRED_FIELD = "VAL_002"
    INVALID_FORMAT = "VAL_003"

    # Lookup Errors
    PRODUCT_NOT_FOUND = "BIZ_001"
    REVIEW_NOT_FOUND = "BIZ_005"
    ENDPOINT_NOT_FOUND = "BIZ_010"

    # Database Errors
    DATABASE_CONNECTION_ERROR = "DB_001"
    DATABASE_TIMEOUT = "DB_002"
    DATABASE_QUERY_FAILED = "DB_006"

    # System Errors
    INTERNAL_SERVER_ERROR = "SYS_001"
    CONFIGURATION_ERROR = "SYS_005"

@dataclass
class ErrorDetails:
    """Structured error details."""
    code: ErrorCode
    message: str
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            'code': self.code.value,
            'message': self.message
        }

        if self.details:
            result['details'] = self.details

        return result

class ReviewHubException(Exception):
    """Base exception class for the ReviewHub backend."""

    def __init__(self, error_details: ErrorDetails, status_code: int = 500):
        self.error_details = error_details
        self.status_code = status_code
        super().__init__(error_details.message)

class ValidationError(ReviewHubException):
    """Malformed request envelope (unparseable body, missing path parameter)."""

    def __init__(self, error_details: ErrorDetails):
        super().__init__(error_details, 400)

class NotFoundError(ReviewHubException):
    """The query matched no records."""

    def __init__(self, error_details: ErrorDetails):
        super().__init__(error_details, 404)

class StoreFailure(ReviewHubException):
    """A document store call failed. Never retried."""

    def __init__(self, error_details: ErrorDetails, cause: Optional[Exception] = None):
        super().__init__(error_details, 500)
        self.cause = cause

def not_found(message: str, code: ErrorCode = ErrorCode.REVIEW_NOT_FOUND) -> NotFoundError:
    """Shorthand for a 404 with a human readable message."""
    return NotFoundError(ErrorDetails(code=code, message=message))

def store_failure(operation: str, collection: str, error: Exception) -> StoreFailure:
    """Wrap a driver error, keeping the underlying message for the caller."""
    error_message = str(error)

    if 'timed out' in error_message.lower():
        code = ErrorCode.DATABASE_TIMEOUT
    elif 'connection' in error_message.lower() or 'ServerSelection' in type(error).__name__:
        code = ErrorCode.DATABASE_CONNECTION_ERROR
    else:
        code = ErrorCode.DATABASE_QUERY_FAILED

    return StoreFailure(ErrorDetails(
        code=code,
        message=error_message,
        details={'operation': operation, 'collection': collection}
    ), cause=error)

def create_error_response(error: Union[ReviewHubException, Exception],
                         request_id: Optional[str] = None) -> Dict[str, Any]:
    """Create standardized error response."""

    if isinstance(error, ReviewHubException):
        status_code = error.status_code
        error_body = error.error_details.to_dict()
        if status_code >= 500:
            logger.error(f"Request failed: {error}")
    else:
        # Unexpected exceptions still surface their message
        status_code = 500
        error_body = ErrorDetails(
            code=ErrorCode.INTERNAL_SERVER_ERROR,
            message=str(error) or type(error).__name__
        ).to_dict()

        logger.error(f"Unexpected error: {str(error)}", exc_info=True)

    error_body['timestamp'] = datetime.now(timezone.utc).isoformat()
    if request_id:
        error_body['request_id'] = request_id

    return {
        'statusCode': status_code,
        'headers': dict(CORS_HEADERS),
        'body': json.dumps(error_body, ensure_ascii=False)
    }

def require_path_parameter(path_params: Dict[str, Any], name: str) -> str:
    """Return a non-empty path parameter or raise ValidationError."""
    value = (path_params or {}).get(name)
    if value is None or not str(value).strip():
        raise ValidationError(ErrorDetails(
            code=ErrorCode.MISSING_REQUIRED_FIELD,
            message=f"Missing required path parameter: {name}",
            details={'missing_fields': [name]}
        ))
    return str(value)

ENDPOINT_NOT_FOUND_ERROR = NotFoundError(ErrorDetails(
    code=ErrorCode.ENDPOINT_NOT_FOUND,
    message="Endpoint not found"
))

def handle_request_errors(func):
    """Turn exceptions raised by an async request handler into error responses."""
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except ReviewHubException as e:
            if e.status_code < 500:
                logger.info(f"{func.__name__}: {e}")
            return create_error_response(e)
        except Exception as e:
            return create_error_response(e)
    return wrapper
