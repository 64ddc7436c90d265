"""
Standardized error handling utilities for Clean-Hero API endpoints.
Provides consistent error formats, HTTP status codes, and error codes across all endpoints.
"""

import logging
from flask import jsonify
from typing import Dict, Any, Optional

# Standard error codes for consistent API responses
ERROR_CODES = {
    # Authentication
    "TOKEN_MISSING": "Authentication token is missing",
    "TOKEN_INVALID": "Authentication token is invalid or expired",
    "UNAUTHORIZED": "Invalid credentials or unauthorized access",
    "USER_EXISTS": "User already exists with this email",

    # Request and resource errors
    "VALIDATION_ERROR": "Request validation failed",
    "NOT_FOUND": "Resource not found",
    "USER_NOT_FOUND": "User not found",
    "TASK_NOT_FOUND": "Collection task not found",

    # Verification errors
    "MISSING_INPUT": "Missing required information for verification",
    "MALFORMED_ORACLE_RESPONSE": "Unable to process the verification result",
    "NO_WASTE_DETECTED": "No waste detected in the image",
    "QUANTITY_OUT_OF_RANGE": "Quantity is far outside the reported amount",
    "RULE_MISMATCH": "Verification failed",
    "UPDATE_REJECTED": "Task status update was rejected",
    "ORACLE_TIMEOUT": "Image verification timed out",

    # System errors
    "SERVER_ERROR": "Internal server error",
    "EXTERNAL_SERVICE_ERROR": "External service unavailable",
}

# HTTP status for each verification failure kind
VERIFICATION_STATUS_CODES = {
    "MISSING_INPUT": 400,
    "MALFORMED_ORACLE_RESPONSE": 502,
    "NO_WASTE_DETECTED": 422,
    "QUANTITY_OUT_OF_RANGE": 422,
    "RULE_MISMATCH": 422,
    "UPDATE_REJECTED": 409,
    "ORACLE_TIMEOUT": 504,
    "EXTERNAL_SERVICE_ERROR": 502,
}


def create_error_response(
    error_code: str,
    message: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    status_code: int = 500
) -> tuple:
    """
    Create a standardized error response with consistent format.

    Args:
        error_code: One of the standard ERROR_CODES keys
        message: Optional custom message (defaults to standard message)
        details: Optional additional error details
        status_code: HTTP status code

    Returns:
        Tuple of (JSON response, HTTP status code)
    """
    if error_code not in ERROR_CODES:
        logging.warning(f"Unknown error code used: {error_code}")
        error_code = "SERVER_ERROR"

    error_message = message or ERROR_CODES[error_code]

    response_data = {
        "error_code": error_code,
        "message": error_message
    }

    if details:
        response_data["details"] = details

    logging.error(f"API Error [{error_code}]: {error_message} - Status: {status_code}")

    return jsonify(response_data), status_code


def verification_error_response(error) -> tuple:
    """Maps a VerificationError raised outside the workflow onto the standard envelope."""
    status_code = VERIFICATION_STATUS_CODES.get(error.error_code, 500)
    return create_error_response(error.error_code, error.message, error.details, status_code=status_code)


def handle_exception(e: Exception, context: str = "API endpoint") -> tuple:
    """
    Handle unexpected exceptions with standardized error response.

    Args:
        e: The exception that occurred
        context: Context information for logging

    Returns:
        Tuple of (JSON response, HTTP status code)
    """
    error_type = type(e).__name__
    error_message = str(e)

    logging.error(f"Unexpected error in {context}: {error_type} - {error_message}", exc_info=True)

    return create_error_response(
        error_code="SERVER_ERROR",
        message="An unexpected error occurred",
        details={"error_type": error_type},
        status_code=500
    )


# Common error response shortcuts
def unauthorized_error(message: Optional[str] = None) -> tuple:
    return create_error_response("UNAUTHORIZED", message, status_code=401)


def validation_error(message: Optional[str] = None, details: Optional[Dict] = None) -> tuple:
    return create_error_response("VALIDATION_ERROR", message, details, status_code=400)
