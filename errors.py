"""
Typed failures of the collection-verification workflow.

Each error carries the `error_code` used in API responses, so the HTTP layer
never has to guess how to present a failure.
"""


class VerificationError(Exception):
    error_code = "VERIFICATION_FAILED"

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class MissingInput(VerificationError):
    error_code = "MISSING_INPUT"


class MalformedOracleResponse(VerificationError):
    error_code = "MALFORMED_ORACLE_RESPONSE"


class NoWasteDetected(VerificationError):
    error_code = "NO_WASTE_DETECTED"


class QuantityOutOfRange(VerificationError):
    error_code = "QUANTITY_OUT_OF_RANGE"


class RuleMismatch(VerificationError):
    error_code = "RULE_MISMATCH"

    def __init__(self, message, failed_checks, details=None):
        super().__init__(message, details)
        self.failed_checks = list(failed_checks)


class UpdateRejected(VerificationError):
    error_code = "UPDATE_REJECTED"


class OracleTimeout(VerificationError):
    error_code = "ORACLE_TIMEOUT"


class OracleUnavailable(VerificationError):
    error_code = "EXTERNAL_SERVICE_ERROR"
