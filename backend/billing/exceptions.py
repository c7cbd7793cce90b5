"""
Billing domain errors

Raised by the billing core and translated to JSON responses by the
handlers registered in main.py.
"""
from typing import Optional


class BillingError(Exception):
    """Base class for every error raised by the billing core"""

    code = "billing_error"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        return {
            "status": "error",
            "error": {
                "code": self.code,
                "message": self.message,
                "field": self.field,
            },
        }


class BillingValidationError(BillingError, ValueError):
    code = "invalid_amount"


class PaymentValidationError(BillingError, ValueError):
    code = "invalid_payment"


class RecordNotFound(BillingError, LookupError):
    code = "not_found"
    status_code = 404


class InvalidTransition(BillingError):
    code = "invalid_transition"
    status_code = 409


class AdmissionReadOnly(BillingError, PermissionError):
    code = "admission_read_only"
    status_code = 423


class ColumnConfigError(BillingError, ValueError):
    code = "invalid_column"
