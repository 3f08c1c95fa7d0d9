"""
Error taxonomy shared by the store, ledger, telephony and HTTP layers.

Management endpoints let these propagate to the Flask error handler, which
renders them as {"success": false, "error": ..., "details": ...}. Provider
webhooks catch them, log, and still acknowledge.
"""

from typing import Optional


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {'success': False, 'error': self.message}
        if self.details:
            body['details'] = self.details
        return body


class ValidationError(ServiceError):
    """Missing or malformed request fields."""
    status_code = 400


class InvalidPhoneError(ValidationError):
    """The ledger returned a contact without a dialable phone number."""


class NotFoundError(ServiceError):
    status_code = 404


class ConsumerNotFoundError(NotFoundError):
    """No registered consumer for the citizen identifier."""


class UpstreamError(ServiceError):
    """Telephony, database or ledger call failed."""
    status_code = 500


class ReportStoreError(UpstreamError):
    pass


class DuplicateReportError(ReportStoreError):
    pass


class ConfigurationError(ServiceError):
    """Credentials or endpoints missing at startup."""
    status_code = 500
