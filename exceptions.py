"""
Ledger error taxonomy.

Each error carries the HTTP status it maps to; ``create_app`` registers a
single handler that turns any of them into a JSON error response.
"""


class LedgerError(Exception):
    status_code = 500
    default_message = 'Ledger operation failed'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(LedgerError):
    status_code = 401
    default_message = 'Unauthorized'


class Forbidden(LedgerError):
    status_code = 403
    default_message = 'You do not have the required permissions to perform this action.'


class ValidationError(LedgerError):
    status_code = 400
    default_message = 'Invalid request'


class InsufficientBalance(LedgerError):
    status_code = 400
    default_message = 'Insufficient balance'


class NotFound(LedgerError):
    status_code = 404
    default_message = 'Not found'


class InvalidState(LedgerError):
    """Withdrawal exists but is no longer pending."""
    status_code = 404
    default_message = 'Withdrawal transaction not found'


class GatewayFailure(LedgerError):
    status_code = 502
    default_message = 'On-chain transfer failed'


class ConfigurationError(LedgerError):
    status_code = 500
    default_message = 'Server is not configured'
