"""Domain errors raised by the service layer.

Each error carries a stable ``code`` and the HTTP status the API layer maps
it to. Services never raise ``HTTPException`` directly so they can be used
without a request.
"""


class ArdnError(Exception):
    code = "error"
    status_code = 500

    def __init__(self, message: str, *, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(ArdnError):
    code = "validation_error"
    status_code = 400


class NotFoundError(ArdnError):
    code = "not_found"
    status_code = 404


class ConflictError(ArdnError):
    code = "conflict"
    status_code = 409


class ExpiredWindowError(ArdnError):
    code = "participation_window_closed"
    status_code = 400


class TransactionError(ArdnError):
    code = "transaction_failed"
    status_code = 500
