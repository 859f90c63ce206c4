"""
Error taxonomy for booking operations.

Each error carries a stable code and the transport status it maps to.
"""


class BookingError(Exception):
    """Base class for errors reported back to the caller as structured results."""

    code = "Unexpected"
    status = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class InvalidIndex(BookingError):
    """Index outside [0, length) of the resolved group. No mutation applied."""

    code = "InvalidIndex"
    status = 400


class InvalidPayload(BookingError):
    """Payload failed validation before reaching the store."""

    code = "InvalidPayload"
    status = 400


class NotFound(BookingError):
    """Id-addressed operation matched zero rows."""

    code = "NotFound"
    status = 404


class Conflict(BookingError):
    """Id collision on insert."""

    code = "Conflict"
    status = 409


class MethodNotSupported(BookingError):
    code = "MethodNotSupported"
    status = 405


class StoreUnavailable(BookingError):
    """Connection or transaction failure in the row store."""

    code = "StoreUnavailable"
    status = 500
