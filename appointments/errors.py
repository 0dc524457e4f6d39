"""
Typed scheduling errors. The HTTP layer maps each kind to a response code.
"""


class SchedulingError(Exception):
    kind = "scheduling_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, object]:
        return {"success": False, "kind": self.kind, "message": self.message}


class InvalidRequest(SchedulingError):
    """Missing or empty service type, malformed explicit time."""

    kind = "invalid_request"
    status_code = 400


class InvalidInterval(SchedulingError):
    """The requested interval does not fit inside any working block."""

    kind = "invalid_interval"
    status_code = 400


class Conflict(SchedulingError):
    kind = "conflict"
    status_code = 409


class NoAvailability(SchedulingError):
    kind = "no_availability"
    status_code = 409


class StoreFailure(SchedulingError):
    kind = "store_failure"
    status_code = 500
