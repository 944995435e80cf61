"""Print job service exceptions."""


class PrintJobError(Exception):
    """Base error for the print job service."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class InvalidRequestError(PrintJobError):
    """Raised on missing or malformed input (empty module, empty file path...)."""

    kind = "invalid_request"


class NoPrinterConfiguredError(PrintJobError):
    """Raised when neither a preference nor a default printer is configured."""

    kind = "no_printer_configured"


class JobNotFoundError(PrintJobError):
    """Raised when no job exists with the requested id."""

    kind = "not_found"

    def __init__(self, job_id: int):
        super().__init__(f"Print job {job_id} not found")
        self.job_id = job_id


class InvalidTransitionError(PrintJobError):
    """Raised when a status change is not allowed by the job lifecycle."""

    kind = "invalid_transition"

    def __init__(self, job_id: int, current, requested):
        super().__init__(
            f"Print job {job_id} cannot move from {current.value} to {requested.value}"
        )
        self.job_id = job_id
        self.current = current
        self.requested = requested


class StorageError(PrintJobError):
    """Raised when the backing store is unreachable or a query fails."""

    kind = "storage_error"


class SinkUnavailableError(PrintJobError):
    """Raised when the print sink cannot be reached or times out."""

    kind = "sink_unavailable"
