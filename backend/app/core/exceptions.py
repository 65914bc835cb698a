class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class SchedulerError(AppError):
    """Raised when a scheduling request is logically invalid."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )

class ConflictRejectedError(AppError):
    """Raised when a placement is denied by the conflict check. Always recoverable."""
    def __init__(self, reason: str, details: dict = None):
        payload = {"reason": reason}
        payload.update(details or {})
        super().__init__(f"Placement rejected: {reason}", status_code=409, details=payload)
        self.reason = reason

class WriteConflictError(AppError):
    """Raised when a concurrent write won the race after the pre-check passed."""
    def __init__(self, message: str, details: dict = None):
        payload = {"retryable": True}
        payload.update(details or {})
        super().__init__(message, status_code=409, details=payload)

class TransientUnavailableError(AppError):
    """Raised when the backing store cannot be reached."""
    def __init__(self, message: str = "Timetable store temporarily unavailable", details: dict = None):
        payload = {"retryable": True}
        payload.update(details or {})
        super().__init__(message, status_code=503, details=payload)
