class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)

class SessionRejectedError(AppError):
    """Raised by the HTTP layer when a single session create/edit fails validation."""
    def __init__(self, message: str, issues: list[dict]):
        super().__init__(message, status_code=409, details={"issues": issues})

class InfrastructureError(AppError):
    """Raised when the persistence layer cannot be reached or fails mid-operation."""
    def __init__(self, message: str = "Scheduling data store is unavailable"):
        super().__init__(message, status_code=503)

class ConfigurationError(AppError):
    """Raised when system configuration is invalid."""
    def __init__(self, message: str):
        super().__init__(message, status_code=500)
