class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppError):
    """Raised when an assignment request is malformed or violates a scheduling rule."""
    def __init__(self, message: str, fields: dict | None = None, details: dict = None):
        payload = dict(details or {})
        if fields:
            payload["fields"] = fields
        self.fields = fields or {}
        super().__init__(message, status_code=400, details=payload)


class ReferenceNotFoundError(AppError):
    """Raised when a referenced entity does not exist or is inactive."""
    def __init__(self, resource_type: str, resource_id: str, message: str | None = None):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            message or f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": str(resource_id)},
        )


class ConflictError(AppError):
    """Raised when an assignment collides with existing scheduled classes."""
    def __init__(
        self,
        message: str,
        conflicts: list | None = None,
        warnings: list | None = None,
        details: dict = None,
    ):
        self.conflicts = list(conflicts or [])
        self.warnings = list(warnings or [])
        payload = {
            "conflicts": [_dump(item) for item in self.conflicts],
            "warnings": [_dump(item) for item in self.warnings],
        }
        payload.update(details or {})
        super().__init__(message, status_code=409, details=payload)


class StorageConstraintError(ConflictError):
    """Raised when the database uniqueness guarantee rejects a write."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, details=details)


class PartialWriteError(AppError):
    """Raised when a multi-record write failed midway."""
    def __init__(self, message: str, *, written: int, rolled_back: int, rollback_succeeded: bool, details: dict = None):
        self.written = written
        self.rolled_back = rolled_back
        self.rollback_succeeded = rollback_succeeded
        payload = {
            "written": written,
            "rolled_back": rolled_back,
            "rollback_succeeded": rollback_succeeded,
        }
        payload.update(details or {})
        super().__init__(message, status_code=500, details=payload)


class NotificationError(AppError):
    """Raised by notification publishers when a payload cannot be delivered."""
    def __init__(self, message: str):
        super().__init__(message, status_code=503)


def _dump(item):
    if hasattr(item, "model_dump"):
        return item.model_dump(mode="json")
    return item
