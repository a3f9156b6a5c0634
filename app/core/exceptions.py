from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(ServiceError):
    """Malformed or out-of-range input. Raised before anything is mutated."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class NotFoundError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class ConsistencyViolation(ServiceError):
    """A ledger invariant would break. The operation is rejected, never clamped."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class ConcurrentModificationError(ServiceError):
    def __init__(self, message: str = "Record was modified by another request. Please retry.") -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)
