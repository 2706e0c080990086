from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    retryable = False

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationFailure(ServiceError):
    """Required input missing; rejected before any lookup is attempted."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class NotFoundError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class AlreadyIssuedError(ServiceError):
    """A certificate already exists for the identity key."""

    def __init__(self, message: str = "TC already generated for this student.") -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class TransientServiceError(ServiceError):
    """Backing store unreachable. Safe to retry; no state was changed."""

    retryable = True

    def __init__(self, message: str = "Service temporarily unavailable, please retry") -> None:
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE)
