from app.services.error_codes import ErrorCode


class ServiceError(Exception):
    """Base service error.

    ``kind`` is the error category clients act on; ``code`` is the
    finer-grained reason (``EVENT_NOT_LIVE`` is an ``INVALID_TRANSITION``).
    """

    kind: ErrorCode = ErrorCode.INTERNAL

    def __init__(self, code: str, message: str | None = None) -> None:
        self.code = code
        self.message = message or code
        super().__init__(self.message)


class NotFoundError(ServiceError):
    kind = ErrorCode.NOT_FOUND


class UnauthorizedError(ServiceError):
    kind = ErrorCode.UNAUTHORIZED


class InvalidTransitionError(ServiceError):
    kind = ErrorCode.INVALID_TRANSITION


class CapacityExceededError(ServiceError):
    kind = ErrorCode.CAPACITY_EXCEEDED


class AlreadyJoinedError(ServiceError):
    kind = ErrorCode.ALREADY_JOINED


class InvalidArgumentError(ServiceError):
    kind = ErrorCode.INVALID_ARGUMENT


class StorageUnavailableError(ServiceError):
    """Transient storage failure; callers may retry with backoff."""

    kind = ErrorCode.STORAGE_UNAVAILABLE
