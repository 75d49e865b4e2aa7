# messenger/domain/exceptions.py


class ChatServiceError(Exception):
    """Base class for errors raised by the messaging use cases.

    Each subclass carries the HTTP status it maps to and whether a caller may
    retry the same operation as-is.
    """

    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArgument(ChatServiceError):
    status_code = 400


class Forbidden(ChatServiceError):
    status_code = 403


class NotFound(ChatServiceError):
    status_code = 404


class Conflict(ChatServiceError):
    """The write lost against current state; re-fetch before trying again."""

    status_code = 409


class Unavailable(ChatServiceError):
    status_code = 503
    retryable = True
