"""Domain errors raised below the HTTP layer."""


class ServiceError(Exception):
    """Base class for errors a service turns into a result variant."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArgumentError(ServiceError):
    """The caller supplied a value the operation cannot accept."""

    pass


class NotFoundError(ServiceError):
    """The record an operation targets does not exist."""

    pass
