"""Exceptions."""

from typing import Optional


class ConfigurationError(RuntimeError):
    """Configuration is invalid, e.g. an unknown token kind or bad pattern."""


class UpstreamUnavailable(RuntimeError):
    """A store or notification collaborator failed or timed out."""


class RateLimited(RuntimeError):
    """The customs service refused the request."""

    def __init__(self, message: str = 'Client has sent too many requests',
                 retry_after: Optional[int] = None,
                 can_unblock: bool = False) -> None:
        super(RateLimited, self).__init__(message)
        self.retry_after = retry_after
        self.can_unblock = can_unblock


class UnknownAccount(RuntimeError):
    """Account does not exist."""


class InvalidToken(RuntimeError):
    """Token is malformed or has an invalid signature."""


class InvalidVerificationCode(RuntimeError):
    """A verification code did not match, or its token has expired."""


class UnknownDevice(RuntimeError):
    """The account has no device with the given id."""
