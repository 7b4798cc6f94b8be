"""
Interfaces to the collaborators of the auth core.

The account store, rate limiter, mailer and push service all live in other
processes. The auth core only talks to them through the abstract classes
below; every call is a coroutine and may raise
:class:`.UpstreamUnavailable`. Retry policy, if any, belongs to the concrete
implementations.

See :mod:`.memory` for in-process implementations.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Union

from ..domain import Account, DeviceInfo, DeviceRecord, RequestContext, \
    SecurityEvent
from ..tokens import PasswordForgotToken, SessionToken, Token


class AccountStore(ABC):
    """The authoritative account record store."""

    @abstractmethod
    async def email_record(self, email: str) -> Account:
        """Look up an account by address; raise :class:`.UnknownAccount`."""

    @abstractmethod
    async def security_events(self, uid: str) \
            -> List[Union[SecurityEvent, Mapping[str, Any]]]:
        """
        Get the account's recent security history.

        Rows may be :class:`.SecurityEvent` instances or raw mappings with the
        same keys; ``created_at`` may be epoch milliseconds or ISO-8601.
        """

    @abstractmethod
    async def create_device(self, uid: str, session_id: str,
                            info: DeviceInfo) -> DeviceRecord:
        """Register a device; the store assigns its id and creation time."""

    @abstractmethod
    async def update_device(self, uid: str, session_id: str, device_id: str,
                            info: DeviceInfo) -> None:
        """
        Write the supplied fields of an existing device.

        Raises :class:`.UnknownDevice` if the account has no such device.
        """

    @abstractmethod
    async def devices(self, uid: str) -> List[DeviceRecord]:
        """List the account's devices."""

    @abstractmethod
    async def sessions(self, uid: str) -> List[SessionToken]:
        """List the account's session tokens, expired or not."""

    @abstractmethod
    async def create_session_token(self, token: SessionToken) -> None:
        """Persist a new session token."""

    @abstractmethod
    async def create_key_fetch_token(self, token: Token) -> None:
        """Persist a new key-fetch token."""

    @abstractmethod
    async def create_password_forgot_token(
            self, token: PasswordForgotToken) -> None:
        """Persist a new password-forgot token."""

    @abstractmethod
    async def password_forgot_token(self, token_id: str) -> PasswordForgotToken:
        """Load a password-forgot token; raise :class:`.InvalidToken`."""

    @abstractmethod
    async def update_password_forgot_token(
            self, token: PasswordForgotToken) -> None:
        """Persist a password-forgot token's remaining tries."""

    @abstractmethod
    async def forgot_password_verified(self, token: PasswordForgotToken,
                                       account_reset_token: Token) -> None:
        """Swap a verified password-forgot token for an account-reset token."""


class Customs(ABC):
    """The rate-limiting service."""

    @abstractmethod
    async def check(self, request: RequestContext, email: str,
                    action: str) -> None:
        """Raise :class:`.RateLimited` if ``action`` is not allowed."""


class PushNotifier(ABC):
    """Push notifications to a user's other devices."""

    @abstractmethod
    async def notify_device_connected(self, uid: str,
                                      devices: List[DeviceRecord], name: str,
                                      device_id: str) -> None:
        """Tell ``devices`` that a new device joined the account."""


class AttachedServices(ABC):
    """Relying services that subscribe to account changes."""

    @abstractmethod
    async def notify(self, event: str, request: RequestContext,
                     payload: Dict[str, Any]) -> None:
        """Publish ``event`` to attached services."""


class Mailer(ABC):
    """Outbound account email."""

    @abstractmethod
    async def send_verify_login_email(self, account: Account,
                                      request: RequestContext,
                                      token: SessionToken) -> None:
        """Ask the user to confirm a sign-in."""

    @abstractmethod
    async def send_new_device_login_notification(
            self, account: Account, request: RequestContext) -> None:
        """Tell the user about a sign-in that needed no confirmation."""

    @abstractmethod
    async def send_recovery_code(self, account: Account,
                                 request: RequestContext,
                                 token: PasswordForgotToken,
                                 code: str) -> None:
        """Mail a password-reset code."""
