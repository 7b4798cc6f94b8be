"""In-process collaborators, for tests and local development."""

import logging
import secrets
from collections import defaultdict
from dataclasses import replace
from typing import Any, Dict, List, Optional

from .. import util
from ..domain import Account, DeviceInfo, DeviceRecord, RequestContext, \
    SecurityEvent
from ..exceptions import InvalidToken, RateLimited, UnknownAccount, \
    UnknownDevice
from ..tokens import PasswordForgotToken, SessionToken, Token, TokenKind
from . import AccountStore, Customs

logger = logging.getLogger(__name__)


class InMemoryAccountStore(AccountStore):
    """
    A dict-backed :class:`.AccountStore`.

    Nothing here is safe to share between processes; it exists so that flows
    can be exercised end to end without a database.
    """

    def __init__(self) -> None:
        self.accounts: Dict[str, Account] = {}
        self.events: Dict[str, List[SecurityEvent]] = defaultdict(list)
        self.device_records: Dict[str, Dict[str, DeviceRecord]] = \
            defaultdict(dict)
        self.session_tokens: Dict[str, SessionToken] = {}
        self.key_fetch_tokens: Dict[str, Token] = {}
        self.password_forgot_tokens: Dict[str, PasswordForgotToken] = {}
        self.account_reset_tokens: Dict[str, Token] = {}

    def add_account(self, account: Account) -> None:
        """Seed an account."""
        self.accounts[account.uid] = account

    def add_event(self, uid: str, event: SecurityEvent) -> None:
        """Append to an account's security history."""
        self.events[uid].append(event)

    async def email_record(self, email: str) -> Account:
        for account in self.accounts.values():
            if account.email.lower() == email.lower():
                return account
        raise UnknownAccount(f'No account for {email}')

    async def security_events(self, uid: str) -> List[SecurityEvent]:
        return list(self.events.get(uid, []))

    async def create_device(self, uid: str, session_id: str,
                            info: DeviceInfo) -> DeviceRecord:
        device = DeviceRecord(id=secrets.token_hex(16), info=info,
                              created_at=util.now())
        self.device_records[uid][device.id] = device
        self._bind_session(session_id, device.id)
        return device

    async def update_device(self, uid: str, session_id: str, device_id: str,
                            info: DeviceInfo) -> None:
        devices = self.device_records[uid]
        if device_id not in devices:
            raise UnknownDevice(f'No device {device_id} for {uid}')
        current = devices[device_id]
        merged = current.info._replace(**info.supplied())
        devices[device_id] = current._replace(info=merged)
        self._bind_session(session_id, device_id)

    async def devices(self, uid: str) -> List[DeviceRecord]:
        if not uid:
            raise UnknownAccount('Unknown account')
        return list(self.device_records.get(uid, {}).values())

    async def sessions(self, uid: str) -> List[SessionToken]:
        return [token for token in self.session_tokens.values()
                if token.uid == uid]

    async def create_session_token(self, token: SessionToken) -> None:
        self.session_tokens[token.id] = token

    async def create_key_fetch_token(self, token: Token) -> None:
        self.key_fetch_tokens[token.id] = token

    async def create_password_forgot_token(
            self, token: PasswordForgotToken) -> None:
        self.password_forgot_tokens[token.id] = token

    async def password_forgot_token(self, token_id: str) -> PasswordForgotToken:
        try:
            return self.password_forgot_tokens[token_id]
        except KeyError as e:
            raise InvalidToken(f'No password-forgot token {token_id}') from e

    async def update_password_forgot_token(
            self, token: PasswordForgotToken) -> None:
        self.password_forgot_tokens[token.id] = token

    async def forgot_password_verified(self, token: PasswordForgotToken,
                                       account_reset_token: Token) -> None:
        self.password_forgot_tokens.pop(token.id, None)
        self.account_reset_tokens[account_reset_token.id] = account_reset_token

    def _bind_session(self, session_id: str, device_id: str) -> None:
        token = self.session_tokens.get(session_id)
        if token is not None and token.device_id != device_id:
            self.session_tokens[session_id] = replace(
                token, device_id=device_id, kind=TokenKind.SESSION_WITH_DEVICE
            )


class InMemoryCustoms(Customs):
    """Refuses any email/action pair listed in :attr:`blocked`."""

    def __init__(self, retry_after: Optional[int] = None) -> None:
        self.blocked: Dict[str, set] = defaultdict(set)
        self.retry_after = retry_after
        self.checks: List[Any] = []

    def block(self, email: str, action: str) -> None:
        """Start refusing ``action`` for ``email``."""
        self.blocked[email.lower()].add(action)

    async def check(self, request: RequestContext, email: str,
                    action: str) -> None:
        self.checks.append((email, action))
        if action in self.blocked.get(email.lower(), set()):
            logger.debug('Customs blocked %s for %s', action, email)
            raise RateLimited(retry_after=self.retry_after)
