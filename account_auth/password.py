"""
The forgotten-password flow.

``send_code`` mints a password-forgot token and mails its code;
``verify_code`` checks a code and swaps the token for an account-reset token.
Each wrong code uses up one try.
"""

import hmac
import logging
import secrets
from dataclasses import replace
from typing import Any, Dict, Optional

from . import config, util
from .app_logging import ActivityLog
from .domain import Account, RequestContext
from .exceptions import ConfigurationError, InvalidToken, \
    InvalidVerificationCode
from .services import AccountStore, Customs, Mailer
from .tokens import PasswordForgotToken, TokenKind, TokenManager, \
    creation_response

logger = logging.getLogger(__name__)


class PasswordForgotFlow(object):
    """Password reset by emailed code."""

    def __init__(self, log: ActivityLog, store: AccountStore,
                 customs: Customs, mailer: Mailer, tokens: TokenManager,
                 code_length: int = config.PASSWORD_FORGOT_CODE_LENGTH,
                 tries: int = config.PASSWORD_FORGOT_TRIES) -> None:
        if code_length <= 0 or code_length % 2:
            raise ConfigurationError('Code length must be a positive even '
                                     'number of hex digits')
        self._log = log
        self._store = store
        self._customs = customs
        self._mailer = mailer
        self._tokens = tokens
        self._code_length = code_length
        self._tries = tries

    async def send_code(self, request: RequestContext, email: str,
                        now: Optional[int] = None) -> Dict[str, Any]:
        """
        Start a password reset for ``email``.

        Raises
        ------
        :class:`.RateLimited`
        :class:`.UnknownAccount`

        """
        self._flow_event('password.forgot.send_code.start', request)
        await self._customs.check(request, email, 'passwordForgotSendCode')
        account = await self._store.email_record(email)

        pass_code = secrets.token_bytes(self._code_length // 2)
        token = self._tokens.mint(TokenKind.PASSWORD_FORGOT, account.uid,
                                  created_at=now, pass_code=pass_code,
                                  tries=self._tries)
        await self._store.create_password_forgot_token(token)
        await self._mailer.send_recovery_code(account, request, token,
                                              pass_code.hex())
        self._flow_event('password.forgot.send_code.completed', request)
        return self._response(token, now)

    async def resend_code(self, request: RequestContext, email: str,
                          token: PasswordForgotToken,
                          now: Optional[int] = None) -> Dict[str, Any]:
        """Mail the code of an existing password-forgot token again."""
        self._flow_event('password.forgot.resend_code.start', request)
        await self._customs.check(request, email, 'passwordForgotResendCode')
        account = await self._store.email_record(email)
        token = await self._load(account, token.id)
        await self._mailer.send_recovery_code(account, request, token,
                                              token.pass_code.hex())
        self._flow_event('password.forgot.resend_code.completed', request)
        return self._response(token, now)

    async def verify_code(self, request: RequestContext, email: str,
                          token: PasswordForgotToken, code: str,
                          now: Optional[int] = None) -> Dict[str, str]:
        """
        Check ``code`` against ``token``.

        Tries are counted on the stored token, so a caller holding a stale
        copy cannot reset them.

        Returns
        -------
        dict
            ``accountResetToken``, the hex secret of a fresh account-reset
            token.

        Raises
        ------
        :class:`.InvalidVerificationCode`
            If the token has expired, has no tries left, or the code is
            wrong.
        :class:`.InvalidToken`
            If the token is unknown or does not belong to ``email``.

        """
        self._flow_event('password.forgot.verify_code.start', request)
        await self._customs.check(request, email, 'passwordForgotVerifyCode')
        account = await self._store.email_record(email)
        token = await self._load(account, token.id)

        if self._tokens.is_expired(token, now) or token.tries <= 0:
            raise InvalidVerificationCode('Password reset code has expired')
        expected = token.pass_code.hex().encode('ascii')
        if not hmac.compare_digest(expected, code.lower().encode('utf-8')):
            await self._store.update_password_forgot_token(
                replace(token, tries=token.tries - 1)
            )
            logger.info('Wrong password reset code for %s', token.uid)
            raise InvalidVerificationCode('Invalid verification code')

        reset_token = self._tokens.mint(TokenKind.ACCOUNT_RESET, token.uid,
                                        created_at=now)
        await self._store.forgot_password_verified(token, reset_token)
        self._flow_event('password.forgot.verify_code.completed', request)
        return {'accountResetToken': creation_response(reset_token)}

    async def _load(self, account: Account,
                    token_id: str) -> PasswordForgotToken:
        token = await self._store.password_forgot_token(token_id)
        if token.uid != account.uid:
            raise InvalidToken('Password reset token belongs to another '
                               'account')
        return token

    def _response(self, token: PasswordForgotToken,
                  now: Optional[int]) -> Dict[str, Any]:
        ttl = self._tokens.ttl(token, now)
        return {
            'passwordForgotToken': creation_response(token),
            'ttl': None if ttl is None else ttl // util.MS_ONE_SECOND,
            'codeLength': self._code_length,
            'tries': token.tries,
        }

    def _flow_event(self, op: str, request: RequestContext) -> None:
        self._log.info({'op': op, 'service': request.service})
