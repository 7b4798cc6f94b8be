"""
The password sign-in flow.

Runs after the password has been checked: consults customs, evaluates sign-in
risk, mints the session (and optionally key-fetch) token, and tells the mailer
which email to send. The risk decision itself lives in :mod:`.risk`; this
module only gathers its inputs and acts on its output.
"""

import logging
from typing import Any, Dict, List, Optional

from . import util
from .app_logging import ActivityLog
from .domain import Account, RequestContext, SecurityEvent, from_dict
from .exceptions import RateLimited
from .policy import PolicySnapshot, current_policy, \
    is_security_history_profiling_enabled, \
    is_signin_confirmation_bypass_for_account_age, is_signin_unblock_enabled
from .risk import Reason, SigninAssessment, evaluate_signin
from .services import AccountStore, Customs, Mailer
from .tokens import TokenKind, TokenManager, creation_response

logger = logging.getLogger(__name__)

LOGIN_ACTION = 'accountLogin'


class SigninFlow(object):
    """Signs a user in once their password has been verified."""

    def __init__(self, log: ActivityLog, store: AccountStore,
                 customs: Customs, mailer: Mailer,
                 tokens: TokenManager) -> None:
        self._log = log
        self._store = store
        self._customs = customs
        self._mailer = mailer
        self._tokens = tokens

    async def assess(self, request: RequestContext, account: Account,
                     policy: PolicySnapshot,
                     now: Optional[int] = None) -> SigninAssessment:
        """
        Gather security history (if profiling is on) and evaluate it.

        The store may hand back raw rows instead of :class:`.SecurityEvent`
        instances; those are parsed with :func:`.from_dict`.
        """
        history: List[SecurityEvent] = []
        if is_security_history_profiling_enabled(policy):
            rows = await self._store.security_events(account.uid)
            history = [row if isinstance(row, SecurityEvent)
                       else from_dict(SecurityEvent, row) for row in rows]
        return evaluate_signin(policy, account.email, history,
                               request.is_suspicious, now=now)

    async def login(self, request: RequestContext, account: Account,
                    keys: bool = False,
                    policy: Optional[PolicySnapshot] = None,
                    now: Optional[int] = None) -> Dict[str, Any]:
        """
        Create a session for ``account``.

        Parameters
        ----------
        request : :class:`.RequestContext`
        account : :class:`.Account`
            The account whose password was just verified.
        keys : bool
            Whether the client asked for a key-fetch token.
        policy : :class:`.PolicySnapshot`
            Defaults to :func:`.current_policy`.
        now : int
            Epoch milliseconds; defaults to the current time.

        Returns
        -------
        dict
            The sign-in response body. Token secrets appear here and nowhere
            else.

        Raises
        ------
        :class:`.RateLimited`
            Raised by customs before any risk evaluation happens.
            ``can_unblock`` says whether an unblock code may be offered.

        """
        if policy is None:
            policy = current_policy()
        if now is None:
            now = util.now()

        try:
            await self._customs.check(request, account.email, LOGIN_ACTION)
        except RateLimited as e:
            e.can_unblock = is_signin_unblock_enabled(policy, account.uid,
                                                      account.email, request)
            logger.info('Sign-in rate limited for %s (unblock: %s)',
                        account.uid, e.can_unblock)
            raise

        assessment = await self.assess(request, account, policy, now=now)
        verified = assessment.trusted
        if not verified and assessment.reason is Reason.NO_RECENT_VERIFIED_LOGIN:
            verified = is_signin_confirmation_bypass_for_account_age(
                policy, account, now=now
            )
        logger.debug('Sign-in for %s: %s (%s), verified=%s', account.uid,
                     assessment.decision.value, assessment.reason.value,
                     verified)

        session_token = self._tokens.mint(TokenKind.SESSION_WITHOUT_DEVICE,
                                          account.uid, created_at=now,
                                          verified=verified)
        await self._store.create_session_token(session_token)
        response: Dict[str, Any] = {
            'uid': account.uid,
            'sessionToken': creation_response(session_token),
            'verified': verified,
            'authAt': now // util.MS_ONE_SECOND,
        }
        if keys:
            key_fetch_token = self._tokens.mint(TokenKind.KEY_FETCH,
                                                account.uid, created_at=now,
                                                verified=verified)
            await self._store.create_key_fetch_token(key_fetch_token)
            response['keyFetchToken'] = creation_response(key_fetch_token)

        self._log.activity_event({
            'event': 'account.login',
            'service': request.service,
            'userAgent': request.user_agent,
            'uid': account.uid,
            'verified': verified,
            'reason': assessment.reason.value
        })

        if verified:
            await self._mailer.send_new_device_login_notification(account,
                                                                  request)
        else:
            await self._mailer.send_verify_login_email(account, request,
                                                       session_token)
        return response
