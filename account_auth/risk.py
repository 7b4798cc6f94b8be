"""
Sign-in risk evaluation.

Decides, once per login attempt, whether the new session can be trusted
straight away or must be confirmed by email. The evaluator is a pure function
of its inputs: the caller fetches the security history and acts on the
result (sending a confirmation email, or a new-device notification).
"""

import logging
from enum import Enum
from typing import Iterable, NamedTuple, Optional

from . import util
from .domain import LOGIN_EVENT, SecurityEvent
from .policy import PolicySnapshot, is_signin_confirmation_forced

logger = logging.getLogger(__name__)


class SigninDecision(Enum):
    """Terminal states of a sign-in evaluation."""

    NEEDS_CONFIRMATION = 'needs_confirmation'
    TRUSTED = 'trusted'


class Reason(str, Enum):
    """Why a decision was reached."""

    FORCED_EMAIL = 'forced_email'
    SUSPICIOUS_REQUEST = 'suspicious_request'
    RECENT_VERIFIED_LOGIN = 'recent_verified_login'
    NO_RECENT_VERIFIED_LOGIN = 'no_recent_verified_login'


class SigninAssessment(NamedTuple):
    """Outcome of :func:`evaluate_signin`."""

    decision: SigninDecision
    reason: Reason

    @property
    def trusted(self) -> bool:
        """Whether the session may be marked verified immediately."""
        return self.decision is SigninDecision.TRUSTED


def has_recent_verified_login(history: Iterable[SecurityEvent],
                              allowed_recency: int, now: int) -> bool:
    """
    Look for a verified ``account.login`` event inside the recency window.

    The history is not trusted to be pre-filtered; both the name and the
    recency filter are applied here.
    """
    cutoff = now - allowed_recency
    return any(
        event.name == LOGIN_EVENT and event.verified
        and event.created_at >= cutoff
        for event in history
    )


def evaluate_signin(policy: PolicySnapshot, email: str,
                    history: Iterable[SecurityEvent], is_suspicious: bool,
                    now: Optional[int] = None) -> SigninAssessment:
    """
    Decide whether a sign-in needs confirmation.

    Parameters
    ----------
    policy : :class:`.PolicySnapshot`
    email : str
        The address the user signed in with.
    history : iterable of :class:`.SecurityEvent`
        The account's security events, in any order.
    is_suspicious : bool
        Request flagged by IP reputation upstream.
    now : int
        Epoch milliseconds; defaults to the current time.

    Returns
    -------
    :class:`SigninAssessment`

    """
    if is_signin_confirmation_forced(policy, email):
        return SigninAssessment(SigninDecision.NEEDS_CONFIRMATION,
                                Reason.FORCED_EMAIL)
    if is_suspicious:
        return SigninAssessment(SigninDecision.NEEDS_CONFIRMATION,
                                Reason.SUSPICIOUS_REQUEST)

    if now is None:
        now = util.now()
    if has_recent_verified_login(history, policy.ip_profiling_allowed_recency,
                                 now):
        return SigninAssessment(SigninDecision.TRUSTED,
                                Reason.RECENT_VERIFIED_LOGIN)
    return SigninAssessment(SigninDecision.NEEDS_CONFIRMATION,
                            Reason.NO_RECENT_VERIFIED_LOGIN)
