"""
Feature-gate policy.

Policy is held in an immutable :class:`PolicySnapshot`, built once from
configuration and passed explicitly to each decision function. Reloading
configuration builds a new snapshot and swaps the module-level reference (see
:func:`reload_policy`); snapshots are never mutated in place.

Gates that combine explicit address patterns with sampling always evaluate in
the same order: forced pattern, then allowed pattern, then the sample. An
administrator override must never be subject to sampling noise.
"""

import logging
import re
from types import MappingProxyType
from typing import Any, Mapping, NamedTuple, Optional, Pattern, Union

from . import config, util
from .domain import Account, RequestContext
from .exceptions import ConfigurationError
from .sampling import is_sampled

logger = logging.getLogger(__name__)

LAST_ACCESS_TIME_UPDATES = 'lastAccessTimeUpdates'
SIGNIN_UNBLOCK = 'signinUnblock'


class FeatureGate(NamedTuple):
    """Settings for a feature rolled out by address pattern and sampling."""

    enabled: bool = False
    sample_rate: float = 0.0
    allowed_email_addresses: Optional[Pattern] = None
    forced_email_addresses: Optional[Pattern] = None


class AccountAgeBypass(NamedTuple):
    """Settings for skipping sign-in confirmation based on account age."""

    enabled: bool = False
    account_created_since_ms: int = 0


class PolicySnapshot(NamedTuple):
    """An immutable view of all policy configuration."""

    token_lifetimes: Mapping[str, int] = MappingProxyType({})
    last_access_time_updates: FeatureGate = FeatureGate()
    signin_unblock: FeatureGate = FeatureGate()
    signin_confirmation_forced_email_addresses: Optional[Pattern] = None
    account_age_bypass: AccountAgeBypass = AccountAgeBypass()
    security_history_enabled: bool = False
    ip_profiling_enabled: bool = False
    ip_profiling_allowed_recency: int = 0

    @classmethod
    def from_config(cls, data: Mapping[str, Any]) -> 'PolicySnapshot':
        """
        Build a snapshot from a configuration mapping.

        See :func:`account_auth.config.as_policy_config` for the shape.

        Raises
        ------
        :class:`ConfigurationError`
            If a pattern does not compile or a sample rate is out of range.

        """
        confirmation = data.get('signin_confirmation', {})
        bypass = confirmation.get('bypass_account_with_age', {})
        history = data.get('security_history', {})
        profiling = history.get('ip_profiling', {})
        return cls(
            token_lifetimes=MappingProxyType(
                dict(data.get('token_lifetimes', {}))
            ),
            last_access_time_updates=_gate(
                LAST_ACCESS_TIME_UPDATES,
                data.get('last_access_time_updates', {})
            ),
            signin_unblock=_gate(SIGNIN_UNBLOCK, data.get('signin_unblock', {})),
            signin_confirmation_forced_email_addresses=compile_pattern(
                confirmation.get('forced_email_addresses')
            ),
            account_age_bypass=AccountAgeBypass(
                enabled=bool(bypass.get('enabled', False)),
                account_created_since_ms=int(
                    bypass.get('account_created_since_ms', 0)
                )
            ),
            security_history_enabled=bool(history.get('enabled', False)),
            ip_profiling_enabled=bool(profiling.get('enabled', False)),
            ip_profiling_allowed_recency=int(
                profiling.get('allowed_recency', 0)
            )
        )


def compile_pattern(pattern: Union[None, str, Pattern]) -> Optional[Pattern]:
    """Compile an address pattern, failing loudly if it is malformed."""
    if pattern is None or isinstance(pattern, re.Pattern):
        return pattern
    try:
        return re.compile(pattern)
    except (re.error, TypeError) as e:
        raise ConfigurationError(f'Malformed pattern {pattern!r}: {e}') from e


def _gate(name: str, data: Mapping[str, Any]) -> FeatureGate:
    try:
        rate = float(data.get('sample_rate', 0))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f'{name}: sample rate is not a number') from e
    if not 0 <= rate <= 1:
        raise ConfigurationError(f'{name}: sample rate {rate} outside [0, 1]')
    return FeatureGate(
        enabled=bool(data.get('enabled', False)),
        sample_rate=rate,
        allowed_email_addresses=compile_pattern(
            data.get('allowed_email_addresses')
        ),
        forced_email_addresses=compile_pattern(
            data.get('forced_email_addresses')
        )
    )


def _matches(pattern: Optional[Pattern], email: Optional[str]) -> bool:
    return bool(pattern is not None and email and pattern.search(email))


def is_last_access_tracking_enabled(policy: PolicySnapshot, uid: Any,
                                    email: str) -> bool:
    """Whether session last-access times should be recorded for a user."""
    gate = policy.last_access_time_updates
    if not gate.enabled:
        return False
    if _matches(gate.allowed_email_addresses, email):
        return True
    return is_sampled(gate.sample_rate, uid, LAST_ACCESS_TIME_UPDATES)


def is_signin_unblock_enabled(policy: PolicySnapshot, uid: Any, email: str,
                              request: Optional[RequestContext] = None) \
        -> bool:
    """
    Whether a rate-limited user may be offered an unblock code.

    ``request`` is accepted so that request-scoped overrides can be added
    without changing callers; it is not read at present.
    """
    gate = policy.signin_unblock
    if not gate.enabled:
        return False
    if _matches(gate.forced_email_addresses, email):
        return True
    if _matches(gate.allowed_email_addresses, email):
        return True
    return is_sampled(gate.sample_rate, uid, SIGNIN_UNBLOCK)


def is_signin_confirmation_bypass_for_account_age(
        policy: PolicySnapshot, account: Account,
        now: Optional[int] = None) -> bool:
    """
    Whether account age lets a sign-in skip email confirmation.

    Note that the bypass applies to accounts created *at least*
    ``account_created_since_ms`` ago, not to brand new ones.
    """
    bypass = policy.account_age_bypass
    if not bypass.enabled:
        return False
    if now is None:
        now = util.now()
    return now - account.created_at >= bypass.account_created_since_ms


def is_signin_confirmation_forced(policy: PolicySnapshot, email: str) -> bool:
    """Whether sign-ins for ``email`` always need confirmation."""
    return _matches(policy.signin_confirmation_forced_email_addresses, email)


def is_security_history_tracking_enabled(policy: PolicySnapshot) -> bool:
    """Whether security events are recorded at all."""
    return policy.security_history_enabled


def is_security_history_profiling_enabled(policy: PolicySnapshot) -> bool:
    """Whether security history may vouch for new sign-ins."""
    return policy.security_history_enabled and policy.ip_profiling_enabled


_current: Optional[PolicySnapshot] = None


def current_policy() -> PolicySnapshot:
    """Get the process-wide snapshot, building it from config on first use."""
    global _current
    if _current is None:
        _current = PolicySnapshot.from_config(config.as_policy_config())
    return _current


def reload_policy(data: Optional[Mapping[str, Any]] = None) -> PolicySnapshot:
    """
    Build a new snapshot and make it current.

    In-flight evaluations keep the snapshot they were handed.
    """
    global _current
    snapshot = PolicySnapshot.from_config(
        data if data is not None else config.as_policy_config()
    )
    _current = snapshot
    logger.info('Policy reloaded')
    return snapshot
