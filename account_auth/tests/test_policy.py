"""Tests for :mod:`account_auth.policy`."""

import re
from unittest import TestCase, mock

from account_auth import policy, sampling
from account_auth.domain import Account, RequestContext
from account_auth.exceptions import ConfigurationError

# Last 13 characters are 0.02 * 0xfffffffffffff.
COHORT_002 = '000000000000000000000000000051eb851eb852'


def _policy(**sections):
    return policy.PolicySnapshot.from_config(sections)


@mock.patch(f'{sampling.__name__}.hashlib')
class TestLastAccessTracking(TestCase):
    """Tests for :func:`policy.is_last_access_tracking_enabled`."""

    uid = 'foo'
    email = 'bar@mozilla.com'

    def _check(self, **gate):
        snapshot = _policy(last_access_time_updates=gate)
        return policy.is_last_access_tracking_enabled(snapshot, self.uid,
                                                      self.email)

    def test_email_match(self, mock_hashlib):
        """Matching addresses are always on."""
        mock_hashlib.sha1.return_value.hexdigest.return_value = COHORT_002
        self.assertTrue(self._check(
            enabled=True, sample_rate=0,
            allowed_email_addresses=r'.+@mozilla\.com$'
        ))
        self.assertFalse(self._check(
            enabled=True, sample_rate=0,
            allowed_email_addresses=r'.+@mozilla\.org$'
        ))

    def test_sampled(self, mock_hashlib):
        """Other addresses are sampled."""
        mock_hashlib.sha1.return_value.hexdigest.return_value = COHORT_002
        pattern = r'.+@mozilla\.org$'
        self.assertTrue(self._check(enabled=True, sample_rate=0.03,
                                    allowed_email_addresses=pattern))
        self.assertFalse(self._check(enabled=True, sample_rate=0.02,
                                     allowed_email_addresses=pattern))

    def test_disabled(self, mock_hashlib):
        """A disabled feature is off for everyone."""
        mock_hashlib.sha1.return_value.hexdigest.return_value = COHORT_002
        self.assertFalse(self._check(
            enabled=False, sample_rate=0.03,
            allowed_email_addresses=r'.+@mozilla\.com$'
        ))


@mock.patch(f'{sampling.__name__}.hashlib')
class TestSigninUnblock(TestCase):
    """Tests for :func:`policy.is_signin_unblock_enabled`."""

    uid = 'wibble'
    email = 'blee@mozilla.com'

    def _check(self, **gate):
        snapshot = _policy(signin_unblock=dict(enabled=True, **gate))
        return policy.is_signin_unblock_enabled(snapshot, self.uid,
                                                self.email, RequestContext())

    def test_precedence(self, mock_hashlib):
        """Forced, then allowed, then sampled."""
        mock_hashlib.sha1.return_value.hexdigest.return_value = COHORT_002
        self.assertFalse(self._check(
            sample_rate=0.02,
            allowed_email_addresses=r'.+@notmozilla.com$'
        ), 'not allowed and not sampled')
        self.assertTrue(self._check(
            sample_rate=0.02,
            allowed_email_addresses=r'.+@notmozilla.com$',
            forced_email_addresses=r'.+'
        ), 'forced on')
        self.assertTrue(self._check(
            sample_rate=0.02,
            allowed_email_addresses=r'.+@mozilla.com$',
            forced_email_addresses=r'^$'
        ), 'allowed')
        self.assertTrue(self._check(
            sample_rate=0.03,
            allowed_email_addresses=r'.+@notmozilla.com$',
            forced_email_addresses=r'^$'
        ), 'sampled')

    def test_overrides_skip_sampling(self, mock_hashlib):
        """Pattern matches never touch the digest."""
        self.assertTrue(self._check(sample_rate=0.5,
                                    forced_email_addresses=r'mozilla'))
        self.assertTrue(self._check(sample_rate=0.5,
                                    allowed_email_addresses=r'mozilla'))
        self.assertEqual(mock_hashlib.sha1.call_count, 0)

    def test_disabled(self, mock_hashlib):
        """Even forced addresses are off when the feature is disabled."""
        snapshot = _policy(signin_unblock={
            'enabled': False, 'forced_email_addresses': '.+'
        })
        self.assertFalse(policy.is_signin_unblock_enabled(
            snapshot, self.uid, self.email
        ))


class TestAccountAgeBypass(TestCase):
    """Tests for :func:`policy.is_signin_confirmation_bypass_for_account_age`."""

    def _snapshot(self, enabled, since):
        return _policy(signin_confirmation={
            'bypass_account_with_age': {
                'enabled': enabled, 'account_created_since_ms': since
            }
        })

    def test_bypass(self):
        """The bypass applies to accounts at least as old as configured."""
        now = 1500000000000
        account = Account(uid='abc', email='a@b.c', created_at=now - 10)
        self.assertFalse(policy.is_signin_confirmation_bypass_for_account_age(
            self._snapshot(False, 10), account, now
        ))
        self.assertTrue(policy.is_signin_confirmation_bypass_for_account_age(
            self._snapshot(True, 10), account, now
        ))
        self.assertFalse(policy.is_signin_confirmation_bypass_for_account_age(
            self._snapshot(True, 11), account, now
        ))


class TestSecurityHistory(TestCase):
    """Tests for the security history gates."""

    def _snapshot(self, enabled, profiling):
        return _policy(security_history={
            'enabled': enabled, 'ip_profiling': {'enabled': profiling}
        })

    def test_tracking(self):
        """Tracking follows its switch."""
        self.assertTrue(policy.is_security_history_tracking_enabled(
            self._snapshot(True, False)
        ))
        self.assertFalse(policy.is_security_history_tracking_enabled(
            self._snapshot(False, True)
        ))

    def test_profiling(self):
        """Profiling needs tracking too."""
        self.assertTrue(policy.is_security_history_profiling_enabled(
            self._snapshot(True, True)
        ))
        self.assertFalse(policy.is_security_history_profiling_enabled(
            self._snapshot(True, False)
        ))
        self.assertFalse(policy.is_security_history_profiling_enabled(
            self._snapshot(False, True)
        ))


class TestSnapshot(TestCase):
    """Tests for :class:`policy.PolicySnapshot` construction and reload."""

    def test_patterns_are_compiled(self):
        """Patterns are compiled once, when the snapshot is built."""
        snapshot = _policy(signin_confirmation={
            'forced_email_addresses': r'.+@mozilla\.com$'
        })
        pattern = snapshot.signin_confirmation_forced_email_addresses
        self.assertIsInstance(pattern, re.Pattern)
        self.assertTrue(policy.is_signin_confirmation_forced(
            snapshot, 'forcedemail@mozilla.com'
        ))
        self.assertFalse(policy.is_signin_confirmation_forced(
            snapshot, 'foo@gmail.com'
        ))

    def test_malformed_pattern(self):
        """A pattern that does not compile is a configuration error."""
        with self.assertRaises(ConfigurationError):
            _policy(signin_unblock={'allowed_email_addresses': '(unclosed'})

    def test_sample_rate_range(self):
        """Sample rates must lie in [0, 1]."""
        with self.assertRaises(ConfigurationError):
            _policy(signin_unblock={'sample_rate': 1.5})
        with self.assertRaises(ConfigurationError):
            _policy(last_access_time_updates={'sample_rate': 'lots'})

    def test_empty_config(self):
        """Everything is off when nothing is configured."""
        snapshot = _policy()
        self.assertFalse(policy.is_signin_unblock_enabled(snapshot, 'a', 'b'))
        self.assertFalse(policy.is_security_history_profiling_enabled(snapshot))
        self.assertFalse(policy.is_signin_confirmation_forced(snapshot, 'x'))

    def test_token_lifetimes_are_read_only(self):
        """The lifetime table cannot be changed through the snapshot."""
        snapshot = _policy(token_lifetimes={'keyFetchToken': 5})
        with self.assertRaises(TypeError):
            snapshot.token_lifetimes['keyFetchToken'] = 6

    def test_reload_swaps_reference(self):
        """Reloading replaces the current snapshot without mutating it."""
        before = policy.reload_policy({'security_history': {'enabled': True}})
        self.assertIs(policy.current_policy(), before)
        after = policy.reload_policy({'security_history': {'enabled': False}})
        self.assertIsNot(before, after)
        self.assertTrue(before.security_history_enabled)
        self.assertIs(policy.current_policy(), after)
        policy.reload_policy()

    def test_default_config(self):
        """The module configuration builds a valid snapshot."""
        snapshot = policy.reload_policy()
        self.assertGreater(
            snapshot.token_lifetimes['sessionTokenWithoutDevice'], 0
        )
