"""Tests for :mod:`account_auth.tokens`."""

from unittest import TestCase, mock

from account_auth import tokens
from account_auth.exceptions import ConfigurationError, InvalidToken
from account_auth.tokens import TokenKind

SESSION_LIFETIME = 2419200000


class TestMint(TestCase):
    """Tests for :meth:`tokens.TokenManager.mint`."""

    def setUp(self):
        self.manager = tokens.TokenManager({
            'sessionTokenWithoutDevice': SESSION_LIFETIME
        })

    def test_same_secret_same_id(self):
        """The id is a function of the secret material."""
        secret = b'\x01' * 32
        first = self.manager.mint(TokenKind.KEY_FETCH, 'abc', secret)
        second = self.manager.mint(TokenKind.KEY_FETCH, 'abc', secret)
        self.assertEqual(first.id, second.id)
        other = self.manager.mint(TokenKind.KEY_FETCH, 'abc', b'\x02' * 32)
        self.assertNotEqual(first.id, other.id)

    def test_random_secret(self):
        """Without a secret, fresh random material is used."""
        first = self.manager.mint(TokenKind.ACCOUNT_RESET, 'abc')
        second = self.manager.mint(TokenKind.ACCOUNT_RESET, 'abc')
        self.assertEqual(len(first.data), tokens.SECRET_BYTES)
        self.assertNotEqual(first.id, second.id)

    def test_session_kinds_share_ids(self):
        """Binding a device to a session does not change its id."""
        secret = b'\x03' * 32
        self.assertEqual(
            tokens.derive_id(TokenKind.SESSION_WITH_DEVICE, secret),
            tokens.derive_id(TokenKind.SESSION_WITHOUT_DEVICE, secret)
        )
        self.assertNotEqual(
            tokens.derive_id(TokenKind.SESSION_WITHOUT_DEVICE, secret),
            tokens.derive_id(TokenKind.KEY_FETCH, secret)
        )

    def test_token_classes(self):
        """Kinds with extra state get their own class."""
        session = self.manager.mint('sessionTokenWithoutDevice', 'abc')
        self.assertIsInstance(session, tokens.SessionToken)
        self.assertFalse(session.token_verified)
        self.assertIsNone(session.device_id)

        forgot = self.manager.mint(TokenKind.PASSWORD_FORGOT, 'abc',
                                   pass_code=b'\x0a\x0b', tries=3)
        self.assertIsInstance(forgot, tokens.PasswordForgotToken)
        self.assertEqual(forgot.tries, 3)

    def test_unknown_kind(self):
        """An unknown kind is a programming error."""
        with self.assertRaises(ConfigurationError):
            self.manager.mint('bogusToken', 'abc')

    def test_secret_not_in_repr(self):
        """The secret never shows up in logs."""
        token = self.manager.mint(TokenKind.KEY_FETCH, 'abc', b'\xab' * 32)
        self.assertNotIn('ab' * 32, repr(token))
        self.assertNotIn(repr(b'\xab' * 32), repr(token))

    def test_mark_verified(self):
        """Verification yields a new, verified token with the same id."""
        token = self.manager.mint(TokenKind.SESSION_WITHOUT_DEVICE, 'abc')
        verified = token.mark_verified()
        self.assertFalse(token.verified)
        self.assertTrue(verified.verified)
        self.assertTrue(verified.token_verified)
        self.assertEqual(verified.id, token.id)
        self.assertTrue(verified.mark_verified().verified)

    def test_creation_response(self):
        """The creation response is the hex of the secret."""
        token = self.manager.mint(TokenKind.KEY_FETCH, 'abc', b'\x0f' * 4)
        self.assertEqual(tokens.creation_response(token), '0f0f0f0f')


class TestExpiry(TestCase):
    """Tests for expiry checks."""

    def setUp(self):
        self.manager = tokens.TokenManager({
            TokenKind.SESSION_WITHOUT_DEVICE: SESSION_LIFETIME,
            TokenKind.PASSWORD_FORGOT: 1000
        })
        self.now = 1500000000000

    def _session(self, created_at, token_id, device_id=None):
        return tokens.SessionToken(
            id=token_id, uid='abc', created_at=created_at,
            kind=TokenKind.SESSION_WITHOUT_DEVICE, data=b'',
            device_id=device_id
        )

    def test_boundary(self):
        """A token expires exactly when its lifetime has elapsed."""
        token = self.manager.mint(TokenKind.PASSWORD_FORGOT, 'abc',
                                  created_at=self.now)
        self.assertFalse(self.manager.is_expired(token, self.now))
        self.assertFalse(self.manager.is_expired(token, self.now + 999))
        self.assertTrue(self.manager.is_expired(token, self.now + 1000))

    def test_monotonic(self):
        """Once expired, always expired."""
        token = self.manager.mint(TokenKind.PASSWORD_FORGOT, 'abc',
                                  created_at=self.now)
        results = [self.manager.is_expired(token, self.now + offset)
                   for offset in range(0, 3000, 50)]
        first_expired = results.index(True)
        self.assertTrue(all(results[first_expired:]))

    def test_zero_lifetime(self):
        """Kinds with no lifetime configured never expire."""
        token = self.manager.mint(TokenKind.KEY_FETCH, 'abc', created_at=0)
        self.assertFalse(self.manager.is_expired(token, self.now))
        self.assertIsNone(self.manager.ttl(token, self.now))

    def test_device_sessions_never_expire(self):
        """A session bound to a device never expires."""
        token = self._session(0, 'qux', device_id='wibble')
        self.assertEqual(token.lifetime_class, TokenKind.SESSION_WITH_DEVICE)
        for now in (self.now, self.now * 10, SESSION_LIFETIME):
            self.assertFalse(self.manager.is_expired(token, now))

    def test_filter_live(self):
        """Expired device-less sessions are dropped, order is kept."""
        sessions = [
            self._session(self.now, 'foo'),
            self._session(self.now - SESSION_LIFETIME - 1, 'bar'),
            self._session(self.now - SESSION_LIFETIME + 1000, 'baz'),
            self._session(self.now - SESSION_LIFETIME - 1, 'qux',
                          device_id='wibble'),
        ]
        live = self.manager.filter_live(sessions, self.now)
        self.assertEqual([token.id for token in live], ['foo', 'baz', 'qux'])

    def test_filter_live_without_lifetime(self):
        """With a zero lifetime nothing is dropped."""
        manager = tokens.TokenManager({'sessionTokenWithoutDevice': 0})
        sessions = [self._session(0, 'foo'), self._session(1, 'bar')]
        self.assertEqual(manager.filter_live(sessions, self.now), sessions)

    def test_ttl(self):
        """Time to live counts down to zero."""
        token = self.manager.mint(TokenKind.PASSWORD_FORGOT, 'abc',
                                  created_at=self.now)
        self.assertEqual(self.manager.ttl(token, self.now + 400), 600)
        self.assertEqual(self.manager.ttl(token, self.now + 5000), 0)


class TestLifetimeTable(TestCase):
    """Tests for :class:`tokens.TokenManager` configuration."""

    def test_unknown_kind(self):
        """An unknown lifetime class is rejected up front."""
        with self.assertRaises(ConfigurationError):
            tokens.TokenManager({'sessionTokenWithCheese': 10})

    def test_negative_lifetime(self):
        """Negative durations are rejected."""
        with self.assertRaises(ConfigurationError):
            tokens.TokenManager({'keyFetchToken': -1})

    def test_lifetime_lookup(self):
        """Lookups accept both enum members and their values."""
        manager = tokens.TokenManager({'accountResetToken': 900000})
        self.assertEqual(manager.lifetime(TokenKind.ACCOUNT_RESET), 900000)
        self.assertEqual(manager.lifetime('accountResetToken'), 900000)
        with self.assertRaises(ConfigurationError):
            manager.lifetime('nope')


class TestRecords(TestCase):
    """Tests for :func:`tokens.session_from_record`."""

    def test_device_row(self):
        """A row with a device id becomes a device-bound session."""
        token = tokens.session_from_record({
            'tokenId': 'foo', 'uid': 'abc', 'createdAt': 10,
            'deviceId': 'wibble', 'tokenVerified': True
        })
        self.assertEqual(token.id, 'foo')
        self.assertEqual(token.kind, TokenKind.SESSION_WITH_DEVICE)
        self.assertTrue(token.token_verified)
        self.assertEqual(token.data, b'')

    def test_iso_timestamp(self):
        """ISO-8601 creation times are converted to epoch milliseconds."""
        token = tokens.session_from_record({
            'id': 'foo', 'createdAt': '1970-01-01T00:00:01+00:00'
        })
        self.assertEqual(token.created_at, 1000)
        self.assertIsNone(token.device_id)


class TestEnvelope(TestCase):
    """Tests for :func:`tokens.encode` and :func:`tokens.decode`."""

    def setUp(self):
        self.manager = tokens.TokenManager({})
        self.secret = 'foosecret'

    def test_claims(self):
        """The envelope carries metadata but not the secret."""
        token = self.manager.mint(TokenKind.SESSION_WITHOUT_DEVICE, 'abc',
                                  b'\x01' * 32, created_at=42)
        envelope = tokens.encode(token, self.secret)
        claims = tokens.decode(envelope, self.secret)
        self.assertEqual(claims['id'], token.id)
        self.assertEqual(claims['uid'], 'abc')
        self.assertEqual(claims['kind'], 'sessionTokenWithoutDevice')
        self.assertEqual(claims['created_at'], 42)
        self.assertNotIn('data', claims)
        self.assertNotIn('01' * 32, envelope)

    def test_wrong_secret(self):
        """A forged envelope is rejected."""
        token = self.manager.mint(TokenKind.KEY_FETCH, 'abc')
        envelope = tokens.encode(token, 'othersecret')
        with self.assertRaises(InvalidToken):
            tokens.decode(envelope, self.secret)

    def test_garbage(self):
        """Something that is not a JWT is rejected."""
        with self.assertRaises(InvalidToken):
            tokens.decode('not-a-token', self.secret)

    @mock.patch(f'{tokens.__name__}.config.TOKEN_ENVELOPE_SECRET', 'configured')
    def test_configured_secret(self):
        """Without an explicit secret the configured one is used."""
        token = self.manager.mint(TokenKind.KEY_FETCH, 'abc')
        envelope = tokens.encode(token)
        self.assertEqual(tokens.decode(envelope, 'configured')['uid'], 'abc')
