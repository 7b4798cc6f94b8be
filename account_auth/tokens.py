"""
Typed secret tokens and their lifetimes.

Every token is backed by random secret material. The token's lookup id is a
keyed digest of that secret, so handing the same secret to :meth:`mint` twice
yields the same id; this is what lets a partially-completed flow be resumed.
The secret itself is only ever exposed by :func:`creation_response`.
"""

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import jwt

from . import config, util
from .exceptions import ConfigurationError, InvalidToken

logger = logging.getLogger(__name__)

SECRET_BYTES = 32


class TokenKind(str, Enum):
    """Lifetime classes of token."""

    SESSION_WITH_DEVICE = 'sessionTokenWithDevice'
    SESSION_WITHOUT_DEVICE = 'sessionTokenWithoutDevice'
    KEY_FETCH = 'keyFetchToken'
    PASSWORD_FORGOT = 'passwordForgotToken'
    PASSWORD_CHANGE = 'passwordChangeToken'
    ACCOUNT_RESET = 'accountResetToken'


SESSION_KINDS = (TokenKind.SESSION_WITH_DEVICE, TokenKind.SESSION_WITHOUT_DEVICE)


def token_kind(kind: Union[str, TokenKind]) -> TokenKind:
    """Coerce ``kind`` to a :class:`TokenKind`."""
    try:
        return TokenKind(kind)
    except ValueError as e:
        raise ConfigurationError(f'Unknown token kind: {kind}') from e


@dataclass(frozen=True)
class Token:
    """A secret-bearing token."""

    id: str
    uid: str
    created_at: int
    kind: TokenKind
    data: bytes = field(repr=False, compare=False)
    verified: bool = False

    @property
    def lifetime_class(self) -> TokenKind:
        """The entry in the lifetime table that governs expiry."""
        return self.kind

    def mark_verified(self) -> 'Token':
        """Get a copy with the verified flag set. There is no way back."""
        return replace(self, verified=True)


@dataclass(frozen=True)
class SessionToken(Token):
    """A session token, optionally bound to a device."""

    device_id: Optional[str] = None

    @property
    def token_verified(self) -> bool:
        """Whether the owning login has been confirmed out of band."""
        return self.verified

    @property
    def lifetime_class(self) -> TokenKind:
        if self.device_id:
            return TokenKind.SESSION_WITH_DEVICE
        return TokenKind.SESSION_WITHOUT_DEVICE


@dataclass(frozen=True)
class PasswordForgotToken(Token):
    """A password reset in progress, carrying the code that was mailed."""

    pass_code: bytes = field(default=b'', repr=False, compare=False)
    tries: int = 0


_TOKEN_CLASSES = {
    TokenKind.SESSION_WITH_DEVICE: SessionToken,
    TokenKind.SESSION_WITHOUT_DEVICE: SessionToken,
    TokenKind.PASSWORD_FORGOT: PasswordForgotToken,
}


def derive_id(kind: Union[str, TokenKind], secret: bytes) -> str:
    """
    Derive the lookup id for a token from its secret.

    Both session kinds share a label, so binding a device to a session (which
    changes its lifetime class) does not change its id.
    """
    kind = token_kind(kind)
    label = 'sessionToken' if kind in SESSION_KINDS else kind.value
    return hmac.new(label.encode('ascii'), secret, hashlib.sha256).hexdigest()


class TokenManager(object):
    """Mints tokens and answers expiry questions against a lifetime table."""

    def __init__(self, lifetimes: Mapping[Union[str, TokenKind], int]) -> None:
        """
        Validate and hold the lifetime table.

        Parameters
        ----------
        lifetimes : mapping
            Milliseconds per :class:`TokenKind`; 0 means "does not expire".
            Kinds missing from the table do not expire.

        Raises
        ------
        :class:`ConfigurationError`
            If the table names an unknown kind or a negative duration.

        """
        self._lifetimes: Dict[TokenKind, int] = {}
        for kind, duration in lifetimes.items():
            if int(duration) < 0:
                raise ConfigurationError(f'Negative lifetime for {kind}')
            self._lifetimes[token_kind(kind)] = int(duration)

    @classmethod
    def from_policy(cls, policy: Any) -> 'TokenManager':
        """Build a manager from a :class:`.PolicySnapshot`."""
        return cls(policy.token_lifetimes)

    def lifetime(self, kind: Union[str, TokenKind]) -> int:
        """Configured duration for ``kind``, in milliseconds."""
        return self._lifetimes.get(token_kind(kind), 0)

    def mint(self, kind: Union[str, TokenKind], uid: str,
             secret: Optional[bytes] = None,
             created_at: Optional[int] = None, **extra: Any) -> Token:
        """
        Create a token.

        Parameters
        ----------
        kind : :class:`TokenKind` or str
        uid : str
            The owning account.
        secret : bytes
            Secret material. Fresh random bytes are used if not provided.
        created_at : int
            Epoch milliseconds; defaults to now.
        extra
            Kind-specific fields, e.g. ``device_id`` for session tokens or
            ``pass_code`` for password-forgot tokens.

        Returns
        -------
        :class:`Token`

        """
        kind = token_kind(kind)
        if secret is None:
            secret = secrets.token_bytes(SECRET_BYTES)
        if created_at is None:
            created_at = util.now()
        token_class = _TOKEN_CLASSES.get(kind, Token)
        token = token_class(id=derive_id(kind, secret), uid=uid,
                            created_at=created_at, kind=kind, data=secret,
                            **extra)
        logger.debug('Minted %s %s for %s', kind.value, token.id, uid)
        return token

    def is_expired(self, token: Token, now: Optional[int] = None) -> bool:
        """
        Whether ``token`` has outlived its lifetime class.

        Session tokens bound to a device never expire.
        """
        if isinstance(token, SessionToken) and token.device_id:
            return False
        lifetime = self.lifetime(token.lifetime_class)
        if lifetime == 0:
            return False
        if now is None:
            now = util.now()
        return now - token.created_at >= lifetime

    def filter_live(self, tokens: Iterable[Token],
                    now: Optional[int] = None) -> List[Token]:
        """Drop expired tokens, preserving order."""
        if now is None:
            now = util.now()
        return [token for token in tokens if not self.is_expired(token, now)]

    def ttl(self, token: Token, now: Optional[int] = None) -> Optional[int]:
        """
        Milliseconds until ``token`` expires.

        Returns ``None`` for tokens that do not expire, and 0 for tokens that
        already have.
        """
        if isinstance(token, SessionToken) and token.device_id:
            return None
        lifetime = self.lifetime(token.lifetime_class)
        if lifetime == 0:
            return None
        if now is None:
            now = util.now()
        return max(token.created_at + lifetime - now, 0)


def session_from_record(record: Mapping[str, Any]) -> SessionToken:
    """
    Build a :class:`SessionToken` from an account-store session row.

    Rows carry no secret material; ``data`` is left empty.
    """
    device_id = record.get('deviceId') or None
    kind = TokenKind.SESSION_WITH_DEVICE if device_id \
        else TokenKind.SESSION_WITHOUT_DEVICE
    return SessionToken(
        id=record.get('tokenId') or record['id'],
        uid=record.get('uid', ''),
        created_at=util.to_epoch_ms(record['createdAt']),
        kind=kind,
        data=b'',
        verified=bool(record.get('tokenVerified', False)),
        device_id=device_id
    )


def creation_response(token: Token) -> str:
    """Hex encoding of the secret, for the response that creates a token."""
    return token.data.hex()


def encode(token: Token, secret: Optional[str] = None) -> str:
    """Encode token metadata (never its secret) as a signed JWT."""
    if secret is None:
        secret = config.TOKEN_ENVELOPE_SECRET
    claims: Dict[str, Any] = {
        'id': token.id,
        'uid': token.uid,
        'kind': token.kind.value,
        'created_at': token.created_at,
        'verified': token.verified,
    }
    if isinstance(token, SessionToken) and token.device_id:
        claims['device_id'] = token.device_id
    return jwt.encode(claims, secret, algorithm='HS256')


def decode(envelope: str, secret: Optional[str] = None) -> Dict[str, Any]:
    """Decode a token metadata envelope produced by :func:`encode`."""
    if secret is None:
        secret = config.TOKEN_ENVELOPE_SECRET
    try:
        claims: Dict[str, Any] = jwt.decode(envelope, secret,
                                            algorithms=['HS256'])
    except jwt.exceptions.InvalidTokenError as e:
        raise InvalidToken('Not a valid token envelope') from e
    if claims.get('kind') not in {kind.value for kind in TokenKind}:
        raise InvalidToken(f'Unknown token kind: {claims.get("kind")}')
    return claims
