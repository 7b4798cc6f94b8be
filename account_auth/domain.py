"""Defines the account, device and request concepts used by the auth core."""

from typing import Any, Optional, NamedTuple, Dict, Callable, Mapping, \
    Union, get_type_hints
import typing

from . import util

LOGIN_EVENT = 'account.login'
"""Security event recorded for every password sign-in."""


class Account(NamedTuple):
    """An account record, as far as the auth core is concerned."""

    uid: str
    """Opaque account identifier (hex)."""

    email: str
    """The account's primary e-mail address."""

    email_verified: bool = False
    """Whether the primary address has been confirmed."""

    created_at: int = 0
    """Creation time, in epoch milliseconds."""


class SecurityEvent(NamedTuple):
    """An immutable entry in an account's security history."""

    name: str
    """Event kind, e.g. ``account.login``."""

    created_at: int
    """Epoch milliseconds."""

    verified: bool = False
    """Whether the session that produced the event was confirmed."""


class DeviceInfo(NamedTuple):
    """
    Device fields as supplied by a client.

    Every field is optional; ``None`` means "not supplied", which matters for
    updates (only supplied fields are written) and for deciding whether a new
    device is a placeholder.
    """

    name: Optional[str] = None
    type: Optional[str] = None
    push_callback: Optional[str] = None
    push_public_key: Optional[str] = None
    push_auth_key: Optional[str] = None
    ua_browser: Optional[str] = None
    ua_browser_version: Optional[str] = None
    ua_os: Optional[str] = None
    ua_os_version: Optional[str] = None
    ua_form_factor: Optional[str] = None

    def supplied(self) -> Dict[str, Any]:
        """The fields that were actually supplied."""
        return {k: v for k, v in self._asdict().items() if v is not None}


class NewDevice(NamedTuple):
    """A device that the store has not seen yet."""

    info: DeviceInfo


class ExistingDevice(NamedTuple):
    """A known device whose fields should be updated."""

    id: str
    info: DeviceInfo


DeviceUpsert = Union[NewDevice, ExistingDevice]


class DeviceRecord(NamedTuple):
    """A device as held by the account store."""

    id: str
    """Store-assigned identifier (hex)."""

    info: DeviceInfo = DeviceInfo()

    created_at: Optional[int] = None
    """Set by the store on creation; absent on update results."""

    @property
    def name(self) -> Optional[str]:
        """The human-readable device name, if any."""
        return self.info.name

    @property
    def type(self) -> Optional[str]:
        """Device type, e.g. ``mobile`` or ``desktop``."""
        return self.info.type


class RequestContext(NamedTuple):
    """The parts of an incoming request that the auth core reads."""

    service: Optional[str] = None
    """Relying service the client is signing in to, e.g. ``sync``."""

    user_agent: str = ''

    is_suspicious: bool = False
    """Computed upstream from IP reputation."""


# Helpers and private functions.


def from_dict(cls: type, data: Mapping[str, Any]) -> Any:
    """
    Generate a NamedTuple instance from a store row.

    Keys that ``cls`` does not declare are ignored, so raw store payloads can
    be passed straight in.

    Parameters
    ----------
    cls: type
        Any NamedTuple class.

    data: dict
        Data with which to instantiate ``cls``.

    Returns
    -------
    NamedTuple
        An instance of ``cls``.
    """
    _data = {}
    for field, field_type in get_type_hints(cls).items():
        if field not in data:
            continue
        value = data[field]
        target_type = _get_cast_type(field_type, value)
        if target_type:
            value = target_type(value)
        _data[field] = value
    return cls(**_data)


def _get_cast_type(field_type: Any, value: Any) -> Optional[Callable]:
    """
    Get a casting callable for a field type/value.

    Integer fields in this model are all timestamps, so string values bound
    for them are parsed as such.
    """
    if typing.get_origin(field_type) is Union:
        candidates = typing.get_args(field_type)
    else:
        candidates = (field_type,)
    if type(value) is str and int in candidates and str not in candidates:
        return util.to_epoch_ms
    return None
