"""
Binds devices to session tokens.

A device upsert either registers a new device or updates an existing one; the
choice is made once, by :func:`parse_device`, and carried as a
:class:`.NewDevice` or :class:`.ExistingDevice`. Notifications only follow a
successful store write: if the store call raises, nothing is emitted.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from .app_logging import ActivityLog
from .domain import DeviceInfo, DeviceRecord, DeviceUpsert, ExistingDevice, \
    NewDevice, RequestContext
from .services import AccountStore, AttachedServices, PushNotifier
from .tokens import SessionToken

logger = logging.getLogger(__name__)

_PAYLOAD_FIELDS = {
    'name': 'name',
    'type': 'type',
    'pushCallback': 'push_callback',
    'pushPublicKey': 'push_public_key',
    'pushAuthKey': 'push_auth_key',
    'uaBrowser': 'ua_browser',
    'uaBrowserVersion': 'ua_browser_version',
    'uaOS': 'ua_os',
    'uaOSVersion': 'ua_os_version',
    'uaFormFactor': 'ua_form_factor',
}


def parse_device(payload: Mapping[str, Any]) -> DeviceUpsert:
    """
    Turn a request payload into a device upsert.

    A payload with an ``id`` updates that device; anything else creates one.
    Keys may be given in their wire (camelCase) or Python spelling; unknown
    keys are dropped.
    """
    fields: Dict[str, Any] = {}
    for key, value in payload.items():
        field = _PAYLOAD_FIELDS.get(key, key)
        if field in DeviceInfo._fields:
            fields[field] = value
    info = DeviceInfo(**fields)
    if payload.get('id'):
        return ExistingDevice(id=payload['id'], info=info)
    return NewDevice(info=info)


def _phrase(name: Optional[str], version: Optional[str]) -> str:
    if not name:
        return ''
    if version:
        return f'{name} {version}'
    return name


def synthesize_name(info: DeviceInfo) -> str:
    """
    Build a human-readable device name from user-agent facts.

    The browser phrase is the browser name and version; the OS phrase is the
    OS name and version, unless a form factor is known, which replaces it. A
    version without a name contributes nothing. The two phrases are joined
    with ``", "``.

    >>> synthesize_name(DeviceInfo(ua_browser='Firefox',
    ...                            ua_browser_version='58',
    ...                            ua_os='Windows', ua_os_version='10'))
    'Firefox 58, Windows 10'
    """
    browser = _phrase(info.ua_browser, info.ua_browser_version)
    system = _phrase(info.ua_os, info.ua_os_version)
    if info.ua_form_factor:
        system = info.ua_form_factor
    return ', '.join(phrase for phrase in (browser, system) if phrase)


class DeviceRegistry(object):
    """Creates and updates device records and emits the matching events."""

    def __init__(self, log: ActivityLog, store: AccountStore,
                 push: PushNotifier,
                 attached_services: AttachedServices) -> None:
        self._log = log
        self._store = store
        self._push = push
        self._attached_services = attached_services

    async def upsert(self, request: RequestContext,
                     session_token: SessionToken,
                     device: DeviceUpsert) -> DeviceRecord:
        """
        Create or update the device bound to ``session_token``.

        Parameters
        ----------
        request : :class:`.RequestContext`
        session_token : :class:`.SessionToken`
        device : :class:`.NewDevice` or :class:`.ExistingDevice`

        Returns
        -------
        :class:`.DeviceRecord`
            For updates, the supplied fields, unchanged; for creations, the
            record returned by the store.

        Raises
        ------
        :class:`.UpstreamUnavailable`
            If a collaborator fails. A device that was created before a
            notification failed stays created.

        """
        if isinstance(device, ExistingDevice):
            return await self._update(request, session_token, device)
        return await self._create(request, session_token, device)

    async def _update(self, request: RequestContext,
                      session_token: SessionToken,
                      device: ExistingDevice) -> DeviceRecord:
        uid = session_token.uid
        await self._store.update_device(uid, session_token.id, device.id,
                                        device.info)
        self._log.activity_event(
            self._activity('device.updated', request, uid, device.id, False)
        )
        return DeviceRecord(id=device.id, info=device.info)

    async def _create(self, request: RequestContext,
                      session_token: SessionToken,
                      device: NewDevice) -> DeviceRecord:
        uid = session_token.uid
        info = device.info
        is_placeholder = not info.name
        record = await self._store.create_device(uid, session_token.id, info)
        logger.debug('Created device %s for %s', record.id, uid)

        self._log.activity_event(
            self._activity('device.created', request, uid, record.id,
                           is_placeholder)
        )
        if is_placeholder:
            self._log.info({
                'op': 'device:createPlaceholder',
                'uid': uid,
                'id': record.id
            })

        await self._attached_services.notify('device:create', request, {
            'uid': uid,
            'id': record.id,
            'type': info.type,
            'timestamp': record.created_at,
            'isPlaceholder': is_placeholder
        })

        # Until the session is verified, the user has not proven control of
        # the account, so the other devices must not hear about this one.
        if session_token.token_verified:
            devices = await self._store.devices(uid)
            name = info.name or synthesize_name(info)
            await self._push.notify_device_connected(uid, devices, name,
                                                     record.id)
        return record

    def _activity(self, event: str, request: RequestContext, uid: str,
                  device_id: str, is_placeholder: bool) -> Dict[str, Any]:
        return {
            'event': event,
            'service': request.service,
            'userAgent': request.user_agent,
            'uid': uid,
            'device_id': device_id,
            'is_placeholder': is_placeholder
        }
