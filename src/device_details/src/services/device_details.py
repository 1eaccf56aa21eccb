from typing import List, Optional

import services.data_service as svc
import services.lookup_service as lookup
import services.registration_service as registration
from data.devices import DeviceRecord
from infrastructure.errors import ValidationError

"""
Operations offered to collaborators (registration flow, push dispatch,
biometric verification), named after the logical deviceDetails.* methods.

Every operation checks its string arguments before touching the store.
METHODS maps the logical names to the handlers for a transport that
dispatches by name.
"""


def _check_str(name, value):
    if not isinstance(value, str):
        raise ValidationError(f'{name} must be a string, got {type(value).__name__}')


"""deviceDetails.register: register a device; returns {'appId': ...}."""
def register(payload) -> dict:
    return {'appId': registration.register(payload)}


"""deviceDetails.updateToken: acknowledges with True, NotFoundError if no such device."""
def update_token(user_id: str, device_uuid: str, fcm_token: str) -> bool:
    _check_str('userId', user_id)
    _check_str('deviceUUID', device_uuid)
    _check_str('fcmToken', fcm_token)

    svc.update_token(user_id, device_uuid, fcm_token)
    return True


def get_fcm_token_by_username(username: str) -> List[str]:
    _check_str('username', username)
    return lookup.tokens_by_username(username)


def get_fcm_token_by_device_id(device_uuid: str) -> str:
    _check_str('deviceUUID', device_uuid)
    return lookup.token_by_device_uuid(device_uuid)


def get_by_app_id(app_id: str) -> Optional[DeviceRecord]:
    _check_str('appId', app_id)
    return lookup.device_by_app_id(app_id)


def get_by_user_id(user_id: str) -> List[DeviceRecord]:
    _check_str('userId', user_id)
    return svc.get_devices_by_user_id(user_id)


"""
Live views: deviceDetails.byUser and deviceDetails.byDevice.

The returned data_service.OwnerView objects are filtered projections of
the owner collection; a subscriber re-iterates them to observe changes.
Store failures during a read surface as StoreError.
"""
def subscribe_by_user(user_id: str):
    _check_str('userId', user_id)
    return svc.owners_for_user(user_id)


def subscribe_by_device(device_uuid: str):
    _check_str('deviceUUID', device_uuid)
    return svc.owners_for_device(device_uuid)


METHODS = {
    'deviceDetails.register': register,
    'deviceDetails.updateToken': update_token,
    'deviceDetails.getFCMTokenByUsername': get_fcm_token_by_username,
    'deviceDetails.getFCMTokenByDeviceId': get_fcm_token_by_device_id,
    'deviceDetails.getByAppId': get_by_app_id,
    'deviceDetails.getByUserId': get_by_user_id,
}

PUBLICATIONS = {
    'deviceDetails.byUser': subscribe_by_user,
    'deviceDetails.byDevice': subscribe_by_device,
}
