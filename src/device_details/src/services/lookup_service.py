"""
Read paths for push dispatch and biometric re-authentication.

Username and device uuid lookups raise NotFoundError when nothing matches;
app id lookup returns None instead. Callers depend on that difference.
"""
from typing import List, Optional

import logging

import services.data_service as svc
from data.devices import DeviceRecord
from infrastructure.errors import NotFoundError

log = logging.getLogger(__name__)


"""
Push tokens of every device owned by username, in registration order.

Raises NotFoundError (invalid-username) when no owner has that username.
"""
def tokens_by_username(username: str) -> List[str]:
    owner = svc.find_owner_by_username(username)
    if not owner:
        raise NotFoundError('No device found with this Username', 'invalid-username')

    log.debug("Resolved %s device tokens for username %s", len(owner.devices), username)
    return [d.fcm_token for d in owner.devices]


def token_by_device_uuid(device_uuid: str) -> str:
    owner = svc.find_owner_by_device_uuid(device_uuid)
    if not owner:
        raise NotFoundError('No device found with this Device ID', 'invalid-device-id')

    return owner.find_device(device_uuid=device_uuid).fcm_token


def device_by_app_id(app_id: str) -> Optional[DeviceRecord]:
    return svc.get_device_by_app_id(app_id)
