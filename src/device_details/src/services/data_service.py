from typing import List, Optional

import contextlib
import logging

import mongoengine
import pymongo.errors

from data.device_owners import DeviceOwner, PROFILE_DB_FIELDS
from data.devices import DeviceRecord, utcnow
from infrastructure.errors import NotFoundError, StoreError, ValidationError, WriteConflictError

"""
Device registry store: reads and writes of DeviceOwner documents.

Notes:
- Every write is a single document operation, so the device mutation and the
  owner's profile / lastUpdated fields land together or not at all.
- Writes that depend on an earlier read are compare-and-swap guarded against
  that read (see upsert_device). A failed guard raises WriteConflictError and
  the caller decides whether to re-read and retry.
- Driver and ODM failures are re-raised as StoreError; nothing is swallowed.
"""

log = logging.getLogger(__name__)


@contextlib.contextmanager
def _store_errors():
    try:
        yield
    except mongoengine.NotUniqueError as x:
        raise WriteConflictError('Owner record was created concurrently') from x
    except mongoengine.ValidationError as x:
        raise ValidationError(f'Invalid device record: {x}') from x
    except (mongoengine.OperationError, pymongo.errors.PyMongoError) as x:
        raise StoreError(f'Device store operation failed: {x}') from x


"""
Find the owner record for a user id.

Returns:
    The DeviceOwner or None if the user has never registered a device.
"""
def find_owner_by_user_id(user_id: str) -> Optional[DeviceOwner]:
    with _store_errors():
        return DeviceOwner.objects(user_id=user_id).first()


def find_owner_by_username(username: str) -> Optional[DeviceOwner]:
    with _store_errors():
        return DeviceOwner.objects(username=username).first()


def find_owner_by_device_uuid(device_uuid: str) -> Optional[DeviceOwner]:
    with _store_errors():
        return DeviceOwner.objects(devices__device_uuid=device_uuid).first()


"""
Write one device record together with the owner's profile fields.

Parameters:
    user_id: Owner key.
    device_index: Position of the device in snapshot.devices to update in
        place, or None to append a new device.
    device: The DeviceRecord carrying the new values. For in-place updates
        only its mutable fields are written; app_id and device_uuid stay as
        stored.
    profile: email, username, first_name, last_name.
    snapshot: The owner record the caller read and based its decision on,
        or None if no owner existed.

Guards (each a single atomic document operation):
    - no snapshot: insert; the unique userId index rejects a second creator.
    - append: only if devices still has the length seen in the snapshot.
      Device lists are append-only, so equal length means unchanged.
    - in place: only if devices.<index>.deviceUUID still names this device.

Raises:
    WriteConflictError when a guard does not match.
"""
def upsert_device(user_id: str, device_index: Optional[int], device: DeviceRecord,
                  profile: dict, snapshot: Optional[DeviceOwner] = None):
    # One timestamp for the device and the owner, so both lastUpdated fields match.
    now = utcnow()
    device.last_updated = now

    with _store_errors():
        # No owner yet: insert. A concurrent creator trips the unique userId index.
        if snapshot is None:
            owner = DeviceOwner(user_id=user_id, devices=[device],
                                created_at=now, last_updated=now, **profile)
            owner.save(force_insert=True) # Never an update of an existing document.
            log.debug("Created owner record for user %s", user_id)
            return

        # New device: $push guarded on the array length read in the snapshot.
        if device_index is None:
            updates = {f'set__{k}': v for k, v in profile.items()}
            updated = DeviceOwner.objects(user_id=user_id, devices__size=len(snapshot.devices)) \
                .update_one(push__devices=device, set__last_updated=now, **updates)
            # Zero matched: another device was appended since the snapshot.
            if not updated:
                raise WriteConflictError(f'Device list for user {user_id} changed during registration')
            log.debug("Appended device at position %s for user %s", len(snapshot.devices), user_id)
            return

        # Known device: positional element update, devices.<i>.<field>, guarded on
        # the element at <i> still being this device. app_id is not in the $set.
        prefix = f'devices.{device_index}.'
        query = {'userId': user_id, prefix + 'deviceUUID': device.device_uuid}
        changes = {prefix + k: v for k, v in device.mutable_values().items()}
        changes.update({PROFILE_DB_FIELDS[k]: v for k, v in profile.items()})
        changes['lastUpdated'] = now # Owner timestamp.

        updated = DeviceOwner.objects(__raw__=query).update_one(__raw__={'$set': changes})
        if not updated:
            raise WriteConflictError(f'Device at position {device_index} for user {user_id} changed during registration')
        log.debug("Updated device at position %s for user %s", device_index, user_id)


"""
Replace the push token of one device, matched by (user_id, device_uuid).

Only the token and the device / owner lastUpdated timestamps are written.
Raises NotFoundError, with nothing written, when no such device exists.
"""
def update_token(user_id: str, device_uuid: str, fcm_token: str):
    now = utcnow()
    with _store_errors():
        updated = DeviceOwner.objects(user_id=user_id, devices__device_uuid=device_uuid).update_one(
            set__devices__S__fcm_token=fcm_token,
            set__devices__S__last_updated=now,
            set__last_updated=now
        )

    if not updated:
        raise NotFoundError(f'No device {device_uuid} registered for user {user_id}', 'device-not-found')


def get_device_by_app_id(app_id: str) -> Optional[DeviceRecord]:
    owner = _find_owner_by_app_id(app_id)
    if not owner:
        return None
    return owner.find_device(app_id=app_id)


def _find_owner_by_app_id(app_id):
    with _store_errors():
        return DeviceOwner.objects(devices__app_id=app_id).first()


"""
All device records of a user, in registration order.

Returns an empty list when the user has no owner record.
"""
def get_devices_by_user_id(user_id: str) -> List[DeviceRecord]:
    owner = find_owner_by_user_id(user_id)
    return list(owner.devices) if owner else []


"""
Live, read-only view over a filtered DeviceOwner queryset.

Every iteration or first() re-reads the store, so a subscriber sees later
writes. Reads happen under _store_errors(), like every other store call.
"""
class OwnerView:
    def __init__(self, queryset):
        self._queryset = queryset

    def __iter__(self):
        # clone() so each read hits the store instead of the queryset's result cache.
        with _store_errors():
            owners = list(self._queryset.clone())
        return iter(owners)

    def first(self) -> Optional[DeviceOwner]:
        with _store_errors():
            return self._queryset.clone().first()


"""
Read-only projections backing the live subscriptions: the owner records
of one user, and the owner record holding one device.
"""
def owners_for_user(user_id: str) -> OwnerView:
    with _store_errors():
        return OwnerView(DeviceOwner.objects(user_id=user_id))


def owners_for_device(device_uuid: str) -> OwnerView:
    with _store_errors():
        return OwnerView(DeviceOwner.objects(devices__device_uuid=device_uuid))
