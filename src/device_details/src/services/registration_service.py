"""
Device registration: validate the payload, decide create / update / append,
and hand a single write to the data service.

The read of the owner record and the conditional write are not atomic with
each other. data_service guards each write against the record it was decided
on; when a guard fails, registration re-reads and decides again, up to
settings.register_max_attempts times.
"""
from typing import Optional

import datetime
import logging

import pydantic
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr

import infrastructure.config as config
import services.data_service as svc
from data.device_owners import PROFILE_FIELDS
from data.devices import DEFAULT_APPROVAL_STATUS, DeviceRecord
from infrastructure.app_id import generate_app_id
from infrastructure.errors import ValidationError, WriteConflictError

log = logging.getLogger(__name__)


"""
Registration data as sent by the client.

Keys arrive camelCase (userId, deviceUUID, ...); extra keys are ignored.
Strict types: a number where a string is expected is an error, not coerced.
"""
class RegistrationPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    # Keys and app id inputs; must be non-empty.
    username: StrictStr = Field(alias='username', min_length=1)
    user_id: StrictStr = Field(alias='userId', min_length=1)
    device_uuid: StrictStr = Field(alias='deviceUUID', min_length=1)

    # Opaque values, stored as given.
    biometric_secret: StrictStr = Field(alias='biometricSecret')
    fcm_token: StrictStr = Field(alias='fcmToken')

    # Owner profile.
    email: StrictStr = Field(alias='email')
    first_name: StrictStr = Field(alias='firstName')
    last_name: StrictStr = Field(alias='lastName')

    # Optional; defaults are applied at registration, not here.
    approval_status: Optional[StrictStr] = Field(default=None, alias='approvalStatus')
    is_primary: Optional[StrictBool] = Field(default=None, alias='isPrimary')

    @property
    def profile(self) -> dict:
        return {name: getattr(self, name) for name in PROFILE_FIELDS}


"""
Turn a raw payload into a RegistrationPayload.

Raises ValidationError naming every missing or mistyped field. Nothing is
read from or written to the store before this passes.
"""
def validate_payload(payload) -> RegistrationPayload:
    if isinstance(payload, RegistrationPayload):
        return payload
    if not isinstance(payload, dict):
        raise ValidationError(f'Registration payload must be an object, got {type(payload).__name__}')

    try:
        return RegistrationPayload.model_validate(payload)
    except pydantic.ValidationError as x:
        # loc holds the alias, e.g. ('userId',).
        fields = ', '.join('.'.join(str(p) for p in e['loc']) for e in x.errors())
        raise ValidationError(f'Invalid registration payload: {fields}') from x


"""
Register or re-register a device for a user and return its app id.

A new user gets an owner record with this one device. A known device
keeps its stored app id while its secret, token, approval status and
primary flag are overwritten. An unknown device for a known user is
appended with a newly generated app id. The owner profile fields are
refreshed in every case.

Raises:
    ValidationError before any store access.
    WriteConflictError if every attempt lost a race.
    StoreError for any other store failure, unretried.
"""
def register(payload) -> str:
    data = validate_payload(payload)
    log.info("Registering device %s for user %s", data.device_uuid, data.user_id)

    attempts = config.settings.register_max_attempts
    for attempt in range(1, attempts + 1):
        try:
            return _register_once(data)
        except WriteConflictError:
            # Lost a race; re-read and decide again, unless out of attempts.
            if attempt == attempts:
                log.warning("Registration of device %s for user %s conflicted %s times, giving up",
                            data.device_uuid, data.user_id, attempts)
                raise
            log.info("Registration of device %s for user %s conflicted, retrying (attempt %s)",
                     data.device_uuid, data.user_id, attempt + 1)


"""One read-decide-write pass. Exactly one upsert_device call."""
def _register_once(data: RegistrationPayload) -> str:
    owner = svc.find_owner_by_user_id(data.user_id) # Snapshot the write is guarded against.

    # An empty approval status counts as absent.
    approval_status = data.approval_status or DEFAULT_APPROVAL_STATUS
    is_primary = data.is_primary if data.is_primary is not None else False

    device = DeviceRecord(
        device_uuid=data.device_uuid,
        biometric_secret=data.biometric_secret,
        fcm_token=data.fcm_token,
        approval_status=approval_status,
        is_primary=is_primary,
    )

    # First device ever for this user: create the owner record.
    if owner is None:
        device.app_id = _new_app_id(data)
        log.info("No owner record for user %s, creating one", data.user_id)
        svc.upsert_device(data.user_id, None, device, data.profile)
        return device.app_id

    idx = owner.device_index(data.device_uuid)
    if idx != -1:
        # Existing device: the stored app id is kept, never regenerated.
        device.app_id = owner.devices[idx].app_id
        log.info("Device %s already registered for user %s, updating it", data.device_uuid, data.user_id)
        svc.upsert_device(data.user_id, idx, device, data.profile, snapshot=owner)
        return device.app_id

    # Known user, new device: append with a fresh app id.
    device.app_id = _new_app_id(data)
    log.info("Adding device %s to existing user %s", data.device_uuid, data.user_id)
    svc.upsert_device(data.user_id, None, device, data.profile, snapshot=owner)
    return device.app_id


def _new_app_id(data: RegistrationPayload) -> str:
    timestamp = datetime.datetime.now(datetime.timezone.utc).isoformat()
    return generate_app_id(data.device_uuid, data.username, timestamp)
