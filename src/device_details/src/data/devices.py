"""
MongoEngine EmbeddedDocument representing a single registered device.

This model is embedded inside a DeviceOwner document. Keeping device records
inside the owner's document lets one atomic update carry both the device change
and the owner's profile and timestamp fields.
"""
import datetime
import mongoengine

DEFAULT_APPROVAL_STATUS = 'approved'


def utcnow():
    # Naive UTC, which is what MongoDB hands back for stored dates.
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


# Fields a re-registration of the same device is allowed to overwrite.
# device_uuid and app_id are identity and never change once stored.
MUTABLE_FIELDS = ('biometric_secret', 'fcm_token', 'approval_status', 'is_primary', 'last_updated')

"""
One physical device / app installation registered by an owner.

    Fields:
        device_uuid: Client-supplied device identifier, unique within an owner.
        app_id: Generated identifier (see infrastructure.app_id); assigned once.

        biometric_secret: Opaque secret produced by the registering client.
                Stored and returned unmodified, rotated on re-registration.
        fcm_token: Push-notification delivery token.

        approval_status: Free-form status string, 'approved' by default.
        is_primary: Whether this is the owner's primary device.
        last_updated: When any field of this record last changed.

    Notes:
    - db_field names keep the camelCase layout other consumers of the
        'deviceDetails' collection read (devices.deviceUUID, devices.appId, ...).
"""
class DeviceRecord(mongoengine.EmbeddedDocument):
    # Identity.
    device_uuid = mongoengine.StringField(required=True, db_field='deviceUUID')
    app_id = mongoengine.StringField(required=True, db_field='appId')

    # Secrets and delivery.
    biometric_secret = mongoengine.StringField(required=True, db_field='biometricSecret')
    fcm_token = mongoengine.StringField(required=True, db_field='fcmToken')

    approval_status = mongoengine.StringField(default=DEFAULT_APPROVAL_STATUS, db_field='approvalStatus')
    is_primary = mongoengine.BooleanField(default=False, db_field='isPrimary')

    last_updated = mongoengine.DateTimeField(default=utcnow, db_field='lastUpdated')

    """
    Return the raw {db_field: value} pairs for the fields a re-registration
    overwrites. Used to build positional array-element updates.
    """
    def mutable_values(self):
        son = self.to_mongo()
        values = {}
        for name in MUTABLE_FIELDS:
            db_name = self._fields[name].db_field
            if db_name in son:
                values[db_name] = son[db_name]
        return values
