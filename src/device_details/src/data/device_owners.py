"""
MongoEngine Document representing the owner of one or more devices.

Each DeviceOwner record stores the user's profile fields and an embedded,
ordered list of DeviceRecord entries (registration order). There is exactly
one DeviceOwner per user_id.
"""
import mongoengine

# See data.devices.DeviceRecord for the per-device fields.
from data.devices import DeviceRecord, utcnow

# Owner fields every registration overwrites.
PROFILE_FIELDS = ('email', 'username', 'first_name', 'last_name')

"""
DeviceOwner document stored in the 'deviceDetails' collection (db alias: 'core').

Fields:
    user_id: External user identifier; unique and immutable once created.
    email, username, first_name, last_name: Profile fields, overwritten on
        every registration call.
    devices: Embedded list of DeviceRecord documents.
    created_at: Set once when the owner is first registered.
    last_updated: Bumped on every mutation to the owner or any device.

Notes:
    - Indexes are declared here but built explicitly at startup through
        data.mongo_setup.ensure_indexes(); auto_create_index is off so no
        request path ever triggers index creation.
    - The unique user_id index is also what makes concurrent first
        registrations for the same user safe: the loser gets NotUniqueError.
"""
class DeviceOwner(mongoengine.Document):
    user_id = mongoengine.StringField(required=True, db_field='userId')

    email = mongoengine.StringField(required=True)
    username = mongoengine.StringField(required=True)
    first_name = mongoengine.StringField(required=True, db_field='firstName')
    last_name = mongoengine.StringField(required=True, db_field='lastName')

    devices = mongoengine.EmbeddedDocumentListField(DeviceRecord)

    created_at = mongoengine.DateTimeField(default=utcnow, db_field='createdAt')
    last_updated = mongoengine.DateTimeField(default=utcnow, db_field='lastUpdated')

    meta = {
        'db_alias': 'core',
        'collection': 'deviceDetails',
        'auto_create_index': False,
        'indexes': [
            {'fields': ['user_id'], 'unique': True},
            'username',
            'devices.device_uuid',
            'devices.app_id',
            'devices.biometric_secret',
            ('user_id', 'devices.device_uuid'),
            ('user_id', 'devices.app_id'),
        ]
    }

    """Index of the device with this uuid in self.devices, or -1."""
    def device_index(self, device_uuid: str) -> int:
        for idx, device in enumerate(self.devices):
            if device.device_uuid == device_uuid:
                return idx
        return -1

    def find_device(self, **kwargs):
        for device in self.devices:
            if all(getattr(device, k) == v for k, v in kwargs.items()):
                return device
        return None


# Profile attribute -> persisted key, read off the field declarations above.
PROFILE_DB_FIELDS = {name: DeviceOwner._fields[name].db_field for name in PROFILE_FIELDS}
