"""Process-wide CLI session state.

Exposes:
- active_owner: Optional[DeviceOwner] - the owner record the CLI session is working with.
- reload_owner(): Refresh active_owner from the store using its user id.
"""

from typing import Optional

from data.device_owners import DeviceOwner
import services.data_service as svc

# None until a device is registered or a user is selected.
active_owner: Optional[DeviceOwner] = None

"""Refresh the global active_owner from the database, if one is set.

    Owner records are never deleted, so a set active_owner always reloads
    to a record; it just picks up newer devices, tokens and profile fields.
"""
def reload_owner():
    global active_owner
    if not active_owner:
        return

    active_owner = svc.find_owner_by_user_id(active_owner.user_id)
