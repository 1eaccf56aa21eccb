import secrets
import uuid

from colorama import Fore
from switchlang import switch

import infrastructure.state as state
import services.data_service as svc
import services.device_details as api
from infrastructure.errors import DeviceDetailsError


"""
Device registration CLI workflow.

This module provides the interactive command loop a registration client or an
operator uses against the device registry:
- Registering (or re-registering) a device for a user.
- Updating a device's push token.
- Resolving push tokens by username or device, and devices by app id or user.
- Printing the live subscription views for a user or a device.

Conventions:
- Uses switchlang.switch for a case-like control flow pattern.
- Uses infrastructure.state.active_owner as the default user for commands.
- Delegates to services.device_details (api); single owner reads use
  services.data_service (svc) directly.
- Any DeviceDetailsError is shown with error_msg and the loop continues.
"""

"""
Entry point for the device workflow loop.

Prints a banner and available commands, then processes user input in a loop
until the user exits the app.
"""
def run():
    print(' ****************** Device registry **************** ')
    print()

    show_commands()

    while True:
        action = get_action()

        try:
            with switch(action) as s:
                s.case('r', register_device)
                s.case('s', select_user)
                s.case('t', update_token)
                s.case('n', tokens_for_username)
                s.case('d', token_for_device)
                s.case('a', device_for_app_id)
                s.case('l', list_devices)
                s.case('w', watch_user)
                s.case('e', watch_device)
                s.case(['x', 'bye', 'exit', 'exit()'], exit_app)
                s.case('?', show_commands)
                s.case('', lambda: None)
                s.default(unknown_command)
        except DeviceDetailsError as x:
            error_msg(f'ERROR: {x.reason}')

        state.reload_owner()

        if action:
            print()


def show_commands():
    print('What action would you like to take:')
    print('[R]egister a device')
    print('[S]elect a user')
    print('Update a device [t]oken')
    print('Push tokens for a user[n]ame')
    print('Push token for a [d]evice')
    print('Device for an [a]pp id')
    print('[L]ist devices for a user')
    print('[W]atch a user record')
    print('Watch a d[e]vice record')
    print('e[X]it app')
    print('[?] Help (this info)')
    print()


"""
Collect registration data and register the device.

The biometric secret is generated here, on the registering side, and sent
with the rest of the payload; the registry stores it as-is. Empty device
uuid input generates a fresh uuid4.

Side effects:
- Sets state.active_owner to the registered user.
"""
def register_device():
    print(' ****************** REGISTER DEVICE **************** ')

    user_id = input('User id? ').strip()
    if not user_id:
        error_msg('Cancelled')
        return

    device_uuid = input('Device uuid [enter for new]? ').strip() or str(uuid.uuid4())

    payload = {
        'userId': user_id,
        'deviceUUID': device_uuid,
        'username': input('Username? ').strip(),
        'email': input('Email? ').strip().lower(),
        'firstName': input('First name? ').strip(),
        'lastName': input('Last name? ').strip(),
        'fcmToken': input('Push token? ').strip(),
        'biometricSecret': secrets.token_urlsafe(32),
        'isPrimary': input('Primary device [y, n]? ').lower().startswith('y'),
    }

    approval_status = input('Approval status [approved]? ').strip()
    if approval_status:
        payload['approvalStatus'] = approval_status

    result = api.register(payload)

    state.active_owner = svc.find_owner_by_user_id(user_id)
    success_msg(f"Registered device {device_uuid} with app id {result['appId']}.")


def select_user():
    user_id = input('User id? ').strip()
    owner = svc.find_owner_by_user_id(user_id)
    if not owner:
        error_msg(f'No devices registered for user {user_id}.')
        return

    state.active_owner = owner
    success_msg(f'Selected {owner.username} ({len(owner.devices)} devices).')


def update_token():
    print(' ****************** UPDATE TOKEN **************** ')

    user_id = ask_user_id()
    device_uuid = input('Device uuid? ').strip()
    fcm_token = input('New push token? ').strip()
    if not device_uuid or not fcm_token:
        error_msg('Cancelled')
        return

    api.update_token(user_id, device_uuid, fcm_token)
    success_msg(f'Token updated for device {device_uuid}.')


def tokens_for_username():
    username = input('Username? ').strip()
    tokens = api.get_fcm_token_by_username(username)

    print(f'{username} has {len(tokens)} push tokens.')
    for t in tokens:
        print(f' * {t}')


def token_for_device():
    device_uuid = input('Device uuid? ').strip()
    print(f' * {api.get_fcm_token_by_device_id(device_uuid)}')


def device_for_app_id():
    app_id = input('App id? ').strip()
    device = api.get_by_app_id(app_id)

    # Unknown app ids are not an error.
    if device is None:
        print(f'No device has app id {app_id}.')
        return

    print_device(device)


def list_devices():
    print(' ******************     Devices     **************** ')

    user_id = ask_user_id()
    devices = api.get_by_user_id(user_id)
    print(f'User {user_id} has {len(devices)} devices.')
    for idx, d in enumerate(devices):
        print(f' {idx + 1}.', end='')
        print_device(d)


def watch_user():
    print_owners(api.subscribe_by_user(ask_user_id()))


def watch_device():
    print_owners(api.subscribe_by_device(input('Device uuid? ').strip()))


def print_owners(owners):
    owners = list(owners)
    print(f'{len(owners)} matching records.')
    for o in owners:
        print(f' * {o.user_id}: {o.username} <{o.email}> {o.first_name} {o.last_name}, '
              f'{len(o.devices)} devices, updated {o.last_updated:%Y-%m-%d %H:%M:%S}')


def print_device(d):
    print(' * Device {}, app id {}, {}{}, updated {:%Y-%m-%d %H:%M:%S}'.format(
        d.device_uuid,
        d.app_id,
        d.approval_status,
        ', primary' if d.is_primary else '',
        d.last_updated
    ))


"""
Prompt for a user id, defaulting to the active owner's when one is set.
"""
def ask_user_id():
    if state.active_owner:
        text = input(f'User id [{state.active_owner.user_id}]? ').strip()
        return text or state.active_owner.user_id

    return input('User id? ').strip()


def exit_app():
    print()
    print('bye')
    raise KeyboardInterrupt()


def get_action():
    text = '> '
    if state.active_owner:
        text = f'{state.active_owner.username}> '

    action = input(Fore.YELLOW + text + Fore.WHITE)
    return action.strip().lower()


def unknown_command():
    print("Sorry we didn't understand that command.")


def success_msg(text):
    print(Fore.LIGHTGREEN_EX + text + Fore.WHITE)


def error_msg(text):
    print(Fore.LIGHTRED_EX + text + Fore.WHITE)
