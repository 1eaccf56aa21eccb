"""
Errors raised by the device details core.

Every error carries a short machine-readable `error` code and a human readable
`reason`, which is what the CLI (or any other collaborator) shows the user.
"""
from typing import Optional


class DeviceDetailsError(Exception):
    error = 'device-details-error'

    def __init__(self, reason: str, error: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        if error:
            self.error = error

    def __str__(self):
        return f'{self.reason} [{self.error}]'


# Bad payload or argument; raised before any store mutation.
class ValidationError(DeviceDetailsError):
    error = 'validation-error'


class NotFoundError(DeviceDetailsError):
    error = 'not-found'


# The underlying store call failed. Not retried here.
class StoreError(DeviceDetailsError):
    error = 'store-error'


# A compare-and-swap guard did not match: the owner document changed between
# the read and the write.
class WriteConflictError(StoreError):
    error = 'write-conflict'
