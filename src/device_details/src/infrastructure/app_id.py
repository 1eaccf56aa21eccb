"""Derivation of per-device application identifiers."""
import hashlib

APP_ID_LENGTH = 32 # Hex characters kept from the digest.
DELIMITER = ':'

"""
Hash device uuid, account key and timestamp into a 32 hex char app id.

Deterministic for identical inputs. The timestamp makes ids for separate
registration events of the same device differ, but the registry only
ever assigns an app id to a device once.

Raises:
    TypeError for non-string inputs, ValueError for empty ones.
"""
def generate_app_id(device_uuid: str, account_key: str, timestamp: str) -> str:
    parts = (device_uuid, account_key, timestamp)
    for part in parts:
        if not isinstance(part, str):
            raise TypeError(f'app id inputs must be str, got {type(part).__name__}')
        if not part:
            raise ValueError('app id inputs must be non-empty')

    # "<uuid>:<account key>:<timestamp>" -> sha256 -> leading 32 hex chars.
    combined = DELIMITER.join(parts)
    return hashlib.sha256(combined.encode('utf-8')).hexdigest()[:APP_ID_LENGTH]
