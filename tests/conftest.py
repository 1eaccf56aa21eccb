"""Shared fixtures: an in-memory MongoDB per test via mongomock."""
import mongomock
import pytest

import data.mongo_setup as mongo_setup
from data.device_owners import DeviceOwner
from infrastructure.config import Settings


@pytest.fixture(autouse=True)
def store():
    settings = Settings(db_name="device_details_test", db_host="mongodb://localhost")
    mongo_setup.global_init(settings, mongo_client_class=mongomock.MongoClient)
    mongo_setup.ensure_indexes()
    yield
    DeviceOwner.drop_collection()
    mongo_setup.global_disconnect()


@pytest.fixture
def make_payload():
    def _make(**overrides):
        payload = {
            "userId": "u1",
            "deviceUUID": "d1",
            "username": "alice",
            "email": "a@x.com",
            "firstName": "A",
            "lastName": "L",
            "biometricSecret": "s1",
            "fcmToken": "t1",
        }
        payload.update(overrides)
        return payload
    return _make
