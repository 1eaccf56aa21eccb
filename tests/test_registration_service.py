"""Tests for services/registration_service.py: register() create / update / append."""
import pytest

import infrastructure.config as config
import services.data_service as svc
import services.registration_service as registration
from data.device_owners import DeviceOwner
from infrastructure.config import Settings
from infrastructure.errors import StoreError, ValidationError, WriteConflictError


def _owner(user_id="u1"):
    return DeviceOwner.objects(user_id=user_id).first()


class TestFirstRegistration:
    def test_creates_owner_with_one_device(self, make_payload):
        app_id = registration.register(make_payload())
        assert DeviceOwner.objects.count() == 1
        owner = _owner()
        assert len(owner.devices) == 1
        assert owner.devices[0].app_id == app_id
        assert owner.devices[0].device_uuid == "d1"
        assert owner.devices[0].biometric_secret == "s1"
        assert owner.devices[0].fcm_token == "t1"
        assert (owner.email, owner.username, owner.first_name, owner.last_name) == ("a@x.com", "alice", "A", "L")

    def test_defaults(self, make_payload):
        registration.register(make_payload())
        device = _owner().devices[0]
        assert device.approval_status == "approved"
        assert device.is_primary is False

    def test_empty_approval_status_defaults(self, make_payload):
        registration.register(make_payload(approvalStatus=""))
        assert _owner().devices[0].approval_status == "approved"

    def test_explicit_optional_fields(self, make_payload):
        registration.register(make_payload(approvalStatus="pending", isPrimary=True))
        device = _owner().devices[0]
        assert device.approval_status == "pending"
        assert device.is_primary is True

    def test_secret_stored_unmodified(self, make_payload):
        secret = "  opaque/secret+with=odd chars  "
        registration.register(make_payload(biometricSecret=secret))
        assert _owner().devices[0].biometric_secret == secret

    def test_extra_keys_ignored(self, make_payload):
        registration.register(make_payload(pin="1234"))
        assert "pin" not in _owner().to_mongo()


class TestReRegistration:
    def test_same_device_keeps_app_id(self, make_payload):
        first = registration.register(make_payload())
        second = registration.register(make_payload(biometricSecret="s2", fcmToken="t2"))
        assert first == second
        owner = _owner()
        assert len(owner.devices) == 1
        assert owner.devices[0].app_id == first
        assert owner.devices[0].biometric_secret == "s2"
        assert owner.devices[0].fcm_token == "t2"

    def test_identical_payload_twice_is_idempotent(self, make_payload):
        assert registration.register(make_payload()) == registration.register(make_payload())
        assert len(_owner().devices) == 1

    def test_flags_overwritten(self, make_payload):
        registration.register(make_payload(isPrimary=True, approvalStatus="pending"))
        registration.register(make_payload())
        device = _owner().devices[0]
        assert device.is_primary is False
        assert device.approval_status == "approved"

    def test_profile_refreshed(self, make_payload):
        registration.register(make_payload())
        registration.register(make_payload(email="alice@y.com", username="alice2", firstName="Al", lastName="Lo"))
        owner = _owner()
        assert (owner.email, owner.username, owner.first_name, owner.last_name) == ("alice@y.com", "alice2", "Al", "Lo")

    def test_timestamps_bumped(self, make_payload):
        registration.register(make_payload())
        before = _owner()
        registration.register(make_payload(fcmToken="t2"))
        after = _owner()
        assert after.created_at == before.created_at
        assert after.last_updated >= before.last_updated
        assert after.devices[0].last_updated == after.last_updated


class TestNewDeviceForExistingUser:
    def test_appends_with_new_app_id(self, make_payload):
        app_id1 = registration.register(make_payload())
        app_id2 = registration.register(make_payload(deviceUUID="d2", biometricSecret="s2", fcmToken="t2"))
        owner = _owner()
        assert [d.device_uuid for d in owner.devices] == ["d1", "d2"]
        assert app_id2 != app_id1
        assert owner.devices[0].app_id == app_id1
        assert owner.devices[1].app_id == app_id2

    def test_many_devices_have_distinct_app_ids(self, make_payload):
        ids = [registration.register(make_payload(deviceUUID=f"d{i}")) for i in range(10)]
        assert len(set(ids)) == 10
        assert len(_owner().devices) == 10

    def test_other_users_unaffected(self, make_payload):
        registration.register(make_payload())
        registration.register(make_payload(userId="u2", username="bob", deviceUUID="d1"))
        assert len(_owner("u1").devices) == 1
        assert len(_owner("u2").devices) == 1
        assert _owner("u1").devices[0].app_id != _owner("u2").devices[0].app_id


class TestValidation:
    @pytest.mark.parametrize("field", [
        "username", "biometricSecret", "userId", "email",
        "deviceUUID", "fcmToken", "firstName", "lastName",
    ])
    def test_missing_required_field(self, make_payload, field):
        payload = make_payload()
        del payload[field]
        with pytest.raises(ValidationError) as exc:
            registration.register(payload)
        assert field in exc.value.reason
        assert DeviceOwner.objects.count() == 0

    def test_mistyped_fields(self, make_payload):
        with pytest.raises(ValidationError):
            registration.register(make_payload(fcmToken=42))
        with pytest.raises(ValidationError):
            registration.register(make_payload(isPrimary="yes"))
        with pytest.raises(ValidationError):
            registration.register(make_payload(approvalStatus=1))
        assert DeviceOwner.objects.count() == 0

    def test_empty_keys_rejected(self, make_payload):
        for field in ("userId", "deviceUUID", "username"):
            with pytest.raises(ValidationError):
                registration.register(make_payload(**{field: ""}))
        assert DeviceOwner.objects.count() == 0

    def test_invalid_payload_does_not_touch_existing_record(self, make_payload):
        registration.register(make_payload())
        before = _owner().to_mongo().to_dict()
        with pytest.raises(ValidationError):
            registration.register(make_payload(fcmToken=None))
        assert _owner().to_mongo().to_dict() == before

    def test_non_dict_payload(self):
        with pytest.raises(ValidationError):
            registration.register(["u1", "d1"])


class TestConcurrentRegistration:
    def test_append_race_is_retried(self, make_payload, monkeypatch):
        registration.register(make_payload())
        real_find = svc.find_owner_by_user_id
        raced = []

        def racing_find(user_id):
            owner = real_find(user_id)
            if not raced:
                raced.append(True)
                # another device registers between our read and our write
                registration.register(make_payload(deviceUUID="d3"))
            return owner

        monkeypatch.setattr(svc, "find_owner_by_user_id", racing_find)
        app_id = registration.register(make_payload(deviceUUID="d2"))

        owner = _owner()
        assert sorted(d.device_uuid for d in owner.devices) == ["d1", "d2", "d3"]
        assert owner.find_device(device_uuid="d2").app_id == app_id

    def test_create_race_is_retried(self, make_payload, monkeypatch):
        real_find = svc.find_owner_by_user_id
        raced = []

        def racing_find(user_id):
            owner = real_find(user_id)
            if not raced:
                raced.append(True)
                registration.register(make_payload(deviceUUID="d9"))
            return owner

        monkeypatch.setattr(svc, "find_owner_by_user_id", racing_find)
        registration.register(make_payload(deviceUUID="d1"))

        assert DeviceOwner.objects.count() == 1
        assert sorted(d.device_uuid for d in _owner().devices) == ["d1", "d9"]

    def test_conflict_surfaces_after_max_attempts(self, make_payload, monkeypatch):
        monkeypatch.setattr(config, "settings", Settings(register_max_attempts=2))
        registration.register(make_payload())
        real_find = svc.find_owner_by_user_id
        stale = real_find("u1")
        registration.register(make_payload(deviceUUID="d3"))
        reads = []

        def stale_find(user_id):
            reads.append(user_id)
            return stale

        monkeypatch.setattr(svc, "find_owner_by_user_id", stale_find)
        with pytest.raises(WriteConflictError):
            registration.register(make_payload(deviceUUID="d2"))

        assert len(reads) == 2
        assert real_find("u1").find_device(device_uuid="d2") is None


class TestStoreFailures:
    def test_store_error_propagates(self, make_payload, monkeypatch):
        def broken(user_id):
            raise StoreError("connection refused")

        monkeypatch.setattr(svc, "find_owner_by_user_id", broken)
        with pytest.raises(StoreError):
            registration.register(make_payload())
