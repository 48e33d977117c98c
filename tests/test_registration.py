"""
Tests for device registration, candidate listing and delinking.
"""

import pytest

from conftest import NATIONAL_ID, REGISTRATION_CODE
from securevote_client.errors import RegistrationError
from securevote_client.registration import (
    LAST_RECEIPT_ITEM,
    delink_device,
    fetch_candidates,
    format_registration_code,
    generate_device_secret,
    register_device,
)
from securevote_client.signatures import ED25519_KEY, ed25519_public_key


class TestDeviceSecret:
    def test_secret_is_64_byte_ed25519_key(self):
        secret = generate_device_secret()
        assert secret.kind == ED25519_KEY
        assert len(secret.material) == 64
        assert secret.material[32:] == ed25519_public_key(secret)

    def test_secrets_are_unique(self):
        assert generate_device_secret() != generate_device_secret()


class TestRegistrationCode:
    @pytest.mark.parametrize("raw, expected", [
        ("abcdefghijkl", "ABCD-EFGH-IJKL"),
        ("abcd efgh ijkl", "ABCD-EFGH-IJKL"),
        ("AB12-CD34-EF56-XYZ", "AB12-CD34-EF56"),
        ("ab1", "AB1"),
    ])
    def test_format(self, raw, expected):
        assert format_registration_code(raw) == expected


class TestRegisterDevice:
    def test_register_stores_identity(self, clients, store, servers):
        result = register_device(clients.election, store, NATIONAL_ID, REGISTRATION_CODE)
        assert result["success"]
        assert NATIONAL_ID in result["message"]

        identity = store.load_identity()
        assert identity.national_id == NATIONAL_ID
        assert identity.secret.kind == ED25519_KEY
        assert servers.election.devices[NATIONAL_ID] == ed25519_public_key(identity.secret)

    def test_refused_registration_stores_nothing(self, clients, store):
        with pytest.raises(RegistrationError, match="Invalid registration code"):
            register_device(clients.election, store, NATIONAL_ID, "ZZZZ-ZZZZ-ZZZZ")
        assert not store.has_identity()

    @pytest.mark.parametrize("code", ["ABCD-EFGH", "abcd-efgh-ijkl", "ABCDEFGHIJKL", ""])
    def test_malformed_code_never_sent(self, clients, store, servers, code):
        with pytest.raises(RegistrationError):
            register_device(clients.election, store, NATIONAL_ID, code)
        assert "/register" not in servers.session.requests

    def test_missing_national_id(self, clients, store):
        with pytest.raises(RegistrationError):
            register_device(clients.election, store, "  ", REGISTRATION_CODE)

    def test_already_registered(self, clients, store, identity):
        with pytest.raises(RegistrationError, match="already registered"):
            register_device(clients.election, store, NATIONAL_ID, REGISTRATION_CODE)


class TestCandidates:
    def test_fetch_candidates(self, clients):
        candidates = fetch_candidates(clients.election)
        assert [c.id for c in candidates] == ["cand-41", "cand-42"]
        assert candidates[1].name == "Candidate B"
        assert candidates[1].party == "Party Two"

    def test_wrapped_list_and_plain_names(self):
        class Election:
            def get(self, path):
                return {"candidates": ["Candidate A", {"id": 7, "name": "Seven"}]}

        candidates = fetch_candidates(Election())
        assert [(c.id, c.name) for c in candidates] == [("Candidate A", "Candidate A"), ("7", "Seven")]

    def test_bad_payload(self):
        class Election:
            def get(self, path):
                return "<html>oops</html>"

        with pytest.raises(RegistrationError):
            fetch_candidates(Election())


class TestDelink:
    def test_delink_removes_identity_and_receipt(self, store, identity):
        store.set_item(LAST_RECEIPT_ITEM, "{}")
        assert delink_device(store)
        assert not store.has_identity()
        assert store.get_item(LAST_RECEIPT_ITEM) is None

    def test_delink_without_identity(self, store):
        assert not delink_device(store)

    def test_register_again_after_delink(self, clients, store, identity):
        delink_device(store)
        register_device(clients.election, store, NATIONAL_ID, REGISTRATION_CODE)
        assert store.load_identity().secret != identity.secret
