"""
Unit tests for InstallRecord, TenantKey and the install payload decoder.
"""

import json

import pytest

from hipchat_addon.credentials.install_payload import decode_install_payload
from hipchat_addon.credentials.records import NO_GROUP, InstallRecord, TenantKey
from hipchat_addon.credentials.redaction import REDACTED_VALUE
from hipchat_addon.platform.errors import DecodeError


class TestTenantKey:

    def test_string_form_is_group_colon_room(self):
        assert str(TenantKey(group_id=1, room_id=0)) == "1:0"
        assert str(TenantKey(group_id=7, room_id=42)) == "7:42"

    def test_parse_round_trips(self):
        assert TenantKey.parse("7:42") == TenantKey(group_id=7, room_id=42)

    @pytest.mark.parametrize("raw", ["7", "a:b", "-1:0", "1:-2"])
    def test_parse_rejects_bad_input(self, raw):
        with pytest.raises(ValueError):
            TenantKey.parse(raw)

    def test_keys_are_hashable_and_equal_by_value(self):
        assert {TenantKey(1, 2): "x"}[TenantKey(1, 2)] == "x"

    def test_no_group_is_zero(self):
        assert NO_GROUP == 0


class TestInstallRecord:

    def test_repr_never_contains_secret(self):
        record = InstallRecord(
            capabilities_url="https://example.com/cap",
            oauth_id="abc",
            oauth_secret="super-secret-value",
            group_id=1,
            room_id=0,
        )
        assert "super-secret-value" not in repr(record)

    def test_redacted_masks_secret(self):
        record = InstallRecord("", "abc", "super-secret-value", 1, 5)
        safe = record.redacted()
        assert safe["oauth_secret"] == REDACTED_VALUE
        assert safe["oauth_id"] == "abc"
        assert safe["room_id"] == 5

    def test_tenant_key_and_room_scope(self):
        group_install = InstallRecord("", "abc", "s", 1)
        room_install = InstallRecord("", "def", "s", 1, 9)
        assert group_install.tenant_key == TenantKey(1, 0)
        assert not group_install.is_room_scoped
        assert room_install.is_room_scoped


class TestDecodeInstallPayload:

    def test_decodes_full_payload(self):
        body = json.dumps({
            "capabilitiesUrl": "https://api.hipchat.com/v2/capabilities",
            "oauthId": "abc",
            "oauthSecret": "s3cr3t",
            "groupId": 1,
            "roomId": 42,
        }).encode()

        record = decode_install_payload(body)

        assert record == InstallRecord(
            capabilities_url="https://api.hipchat.com/v2/capabilities",
            oauth_id="abc",
            oauth_secret="s3cr3t",
            group_id=1,
            room_id=42,
        )

    def test_missing_room_and_capabilities_default(self):
        body = b'{"oauthId": "abc", "oauthSecret": "s3cr3t", "groupId": 1}'

        record = decode_install_payload(body)

        assert record.room_id == 0
        assert record.capabilities_url == ""

    def test_null_room_means_group_scope(self):
        body = b'{"oauthId": "abc", "oauthSecret": "s3cr3t", "groupId": 1, "roomId": null}'
        assert decode_install_payload(body).room_id == 0

    def test_malformed_json_raises_decode_error(self):
        with pytest.raises(DecodeError):
            decode_install_payload(b"{not json")

    def test_missing_oauth_id_raises_decode_error(self):
        with pytest.raises(DecodeError) as exc_info:
            decode_install_payload(b'{"oauthSecret": "s3cr3t", "groupId": 1}')
        assert "oauthId" in exc_info.value.message

    def test_negative_group_rejected(self):
        with pytest.raises(DecodeError):
            decode_install_payload(b'{"oauthId": "a", "oauthSecret": "b", "groupId": -1}')

    def test_error_message_does_not_echo_secret(self):
        body = b'{"oauthId": "abc", "oauthSecret": "leak-me", "groupId": "not-a-number"}'
        with pytest.raises(DecodeError) as exc_info:
            decode_install_payload(body)
        assert "leak-me" not in exc_info.value.message
