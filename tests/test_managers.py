"""Tests for the feature managers in signal_sdk.managers.

Managers only validate input and build parameter dicts, so most tests
drive them with a recording stand-in for ``SignalClient.call`` and check
the method name and parameters handed to it.
"""

from __future__ import annotations

import stat
import sys
from pathlib import Path

import pytest

from signal_sdk.core.errors import (
    GroupError,
    MessageError,
    RpcError,
    SignalConnectionError,
    ValidationError,
)
from signal_sdk.managers import (
    AccountConfiguration,
    AccountManager,
    ContactManager,
    ContactUpdateOptions,
    DeviceManager,
    GroupManager,
    GroupUpdateOptions,
    Mention,
    MessageManager,
    PollCreateOptions,
    PollVoteOptions,
    Quote,
    SendMessageOptions,
    StickerManager,
    UpdateAccountOptions,
)
from signal_sdk.managers.base import is_group_id
from signal_sdk.managers.contacts import normalize_contact
from signal_sdk.managers.groups import normalize_group
from signal_sdk.managers.messages import parse_envelope
from tests.helpers import RecordingCall, make_context, make_envelope

ACCOUNT = "+15550000001"
PEER = "+15551112222"
GROUP = "aGVsbG8gd29ybGQ="


def _manager(cls, result=None, **config):
    call = RecordingCall(result)
    return cls(make_context(**config), call), call


# ---------------------------------------------------------------------------
# Shared plumbing
# ---------------------------------------------------------------------------


class TestTargeting:
    """Tests for the group-id heuristic and target parameters."""

    @pytest.mark.parametrize("value", ["abc=", "a/b", "ab+cd"])
    def test_group_ids(self, value):
        assert is_group_id(value)

    @pytest.mark.parametrize("value", ["+15551112222", "u:alice.01", "0d5c8f2a-1b3c-4d5e-8f90-123456789abc"])
    def test_non_group_ids(self, value):
        assert not is_group_id(value)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class TestMessageManager:
    """Tests for MessageManager."""

    @pytest.mark.asyncio
    async def test_send_to_group_uses_group_id(self):
        manager, call = _manager(MessageManager, {"timestamp": 1})
        await manager.send_message(GROUP, "hi")
        assert call.last == ("send", {"account": ACCOUNT, "message": "hi", "groupId": GROUP})

    @pytest.mark.asyncio
    async def test_send_with_options(self):
        manager, call = _manager(MessageManager)
        options = SendMessageOptions(
            attachments=["/tmp/a.png"],
            mentions=[Mention(start=0, length=1, number=PEER)],
            quote=Quote(timestamp=5, author=PEER, text="orig"),
            expires_in_seconds=60,
            view_once=True,
        )
        await manager.send_message(PEER, "x", options)

        _, params = call.last
        assert params["attachments"] == ["/tmp/a.png"]
        assert params["mentions"] == [{"start": 0, "length": 1, "number": PEER}]
        assert params["quoteTimestamp"] == 5
        assert params["quoteAuthor"] == PEER
        assert params["quoteMessage"] == "orig"
        assert params["expiresInSeconds"] == 60
        assert params["viewOnce"] is True

    @pytest.mark.asyncio
    async def test_story_reply_requires_both_fields(self):
        manager, call = _manager(MessageManager)
        await manager.send_message(PEER, "x", SendMessageOptions(story_timestamp=5))
        assert "storyTimestamp" not in call.last[1]

    @pytest.mark.asyncio
    async def test_send_rejects_bad_recipient_before_calling(self):
        manager, call = _manager(MessageManager)
        with pytest.raises(ValidationError):
            await manager.send_message("nobody", "hi")
        assert call.calls == []

    @pytest.mark.asyncio
    async def test_send_reaction(self):
        manager, call = _manager(MessageManager)
        await manager.send_reaction(PEER, PEER, 123, "👍")
        assert call.last == (
            "sendReaction",
            {
                "account": ACCOUNT,
                "emoji": "👍",
                "targetAuthor": PEER,
                "targetTimestamp": 123,
                "remove": False,
                "recipients": [PEER],
            },
        )

    @pytest.mark.asyncio
    async def test_send_typing_stop(self):
        manager, call = _manager(MessageManager)
        await manager.send_typing(PEER)
        await manager.send_typing(PEER, stop=True)
        assert "stop" not in call.calls[0][1]
        assert call.calls[1][1]["stop"] is True

    @pytest.mark.asyncio
    async def test_send_receipt(self):
        manager, call = _manager(MessageManager)
        await manager.send_receipt(PEER, 99, "viewed")
        assert call.last == (
            "sendReceipt",
            {"account": ACCOUNT, "recipient": PEER, "targetTimestamp": 99, "type": "viewed"},
        )

    @pytest.mark.asyncio
    async def test_remote_delete_validates_timestamp(self):
        manager, call = _manager(MessageManager)
        with pytest.raises(ValidationError):
            await manager.remote_delete(PEER, 0)
        await manager.remote_delete(PEER, 10)
        assert call.last[0] == "remoteDelete"

    @pytest.mark.asyncio
    async def test_poll_create_validation(self):
        manager, call = _manager(MessageManager)
        with pytest.raises(MessageError, match="at least 2"):
            await manager.send_poll_create(PollCreateOptions(question="?", options=["a"], recipients=[PEER]))
        with pytest.raises(MessageError, match="recipients or group_id"):
            await manager.send_poll_create(PollCreateOptions(question="?", options=["a", "b"]))

        await manager.send_poll_create(
            PollCreateOptions(question="Lunch?", options=["a", "b"], group_id=GROUP, multi_select=True)
        )
        assert call.last == (
            "sendPollCreate",
            {
                "account": ACCOUNT,
                "question": "Lunch?",
                "options": ["a", "b"],
                "multiSelect": True,
                "groupId": GROUP,
            },
        )

    @pytest.mark.asyncio
    async def test_poll_vote_and_terminate(self):
        manager, call = _manager(MessageManager)
        with pytest.raises(MessageError):
            await manager.send_poll_vote(PEER, PollVoteOptions(poll_author=PEER, poll_timestamp=1, option_indexes=[]))

        await manager.send_poll_vote(PEER, PollVoteOptions(poll_author=PEER, poll_timestamp=1, option_indexes=[0]))
        assert call.last[1]["recipient"] == PEER
        assert call.last[1]["options"] == [0]

        await manager.send_poll_terminate(GROUP, 1)
        assert call.last == ("sendPollTerminate", {"account": ACCOUNT, "pollTimestamp": 1, "groupId": GROUP})

    @pytest.mark.asyncio
    async def test_receive_flattens_envelopes(self):
        manager, _ = _manager(MessageManager, [{"envelope": make_envelope("hey", group_id=GROUP)}])
        [message] = await manager.receive()
        assert message.text == "hey"
        assert message.group_id == GROUP
        assert message.source == "+15551112222"

    @pytest.mark.asyncio
    async def test_get_attachment_unwraps_data(self):
        manager, call = _manager(MessageManager, {"data": "QUJD"})
        assert await manager.get_attachment("att-1", recipient=PEER) == "QUJD"
        assert call.last == ("getAttachment", {"account": ACCOUNT, "id": "att-1", "recipient": PEER})
        with pytest.raises(MessageError):
            await manager.get_attachment("")

    def test_parse_envelope_body_fallback(self):
        envelope = {"sourceNumber": PEER, "timestamp": 3, "dataMessage": {"body": "b"}}
        assert parse_envelope(envelope).text == "b"


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------


class TestGroupManager:
    """Tests for GroupManager."""

    @pytest.mark.asyncio
    async def test_create_group(self):
        manager, call = _manager(GroupManager, {"groupId": GROUP})
        assert await manager.create_group("Ops", [PEER]) == {"groupId": GROUP}
        assert call.last == ("updateGroup", {"account": ACCOUNT, "name": "Ops", "members": [PEER]})
        with pytest.raises(GroupError):
            await manager.create_group("", [])

    @pytest.mark.asyncio
    async def test_update_group_renames_option_keys(self):
        manager, call = _manager(GroupManager)
        options = GroupUpdateOptions(
            add_members=[PEER],
            permission_add_member="ONLY_ADMINS",
            expiration_timer=3600,
            reset_invite_link=True,
        )
        await manager.update_group(GROUP, options)
        assert call.last == (
            "updateGroup",
            {
                "account": ACCOUNT,
                "groupId": GROUP,
                "addMembers": [PEER],
                "permissionAddMember": "ONLY_ADMINS",
                "expiration": 3600,
                "resetLink": True,
            },
        )

    @pytest.mark.asyncio
    async def test_list_groups_detailed_normalizes(self):
        manager, call = _manager(GroupManager, [{"id": GROUP, "groupInviteLink": "https://signal.group/x"}])
        [group] = await manager.get_groups_with_details()
        assert call.last == ("listGroups", {"account": ACCOUNT, "detailed": True})
        assert group["inviteLink"] == "https://signal.group/x"
        assert group["members"] == []
        assert group["banned"] == []

    def test_normalize_group_prefers_existing_link(self):
        assert normalize_group({"inviteLink": "a"})["groupInviteLink"] == "a"

    @pytest.mark.asyncio
    async def test_quit_and_join(self):
        manager, call = _manager(GroupManager)
        await manager.quit_group(GROUP, delete=True)
        assert call.last == ("quitGroup", {"account": ACCOUNT, "groupId": GROUP, "delete": True})
        with pytest.raises(GroupError):
            await manager.join_group("")
        await manager.join_group("https://signal.group/#abc")
        assert call.last[0] == "joinGroup"


# ---------------------------------------------------------------------------
# Contacts
# ---------------------------------------------------------------------------


class TestContactManager:
    """Tests for ContactManager."""

    @pytest.mark.asyncio
    async def test_update_contact_with_options(self):
        manager, call = _manager(ContactManager)
        await manager.update_contact(PEER, "Alice", ContactUpdateOptions(nick_given_name="Al", muted=True))
        assert call.last == (
            "updateContact",
            {"account": ACCOUNT, "recipient": PEER, "name": "Alice", "nickGivenName": "Al", "muted": True},
        )

    @pytest.mark.asyncio
    async def test_block_validates_each_recipient(self):
        manager, call = _manager(ContactManager)
        with pytest.raises(ValidationError):
            await manager.block([PEER, "bad"])
        await manager.block([PEER])
        assert call.last == ("block", {"account": ACCOUNT, "recipient": [PEER]})

    @pytest.mark.asyncio
    async def test_get_user_status_accepts_list_and_dict(self):
        manager, _ = _manager(ContactManager, [{"number": PEER, "isRegistered": True, "uuid": "u"}])
        [status] = await manager.get_user_status([PEER])
        assert status.is_registered and status.uuid == "u"

        manager, _ = _manager(ContactManager, {"recipients": [{"number": PEER}]})
        [status] = await manager.get_user_status([PEER])
        assert not status.is_registered

    @pytest.mark.asyncio
    async def test_trust_identity_needs_a_mode(self):
        manager, call = _manager(ContactManager)
        with pytest.raises(ValidationError):
            await manager.trust_identity(PEER)
        await manager.trust_identity(PEER, "12345 67890")
        assert call.last == ("trust", {"account": ACCOUNT, "recipient": PEER, "verifiedSafetyNumber": "12345 67890"})
        await manager.trust_identity(PEER, trust_all_known_keys=True)
        assert call.last[1]["trustAllKnownKeys"] is True

    @pytest.mark.asyncio
    async def test_get_avatar_selectors(self):
        manager, call = _manager(ContactManager, {"data": "AAAA"})
        assert await manager.get_avatar(group_id=GROUP) == "AAAA"
        assert call.last == ("getAvatar", {"account": ACCOUNT, "groupId": GROUP})
        with pytest.raises(MessageError):
            await manager.get_avatar()

    def test_normalize_contact_builds_profile_name(self):
        contact = normalize_contact({"givenName": "Ada", "familyName": "Lovelace", "mobileCoinAddress": ""})
        assert contact["profileName"] == "Ada Lovelace"
        assert contact["mobileCoinAddress"] is None
        assert normalize_contact({"givenName": "Ada"})["profileName"] == "Ada"


# ---------------------------------------------------------------------------
# Devices
# ---------------------------------------------------------------------------


class TestDeviceManager:
    """Tests for DeviceManager RPC methods."""

    @pytest.mark.asyncio
    async def test_remove_and_update_device(self):
        manager, call = _manager(DeviceManager)
        with pytest.raises(ValidationError):
            await manager.remove_device(0)
        await manager.remove_device(2)
        assert call.last == ("removeDevice", {"account": ACCOUNT, "deviceId": 2})
        await manager.update_device(2, "Laptop")
        assert call.last == ("updateDevice", {"account": ACCOUNT, "deviceId": 2, "deviceName": "Laptop"})

    @pytest.mark.asyncio
    async def test_link_returns_uri(self):
        manager, call = _manager(DeviceManager, {"uri": "sgnl://linkdevice?uuid=x"})
        assert await manager.link("Desk") == "sgnl://linkdevice?uuid=x"
        assert call.last == ("link", {"deviceName": "Desk"})

    @pytest.mark.asyncio
    async def test_list_devices_defaults_to_empty(self):
        manager, _ = _manager(DeviceManager, None)
        assert await manager.list_devices() == []


LINK_SCRIPT = """#!{python}
import sys

print("sgnl://linkdevice?uuid=abc&pub_key=def", flush=True)
sys.stderr.write("INFO  ProvisioningManager - waiting\\n")
{tail}
"""


def _link_script(tmp_path: Path, tail: str) -> Path:
    script = tmp_path / "link dir" / "signal-cli"
    script.parent.mkdir()
    script.write_text(LINK_SCRIPT.format(python=sys.executable, tail=tail))
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    return script


@pytest.mark.slow
@pytest.mark.skipif(sys.platform == "win32", reason="uses a shebang script")
class TestDeviceLink:
    """Tests for device_link() against a fake ``signal-cli link``."""

    @pytest.mark.asyncio
    async def test_successful_link_reports_uri(self, tmp_path: Path):
        script = _link_script(tmp_path, 'print("Associated with: +15550000001 Device registered")')
        manager, _ = _manager(DeviceManager, signal_cli_path=str(script))
        uris: list[str] = []

        result = await manager.device_link("My Laptop", on_uri=uris.append, timeout=10)

        assert result.success and result.is_linked
        assert result.uri == "sgnl://linkdevice?uuid=abc&pub_key=def"
        assert uris == [result.uri]
        assert result.device_name == "My Laptop"

    @pytest.mark.asyncio
    async def test_failed_link_reports_error(self, tmp_path: Path):
        script = _link_script(tmp_path, 'sys.stderr.write("ERROR Link - rejected\\n")\nsys.exit(1)')
        manager, _ = _manager(DeviceManager, signal_cli_path=str(script))

        result = await manager.device_link(timeout=10)

        assert not result.success
        assert result.error == "Device linking failed"
        assert result.device_name == "Signal SDK Device"

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, tmp_path: Path):
        script = _link_script(tmp_path, "import time\ntime.sleep(30)")
        manager, _ = _manager(DeviceManager, signal_cli_path=str(script))

        result = await manager.device_link(timeout=0.5)

        assert not result.success
        assert "timed out" in (result.error or "")

    @pytest.mark.asyncio
    async def test_missing_executable(self, tmp_path: Path):
        manager, _ = _manager(DeviceManager, signal_cli_path=str(tmp_path / "missing"))
        with pytest.raises(SignalConnectionError):
            await manager.device_link()


# ---------------------------------------------------------------------------
# Accounts and stickers
# ---------------------------------------------------------------------------


class TestAccountManager:
    """Tests for AccountManager."""

    @pytest.mark.asyncio
    async def test_register_and_verify(self):
        manager, call = _manager(AccountManager)
        await manager.register("+15553334444", captcha="signalcaptcha://x")
        assert call.last == (
            "register",
            {"account": "+15553334444", "voice": False, "captcha": "signalcaptcha://x"},
        )
        with pytest.raises(ValidationError):
            await manager.verify("+15553334444", "")
        await manager.verify("+15553334444", "123-456", pin="0000")
        assert call.last == ("verify", {"account": "+15553334444", "token": "123-456", "pin": "0000"})

    @pytest.mark.asyncio
    async def test_update_profile_drops_empty_fields(self):
        manager, call = _manager(AccountManager)
        await manager.update_profile("Bot", about="", remove_avatar=True)
        assert call.last == ("updateProfile", {"account": ACCOUNT, "name": "Bot", "removeAvatar": True})

    @pytest.mark.asyncio
    async def test_update_configuration(self):
        manager, call = _manager(AccountManager)
        await manager.update_configuration(AccountConfiguration(read_receipts=True, typing_indicators=False))
        assert call.last == (
            "updateConfiguration",
            {"account": ACCOUNT, "readReceipts": True, "typingIndicators": False},
        )

    @pytest.mark.asyncio
    async def test_update_account_reports_errors_in_result(self):
        manager, _ = _manager(AccountManager, RpcError(-1, "Username taken"))
        result = await manager.update_account(UpdateAccountOptions(username="bot.01"))
        assert not result.success
        assert result.error == "[-1] Username taken"

        manager, call = _manager(AccountManager, {"username": "bot.01", "usernameLink": "https://signal.me/x"})
        result = await manager.update_account(UpdateAccountOptions(username="bot", delete_username=False))
        assert result.success and result.username_link == "https://signal.me/x"
        assert "deleteUsername" not in call.last[1]

    @pytest.mark.asyncio
    async def test_list_accounts(self):
        manager, call = _manager(AccountManager, {"accounts": [{"number": "+1555"}, {"uuid": "x"}]})
        assert await manager.list_accounts() == ["+1555"]
        assert call.last == ("listAccounts", None)

    @pytest.mark.asyncio
    async def test_change_number_and_payment_validation(self):
        manager, call = _manager(AccountManager)
        with pytest.raises(ValidationError):
            await manager.finish_change_number("+15553334444", "  ")
        with pytest.raises(ValidationError):
            await manager.send_payment_notification(PEER, "")
        await manager.send_payment_notification(GROUP, "cmVjZWlwdA==", note="lunch")
        assert call.last == (
            "sendPaymentNotification",
            {"account": ACCOUNT, "receipt": "cmVjZWlwdA==", "note": "lunch", "groupId": GROUP},
        )

    @pytest.mark.asyncio
    async def test_rate_limit_challenge_result(self):
        manager, call = _manager(AccountManager, {"success": True, "retryAfter": 10})
        result = await manager.submit_rate_limit_challenge("tok", "captcha")
        assert result.success and result.retry_after == 10
        assert call.last[1] == {"account": ACCOUNT, "challenge": "tok", "captcha": "captcha"}


class TestStickerManager:
    """Tests for StickerManager."""

    @pytest.mark.asyncio
    async def test_add_pack_requires_id_and_key(self):
        manager, call = _manager(StickerManager)
        with pytest.raises(MessageError):
            await manager.add_sticker_pack("id", "")
        await manager.add_sticker_pack("id", "key")
        assert call.last == ("addStickerPack", {"account": ACCOUNT, "packId": "id", "packKey": "key"})

    @pytest.mark.asyncio
    async def test_upload_pack(self, tmp_path: Path):
        manager, call = _manager(StickerManager, {"packId": "p", "packKey": "k", "installUrl": "https://signal.art/x"})
        result = await manager.upload_sticker_pack(tmp_path / "pack.zip")
        assert result.pack_id == "p" and result.install_url == "https://signal.art/x"
        assert call.last[1]["path"] == str(tmp_path / "pack.zip")

    @pytest.mark.asyncio
    async def test_get_sticker(self):
        manager, call = _manager(StickerManager, {"data": "U1RJQ0s="})
        assert await manager.get_sticker("pack", 0) == "U1RJQ0s="
        assert call.last[1] == {"account": ACCOUNT, "packId": "pack", "stickerId": 0}
