"""Feature managers: thin parameter builders over ``SignalClient.call``."""

from signal_sdk.managers.accounts import AccountManager
from signal_sdk.managers.base import BaseManager, CallFn, is_group_id
from signal_sdk.managers.contacts import ContactManager
from signal_sdk.managers.devices import DeviceManager
from signal_sdk.managers.groups import GroupManager
from signal_sdk.managers.messages import MessageManager, parse_envelope
from signal_sdk.managers.models import (
    AccountConfiguration,
    AccountUpdateResult,
    ContactUpdateOptions,
    GroupUpdateOptions,
    LinkingResult,
    Mention,
    Message,
    PollCreateOptions,
    PollVoteOptions,
    Quote,
    RateLimitChallengeResult,
    ReceiveOptions,
    SendMessageOptions,
    StickerPackUploadResult,
    TextStyle,
    UpdateAccountOptions,
    UserStatus,
)
from signal_sdk.managers.stickers import StickerManager

__all__ = [
    "AccountConfiguration",
    "AccountManager",
    "AccountUpdateResult",
    "BaseManager",
    "CallFn",
    "ContactManager",
    "ContactUpdateOptions",
    "DeviceManager",
    "GroupManager",
    "GroupUpdateOptions",
    "LinkingResult",
    "Mention",
    "Message",
    "MessageManager",
    "PollCreateOptions",
    "PollVoteOptions",
    "Quote",
    "RateLimitChallengeResult",
    "ReceiveOptions",
    "SendMessageOptions",
    "StickerManager",
    "StickerPackUploadResult",
    "TextStyle",
    "UpdateAccountOptions",
    "UserStatus",
    "is_group_id",
    "parse_envelope",
]
