"""Option and result models for the feature managers.

Options are pydantic models with snake_case attributes that serialize to
signal-cli's camelCase parameter names. Unset fields are omitted from the
request entirely.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ReceiptType = Literal["read", "viewed", "delivered"]
MessageRequestResponse = Literal["ACCEPT", "DELETE", "BLOCK", "BLOCK_AND_DELETE"]
GroupPermission = Literal["EVERY_MEMBER", "ONLY_ADMINS"]
TextStyleName = Literal["BOLD", "ITALIC", "STRIKETHROUGH", "MONOSPACE", "SPOILER"]


class _Params(BaseModel):
    """Base for models that become RPC parameters."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_params(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class Mention(_Params):
    start: int = Field(ge=0)
    length: int = Field(ge=1)
    number: str


class TextStyle(_Params):
    start: int = Field(ge=0)
    length: int = Field(ge=1)
    style: TextStyleName


class Quote(BaseModel):
    timestamp: int
    author: str
    text: str | None = None
    mentions: list[Mention] = Field(default_factory=list)
    text_styles: list[TextStyle] = Field(default_factory=list)


class SendMessageOptions(BaseModel):
    """Optional parts of a ``send`` request."""

    attachments: list[str] = Field(default_factory=list)
    mentions: list[Mention] = Field(default_factory=list)
    text_styles: list[TextStyle] = Field(default_factory=list)
    quote: Quote | None = None
    expires_in_seconds: int | None = None
    view_once: bool = False
    preview_url: str | None = None
    preview_title: str | None = None
    preview_description: str | None = None
    preview_image: str | None = None
    edit_timestamp: int | None = None
    story_timestamp: int | None = None
    story_author: str | None = None
    note_to_self: bool = False
    end_session: bool = False

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if self.attachments:
            params["attachments"] = list(self.attachments)
        if self.expires_in_seconds:
            params["expiresInSeconds"] = self.expires_in_seconds
        if self.view_once:
            params["viewOnce"] = True
        if self.mentions:
            params["mentions"] = [m.to_params() for m in self.mentions]
        if self.text_styles:
            params["textStyles"] = [s.to_params() for s in self.text_styles]
        if self.quote is not None:
            params["quoteTimestamp"] = self.quote.timestamp
            params["quoteAuthor"] = self.quote.author
            if self.quote.text:
                params["quoteMessage"] = self.quote.text
            if self.quote.mentions:
                params["quoteMentions"] = [m.to_params() for m in self.quote.mentions]
            if self.quote.text_styles:
                params["quoteTextStyles"] = [s.to_params() for s in self.quote.text_styles]
        for attr, key in (
            ("preview_url", "previewUrl"),
            ("preview_title", "previewTitle"),
            ("preview_description", "previewDescription"),
            ("preview_image", "previewImage"),
            ("edit_timestamp", "editTimestamp"),
        ):
            value = getattr(self, attr)
            if value:
                params[key] = value
        # A story reply needs both halves
        if self.story_timestamp and self.story_author:
            params["storyTimestamp"] = self.story_timestamp
            params["storyAuthor"] = self.story_author
        if self.note_to_self:
            params["noteToSelf"] = True
        if self.end_session:
            params["endSession"] = True
        return params


class ReceiveOptions(_Params):
    timeout: float | None = None
    max_messages: int | None = None
    ignore_attachments: bool | None = None
    ignore_stories: bool | None = None
    send_read_receipts: bool | None = None


class PollCreateOptions(BaseModel):
    question: str
    options: list[str]
    multi_select: bool | None = None
    recipients: list[str] = Field(default_factory=list)
    group_id: str | None = None


class PollVoteOptions(BaseModel):
    poll_author: str
    poll_timestamp: int
    option_indexes: list[int]
    vote_count: int | None = None


class Message(BaseModel):
    """Flattened view of a received envelope."""

    timestamp: int
    source: str | None = None
    source_uuid: str | None = None
    source_device: int | None = None
    text: str | None = None
    group_id: str | None = None
    attachments: list[dict[str, Any]] | None = None
    mentions: list[dict[str, Any]] | None = None
    quote: dict[str, Any] | None = None
    reaction: dict[str, Any] | None = None
    sticker: dict[str, Any] | None = None
    expires_in_seconds: int | None = None
    view_once: bool | None = None
    sync_message: dict[str, Any] | None = None
    receipt: dict[str, Any] | None = None
    typing: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------


class GroupUpdateOptions(_Params):
    name: str | None = None
    description: str | None = None
    avatar: str | None = None
    add_members: list[str] | None = None
    remove_members: list[str] | None = None
    promote_admins: list[str] | None = None
    demote_admins: list[str] | None = None
    ban_members: list[str] | None = None
    unban_members: list[str] | None = None
    permission_add_member: GroupPermission | None = None
    permission_edit_details: GroupPermission | None = None
    permission_send_message: GroupPermission | None = None
    expiration_timer: int | None = None
    reset_invite_link: bool | None = None

    def to_params(self) -> dict[str, Any]:
        params = super().to_params()
        # signal-cli names these two differently from the option names
        if "expirationTimer" in params:
            params["expiration"] = params.pop("expirationTimer")
        if params.pop("resetInviteLink", False):
            params["resetLink"] = True
        return params


# ---------------------------------------------------------------------------
# Contacts
# ---------------------------------------------------------------------------


class ContactUpdateOptions(_Params):
    given_name: str | None = None
    family_name: str | None = None
    nick_given_name: str | None = None
    nick_family_name: str | None = None
    note: str | None = None
    expiration: int | None = None
    color: str | None = None
    block: bool | None = None
    unblock: bool | None = None
    archived: bool | None = None
    muted: bool | None = None
    muted_until: int | None = None
    hide_story: bool | None = None


class UserStatus(BaseModel):
    number: str | None = None
    is_registered: bool = False
    uuid: str | None = None
    username: str | None = None


# ---------------------------------------------------------------------------
# Devices
# ---------------------------------------------------------------------------


class LinkingResult(BaseModel):
    success: bool
    is_linked: bool = False
    device_name: str | None = None
    uri: str | None = None
    error: str | None = None


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class AccountConfiguration(_Params):
    read_receipts: bool | None = None
    unidentified_delivery_indicators: bool | None = None
    typing_indicators: bool | None = None
    link_previews: bool | None = None


class UpdateAccountOptions(_Params):
    device_name: str | None = None
    username: str | None = None
    delete_username: bool | None = None
    unrestricted_unidentified_sender: bool | None = None
    discoverable_by_number: bool | None = None
    number_sharing: bool | None = None


class AccountUpdateResult(BaseModel):
    success: bool
    username: str | None = None
    username_link: str | None = None
    error: str | None = None


class RateLimitChallengeResult(BaseModel):
    success: bool
    retry_after: float | None = None
    message: str | None = None


# ---------------------------------------------------------------------------
# Stickers
# ---------------------------------------------------------------------------


class StickerPackUploadResult(BaseModel):
    pack_id: str | None = None
    pack_key: str | None = None
    install_url: str | None = None


__all__ = [
    "AccountConfiguration",
    "AccountUpdateResult",
    "ContactUpdateOptions",
    "GroupPermission",
    "GroupUpdateOptions",
    "LinkingResult",
    "Mention",
    "Message",
    "MessageRequestResponse",
    "PollCreateOptions",
    "PollVoteOptions",
    "Quote",
    "RateLimitChallengeResult",
    "ReceiptType",
    "ReceiveOptions",
    "SendMessageOptions",
    "StickerPackUploadResult",
    "TextStyle",
    "UpdateAccountOptions",
    "UserStatus",
]
