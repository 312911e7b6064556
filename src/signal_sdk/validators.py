"""Input validation run before any request reaches the daemon.

Every function raises ValidationError naming the offending field, so a bad
argument never registers a pending call or touches the transport.
"""

from __future__ import annotations

import math
import re
from collections.abc import Sequence

from signal_sdk.core.errors import ValidationError

MAX_MESSAGE_LENGTH = 10_000
MAX_EMOJI_LENGTH = 10

_E164_RE = re.compile(r"^\+[1-9]\d{1,14}$")
_UUID_RE = re.compile(
    r"^(PNI:)?[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def validate_phone_number(phone_number: str, field: str = "phone_number") -> None:
    """Require E.164 format, e.g. ``+33123456789``."""
    if not phone_number:
        raise ValidationError("Phone number is required", field)
    if not isinstance(phone_number, str):
        raise ValidationError("Phone number must be a string", field)
    if not _E164_RE.match(phone_number):
        raise ValidationError(
            "Phone number must be in E.164 format (e.g., +33123456789)", field
        )


def validate_group_id(group_id: str) -> None:
    if not group_id:
        raise ValidationError("Group ID is required", "group_id")
    if not isinstance(group_id, str):
        raise ValidationError("Group ID must be a string", "group_id")


def validate_recipient(recipient: str) -> None:
    """Accept a ``u:`` username, a (PNI:) UUID, or an E.164 number."""
    if not recipient:
        raise ValidationError("Recipient is required", "recipient")
    if not isinstance(recipient, str):
        raise ValidationError("Recipient must be a string", "recipient")
    if recipient.startswith("u:"):
        if len(recipient) < 3:
            raise ValidationError("Username is too short", "recipient")
        return
    if _UUID_RE.match(recipient):
        return
    validate_phone_number(recipient, "recipient")


def validate_message(message: str, max_length: int = MAX_MESSAGE_LENGTH) -> None:
    if message is None:
        raise ValidationError("Message is required", "message")
    if not isinstance(message, str):
        raise ValidationError("Message must be a string", "message")
    if len(message) > max_length:
        raise ValidationError(
            f"Message exceeds maximum length of {max_length} characters", "message"
        )


def validate_attachments(attachments: Sequence[str]) -> None:
    if isinstance(attachments, str) or not isinstance(attachments, Sequence):
        raise ValidationError("Attachments must be a list", "attachments")
    for attachment in attachments:
        if not isinstance(attachment, str):
            raise ValidationError("Each attachment must be a file path string", "attachments")
        if not attachment:
            raise ValidationError("Attachment path cannot be empty", "attachments")


def validate_timestamp(timestamp: int | float, field: str = "timestamp") -> None:
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        raise ValidationError("Timestamp must be a number", field)
    if not math.isfinite(timestamp):
        raise ValidationError("Timestamp must be finite", field)
    if timestamp <= 0:
        raise ValidationError("Timestamp must be positive", field)


def validate_emoji(emoji: str) -> None:
    if not emoji:
        raise ValidationError("Emoji is required", "emoji")
    if not isinstance(emoji, str):
        raise ValidationError("Emoji must be a string", "emoji")
    if len(emoji) > MAX_EMOJI_LENGTH:
        raise ValidationError("Invalid emoji format", "emoji")


def validate_device_id(device_id: int) -> None:
    if isinstance(device_id, bool) or not isinstance(device_id, int):
        raise ValidationError("Device ID must be an integer", "device_id")
    if device_id <= 0:
        raise ValidationError("Device ID must be positive", "device_id")


def sanitize_input(value: str) -> str:
    """Strip NUL bytes; non-strings become the empty string."""
    if not isinstance(value, str):
        return ""
    return value.replace("\0", "")


__all__ = [
    "MAX_EMOJI_LENGTH",
    "MAX_MESSAGE_LENGTH",
    "sanitize_input",
    "validate_attachments",
    "validate_device_id",
    "validate_emoji",
    "validate_group_id",
    "validate_message",
    "validate_phone_number",
    "validate_recipient",
    "validate_timestamp",
]
