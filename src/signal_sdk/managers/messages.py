"""Sending, reacting, receipts, polls and attachment retrieval."""

from __future__ import annotations

from typing import Any

from signal_sdk.core.errors import MessageError
from signal_sdk.managers.base import BaseManager, unwrap_data
from signal_sdk.managers.models import (
    Message,
    PollCreateOptions,
    PollVoteOptions,
    ReceiptType,
    ReceiveOptions,
    SendMessageOptions,
)
from signal_sdk.validators import (
    validate_attachments,
    validate_emoji,
    validate_group_id,
    validate_message,
    validate_recipient,
    validate_timestamp,
)

MAX_POLL_QUESTION_LENGTH = 500
MIN_POLL_OPTIONS = 2
MAX_POLL_OPTIONS = 10


class MessageManager(BaseManager):
    """Outbound messages and message-level actions."""

    async def send_message(
        self,
        recipient: str,
        message: str,
        options: SendMessageOptions | None = None,
    ) -> dict[str, Any]:
        """Send ``message`` to a number, username, UUID or group id.

        Returns:
            The daemon's send result (``timestamp`` and per-recipient ``results``).
        """
        validate_message(message)
        options = options or SendMessageOptions()
        validate_attachments(options.attachments)
        params = self._params(message=message, **self._target(recipient), **options.to_params())
        return await self._call("send", params)

    async def send_reaction(
        self,
        recipient: str,
        target_author: str,
        target_timestamp: int,
        emoji: str,
        remove: bool = False,
        is_story: bool = False,
    ) -> dict[str, Any]:
        validate_emoji(emoji)
        validate_recipient(target_author)
        validate_timestamp(target_timestamp, "target_timestamp")
        params = self._params(
            emoji=emoji,
            targetAuthor=target_author,
            targetTimestamp=target_timestamp,
            remove=remove,
            story=True if is_story else None,
            **self._target(recipient),
        )
        return await self._call("sendReaction", params)

    async def send_typing(self, recipient: str, stop: bool = False) -> None:
        await self._call("sendTyping", self._params(stop=stop or None, **self._target(recipient)))

    async def remote_delete(self, recipient: str, target_timestamp: int) -> None:
        validate_timestamp(target_timestamp, "target_timestamp")
        params = self._params(targetTimestamp=target_timestamp, **self._target(recipient))
        await self._call("remoteDelete", params)

    async def send_receipt(
        self,
        recipient: str,
        target_timestamp: int,
        receipt_type: ReceiptType = "read",
    ) -> None:
        validate_recipient(recipient)
        validate_timestamp(target_timestamp, "target_timestamp")
        params = self._params(recipient=recipient, targetTimestamp=target_timestamp, type=receipt_type)
        await self._call("sendReceipt", params)

    async def receive(self, options: ReceiveOptions | None = None) -> list[Message]:
        """Poll for envelopes (only useful when the daemon does not push them)."""
        options = options or ReceiveOptions()
        result = await self._call("receive", self._params(**options.to_params()))
        if not isinstance(result, list):
            return []
        return [parse_envelope(item.get("envelope", item)) for item in result if isinstance(item, dict)]

    async def send_poll_create(self, options: PollCreateOptions) -> dict[str, Any]:
        validate_message(options.question, MAX_POLL_QUESTION_LENGTH)
        if len(options.options) < MIN_POLL_OPTIONS:
            raise MessageError(f"Poll must have at least {MIN_POLL_OPTIONS} options")
        if len(options.options) > MAX_POLL_OPTIONS:
            raise MessageError(f"Poll cannot have more than {MAX_POLL_OPTIONS} options")

        target: dict[str, Any]
        if options.group_id:
            validate_group_id(options.group_id)
            target = {"groupId": options.group_id}
        elif options.recipients:
            for recipient in options.recipients:
                validate_recipient(recipient)
            target = {"recipients": list(options.recipients)}
        else:
            raise MessageError("Must specify either recipients or group_id")

        params = self._params(
            question=options.question,
            options=list(options.options),
            multiSelect=options.multi_select,
            **target,
        )
        return await self._call("sendPollCreate", params)

    async def send_poll_vote(self, recipient: str, options: PollVoteOptions) -> dict[str, Any]:
        validate_recipient(options.poll_author)
        validate_timestamp(options.poll_timestamp, "poll_timestamp")
        if not options.option_indexes:
            raise MessageError("Must specify at least one option to vote for")
        params = self._params(
            pollAuthor=options.poll_author,
            pollTimestamp=options.poll_timestamp,
            options=list(options.option_indexes),
            voteCount=options.vote_count,
            **self._target(recipient, single=True),
        )
        return await self._call("sendPollVote", params)

    async def send_poll_terminate(self, recipient: str, poll_timestamp: int) -> dict[str, Any]:
        validate_timestamp(poll_timestamp, "poll_timestamp")
        params = self._params(pollTimestamp=poll_timestamp, **self._target(recipient, single=True))
        return await self._call("sendPollTerminate", params)

    async def get_attachment(
        self,
        attachment_id: str,
        *,
        recipient: str | None = None,
        group_id: str | None = None,
    ) -> str:
        """Fetch an attachment; returns its base64 payload."""
        if not attachment_id:
            raise MessageError("Attachment ID is required")
        target: dict[str, Any] = {}
        if group_id:
            validate_group_id(group_id)
            target = {"groupId": group_id}
        elif recipient:
            validate_recipient(recipient)
            target = {"recipient": recipient}
        result = await self._call("getAttachment", self._params(id=attachment_id, **target))
        return unwrap_data(result)


def parse_envelope(envelope: dict[str, Any]) -> Message:
    """Flatten a raw envelope into a Message."""
    data = envelope.get("dataMessage") or {}
    group_info = data.get("groupInfo") or {}
    return Message(
        timestamp=envelope.get("timestamp") or 0,
        source=envelope.get("source") or envelope.get("sourceNumber"),
        source_uuid=envelope.get("sourceUuid"),
        source_device=envelope.get("sourceDevice"),
        text=data.get("message") or data.get("body"),
        group_id=group_info.get("groupId"),
        attachments=data.get("attachments"),
        mentions=data.get("mentions"),
        quote=data.get("quote"),
        reaction=data.get("reaction"),
        sticker=data.get("sticker"),
        expires_in_seconds=data.get("expiresInSeconds"),
        view_once=data.get("viewOnce"),
        sync_message=envelope.get("syncMessage"),
        receipt=envelope.get("receiptMessage"),
        typing=envelope.get("typingMessage"),
    )


__all__ = ["MessageManager", "parse_envelope"]
