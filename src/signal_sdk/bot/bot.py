"""SignalBot: command-driven bot on top of SignalClient.

Outbound sends go through an ActionQueue; inbound messages that arrive
while the queue drains are buffered and replayed in order once it is idle,
so command side effects never interleave with in-flight sends.

Cooldowns drop repeated commands silently. Admin-only commands answer
non-admins with an explicit refusal instead.
"""

from __future__ import annotations

import asyncio
import base64
import inspect
import tempfile
import time
from collections import deque
from collections.abc import Callable
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import httpx

from signal_sdk.bot.cooldown import CooldownLedger
from signal_sdk.bot.models import (
    BotCommand,
    BotEvent,
    BotStats,
    CommandHandler,
    CommandInvocation,
    ParsedMessage,
    SendAttachmentAction,
    SendMessageAction,
    SendReactionAction,
)
from signal_sdk.bot.queue import ActionQueue, remove_temp_files
from signal_sdk.client import SignalClient
from signal_sdk.core.config import BotConfig
from signal_sdk.core.errors import GroupError, SignalError
from signal_sdk.core.tasks import cancel_all, spawn
from signal_sdk.events import (
    ClientEvent,
    CloseEvent,
    ErrorEvent,
    EventBus,
    EventCallback,
    LogEvent,
    MessageEvent,
)
from signal_sdk.managers.models import GroupUpdateOptions

ADMIN_REQUIRED_REPLY = "ERROR: This command requires admin privileges"
IMAGE_DOWNLOAD_TIMEOUT = 30.0
MAX_IMAGE_REDIRECTS = 5


def format_uptime(seconds: float) -> str:
    """``3d 4h 5m`` / ``4h 5m`` / ``5m 6s`` / ``6s``."""
    total = int(seconds)
    minutes, secs = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)
    if days:
        return f"{days}d {hours}h {minutes}m"
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def truncate_message(message: str, max_length: int) -> str:
    if len(message) <= max_length:
        return message
    return message[: max_length - 3] + "..."


class SignalBot:
    """A bot bound to one account.

    Args:
        config: Bot configuration; ``config.client`` configures the connection.
        client: Pre-built client (tests inject one with a fake transport).
        clock: Monotonic clock for command cooldowns.
    """

    def __init__(
        self,
        config: BotConfig,
        client: SignalClient | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._settings = config.settings
        self._client = client or SignalClient(config.client)
        self._logger = self._client.context.logger("bot")
        self._bus = EventBus(logger=self._client.context.logger("bot.events"))

        self._commands: dict[str, BotCommand] = {}
        self._cooldowns = CooldownLedger(self._settings.cooldown_seconds, clock=clock)
        self._queue = ActionQueue(
            self._client,
            inter_action_delay=self._settings.inter_action_delay,
            cleanup_delay=self._settings.attachment_cleanup_delay,
            on_idle=self._replay_buffered,
            logger=self._client.context.logger("bot.queue"),
        )
        self._buffer: deque[MessageEvent] = deque()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._subscriptions: list[str] = []

        self._running = False
        self._group_id: str | None = None
        now = time.time()
        self._stats = BotStats(start_time=now, last_activity=now)

        self._register_default_commands()

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def client(self) -> SignalClient:
        return self._client

    @property
    def events(self) -> EventBus:
        return self._bus

    @property
    def queue(self) -> ActionQueue:
        return self._queue

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def group_id(self) -> str | None:
        return self._group_id

    @property
    def commands(self) -> list[BotCommand]:
        return list(self._commands.values())

    def on(self, event: BotEvent, callback: EventCallback) -> str:
        return self._bus.subscribe(event, callback)

    def is_admin(self, number: str | None) -> bool:
        return number is not None and number in self._config.admins

    def stats(self) -> BotStats:
        return BotStats(
            messages_received=self._stats.messages_received,
            commands_executed=self._stats.commands_executed,
            start_time=self._stats.start_time,
            last_activity=self._stats.last_activity,
            active_users=len(self._cooldowns),
        )

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def add_command(self, command: BotCommand) -> None:
        self._commands[command.name.lower()] = command

    def command(
        self,
        name: str,
        description: str,
        *,
        admin_only: bool = False,
    ) -> Any:
        """Decorator form of ``add_command``."""

        def decorator(handler: CommandHandler) -> CommandHandler:
            self.add_command(BotCommand(name, description, handler, admin_only=admin_only))
            return handler

        return decorator

    def remove_command(self, name: str) -> bool:
        return self._commands.pop(name.lower(), None) is not None

    def _register_default_commands(self) -> None:
        prefix = self._settings.command_prefix

        async def help_command(message: ParsedMessage, args: list[str], bot: SignalBot) -> str:
            lines = [
                f"{prefix}{cmd.name} - {cmd.description}"
                for cmd in bot.commands
                if not cmd.admin_only or message.is_from_admin
            ]
            footer = "| You have admin privileges" if message.is_from_admin else ""
            return "Signal Bot Commands\n\n" + "\n".join(lines) + "\n\n" + footer

        async def stats_command(message: ParsedMessage, args: list[str], bot: SignalBot) -> str:
            stats = bot.stats()
            return (
                "Bot Statistics\n\n"
                f"1. Messages Received: {stats.messages_received}\n"
                f"2. Commands Executed: {stats.commands_executed}\n"
                f"3. Uptime: {format_uptime(time.time() - stats.start_time)}\n"
                f"4. Active Users: {stats.active_users}"
            )

        async def ping_command(message: ParsedMessage, args: list[str], bot: SignalBot) -> str:
            response_ms = int(time.time() * 1000) - message.timestamp
            return f"Pong! Response time: {response_ms}ms"

        async def info_command(message: ParsedMessage, args: list[str], bot: SignalBot) -> str:
            group = bot._config.group
            return (
                "Bot Information\n\n"
                f"- Number: {bot._config.phone_number}\n"
                f"- Group: {group.name if group else 'N/A'}\n"
                f"- Admins: {len(bot._config.admins)}\n"
                f"- Commands: {len(bot._commands)}\n"
                f"- Prefix: {prefix}"
            )

        self.add_command(BotCommand("help", "Displays available commands", help_command))
        self.add_command(BotCommand("stats", "Displays bot statistics", stats_command))
        self.add_command(BotCommand("ping", "Tests bot responsiveness", ping_command))
        self.add_command(
            BotCommand("info", "Detailed bot information (admin)", info_command, admin_only=True)
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Connect, verify the account is linked, set up the group and go live.

        Raises:
            SignalError: If the connection fails or no device is linked.
        """
        self._logger.info("bot.starting", account=self._config.phone_number)
        self._queue.reopen()
        await self._client.connect()

        devices = await self._client.list_devices()
        if not devices:
            raise SignalError("No device found. Please link the bot first.")
        self._logger.info("bot.devices_found", count=len(devices))

        group = self._config.group
        if group is not None and group.create_if_not_exists:
            try:
                await self._setup_group()
            except SignalError as e:
                self._logger.error("bot.group_setup_failed", group=group.name, error=str(e))

        self._subscribe_client_events()
        self._running = True
        self._logger.info("bot.started", commands=len(self._commands), group_id=self._group_id)
        self._bus.emit(BotEvent.READY, None)
        self._send_welcome()

    async def stop(self) -> None:
        """Stop immediately: drop queued actions, disconnect."""
        self._logger.info("bot.stopping")
        await self._teardown()
        await self._client.disconnect()
        self._bus.emit(BotEvent.STOPPED, None)
        self._logger.info("bot.stopped")

    async def graceful_shutdown(self) -> None:
        self._logger.info("bot.shutting_down")
        await self._teardown()
        try:
            await self._client.graceful_shutdown()
        except SignalError as e:
            self._logger.error("bot.shutdown_failed", error=str(e))
        self._bus.emit(BotEvent.STOPPED, None)

    async def _teardown(self) -> None:
        self._running = False
        for sub_id in self._subscriptions:
            self._client.off(sub_id)
        self._subscriptions.clear()
        self._buffer.clear()
        await self._queue.close()
        await cancel_all(self._tasks)

    # -------------------------------------------------------------------------
    # Outbound (queued)
    # -------------------------------------------------------------------------

    def send_message(self, recipient: str, message: str) -> None:
        """Queue a text message; long messages are truncated with ``...``."""
        text = truncate_message(message, self._settings.max_message_length)
        self._queue.enqueue(SendMessageAction(recipient, text))

    def send_reaction(self, recipient: str, target_author: str, target_timestamp: int, emoji: str) -> None:
        self._queue.enqueue(SendReactionAction(recipient, target_author, target_timestamp, emoji))

    def send_message_with_attachment(
        self,
        recipient: str,
        message: str,
        attachments: list[str],
        cleanup: list[str | Path] | None = None,
    ) -> None:
        """Queue a message with files; ``cleanup`` files are deleted after sending."""
        text = truncate_message(message, self._settings.max_message_length)
        self._queue.enqueue(SendAttachmentAction(
            recipient,
            text,
            tuple(attachments),
            tuple(Path(p) for p in cleanup or ()),
        ))

    async def send_message_with_image(
        self,
        recipient: str,
        message: str,
        image_url: str,
        prefix: str = "bot_image",
    ) -> None:
        """Download ``image_url`` and queue it as an attachment.

        On download failure the message is sent with the URL appended instead.
        """
        try:
            path = await self.download_image(image_url, prefix)
        except (httpx.HTTPError, OSError) as e:
            self._logger.error("bot.image_download_failed", url=image_url, error=str(e))
            self.send_message(recipient, f"{message}\n\n- Image: {image_url}")
            return
        self.send_message_with_attachment(recipient, message, [str(path)], cleanup=[path])

    async def download_image(self, url: str, prefix: str = "bot_image") -> Path:
        """Fetch ``url`` into a temp file (following up to five redirects).

        Raises:
            httpx.HTTPError: On network failure or a non-success status.
        """
        async with httpx.AsyncClient(
            follow_redirects=True,
            max_redirects=MAX_IMAGE_REDIRECTS,
            timeout=IMAGE_DOWNLOAD_TIMEOUT,
        ) as http:
            response = await http.get(url)
            response.raise_for_status()
        suffix = Path(urlparse(str(response.url)).path).suffix or ".jpg"
        with tempfile.NamedTemporaryFile(prefix=f"{prefix}_", suffix=suffix, delete=False) as f:
            f.write(response.content)
        self._logger.debug("bot.image_downloaded", url=url, path=f.name, size=len(response.content))
        return Path(f.name)

    def _send_welcome(self) -> None:
        group = self._config.group
        text = (
            "Signal Bot Started!\n\n"
            "Bot is now active\n"
            f"Number: {self._config.phone_number}\n"
            f"Group: {group.name if group else 'None'}\n"
            f"Use {self._settings.command_prefix}help to see commands\n\n"
            "Happy chatting!"
        )
        for admin in self._config.admins:
            self.send_message(admin, text)

    # -------------------------------------------------------------------------
    # Group setup
    # -------------------------------------------------------------------------

    async def _setup_group(self) -> None:
        group = self._config.group
        assert group is not None
        avatar_path: Path | None = None
        temporary = False
        if group.avatar:
            avatar_path, temporary = await self._resolve_avatar(group.avatar)
        try:
            groups = await self._client.groups.list_groups()
            existing = next(
                (g for g in groups if g.get("name") == group.name and g.get("isMember")),
                None,
            )
            if existing is not None:
                await self._update_existing_group(existing, avatar_path)
            else:
                await self._create_group(groups, avatar_path)
        finally:
            if avatar_path is not None and temporary:
                remove_temp_files([avatar_path], self._logger)

    async def _update_existing_group(self, existing: dict[str, Any], avatar_path: Path | None) -> None:
        group = self._config.group
        assert group is not None
        self._group_id = existing.get("groupId") or existing.get("id")
        self._logger.info("bot.group_found", group=group.name, group_id=self._group_id)
        if not self._group_id:
            return

        members = {m.get("number") if isinstance(m, dict) else m for m in existing.get("members") or []}
        missing_admins = [admin for admin in self._config.admins if admin not in members]
        if not missing_admins and avatar_path is None:
            self._logger.info("bot.group_up_to_date", group=group.name)
            return

        options = GroupUpdateOptions(
            add_members=missing_admins or None,
            avatar=str(avatar_path) if avatar_path else None,
        )
        try:
            await self._client.groups.update_group(self._group_id, options)
        except SignalError as e:
            self._logger.error("bot.group_update_failed", group=group.name, error=str(e))
            return
        self._logger.info(
            "bot.group_updated",
            group=group.name,
            added_admins=len(missing_admins),
            avatar=avatar_path is not None,
        )
        if missing_admins:
            self.send_message(self._group_id, self._group_welcome_text())

    async def _create_group(self, groups: list[dict[str, Any]], avatar_path: Path | None) -> None:
        group = self._config.group
        assert group is not None
        # Admins first, then configured members, without duplicates
        members = list(dict.fromkeys([*self._config.admins, *group.initial_members]))
        self._logger.info("bot.group_creating", group=group.name, members=len(members))
        try:
            created = await self._client.groups.create_group(group.name, members) or {}
        except SignalError as e:
            if "Method not implemented" in e.message:
                available = ", ".join(str(g.get("name")) for g in groups)
                self._logger.error(
                    "bot.group_creation_unsupported",
                    group=group.name,
                    available_groups=available,
                )
                raise GroupError(
                    f'Group "{group.name}" does not exist and cannot be created automatically. '
                    f"Create it manually in Signal, add {self._config.phone_number} and the admins "
                    f"({', '.join(self._config.admins)}), then restart the bot."
                ) from e
            raise

        self._group_id = created.get("groupId") or created.get("id")
        if not self._group_id:
            return
        self._logger.info("bot.group_created", group=group.name, group_id=self._group_id)
        options = GroupUpdateOptions(
            description=group.description,
            permission_add_member="ONLY_ADMINS",
            permission_edit_details="ONLY_ADMINS",
            avatar=str(avatar_path) if avatar_path else None,
        )
        await self._client.groups.update_group(self._group_id, options)
        self.send_message(self._group_id, self._group_welcome_text())

    def _group_welcome_text(self) -> str:
        group = self._config.group
        assert group is not None
        return (
            f"Welcome to {group.name}!\n\n"
            "This group is managed by Signal Bot.\n"
            f"Type {self._settings.command_prefix}help to see available commands."
        )

    async def _resolve_avatar(self, avatar: str) -> tuple[Path | None, bool]:
        """Turn a URL, local path or ``data:image`` URI into a file path.

        Returns:
            ``(path, temporary)``; ``path`` is None when the avatar is unusable.
        """
        if avatar.startswith(("http://", "https://")):
            try:
                return await self.download_image(avatar, "bot_avatar"), True
            except (httpx.HTTPError, OSError) as e:
                self._logger.error("bot.avatar_download_failed", error=str(e))
                return None, False
        if Path(avatar).exists():
            return Path(avatar), False
        if avatar.startswith("data:image/"):
            try:
                data = base64.b64decode(avatar.split(",", 1)[1])
            except (IndexError, ValueError) as e:
                self._logger.error("bot.avatar_decode_failed", error=str(e))
                return None, False
            with tempfile.NamedTemporaryFile(prefix="bot_avatar_", suffix=".jpg", delete=False) as f:
                f.write(data)
            return Path(f.name), True
        self._logger.warning("bot.avatar_unsupported", avatar=avatar[:50])
        return None, False

    # -------------------------------------------------------------------------
    # Inbound
    # -------------------------------------------------------------------------

    def _subscribe_client_events(self) -> None:
        self._subscriptions = [
            self._client.on(ClientEvent.MESSAGE, self._on_client_message),
            self._client.on(ClientEvent.CLOSE, self._on_client_close),
            self._client.on(ClientEvent.ERROR, self._on_client_error),
            self._client.on(ClientEvent.LOG, self._on_client_log),
        ]

    def _on_client_message(self, event: MessageEvent) -> None:
        if self._queue.draining:
            self._logger.debug("bot.message_buffered", buffered=len(self._buffer) + 1)
            self._buffer.append(event)
            return
        self._spawn_handler(event)

    def _replay_buffered(self) -> None:
        while self._buffer:
            self._spawn_handler(self._buffer.popleft())

    def _spawn_handler(self, event: MessageEvent) -> None:
        spawn(
            self.handle_message(event),
            name="bot-handle-message",
            tracked=self._tasks,
            logger=self._logger,
            event="bot.message_failed",
        )

    def _on_client_close(self, event: CloseEvent) -> None:
        if event.code == 0 or event.intentional:
            self._logger.info("bot.daemon_closed", code=event.code)
        else:
            self._logger.error("bot.daemon_closed", code=event.code)
        self._bus.emit(BotEvent.DAEMON_CLOSED, event.code)

    def _on_client_error(self, event: ErrorEvent) -> None:
        self._logger.error("bot.daemon_error", error=str(event.error))
        self._bus.emit(BotEvent.ERROR, event.error)

    def _on_client_log(self, event: LogEvent) -> None:
        self._logger.debug("bot.daemon_log", level=event.level, message=event.message)

    def parse_message(self, event: MessageEvent) -> ParsedMessage | None:
        """Apply the bot's filters; None when the envelope should be ignored."""
        envelope = event.envelope
        data = envelope.get("dataMessage")
        if not data:
            return None
        source = envelope.get("sourceNumber") or envelope.get("source")
        if not source or source == self._config.phone_number:
            return None
        text = data.get("message") or ""
        if not text and not data.get("attachments"):
            return None

        group_info = data.get("groupInfo") or None
        group_id = (group_info.get("groupId") or group_info.get("id")) if group_info else None
        if self._group_id is not None:
            if group_info is None:
                if text.strip():
                    self._logger.debug("bot.private_message_ignored", source=source)
                return None
            if group_id != self._group_id:
                return None

        timestamp = int(envelope.get("timestamp") or 0)
        return ParsedMessage(
            id=str(timestamp),
            source=source,
            text=text,
            timestamp=timestamp,
            group_id=group_id,
            group_name=group_info.get("name") if group_info else None,
            is_from_admin=self.is_admin(source),
        )

    async def handle_message(self, event: MessageEvent) -> None:
        message = self.parse_message(event)
        if message is None:
            return

        self._stats.messages_received += 1
        self._stats.last_activity = time.time()
        if self._settings.log_messages:
            self._logger.info("bot.message_received", source=message.source, text=message.text[:50])
        self._bus.emit(BotEvent.MESSAGE, message)

        try:
            await self._client.send_receipt(message.source, message.timestamp)
        except SignalError as e:
            self._logger.debug("bot.read_receipt_failed", error=str(e))

        if message.text.startswith(self._settings.command_prefix):
            await self._handle_command(message)

    async def _handle_command(self, message: ParsedMessage) -> None:
        parts = message.text[len(self._settings.command_prefix):].split()
        if not parts:
            return
        name, args = parts[0].lower(), parts[1:]
        command = self._commands.get(name)
        if command is None:
            return

        if command.admin_only and not message.is_from_admin:
            self._logger.info("bot.command_denied", command=name, user=message.source)
            self.send_message(message.reply_target, ADMIN_REQUIRED_REPLY)
            return
        if self._cooldowns.is_on_cooldown(message.source):
            self._logger.info(
                "bot.command_cooldown",
                command=name,
                user=message.source,
                remaining_seconds=round(self._cooldowns.remaining(message.source), 2),
            )
            return

        self._stats.commands_executed += 1
        self._cooldowns.record(message.source)
        self._bus.emit(BotEvent.COMMAND, CommandInvocation(name, message.source, tuple(args)))
        self._logger.info("bot.command_executing", command=name, user=message.source)

        try:
            response = command.handler(message, args, self)
            if inspect.isawaitable(response):
                response = await response
        except Exception as e:
            self._logger.error("bot.command_failed", command=name, error=str(e))
            self.send_message(
                message.reply_target,
                f"ERROR: An error occurred while running the command: {command.name}",
            )
            return
        if response:
            self.send_message(message.reply_target, response)


__all__ = ["ADMIN_REQUIRED_REPLY", "SignalBot", "format_uptime", "truncate_message"]
