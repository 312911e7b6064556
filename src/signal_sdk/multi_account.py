"""Run several accounts side by side, one SignalClient each.

Events of every client are re-published on the manager's bus wrapped in
an ``AccountEvent`` so a single subscriber can tell accounts apart.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from signal_sdk.client import SignalClient
from signal_sdk.core.config import ClientConfig
from signal_sdk.core.errors import SignalError, ValidationError
from signal_sdk.core.logging import get_logger
from signal_sdk.core.tasks import cancel_all, spawn
from signal_sdk.events import ClientEvent, EventBus, EventCallback
from signal_sdk.managers.models import SendMessageOptions
from signal_sdk.validators import validate_phone_number

_logger = get_logger("multi_account")

FORWARDED_CHANNELS = (
    ClientEvent.MESSAGE,
    ClientEvent.RECEIPT,
    ClientEvent.TYPING,
    ClientEvent.REACTION,
    ClientEvent.ERROR,
    ClientEvent.CLOSE,
)


class ManagerEvent(str, Enum):
    ACCOUNT_ADDED = "account_added"
    ACCOUNT_REMOVED = "account_removed"
    ACCOUNT_CONNECTED = "account_connected"
    ACCOUNT_DISCONNECTED = "account_disconnected"
    #: Every forwarded client event, whatever its channel
    ACCOUNT_EVENT = "account_event"


@dataclass(frozen=True)
class AccountEvent:
    account: str
    channel: ClientEvent
    payload: Any


@dataclass
class AccountStatus:
    account: str
    connected: bool
    last_activity: float
    idle_seconds: float


@dataclass
class ManagerStatus:
    total_accounts: int
    connected_accounts: int
    accounts: list[AccountStatus] = field(default_factory=list)


@dataclass
class _ManagedAccount:
    account: str
    client: SignalClient
    last_activity: float = field(default_factory=time.time)
    subscriptions: list[str] = field(default_factory=list)

    @property
    def connected(self) -> bool:
        # The client's own supervisor may reconnect behind the manager's back
        return self.client.is_connected


class MultiAccountManager:
    """Owns one client per account.

    Args:
        base_config: Template configuration; ``account`` is filled per client.
        auto_reconnect: Retry a failed ``connect`` after ``reconnect_delay``.
        client_factory: Builds the client for a config (tests inject fakes).
    """

    def __init__(
        self,
        base_config: ClientConfig | None = None,
        *,
        auto_reconnect: bool = False,
        reconnect_delay: float = 5.0,
        client_factory: Any = SignalClient,
    ) -> None:
        self._base_config = base_config or ClientConfig()
        self._auto_reconnect = auto_reconnect
        self._reconnect_delay = reconnect_delay
        self._client_factory = client_factory
        self._accounts: dict[str, _ManagedAccount] = {}
        self._bus = EventBus(logger=get_logger("multi_account.events"))
        self._tasks: set[asyncio.Task[Any]] = set()
        _logger.info("multi_account.initialized", auto_reconnect=auto_reconnect)

    @property
    def events(self) -> EventBus:
        return self._bus

    @property
    def accounts(self) -> list[str]:
        return list(self._accounts)

    def on(self, channel: ClientEvent | ManagerEvent, callback: EventCallback) -> str:
        return self._bus.subscribe(channel, callback)

    def has_account(self, account: str) -> bool:
        return account in self._accounts

    def get_account(self, account: str) -> SignalClient | None:
        managed = self._accounts.get(account)
        return managed.client if managed else None

    def _require(self, account: str) -> _ManagedAccount:
        managed = self._accounts.get(account)
        if managed is None:
            raise ValidationError(f"Account {account} not found", "account")
        return managed

    # -------------------------------------------------------------------------
    # Membership
    # -------------------------------------------------------------------------

    def add_account(self, account: str, **overrides: Any) -> SignalClient:
        """Create (but do not connect) a client for ``account``.

        ``overrides`` replace fields of the base configuration.
        """
        validate_phone_number(account, "account")
        if account in self._accounts:
            raise ValidationError(f"Account {account} already exists", "account")

        config = self._base_config.model_copy(update={**overrides, "account": account})
        client = self._client_factory(config)
        managed = _ManagedAccount(account=account, client=client)
        for channel in FORWARDED_CHANNELS:
            managed.subscriptions.append(
                client.on(channel, self._forwarder(managed, channel))
            )
        self._accounts[account] = managed
        _logger.info("multi_account.account_added", account=account)
        self._bus.emit(ManagerEvent.ACCOUNT_ADDED, account)
        return client

    async def remove_account(self, account: str) -> None:
        managed = self._require(account)
        # Also stops a reconnect the client may have scheduled
        await managed.client.disconnect()
        for sub_id in managed.subscriptions:
            managed.client.off(sub_id)
        del self._accounts[account]
        _logger.info("multi_account.account_removed", account=account)
        self._bus.emit(ManagerEvent.ACCOUNT_REMOVED, account)

    # -------------------------------------------------------------------------
    # Connections
    # -------------------------------------------------------------------------

    async def connect(self, account: str) -> None:
        """Connect one account.

        Raises:
            SignalError: When the connection fails. With ``auto_reconnect``
                another attempt is scheduled before the error propagates.
        """
        managed = self._require(account)
        if managed.connected:
            _logger.warning("multi_account.already_connected", account=account)
            return
        _logger.info("multi_account.connecting", account=account)
        try:
            await managed.client.connect()
        except SignalError as e:
            _logger.error("multi_account.connect_failed", account=account, error=str(e))
            if self._auto_reconnect:
                self._schedule_reconnect(account)
            raise
        managed.last_activity = time.time()
        _logger.info("multi_account.connected", account=account)
        self._bus.emit(ManagerEvent.ACCOUNT_CONNECTED, account)

    async def disconnect(self, account: str) -> None:
        managed = self._require(account)
        was_connected = managed.connected
        await managed.client.disconnect()
        if not was_connected:
            _logger.warning("multi_account.not_connected", account=account)
            return
        _logger.info("multi_account.disconnected", account=account)
        self._bus.emit(ManagerEvent.ACCOUNT_DISCONNECTED, account)

    async def connect_all(self) -> dict[str, BaseException | None]:
        """Connect every account concurrently; one failure does not stop the rest.

        Returns:
            Per-account error, or None for accounts that connected.
        """
        accounts = list(self._accounts)
        results = await asyncio.gather(*(self.connect(a) for a in accounts), return_exceptions=True)
        outcome = {a: r if isinstance(r, BaseException) else None for a, r in zip(accounts, results)}
        failed = [a for a, err in outcome.items() if err is not None]
        _logger.info("multi_account.connect_all_done", total=len(accounts), failed=len(failed))
        return outcome

    async def disconnect_all(self) -> None:
        accounts = list(self._accounts)
        results = await asyncio.gather(*(self.disconnect(a) for a in accounts), return_exceptions=True)
        for account, result in zip(accounts, results):
            if isinstance(result, BaseException):
                _logger.error("multi_account.disconnect_failed", account=account, error=str(result))

    async def send_message(
        self,
        from_account: str,
        recipient: str,
        message: str,
        options: SendMessageOptions | None = None,
    ) -> dict[str, Any]:
        managed = self._require(from_account)
        managed.last_activity = time.time()
        return await managed.client.send_message(recipient, message, options)

    def get_status(self, account: str | None = None) -> ManagerStatus | AccountStatus | None:
        """Status of one account (None when unknown) or of all of them."""
        now = time.time()
        if account is not None:
            managed = self._accounts.get(account)
            return self._status_of(managed, now) if managed else None
        statuses = [self._status_of(m, now) for m in self._accounts.values()]
        return ManagerStatus(
            total_accounts=len(statuses),
            connected_accounts=sum(1 for s in statuses if s.connected),
            accounts=statuses,
        )

    async def shutdown(self) -> None:
        _logger.info("multi_account.shutting_down", accounts=len(self._accounts))
        await cancel_all(self._tasks)
        await self.disconnect_all()
        for account in list(self._accounts):
            await self.remove_account(account)
        await self._bus.aclose()
        _logger.info("multi_account.shutdown_complete")

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @staticmethod
    def _status_of(managed: _ManagedAccount, now: float) -> AccountStatus:
        return AccountStatus(
            account=managed.account,
            connected=managed.connected,
            last_activity=managed.last_activity,
            idle_seconds=now - managed.last_activity,
        )

    def _forwarder(self, managed: _ManagedAccount, channel: ClientEvent) -> EventCallback:
        def forward(payload: Any) -> None:
            managed.last_activity = time.time()
            event = AccountEvent(managed.account, channel, payload)
            self._bus.emit(channel, event)
            self._bus.emit(ManagerEvent.ACCOUNT_EVENT, event)

        return forward

    def _schedule_reconnect(self, account: str) -> None:
        async def retry() -> None:
            await asyncio.sleep(self._reconnect_delay)
            if account not in self._accounts:
                return
            try:
                await self.connect(account)
            except SignalError:
                # connect() already logged and scheduled the next attempt
                pass

        _logger.info("multi_account.reconnect_scheduled", account=account, delay_seconds=self._reconnect_delay)
        spawn(
            retry(),
            name=f"reconnect-{account}",
            tracked=self._tasks,
            logger=_logger,
            event="multi_account.reconnect_failed",
        )


__all__ = [
    "AccountEvent",
    "AccountStatus",
    "ManagerEvent",
    "ManagerStatus",
    "MultiAccountManager",
]
