"""Configuration models for signal-sdk.

Defines Pydantic v2 models for the daemon client (transport selection,
timeouts, reconnection and admission control) and for the bot framework
(settings, managed group). All durations are seconds.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

DaemonMode = Literal["json-rpc", "unix-socket", "tcp", "http"]
TrustMode = Literal["on-first-use", "always", "never"]


class ClientConfig(BaseModel):
    """Settings for a SignalClient and the transport it opens."""

    signal_cli_path: str = Field(
        default="signal-cli",
        description="Executable used in json-rpc mode. Resolved through PATH "
        "when it is not an absolute path.",
    )
    account: str | None = Field(
        default=None,
        description="Account phone number passed to the daemon with -a.",
    )
    daemon_mode: DaemonMode = Field(
        default="json-rpc",
        description="json-rpc spawns signal-cli and talks over stdio; "
        "unix-socket, tcp and http attach to an already running daemon.",
    )
    socket_path: Path = Field(default=Path("/tmp/signal-cli.sock"))
    tcp_host: str = Field(default="localhost")
    tcp_port: int = Field(default=7583, ge=1, le=65535)
    http_base_url: str = Field(default="http://localhost:8080")

    connection_timeout: float = Field(
        default=30.0,
        ge=0,
        description="Seconds allowed for opening a socket or HTTP health check.",
    )
    request_timeout: float = Field(
        default=60.0,
        ge=0,
        description="Seconds a single RPC call may wait for its response.",
    )
    startup_grace_seconds: float = Field(
        default=2.0,
        ge=0,
        description="How long a spawned daemon must stay alive before the "
        "connection is considered established when it prints nothing.",
    )
    shutdown_grace_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Seconds between SIGTERM and SIGKILL on graceful shutdown.",
    )

    auto_reconnect: bool = Field(default=True)
    max_reconnect_attempts: int = Field(default=5, ge=0)
    reconnect_base_delay: float = Field(
        default=1.0,
        ge=0,
        description="Backoff delay for the first reconnect; doubles per attempt.",
    )

    enable_retry: bool = Field(
        default=True,
        description="Retry the initial connect with exponential backoff.",
    )
    max_retries: int = Field(default=3, ge=0)
    retry_delay: float = Field(default=1.0, ge=0)

    max_concurrent_requests: int = Field(default=5, ge=1)
    min_request_interval: float = Field(
        default=0.1,
        ge=0,
        description="Minimum spacing in seconds between two outbound requests.",
    )

    trust_new_identities: TrustMode = Field(default="on-first-use")
    disable_send_log: bool = Field(default=False)

    @field_validator("http_base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("http_base_url must start with http:// or https://")
        return v.rstrip("/")

    @classmethod
    def from_yaml(cls, path: Path) -> ClientConfig:
        """Load client configuration from a YAML file."""
        return cls.model_validate(_read_yaml(path))


class BotSettings(BaseModel):
    """Behaviour knobs for SignalBot."""

    command_prefix: str = Field(default="/", min_length=1)
    auto_react: bool = Field(default=False)
    log_messages: bool = Field(default=True)
    welcome_new_members: bool = Field(default=True)
    cooldown_seconds: float = Field(default=2.0, ge=0)
    max_message_length: int = Field(default=1000, ge=4)
    inter_action_delay: float = Field(
        default=0.25,
        ge=0,
        description="Pause between two queued outbound actions.",
    )
    attachment_cleanup_delay: float = Field(
        default=2.0,
        ge=0,
        description="Grace period before temp attachment files are deleted.",
    )


class BotGroupConfig(BaseModel):
    """The group a bot manages in group mode."""

    name: str = Field(min_length=1)
    description: str = Field(default="- Group managed by Signal Bot")
    create_if_not_exists: bool = Field(default=True)
    initial_members: list[str] = Field(default_factory=list)
    avatar: str | None = Field(
        default=None,
        description="Local path, http(s) URL or data:image/... URI.",
    )


class BotConfig(BaseModel):
    """Top-level bot configuration."""

    phone_number: str
    admins: list[str] = Field(default_factory=list)
    group: BotGroupConfig | None = None
    settings: BotSettings = Field(default_factory=BotSettings)
    client: ClientConfig = Field(default_factory=ClientConfig)

    @model_validator(mode="after")
    def _bind_account(self) -> BotConfig:
        if self.client.account is None:
            self.client = self.client.model_copy(update={"account": self.phone_number})
        return self

    @classmethod
    def from_yaml(cls, path: Path) -> BotConfig:
        """Load bot configuration from a YAML file."""
        return cls.model_validate(_read_yaml(path))


def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML value must be a mapping")
    return data


def load_config(path: Path | None) -> ClientConfig:
    """Load a ClientConfig from ``path``, or defaults when path is None.

    A file holding a ``client:`` section (as bot configs do) is accepted too.
    """
    if path is None:
        return ClientConfig()
    data = _read_yaml(path)
    if "client" in data and isinstance(data["client"], dict):
        data = data["client"]
    return ClientConfig.model_validate(data)


__all__ = [
    "BotConfig",
    "BotGroupConfig",
    "BotSettings",
    "ClientConfig",
    "DaemonMode",
    "TrustMode",
    "load_config",
]
