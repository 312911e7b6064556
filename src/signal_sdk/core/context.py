"""Per-client context passed to every component a SignalClient owns.

Replaces module-level singletons: the transport, router, supervisor and
managers all receive the same ClientContext so two clients in one process
never share configuration or logger bindings.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from signal_sdk.core.config import ClientConfig
from signal_sdk.core.logging import SignalLogger, get_logger


@dataclass(frozen=True)
class ClientContext:
    """Immutable bundle of configuration and logger for one client.

    Attributes:
        config: The validated client configuration.
        client_id: Short random id bound into every log entry.
    """

    config: ClientConfig
    client_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])

    def logger(self, component: str) -> SignalLogger:
        """Logger for ``component`` bound to this client's id and account."""
        return get_logger(component, client_id=self.client_id, account=self.config.account)

    @classmethod
    def create(cls, config: ClientConfig | None = None) -> ClientContext:
        return cls(config=config or ClientConfig())


__all__ = ["ClientContext"]
