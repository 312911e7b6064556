"""CLI command modules."""

from .devices import devices, link
from .messaging import listen, send

__all__ = ["devices", "link", "listen", "send"]
