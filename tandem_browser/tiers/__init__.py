"""Browser tiers: the embedded hidden surface and the remote debugging client."""

from .base import BrowserTier
from .embedded import EmbeddedTier
from .remote import RemoteDebugTier

__all__ = ["BrowserTier", "EmbeddedTier", "RemoteDebugTier"]
