"""
Browser manager for Tandem Browser.

Routes each action to the embedded or the remote tier. Tiers are only
constructed when an action is first dispatched to them.
"""

import logging
from typing import Any, Callable, Optional

from .config import BrowserConfig
from .errors import ActionValidationError, ErrorKind
from .settings_store import SettingsStore
from .tiers import BrowserTier, EmbeddedTier, RemoteDebugTier
from .tool_schemas import parse_tool_input
from .types import BrowserAction, BrowserResult, TierName


logger = logging.getLogger(__name__)


TierFactory = Callable[[BrowserConfig], BrowserTier]


class BrowserManager:
    """Facade over the two browser tiers.

    Selection policy, first match wins:
        1. the action names a tier explicitly
        2. the action requires the user's logged-in session -> remote
        3. the previous action ran on remote and it is still connected
        4. the persisted "prefer external browser" flag is set -> remote
        5. embedded

    Usage:
        async with BrowserManager(config, settings=SettingsStore()) as manager:
            result = await manager.execute(BrowserAction(kind=ActionKind.NAVIGATE, url="https://example.com"))
    """

    def __init__(
        self,
        config: Optional[BrowserConfig] = None,
        settings: Optional[SettingsStore] = None,
        embedded_factory: Optional[TierFactory] = None,
        remote_factory: Optional[TierFactory] = None,
    ):
        """Initialize the manager.

        Args:
            config: Browser configuration shared by both tiers
            settings: Persisted settings, consulted on every selection
            embedded_factory: Builds the embedded tier (defaults to EmbeddedTier)
            remote_factory: Builds the remote tier (defaults to RemoteDebugTier)
        """
        self.config = config or BrowserConfig()
        self.settings = settings
        self._embedded_factory = embedded_factory or EmbeddedTier
        self._remote_factory = remote_factory or RemoteDebugTier

        self._embedded: Optional[BrowserTier] = None
        self._remote: Optional[BrowserTier] = None
        self.last_tier: TierName = TierName.EMBEDDED

    @property
    def embedded(self) -> BrowserTier:
        """The embedded tier, created on first access."""
        if self._embedded is None:
            logger.debug("Creating embedded tier")
            self._embedded = self._embedded_factory(self.config)
        return self._embedded

    @property
    def remote(self) -> BrowserTier:
        """The remote tier, created on first access."""
        if self._remote is None:
            logger.debug("Creating remote tier")
            self._remote = self._remote_factory(self.config)
        return self._remote

    def prefer_external_browser(self) -> bool:
        """Current value of the preference flag, re-read on every call.

        The settings store is authoritative when present so toggling it
        takes effect immediately; the config value applies only without one.
        """
        if self.settings is not None:
            return self.settings.prefer_external_browser
        return self.config.prefer_external_browser

    def select_tier(self, action: BrowserAction) -> Any:
        """Pick the tier for an action.

        Returns:
            The tier name; an explicit override is returned verbatim, even
            when it is not a known tier
        """
        if action.tier:
            logger.debug(f"Tier explicitly set to: {action.tier}")
            return action.tier

        if action.requires_auth:
            logger.debug("requires_auth=true, selecting remote")
            return TierName.REMOTE

        if (
            self.last_tier == TierName.REMOTE
            and self._remote is not None
            and self._remote.is_connected()
        ):
            logger.debug("Already on remote, staying there")
            return TierName.REMOTE

        if self.prefer_external_browser():
            logger.debug("Prefer external browser enabled, selecting remote")
            return TierName.REMOTE

        logger.debug("Defaulting to embedded")
        return TierName.EMBEDDED

    async def execute(self, action: BrowserAction) -> BrowserResult:
        """Execute an action on the selected tier.

        Never raises; failures come back as BrowserResult with success=False.
        """
        tier_name = self.select_tier(action)

        if tier_name == TierName.EMBEDDED:
            tier = self.embedded
        elif tier_name == TierName.REMOTE:
            tier = self.remote
        else:
            return BrowserResult.failure(
                TierName.EMBEDDED,
                f"Unknown tier: {tier_name}",
                ErrorKind.VALIDATION,
            )

        logger.info(f"Executing {getattr(action.kind, 'value', action.kind)} via {tier.name.value} tier")
        result = await tier.execute(action)
        self.last_tier = result.tier
        return result

    async def handle_tool_input(self, raw: dict[str, Any]) -> BrowserResult:
        """Validate flat tool input and execute it.

        Malformed input becomes a validation failure on the tier the
        manager would have used last.
        """
        try:
            action = parse_tool_input(raw)
        except ActionValidationError as e:
            logger.info(f"Rejected tool input: {e.message}")
            return BrowserResult.failure(self.last_tier, e.message, ErrorKind.VALIDATION)
        return await self.execute(action)

    def get_status(self) -> dict[str, Any]:
        """Status of both tiers, without creating either."""
        return {
            TierName.EMBEDDED.value: self._embedded.get_state() if self._embedded else {"active": False},
            TierName.REMOTE.value: self._remote.get_state() if self._remote else {"connected": False},
            "last_tier": self.last_tier.value,
        }

    async def close(self) -> None:
        """Close the embedded tier and detach from the remote browser.

        A failure closing one tier is logged and does not stop the other.
        """
        for label, tier in (("embedded", self._embedded), ("remote", self._remote)):
            if tier is None:
                continue
            try:
                await tier.close()
            except Exception as e:
                logger.warning(f"Error closing {label} tier: {e}")
        logger.info("All tiers closed")

    async def __aenter__(self) -> "BrowserManager":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
