"""
Tests for BrowserManager tier selection and lifecycle.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tandem_browser.config import BrowserConfig
from tandem_browser.errors import ErrorKind
from tandem_browser.manager import BrowserManager
from tandem_browser.settings_store import SettingsStore
from tandem_browser.tiers import RemoteDebugTier
from tandem_browser.types import ActionKind, BrowserAction, BrowserResult, TierName


class FakeTier:
    """Stand-in tier that records the actions it receives."""

    def __init__(self, name, connected=True, close_error=None):
        self.name = name
        self.connected = connected
        self.close_error = close_error
        self.actions = []
        self.closed = False

    async def execute(self, action):
        self.actions.append(action)
        return BrowserResult.ok(self.name, url=action.url)

    def is_connected(self):
        return self.connected

    def get_state(self):
        return {"url": "https://example.com/", "fake": self.name.value}

    async def close(self):
        if self.close_error:
            raise self.close_error
        self.closed = True


def navigate(**kwargs):
    return BrowserAction(kind=ActionKind.NAVIGATE, url="https://example.com/", **kwargs)


class TestTierSelection:
    """Tests for the selection policy."""

    @pytest.fixture
    def tiers(self):
        return {
            TierName.EMBEDDED: FakeTier(TierName.EMBEDDED),
            TierName.REMOTE: FakeTier(TierName.REMOTE),
        }

    @pytest.fixture
    def settings(self, tmp_path):
        return SettingsStore(tmp_path / "settings.json")

    @pytest.fixture
    def manager(self, tiers, settings):
        return BrowserManager(
            BrowserConfig(prefer_external_browser=False),
            settings=settings,
            embedded_factory=lambda config: tiers[TierName.EMBEDDED],
            remote_factory=lambda config: tiers[TierName.REMOTE],
        )

    @pytest.mark.asyncio
    async def test_default_is_embedded(self, manager, tiers):
        result = await manager.execute(navigate())

        assert result.tier == TierName.EMBEDDED
        assert len(tiers[TierName.EMBEDDED].actions) == 1
        # Remote tier never constructed
        assert manager._remote is None

    @pytest.mark.asyncio
    async def test_requires_auth_selects_remote(self, manager):
        result = await manager.execute(navigate(requires_auth=True))

        assert result.tier == TierName.REMOTE
        assert manager.last_tier == TierName.REMOTE

    def test_explicit_tier_wins(self, manager):
        action = navigate(tier=TierName.EMBEDDED, requires_auth=True)
        assert manager.select_tier(action) == TierName.EMBEDDED

    @pytest.mark.asyncio
    async def test_stays_on_connected_remote(self, manager, tiers):
        await manager.execute(navigate(requires_auth=True))

        result = await manager.execute(BrowserAction(kind=ActionKind.SCREENSHOT))

        assert result.tier == TierName.REMOTE
        assert len(tiers[TierName.REMOTE].actions) == 2

    @pytest.mark.asyncio
    async def test_leaves_disconnected_remote(self, manager, tiers):
        await manager.execute(navigate(requires_auth=True))
        tiers[TierName.REMOTE].connected = False

        result = await manager.execute(BrowserAction(kind=ActionKind.SCREENSHOT))

        assert result.tier == TierName.EMBEDDED

    @pytest.mark.asyncio
    async def test_preference_read_on_every_selection(self, manager, settings, tiers):
        settings.update(prefer_external_browser=True)
        assert (await manager.execute(navigate())).tier == TierName.REMOTE

        tiers[TierName.REMOTE].connected = False
        settings.update(prefer_external_browser=False)
        assert (await manager.execute(navigate())).tier == TierName.EMBEDDED

    def test_turning_preference_off_after_apply_to(self, tiers, settings):
        settings.update(prefer_external_browser=True)
        config = settings.apply_to(BrowserConfig(prefer_external_browser=False))
        manager = BrowserManager(
            config,
            settings=settings,
            remote_factory=lambda config: tiers[TierName.REMOTE],
        )
        assert manager.select_tier(navigate()) == TierName.REMOTE

        settings.update(prefer_external_browser=False)

        assert manager.select_tier(navigate()) == TierName.EMBEDDED

    def test_config_preference(self, tiers):
        manager = BrowserManager(
            BrowserConfig(prefer_external_browser=True),
            remote_factory=lambda config: tiers[TierName.REMOTE],
        )
        assert manager.select_tier(navigate()) == TierName.REMOTE

    @pytest.mark.asyncio
    async def test_unknown_tier_is_structured_failure(self, manager):
        result = await manager.execute(navigate(tier="firefox"))

        assert not result.success
        assert result.error == "Unknown tier: firefox"
        assert result.error_kind == ErrorKind.VALIDATION

    @pytest.mark.asyncio
    async def test_tier_created_once(self, tiers):
        created = []

        def factory(config):
            created.append(config)
            return tiers[TierName.EMBEDDED]

        manager = BrowserManager(BrowserConfig(prefer_external_browser=False), embedded_factory=factory)
        await manager.execute(navigate())
        await manager.execute(navigate())

        assert len(created) == 1
        assert created[0] is manager.config


class TestToolInput:
    """Tests for handle_tool_input()."""

    @pytest.fixture
    def remote_tier(self):
        return FakeTier(TierName.REMOTE)

    @pytest.fixture
    def manager(self, remote_tier):
        return BrowserManager(
            BrowserConfig(prefer_external_browser=False),
            embedded_factory=lambda config: FakeTier(TierName.EMBEDDED),
            remote_factory=lambda config: remote_tier,
        )

    @pytest.mark.asyncio
    async def test_alias_routes_to_remote(self, manager, remote_tier):
        result = await manager.handle_tool_input({"action": "tabs_list", "tier": "cdp"})

        assert result.success
        assert result.tier == TierName.REMOTE
        assert remote_tier.actions[0].kind == ActionKind.TABS_LIST

    @pytest.mark.asyncio
    async def test_invalid_input_is_validation_failure(self, manager):
        result = await manager.handle_tool_input({"action": "click"})

        assert not result.success
        assert result.error_kind == ErrorKind.VALIDATION
        assert "selector" in result.error
        assert manager._embedded is None
        assert manager._remote is None


class TestStatusAndClose:
    """Tests for get_status() and close()."""

    def test_status_before_use(self):
        manager = BrowserManager(BrowserConfig())

        assert manager.get_status() == {
            "embedded": {"active": False},
            "remote": {"connected": False},
            "last_tier": "embedded",
        }

    @pytest.mark.asyncio
    async def test_status_after_use(self):
        manager = BrowserManager(
            BrowserConfig(prefer_external_browser=False),
            embedded_factory=lambda config: FakeTier(TierName.EMBEDDED),
        )
        await manager.execute(navigate())

        status = manager.get_status()

        assert status["embedded"]["fake"] == "embedded"
        assert status["remote"] == {"connected": False}

    @pytest.mark.asyncio
    async def test_close_continues_after_failure(self):
        embedded = FakeTier(TierName.EMBEDDED, close_error=RuntimeError("browser crashed"))
        remote = FakeTier(TierName.REMOTE)
        manager = BrowserManager(
            BrowserConfig(prefer_external_browser=False),
            embedded_factory=lambda config: embedded,
            remote_factory=lambda config: remote,
        )
        await manager.execute(navigate())
        await manager.execute(navigate(requires_auth=True))

        await manager.close()

        assert remote.closed is True

    @pytest.mark.asyncio
    async def test_async_context_manager_closes(self):
        embedded = FakeTier(TierName.EMBEDDED)

        async with BrowserManager(
            BrowserConfig(prefer_external_browser=False),
            embedded_factory=lambda config: embedded,
        ) as manager:
            await manager.execute(navigate())

        assert embedded.closed is True


class TestRemoteHealth:
    """Tests for remote health failures seen through the manager."""

    @pytest.mark.asyncio
    async def test_health_failure_leaves_embedded_untouched(self):
        page = MagicMock()
        page.url = "https://mail.example.com/"
        browser = MagicMock()
        browser.is_connected = MagicMock(return_value=True)
        remote = RemoteDebugTier(BrowserConfig())
        remote._browser = browser
        remote._page = page
        remote._connected = True
        remote._register(page)

        embedded = FakeTier(TierName.EMBEDDED)
        manager = BrowserManager(
            BrowserConfig(prefer_external_browser=False),
            embedded_factory=lambda config: embedded,
            remote_factory=lambda config: remote,
        )
        await manager.execute(navigate())
        manager.remote
        before = manager.get_status()
        assert before["remote"]["connected"] is True
        assert before["remote"]["tabs"] == 1

        with patch.object(remote, "check_health", AsyncMock(return_value=False)):
            await remote.probe_health()

        after = manager.get_status()
        assert after["remote"]["connected"] is False
        assert after["remote"]["tabs"] == 0
        assert after["embedded"] == before["embedded"]
        assert embedded.closed is False
