"""
Tests for browser detection and launch.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from tandem_browser import launcher
from tandem_browser.launcher import (
    BrowserInfo,
    EndpointProbe,
    is_browser_running,
    known_browsers,
    launch_browser,
    probe_cdp_endpoint,
)


def mock_transport(monkeypatch, handler):
    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        launcher.httpx, "AsyncClient",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )


class TestDetection:
    """Tests for known and installed browsers."""

    def test_macos_catalog(self):
        ids = [b.id for b in known_browsers("darwin")]
        assert ids == ["chrome", "edge", "brave", "arc", "chromium"]

    def test_windows_catalog(self):
        assert all(b.path.endswith(".exe") for b in known_browsers("win32"))

    def test_installed_reflects_path(self, tmp_path):
        exe = tmp_path / "chrome"
        exe.write_text("")

        assert BrowserInfo("chrome", "Chrome", str(exe), "chrome").installed
        assert not BrowserInfo("chrome", "Chrome", str(tmp_path / "nope"), "chrome").installed

    def test_running_check(self):
        browser = BrowserInfo("chrome", "Google Chrome", "/bin/chrome", "chrome")
        with patch.object(launcher.sys, "platform", "linux"), \
                patch.object(launcher.subprocess, "run") as run:
            run.return_value = MagicMock(returncode=0, stdout="4242\n")
            assert is_browser_running(browser) is True

            run.return_value = MagicMock(returncode=1, stdout="")
            assert is_browser_running(browser) is False


class TestEndpointProbe:
    """Tests for probing the debugging endpoint."""

    @pytest.mark.asyncio
    async def test_connected(self, monkeypatch):
        mock_transport(monkeypatch, lambda request: httpx.Response(200, json={"Browser": "Chrome/120"}))

        result = await probe_cdp_endpoint("http://localhost:9222")

        assert result.connected
        assert result.browser_info == {"Browser": "Chrome/120"}

    @pytest.mark.asyncio
    async def test_bad_status(self, monkeypatch):
        mock_transport(monkeypatch, lambda request: httpx.Response(500))

        result = await probe_cdp_endpoint("http://localhost:9222")

        assert not result.connected
        assert result.error == "CDP endpoint not responding"

    @pytest.mark.asyncio
    async def test_refused(self, monkeypatch):
        def handler(request):
            raise httpx.ConnectError("Connection refused")

        mock_transport(monkeypatch, handler)

        result = await probe_cdp_endpoint("http://localhost:9222")

        assert not result.connected
        assert "refused" in result.error


class TestLaunch:
    """Tests for launch_browser()."""

    @pytest.fixture
    def installed(self, tmp_path, monkeypatch):
        exe = tmp_path / "chrome"
        exe.write_text("")
        browser = BrowserInfo("chrome", "Google Chrome", str(exe), "chrome")
        monkeypatch.setattr(launcher, "find_browser", lambda browser_id: browser if browser_id == "chrome" else None)
        monkeypatch.setattr(launcher, "LAUNCH_RETRY_DELAY_S", 0)
        return browser

    @pytest.mark.asyncio
    async def test_unknown_browser(self, installed):
        result = await launch_browser("netscape")

        assert not result.success
        assert result.error == "Unknown browser: netscape"

    @pytest.mark.asyncio
    async def test_not_installed(self, monkeypatch):
        browser = BrowserInfo("chrome", "Google Chrome", "/nonexistent/chrome", "chrome")
        monkeypatch.setattr(launcher, "find_browser", lambda browser_id: browser)

        result = await launch_browser("chrome")

        assert result.error == "Google Chrome is not installed"

    @pytest.mark.asyncio
    async def test_already_running(self, installed, monkeypatch):
        monkeypatch.setattr(launcher, "is_browser_running", lambda browser: True)

        result = await launch_browser("chrome")

        assert not result.success
        assert result.already_running

    @pytest.mark.asyncio
    async def test_launch_waits_for_endpoint(self, installed, monkeypatch):
        monkeypatch.setattr(launcher, "is_browser_running", lambda browser: False)
        probe = AsyncMock(side_effect=[
            EndpointProbe(connected=False, error="refused"),
            EndpointProbe(connected=True),
        ])
        monkeypatch.setattr(launcher, "probe_cdp_endpoint", probe)

        with patch.object(launcher.subprocess, "Popen") as popen:
            result = await launch_browser("chrome", port=9333)

        assert result.success
        assert popen.call_args[0][0] == [installed.path, "--remote-debugging-port=9333"]
        assert probe.await_count == 2
        probe.assert_awaited_with("http://localhost:9333")

    @pytest.mark.asyncio
    async def test_endpoint_never_comes_up(self, installed, monkeypatch):
        monkeypatch.setattr(launcher, "is_browser_running", lambda browser: False)
        probe = AsyncMock(return_value=EndpointProbe(connected=False, error="refused"))
        monkeypatch.setattr(launcher, "probe_cdp_endpoint", probe)

        with patch.object(launcher.subprocess, "Popen"):
            result = await launch_browser("chrome")

        assert not result.success
        assert probe.await_count == launcher.LAUNCH_ATTEMPTS
