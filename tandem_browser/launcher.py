"""
Browser launcher for the remote tier.

Detects installed Chromium-family browsers and starts one with remote
debugging enabled, then waits for the debugging endpoint to answer.
"""

import asyncio
import logging
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import httpx

from .config import DEFAULT_CDP_URL


logger = logging.getLogger(__name__)


LAUNCH_ATTEMPTS = 10
LAUNCH_RETRY_DELAY_S = 0.5
PROBE_TIMEOUT_S = 3.0


@dataclass
class BrowserInfo:
    """A Chromium-family browser the launcher knows about."""
    id: str
    name: str
    path: str
    process_name: str

    @property
    def installed(self) -> bool:
        return Path(self.path).exists()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "path": self.path,
            "installed": self.installed,
        }


@dataclass
class LaunchResult:
    """Outcome of launch_browser()."""
    success: bool
    error: Optional[str] = None
    already_running: bool = False


@dataclass
class EndpointProbe:
    """Outcome of probe_cdp_endpoint()."""
    connected: bool
    error: Optional[str] = None
    browser_info: Optional[dict[str, Any]] = None


_MACOS_BROWSERS = [
    BrowserInfo("chrome", "Google Chrome", "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome", "Google Chrome"),
    BrowserInfo("edge", "Microsoft Edge", "/Applications/Microsoft Edge.app/Contents/MacOS/Microsoft Edge", "Microsoft Edge"),
    BrowserInfo("brave", "Brave", "/Applications/Brave Browser.app/Contents/MacOS/Brave Browser", "Brave Browser"),
    BrowserInfo("arc", "Arc", "/Applications/Arc.app/Contents/MacOS/Arc", "Arc"),
    BrowserInfo("chromium", "Chromium", "/Applications/Chromium.app/Contents/MacOS/Chromium", "Chromium"),
]

_WINDOWS_BROWSERS = [
    BrowserInfo("chrome", "Google Chrome", r"C:\Program Files\Google\Chrome\Application\chrome.exe", "chrome.exe"),
    BrowserInfo("edge", "Microsoft Edge", r"C:\Program Files (x86)\Microsoft\Edge\Application\msedge.exe", "msedge.exe"),
    BrowserInfo("brave", "Brave", r"C:\Program Files\BraveSoftware\Brave-Browser\Application\brave.exe", "brave.exe"),
]

# Linux executables are looked up on PATH
_LINUX_BROWSERS = [
    ("chrome", "Google Chrome", "google-chrome"),
    ("edge", "Microsoft Edge", "microsoft-edge"),
    ("brave", "Brave", "brave-browser"),
    ("chromium", "Chromium", "chromium"),
    ("chromium-browser", "Chromium", "chromium-browser"),
]


def known_browsers(platform: Optional[str] = None) -> list[BrowserInfo]:
    """Browsers the launcher can start on this platform, installed or not."""
    platform = platform or sys.platform
    if platform == "darwin":
        return list(_MACOS_BROWSERS)
    if platform.startswith("win"):
        return list(_WINDOWS_BROWSERS)

    browsers = []
    for browser_id, name, executable in _LINUX_BROWSERS:
        path = shutil.which(executable) or f"/usr/bin/{executable}"
        browsers.append(BrowserInfo(browser_id, name, path, executable))
    return browsers


def detect_installed_browsers(platform: Optional[str] = None) -> list[BrowserInfo]:
    """Browsers whose executable exists on this machine."""
    return [b for b in known_browsers(platform) if b.installed]


def find_browser(browser_id: str, platform: Optional[str] = None) -> Optional[BrowserInfo]:
    for browser in known_browsers(platform):
        if browser.id == browser_id:
            return browser
    return None


def is_browser_running(browser: BrowserInfo) -> bool:
    """Check whether a process for the browser is already running."""
    if sys.platform.startswith("win"):
        command = ["tasklist", "/FI", f"IMAGENAME eq {browser.process_name}", "/NH"]
    else:
        command = ["pgrep", "-x", browser.process_name]

    try:
        result = subprocess.run(command, capture_output=True, text=True, timeout=5)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug(f"Process check for {browser.name} failed: {e}")
        return False

    if sys.platform.startswith("win"):
        return browser.process_name.lower() in result.stdout.lower()
    # pgrep exits 1 when nothing matches
    return result.returncode == 0 and bool(result.stdout.strip())


async def probe_cdp_endpoint(cdp_url: str = DEFAULT_CDP_URL) -> EndpointProbe:
    """Probe a remote debugging endpoint.

    Args:
        cdp_url: Base URL of the endpoint

    Returns:
        EndpointProbe with the browser's /json/version payload on success
    """
    try:
        async with httpx.AsyncClient(timeout=PROBE_TIMEOUT_S) as client:
            response = await client.get(f"{cdp_url.rstrip('/')}/json/version")
    except httpx.HTTPError as e:
        return EndpointProbe(connected=False, error=str(e) or "Connection failed")

    if not response.is_success:
        return EndpointProbe(connected=False, error="CDP endpoint not responding")

    try:
        info = response.json()
    except ValueError:
        info = None
    return EndpointProbe(connected=True, browser_info=info)


async def launch_browser(browser_id: str, port: int = 9222) -> LaunchResult:
    """Start a browser with remote debugging on the given port.

    A browser that is already running cannot have debugging enabled after
    the fact, so that case is reported instead of launching a second copy.

    Returns:
        LaunchResult; success once the endpoint answers
    """
    browser = find_browser(browser_id)
    if browser is None:
        return LaunchResult(success=False, error=f"Unknown browser: {browser_id}")

    if not browser.installed:
        return LaunchResult(success=False, error=f"{browser.name} is not installed")

    if is_browser_running(browser):
        return LaunchResult(
            success=False,
            already_running=True,
            error=f"{browser.name} is already running. Please close it first to enable remote debugging.",
        )

    try:
        subprocess.Popen(
            [browser.path, f"--remote-debugging-port={port}"],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        return LaunchResult(success=False, error=f"Failed to launch browser: {e}")

    # Browsers can take a few seconds to open the endpoint
    for attempt in range(1, LAUNCH_ATTEMPTS + 1):
        await asyncio.sleep(LAUNCH_RETRY_DELAY_S)
        probe = await probe_cdp_endpoint(f"http://localhost:{port}")
        if probe.connected:
            logger.info(f"{browser.name} is listening on port {port}")
            return LaunchResult(success=True)
        logger.debug(f"CDP connection attempt {attempt}/{LAUNCH_ATTEMPTS}...")

    return LaunchResult(
        success=False,
        error="Browser launched but the debugging endpoint did not come up. Try `status` in a moment.",
    )
