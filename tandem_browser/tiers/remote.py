"""
Remote debugging tier.

Attaches to the user's own Chromium-family browser over the Chrome DevTools
Protocol so actions run inside their logged-in sessions. The user starts the
browser with --remote-debugging-port; this tier never launches or kills it.

Connection states:
    Disconnected --connect()--> Connected
    Connected --failed health probe / disconnected event--> Disconnected
    any --disconnect()--> Disconnected (no reconnect until the next action)
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional, Union

import httpx
from playwright.async_api import (
    Browser,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from .. import scripts
from ..config import BrowserConfig
from ..errors import ActionValidationError, BrowserConnectionError, BrowserTimeoutError, ElementError, ErrorKind
from ..types import BrowserResult, TabInfo, TierName
from ..utils import download_directory, resolve_save_path
from .base import BrowserTier, _first_line


logger = logging.getLogger(__name__)


CLICK_SETTLE_S = 0.3
HOVER_SETTLE_S = 0.3


class RemoteDebugTier(BrowserTier):
    """Tier backed by an externally running browser.

    Tracks every open page under a stable tab id, probes the endpoint
    periodically, and reconnects transparently the next time an action
    needs a page.

    Usage:
        tier = RemoteDebugTier(config)
        result = await tier.connect()
        if not result.success:
            print(result.error)  # includes launch instructions
        await tier.disconnect()
    """

    name = TierName.REMOTE

    def __init__(self, config: Optional[BrowserConfig] = None):
        super().__init__(config)
        self.cdp_url = self.config.cdp_url.rstrip("/")
        self.last_error: Optional[str] = None

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._page: Optional[Page] = None
        self._connected = False

        # Tab registry: stable id -> page
        self._tabs: dict[str, Page] = {}
        self._tab_counter = 0

        # Browser handles dropped by a disconnect, detached on the next connect
        self._stale_browsers: list[Browser] = []

        self._health_task: Optional[asyncio.Task] = None
        # Held by connect, reconnect and the health probe; never two at once
        self._connect_lock = asyncio.Lock()
        # True only while an attach is running under the lock
        self._reconnecting = False

    # ------------------------------------------------------------------
    # Connection state machine
    # ------------------------------------------------------------------

    def is_connected(self) -> bool:
        """True while attached to a live browser with a current page."""
        if not self._connected or self._browser is None or self._page is None:
            return False
        return bool(self._browser.is_connected())

    @property
    def reconnecting(self) -> bool:
        return self._reconnecting

    async def check_health(self) -> bool:
        """Probe the debugging endpoint.

        Returns:
            True if /json/version answered within the probe timeout
        """
        try:
            async with httpx.AsyncClient(timeout=self.config.probe_timeout_s) as client:
                response = await client.get(f"{self.cdp_url}/json/version")
            return response.is_success
        except httpx.HTTPError as e:
            logger.debug(f"[remote] Endpoint probe failed: {e}")
            return False

    async def connect(self) -> BrowserResult:
        """Attach to the browser.

        Fails fast when another connect or reconnect is already running;
        waits out a health probe or liveness check holding the lock.

        Returns:
            BrowserResult with the adopted page's url, or a failure whose
            error explains how to launch the browser with remote debugging
        """
        if self._reconnecting:
            return self._fail("Reconnection already in progress", ErrorKind.CONNECTION)
        async with self._connect_lock:
            return await self._connect_locked()

    async def _connect_locked(self) -> BrowserResult:
        self._reconnecting = True
        try:
            return await self._attach()
        finally:
            self._reconnecting = False

    async def _attach(self) -> BrowserResult:
        self.last_error = None
        try:
            if not await self.check_health():
                raise BrowserConnectionError(
                    f"No browser with remote debugging is listening at {self.cdp_url}"
                )

            # Detach from any previous browser handle first
            if self._browser is not None:
                self._handle_disconnect("replacing connection")
            await self._detach_stale()

            if self._playwright is None:
                self._playwright = await async_playwright().start()

            browser = await self._playwright.chromium.connect_over_cdp(
                self.cdp_url,
                timeout=self.config.navigation_timeout_ms,
            )
            browser.on("disconnected", self._on_browser_disconnected)
            self._browser = browser

            # Adopt the first open page, or open one
            contexts = browser.contexts
            context = contexts[0] if contexts else await browser.new_context()
            pages = context.pages
            self._page = pages[0] if pages else await context.new_page()
            self._register(self._page)
            self.current_url = self._page.url
            self._connected = True

            self._start_health_check()
            logger.info(f"[remote] Connected to browser at {self.cdp_url}")

            return self._ok(url=self.current_url)
        except Exception as e:
            message = self._connection_help(e)
            self.last_error = message
            logger.warning(f"[remote] Connection failed: {e}")
            return self._fail(message, ErrorKind.CONNECTION)

    def _connection_help(self, error: BaseException) -> str:
        """Connection error text with launch instructions for the user."""
        reason = getattr(error, "message", None) or _first_line(error)
        port = self.config.debug_port
        flag = f"--remote-debugging-port={port}"
        return (
            f"Remote browser connection failed: {reason}\n\n"
            "To use your own browser, start it with remote debugging enabled:\n\n"
            "macOS:\n"
            f"  /Applications/Google\\ Chrome.app/Contents/MacOS/Google\\ Chrome {flag}\n\n"
            "Windows:\n"
            f'  "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe" {flag}\n\n'
            "Linux:\n"
            f"  google-chrome {flag}"
        )

    def _on_browser_disconnected(self, browser: Browser) -> None:
        if browser is self._browser:
            logger.warning("[remote] Browser disconnected event received")
            self._handle_disconnect("disconnected event")

    def _handle_disconnect(self, reason: str) -> None:
        """Clear logical connection state.

        The external browser process is left alone; the stale handle is
        detached on the next connect or disconnect.
        """
        logger.info(f"[remote] Dropping connection ({reason})")
        if self._browser is not None:
            self._stale_browsers.append(self._browser)
        self._connected = False
        self._browser = None
        self._page = None
        self._tabs.clear()
        self.current_url = ""

    async def _detach_stale(self) -> None:
        while self._stale_browsers:
            browser = self._stale_browsers.pop()
            try:
                await asyncio.wait_for(browser.close(), timeout=self.config.probe_timeout_s)
            except (PlaywrightError, asyncio.TimeoutError) as e:
                logger.debug(f"[remote] Ignoring error detaching stale browser: {e}")

    async def _ensure_connected(self) -> None:
        """Connect if needed, waiting out any reconnect already in flight.

        Raises:
            BrowserConnectionError: If the browser cannot be reached
        """
        async with self._connect_lock:
            if not self.is_connected():
                logger.info("[remote] Not connected, attempting to connect...")
                result = await self._connect_locked()
                if not result.success:
                    raise BrowserConnectionError(result.error)

    async def ensure_page(self) -> Page:
        """Return a responsive current page, reconnecting transparently.

        Raises:
            BrowserConnectionError: If reconnecting fails
        """
        async with self._connect_lock:
            if not self.is_connected():
                logger.info("[remote] Connection lost, attempting reconnect...")
                result = await self._connect_locked()
                if not result.success:
                    raise BrowserConnectionError(result.error)

            try:
                await asyncio.wait_for(
                    self._page.evaluate(scripts.IS_ALIVE),
                    timeout=self.config.probe_timeout_s,
                )
            except (PlaywrightError, asyncio.TimeoutError):
                logger.info("[remote] Page unresponsive, reconnecting...")
                self._handle_disconnect("page unresponsive")
                result = await self._connect_locked()
                if not result.success:
                    raise BrowserConnectionError(result.error)

            return self._page

    async def _live_page(self) -> Page:
        return await self.ensure_page()

    # ------------------------------------------------------------------
    # Health probe
    # ------------------------------------------------------------------

    def _start_health_check(self) -> None:
        self._stop_health_check()
        self._health_task = asyncio.create_task(self._health_loop())

    def _stop_health_check(self) -> None:
        task = self._health_task
        self._health_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _health_loop(self) -> None:
        while self._connected:
            await asyncio.sleep(self.config.health_check_interval_s)
            await self.probe_health()

    async def probe_health(self) -> bool:
        """Run one health probe, dropping the connection if it fails.

        Skipped while a connect or reconnect is in flight.

        Returns:
            Whether the tier is still considered connected
        """
        if self._connect_lock.locked():
            return self._connected
        async with self._connect_lock:
            if not self._connected:
                return False
            healthy = await self.check_health()
            if not healthy:
                logger.warning("[remote] Health check failed, connection may be stale")
                self._handle_disconnect("health check failed")
            return healthy

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def get_state(self) -> dict[str, Any]:
        return {
            "url": self.current_url,
            "connected": self.is_connected(),
            "tabs": len(self._tabs),
            "last_error": self.last_error,
        }

    async def disconnect(self) -> None:
        """Detach from the browser and stop the health loop.

        The browser itself keeps running. No reconnect happens until the
        next action is dispatched.
        """
        self._stop_health_check()
        if self._browser is not None:
            self._handle_disconnect("explicit disconnect")
        await self._detach_stale()

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug(f"[remote] Error stopping Playwright: {e}")
            self._playwright = None

        self.last_error = None
        logger.info("[remote] Disconnected")

    async def close(self) -> None:
        await self.disconnect()

    # ------------------------------------------------------------------
    # Tab registry
    # ------------------------------------------------------------------

    def _tab_id_of(self, page: Page) -> Optional[str]:
        for tab_id, tracked in self._tabs.items():
            if tracked is page:
                return tab_id
        return None

    def _register(self, page: Page) -> str:
        """Track a page, reusing its id if already known."""
        tab_id = self._tab_id_of(page)
        if tab_id is not None:
            return tab_id
        self._tab_counter += 1
        tab_id = f"tab-{self._tab_counter}"
        self._tabs[tab_id] = page
        page.on("close", self._forget)
        return tab_id

    def _forget(self, page: Page) -> None:
        tab_id = self._tab_id_of(page)
        if tab_id is not None:
            self._tabs.pop(tab_id, None)

    def _open_pages(self) -> list[Page]:
        pages: list[Page] = []
        for context in self._browser.contexts:
            pages.extend(context.pages)
        return pages

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def _wait_attached(self, page: Page, selector: str) -> None:
        try:
            await page.wait_for_selector(selector, state="attached", timeout=self.config.element_timeout_ms)
        except PlaywrightTimeoutError:
            raise ElementError(f"Element not found: {selector}")

    async def navigate(self, url: str, wait_for: Optional[Union[str, int]] = None) -> BrowserResult:
        page = await self.ensure_page()

        await page.goto(url, wait_until="domcontentloaded", timeout=self.config.navigation_timeout_ms)
        self.current_url = page.url

        if wait_for is not None:
            if isinstance(wait_for, int):
                await asyncio.sleep(wait_for / 1000)
            else:
                try:
                    await page.wait_for_selector(wait_for, timeout=self.config.selector_timeout_ms)
                except PlaywrightTimeoutError:
                    raise BrowserTimeoutError(f"Timeout waiting for selector: {wait_for}")

        title = await page.title()
        text = await self._visible_text(page)

        return self._ok(url=self.current_url, title=title, text=text)

    async def screenshot(self) -> BrowserResult:
        page = await self.ensure_page()
        if not page.url or page.url == "about:blank":
            raise ActionValidationError("No page loaded. Call navigate first.")

        image = await self._screenshot_base64(page)
        return self._ok(screenshot=image, url=page.url)

    async def click(self, selector: str) -> BrowserResult:
        """Click an element after verifying it is visible and enabled."""
        page = await self.ensure_page()
        await self._wait_attached(page, selector)

        check = await page.evaluate(scripts.CLICKABILITY, selector)
        if not check.get("clickable"):
            reason = check.get("reason", "unknown")
            if reason == "not found":
                raise ElementError(f"Element not found: {selector}")
            raise ElementError(f"Element not clickable: {reason}")

        await page.click(selector, timeout=self.config.element_timeout_ms)

        # Brief wait for any immediate effects
        await asyncio.sleep(CLICK_SETTLE_S)
        self.current_url = page.url

        return self._ok(url=page.url)

    async def type_text(self, selector: str, text: str) -> BrowserResult:
        page = await self.ensure_page()
        await self._wait_attached(page, selector)

        check = await page.evaluate(scripts.INPUT_CHECK, selector)
        if not check.get("ok"):
            raise ElementError(check.get("error") or "Element is not an input")

        # fill() clears the existing value and fires input events
        await page.fill(selector, text, timeout=self.config.element_timeout_ms)

        return self._ok(url=page.url, data={"chars_typed": len(text)})

    async def hover(self, selector: str) -> BrowserResult:
        page = await self.ensure_page()
        await self._wait_attached(page, selector)

        await page.hover(selector, timeout=self.config.element_timeout_ms)

        # Wait for hover effects
        await asyncio.sleep(HOVER_SETTLE_S)
        return self._ok(url=page.url)

    async def download(
        self,
        selector: Optional[str] = None,
        url: Optional[str] = None,
        save_path: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ) -> BrowserResult:
        """Trigger a download and wait for the browser to report completion.

        Download events come from a browser-level CDP session. A one-shot
        future is resolved by the first terminal event and raced against
        the timeout; listeners are removed on every exit path.
        """
        if not selector and not url:
            raise ActionValidationError("Either selector or url required for download")

        timeout_ms = timeout_ms or self.config.download_timeout_ms
        page = await self.ensure_page()

        download_dir = download_directory(save_path, self.config.download_dir)
        download_dir.mkdir(parents=True, exist_ok=True)

        session = await self._browser.new_browser_cdp_session()
        finished: asyncio.Future = asyncio.get_running_loop().create_future()
        filenames: dict[str, str] = {}

        def on_begin(event: dict[str, Any]) -> None:
            filenames[event["guid"]] = event.get("suggestedFilename") or event["guid"]
            logger.info(f"[remote] Download starting: {filenames[event['guid']]}")

        def on_progress(event: dict[str, Any]) -> None:
            if finished.done():
                return
            if event.get("state") in ("completed", "canceled"):
                finished.set_result(event)

        session.on("Browser.downloadWillBegin", on_begin)
        session.on("Browser.downloadProgress", on_progress)
        try:
            await session.send(
                "Browser.setDownloadBehavior",
                {"behavior": "allow", "downloadPath": str(download_dir), "eventsEnabled": True},
            )

            if selector:
                await self._wait_attached(page, selector)
                await page.click(selector, timeout=self.config.element_timeout_ms)
            else:
                await page.evaluate(scripts.DOWNLOAD_URL, url)

            try:
                event = await asyncio.wait_for(finished, timeout=timeout_ms / 1000)
            except asyncio.TimeoutError:
                raise BrowserTimeoutError(f"Download timed out after {timeout_ms}ms")
        finally:
            session.remove_listener("Browser.downloadWillBegin", on_begin)
            session.remove_listener("Browser.downloadProgress", on_progress)
            try:
                await session.detach()
            except PlaywrightError as e:
                logger.debug(f"[remote] Ignoring error detaching download session: {e}")

        if event.get("state") == "canceled":
            return BrowserResult.failure(self.name, "Download was canceled", ErrorKind.UNEXPECTED, canceled=True)

        guid = event.get("guid", "")
        filename = filenames.get(guid) or guid or "download"
        saved = download_dir / filename
        target = resolve_save_path(save_path, filename, download_dir)
        if target != saved and saved.exists():
            saved.replace(target)
            saved = target

        size = event.get("totalBytes") or event.get("receivedBytes") or 0
        return self._ok(url=page.url, downloaded_file=str(saved), download_size=int(size))

    async def upload(self, selector: str, file_path: str) -> BrowserResult:
        """Attach a local file using Playwright's native file injection."""
        path = Path(file_path).expanduser()
        if not path.is_file():
            raise ActionValidationError(f"File not found: {file_path}")

        page = await self.ensure_page()
        await self._wait_attached(page, selector)

        handle = await page.query_selector(selector)
        if handle is None:
            raise ElementError(f"Element not found: {selector}")

        check = await page.evaluate(scripts.FILE_INPUT_CHECK, selector)
        if not check.get("ok"):
            raise ElementError(check.get("error") or "Element is not a file input")

        await handle.set_input_files(str(path))

        return self._ok(
            url=page.url,
            data={"fileName": path.name, "size": path.stat().st_size},
        )

    async def tabs_list(self) -> BrowserResult:
        """List every open page with its stable id."""
        await self._ensure_connected()

        tabs = []
        open_pages = self._open_pages()
        for page in open_pages:
            tab_id = self._register(page)
            try:
                title = await page.title()
            except PlaywrightError:
                title = ""
            tabs.append(TabInfo(id=tab_id, url=page.url, title=title, active=page is self._page))

        # Drop ids for pages that went away without a close event
        for tab_id, page in list(self._tabs.items()):
            if not any(page is p for p in open_pages):
                self._tabs.pop(tab_id, None)

        return self._ok(tabs=tabs, url=self.current_url)

    async def tabs_open(self, url: Optional[str] = None) -> BrowserResult:
        """Open a new page, make it current, and optionally navigate it."""
        await self._ensure_connected()

        contexts = self._browser.contexts
        context = contexts[0] if contexts else await self._browser.new_context()
        new_page = await context.new_page()
        tab_id = self._register(new_page)
        self._page = new_page
        self.current_url = new_page.url

        if url:
            await new_page.goto(url, wait_until="domcontentloaded", timeout=self.config.navigation_timeout_ms)
            self.current_url = new_page.url

        try:
            title = await new_page.title()
        except PlaywrightError:
            title = ""

        return self._ok(tab_id=tab_id, url=new_page.url, title=title)

    async def tabs_close(self, tab_id: str) -> BrowserResult:
        """Close a tracked page; closing the current one fails over."""
        page = self._tabs.get(tab_id)
        if page is None:
            raise ActionValidationError(f"Tab not found: {tab_id}")

        await page.close()
        self._tabs.pop(tab_id, None)

        # If we closed the active tab, switch to another
        if page is self._page:
            remaining = list(self._tabs.values())
            self._page = remaining[0] if remaining else None
            self.current_url = self._page.url if self._page is not None else ""

        return self._ok(url=self.current_url)

    async def tabs_focus(self, tab_id: str) -> BrowserResult:
        """Bring a tracked page forward and make it current."""
        page = self._tabs.get(tab_id)
        if page is None:
            raise ActionValidationError(f"Tab not found: {tab_id}")

        await page.bring_to_front()
        self._page = page
        self.current_url = page.url

        try:
            title = await page.title()
        except PlaywrightError:
            title = ""

        return self._ok(tab_id=tab_id, url=self.current_url, title=title)
