"""
Embedded browser tier.

Drives a private, hidden Chromium launched on first use. There is exactly
one page (the render surface) and every interaction is done by injecting
scripts into it, so nothing steals focus from the user.
"""

import asyncio
import base64
import logging
import time
from pathlib import Path
from typing import Any, Optional, Union

from playwright.async_api import (
    Browser,
    BrowserContext,
    Download,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from .. import scripts
from ..config import BrowserConfig
from ..errors import ActionValidationError, BrowserTimeoutError, ElementError
from ..types import BrowserResult, TierName
from ..utils import get_mime_type, resolve_save_path
from .base import BrowserTier


logger = logging.getLogger(__name__)


CLICK_SETTLE_S = 0.5
HOVER_SETTLE_S = 0.3
UPLOAD_SETTLE_S = 0.3
DOWNLOAD_POLL_INTERVAL_S = 0.1


class EmbeddedTier(BrowserTier):
    """Hidden single-surface tier.

    The browser is only launched when the first action arrives and is
    reused until close(). Tab actions are rejected: there is one surface.

    Usage:
        tier = EmbeddedTier(config)
        result = await tier.execute(BrowserAction(kind=ActionKind.NAVIGATE, url="https://example.com"))
        await tier.close()
    """

    name = TierName.EMBEDDED

    def __init__(self, config: Optional[BrowserConfig] = None):
        super().__init__(config)
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._closed = False

        # Download hook state
        self._last_download: Optional[dict[str, Any]] = None
        self._download_error: Optional[str] = None
        self._download_save_path: Optional[str] = None
        self._download_tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Surface lifecycle
    # ------------------------------------------------------------------

    async def _initialize_browser(self) -> None:
        """Launch Playwright, browser and context.

        Called lazily on first access to the surface.
        """
        logger.debug("EmbeddedTier: launching hidden browser (first use)")

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self.config.headless)
        self._context = await self._browser.new_context(
            viewport={"width": self.config.viewport_width, "height": self.config.viewport_height},
            user_agent=self.config.user_agent,
            accept_downloads=True,
        )

        logger.debug("EmbeddedTier: browser launched")

    async def _live_page(self) -> Page:
        """Return the render surface, creating it if needed."""
        if self._page is not None and not self._page.is_closed():
            return self._page

        if self._closed:
            raise ActionValidationError("Embedded tier has been closed")

        if self._context is None:
            await self._initialize_browser()

        self._page = await self._context.new_page()
        self._page.set_default_timeout(self.config.element_timeout_ms)
        self._page.on("download", self._on_download)
        return self._page

    def is_active(self) -> bool:
        """True while the surface exists and has not been closed."""
        if self._page is None or self._page.is_closed():
            return False
        return self._browser is not None and self._browser.is_connected()

    def get_state(self) -> dict[str, Any]:
        return {
            "url": self.current_url,
            "active": self.is_active(),
            "download_pending": self._download_save_path is not None,
        }

    async def close(self) -> None:
        """Close the surface and the browser behind it.

        Safe to call multiple times.
        """
        self._closed = True

        for task in list(self._download_tasks):
            task.cancel()
        self._download_tasks.clear()

        # Close in reverse order
        for label, closer in (
            ("context", self._context.close if self._context else None),
            ("browser", self._browser.close if self._browser else None),
            ("playwright", self._playwright.stop if self._playwright else None),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except Exception as e:
                logger.debug(f"EmbeddedTier: error closing {label}: {e}")

        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None
        self.current_url = ""

    def _url_of(self, page: Page) -> str:
        return self.current_url or page.url

    def _track_url(self, page: Page) -> None:
        """Follow navigations triggered by clicks and similar actions."""
        if self.current_url and page.url and page.url != "about:blank":
            self.current_url = page.url

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def navigate(self, url: str, wait_for: Optional[Union[str, int]] = None) -> BrowserResult:
        """Load a URL and return its title and visible text.

        Args:
            url: URL to load
            wait_for: Selector to poll for, or milliseconds to sleep

        Returns:
            BrowserResult with url, title and truncated text
        """
        page = await self._live_page()

        await page.goto(url, wait_until="domcontentloaded", timeout=self.config.navigation_timeout_ms)
        self.current_url = url

        if wait_for is not None:
            await self._apply_wait(page, wait_for)
        else:
            try:
                await page.wait_for_load_state("load", timeout=self.config.dom_ready_fallback_ms)
            except PlaywrightTimeoutError:
                logger.debug(f"EmbeddedTier: load event not seen for {url}, continuing")

        title = await page.title()
        text = await self._visible_text(page)

        return self._ok(url=self.current_url, title=title, text=text)

    async def screenshot(self) -> BrowserResult:
        """Capture the surface as a base64 PNG."""
        if not self.current_url:
            raise ActionValidationError("No page loaded. Call navigate first.")

        page = await self._live_page()
        image = await self._screenshot_base64(page)
        return self._ok(screenshot=image, url=self.current_url)

    async def click(self, selector: str) -> BrowserResult:
        """Click an element with synthetic pointer and mouse events.

        Fails distinctly when the element is missing, hidden or disabled.
        """
        page = await self._live_page()

        check = await page.evaluate(scripts.CLICKABILITY, selector)
        if not check.get("clickable"):
            reason = check.get("reason", "unknown")
            if reason == "not found":
                raise ElementError(f"Element not found: {selector}")
            raise ElementError(f"Element not clickable: {reason}")

        result = await page.evaluate(scripts.DISPATCH_CLICK, selector)
        if not result.get("success"):
            raise ElementError(result.get("error") or "Click failed")

        # Wait a bit for any navigation/updates
        await asyncio.sleep(CLICK_SETTLE_S)
        self._track_url(page)

        return self._ok(url=self._url_of(page))

    async def type_text(self, selector: str, text: str) -> BrowserResult:
        """Replace an input's value and fire input/change events."""
        page = await self._live_page()

        result = await page.evaluate(scripts.SET_VALUE, {"selector": selector, "text": text})
        if not result.get("success"):
            raise ElementError(result.get("error") or "Type failed")

        return self._ok(url=self._url_of(page), data={"chars_typed": len(text)})

    async def hover(self, selector: str) -> BrowserResult:
        page = await self._live_page()

        result = await page.evaluate(scripts.DISPATCH_HOVER, selector)
        if not result.get("success"):
            raise ElementError(result.get("error") or "Hover failed")

        # Wait for hover effects
        await asyncio.sleep(HOVER_SETTLE_S)
        return self._ok(url=self._url_of(page))

    async def download(
        self,
        selector: Optional[str] = None,
        url: Optional[str] = None,
        save_path: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ) -> BrowserResult:
        """Trigger a download and wait for the download hook to record it.

        Args:
            selector: Element to click to start the download
            url: URL to fetch directly when no selector is given
            save_path: File or directory to save into
            timeout_ms: Bound on the wait

        Returns:
            BrowserResult with downloaded_file and download_size
        """
        if not selector and not url:
            raise ActionValidationError("Either selector or url required for download")

        timeout_ms = timeout_ms or self.config.download_timeout_ms
        page = await self._live_page()

        self._last_download = None
        self._download_error = None
        self._download_save_path = save_path or ""

        try:
            if selector:
                result = await page.evaluate(scripts.CLICK_FOR_DOWNLOAD, selector)
                if not result.get("success"):
                    raise ElementError(result.get("error") or "Download trigger failed")
            else:
                await page.evaluate(scripts.DOWNLOAD_URL, url)

            deadline = time.monotonic() + timeout_ms / 1000
            while self._last_download is None and self._download_error is None:
                if time.monotonic() >= deadline:
                    raise BrowserTimeoutError(f"Download timed out after {timeout_ms}ms")
                await asyncio.sleep(DOWNLOAD_POLL_INTERVAL_S)
        finally:
            self._download_save_path = None

        if self._download_error is not None:
            return self._fail(f"Download failed: {self._download_error}")

        download = self._last_download
        return self._ok(
            url=self._url_of(page),
            downloaded_file=download["path"],
            download_size=download["size"],
        )

    def _on_download(self, download: Download) -> None:
        """Page-level hook: every download started on the surface lands here."""
        task = asyncio.ensure_future(self._save_download(download))
        self._download_tasks.add(task)
        task.add_done_callback(self._download_tasks.discard)

    async def _save_download(self, download: Download) -> None:
        target = resolve_save_path(
            self._download_save_path,
            download.suggested_filename,
            self.config.download_dir,
        )
        logger.info(f"EmbeddedTier: download starting {download.suggested_filename} -> {target}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            await download.save_as(target)
        except Exception as e:
            logger.warning(f"EmbeddedTier: download of {download.url} failed: {e}")
            self._download_error = str(e)
            return
        self._last_download = {"path": str(target), "size": target.stat().st_size}

    async def upload(self, selector: str, file_path: str) -> BrowserResult:
        """Attach a local file to a file input.

        The bytes are injected as a synthetic File through DataTransfer,
        followed by a change event.
        """
        path = Path(file_path).expanduser()
        if not path.is_file():
            raise ActionValidationError(f"File not found: {file_path}")

        page = await self._live_page()

        check = await page.evaluate(scripts.FILE_INPUT_CHECK, selector)
        if not check.get("ok"):
            raise ElementError(check.get("error") or "Element is not a file input")

        content = await asyncio.to_thread(path.read_bytes)
        result = await page.evaluate(
            scripts.INJECT_FILE,
            {
                "selector": selector,
                "name": path.name,
                "mime": get_mime_type(path),
                "data": base64.b64encode(content).decode("ascii"),
            },
        )
        if not result.get("success"):
            raise ElementError(result.get("error") or "Upload failed")

        # Let change handlers run
        await asyncio.sleep(UPLOAD_SETTLE_S)

        return self._ok(
            url=self._url_of(page),
            data={"fileName": path.name, "size": len(content)},
        )
