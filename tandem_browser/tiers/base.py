"""
Shared interface for browser tiers.

A tier owns one browser backend and services BrowserActions against it.
The base class supplies dispatch, validation, error mapping and the
script-driven operations both backends perform identically.
"""

import asyncio
import base64
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Union

from playwright.async_api import Error as PlaywrightError, Page, TimeoutError as PlaywrightTimeoutError

from .. import scripts
from ..config import BrowserConfig
from ..errors import ActionValidationError, BrowserError, BrowserTimeoutError, ElementError, ErrorKind
from ..tool_schemas import validate_action
from ..types import ActionKind, BrowserAction, BrowserResult, ScrollDirection, TierName
from ..utils import elapsed_ms


logger = logging.getLogger(__name__)


# Operations logged at INFO; everything else is DEBUG
_NOISY_ACTIONS = {ActionKind.NAVIGATE, ActionKind.SCREENSHOT, ActionKind.DOWNLOAD}

SELECTOR_POLL_INTERVAL_S = 0.1


class BrowserTier(ABC):
    """Capability interface shared by the embedded and remote tiers."""

    name: TierName

    def __init__(self, config: Optional[BrowserConfig] = None):
        self.config = config or BrowserConfig()
        self.current_url: str = ""

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    async def execute(self, action: BrowserAction) -> BrowserResult:
        """Execute a browser action.

        Never raises: every failure becomes a BrowserResult with
        success=False and an error_kind.

        Args:
            action: The action to run

        Returns:
            BrowserResult for this tier
        """
        start = time.monotonic()
        kind = getattr(action.kind, "value", action.kind)
        level = logging.INFO if action.kind in _NOISY_ACTIONS else logging.DEBUG
        logger.log(level, f"[{self.name.value}] {kind} START url={action.url} selector={action.selector}")

        try:
            validate_action(action)
            result = await self._dispatch(action)
        except PlaywrightTimeoutError as e:
            result = self._fail(f"Timeout: {_first_line(e)}", ErrorKind.TIMEOUT)
        except asyncio.TimeoutError:
            result = self._fail(f"Timeout: {kind} did not finish in time", ErrorKind.TIMEOUT)
        except BrowserError as e:
            result = self._fail(e.message, e.kind)
        except PlaywrightError as e:
            result = self._fail(_first_line(e), ErrorKind.UNEXPECTED)
        except Exception as e:
            logger.exception(f"[{self.name.value}] {kind} raised")
            result = self._fail(f"{type(e).__name__}: {e}", ErrorKind.UNEXPECTED)

        if result.success:
            logger.log(level, f"[{self.name.value}] {kind} END duration={elapsed_ms(start)}ms")
        else:
            logger.log(
                max(level, logging.INFO),
                f"[{self.name.value}] {kind} FAILED duration={elapsed_ms(start)}ms error={result.error!r}",
            )
        return result

    @abstractmethod
    def get_state(self) -> dict[str, Any]:
        """Snapshot of the tier's state for status reporting."""

    @abstractmethod
    async def close(self) -> None:
        """Release everything the tier owns."""

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _dispatch(self, action: BrowserAction) -> BrowserResult:
        method_map: dict[ActionKind, Callable[[BrowserAction], Awaitable[BrowserResult]]] = {
            ActionKind.NAVIGATE: lambda a: self.navigate(a.url, a.wait_for),
            ActionKind.SCREENSHOT: lambda a: self.screenshot(),
            ActionKind.CLICK: lambda a: self.click(a.selector),
            ActionKind.TYPE: lambda a: self.type_text(a.selector, a.text),
            ActionKind.EVALUATE: lambda a: self.evaluate(a.script),
            ActionKind.EXTRACT: lambda a: self.extract(a),
            ActionKind.SCROLL: lambda a: self.scroll(a.scroll_direction, a.scroll_amount, a.selector),
            ActionKind.HOVER: lambda a: self.hover(a.selector),
            ActionKind.DOWNLOAD: lambda a: self.download(
                a.selector, a.url, a.download_path, a.download_timeout_ms,
            ),
            ActionKind.UPLOAD: lambda a: self.upload(a.selector, a.file_path),
            ActionKind.TABS_LIST: lambda a: self.tabs_list(),
            ActionKind.TABS_OPEN: lambda a: self.tabs_open(a.url),
            ActionKind.TABS_CLOSE: lambda a: self.tabs_close(a.tab_id),
            ActionKind.TABS_FOCUS: lambda a: self.tabs_focus(a.tab_id),
        }
        method = method_map.get(action.kind)
        if method is None:
            raise ActionValidationError(f"Unknown action: {action.kind}")
        return await method(action)

    # ------------------------------------------------------------------
    # Tier-specific operations
    # ------------------------------------------------------------------

    @abstractmethod
    async def _live_page(self) -> Page:
        """Live page to operate on, creating or reconnecting as needed."""

    @abstractmethod
    async def navigate(self, url: str, wait_for: Optional[Union[str, int]] = None) -> BrowserResult:
        ...

    @abstractmethod
    async def screenshot(self) -> BrowserResult:
        ...

    @abstractmethod
    async def click(self, selector: str) -> BrowserResult:
        ...

    @abstractmethod
    async def type_text(self, selector: str, text: str) -> BrowserResult:
        ...

    @abstractmethod
    async def hover(self, selector: str) -> BrowserResult:
        ...

    @abstractmethod
    async def download(
        self,
        selector: Optional[str] = None,
        url: Optional[str] = None,
        save_path: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ) -> BrowserResult:
        ...

    @abstractmethod
    async def upload(self, selector: str, file_path: str) -> BrowserResult:
        ...

    async def tabs_list(self) -> BrowserResult:
        raise self._tabs_unsupported()

    async def tabs_open(self, url: Optional[str] = None) -> BrowserResult:
        raise self._tabs_unsupported()

    async def tabs_close(self, tab_id: str) -> BrowserResult:
        raise self._tabs_unsupported()

    async def tabs_focus(self, tab_id: str) -> BrowserResult:
        raise self._tabs_unsupported()

    def _tabs_unsupported(self) -> ActionValidationError:
        return ActionValidationError(
            f"Tab management is not supported by the {self.name.value} tier. "
            f'Set requires_auth=true or tier="{TierName.REMOTE.value}"'
        )

    # ------------------------------------------------------------------
    # Script-driven operations shared by both tiers
    # ------------------------------------------------------------------

    async def evaluate(self, script: str) -> BrowserResult:
        """Run caller JavaScript in an isolated wrapper.

        The script may be an expression (``document.title``) or a function
        body using ``return``. Exceptions thrown by the script come back as
        a failed result instead of propagating.
        """
        page = await self._live_page()
        outcome = await self._evaluate_isolated(page, script)
        if not outcome.get("success"):
            return self._fail(outcome.get("error") or "Script failed", ErrorKind.UNEXPECTED)
        return self._ok(data=outcome.get("data"), url=self._url_of(page))

    async def extract(self, action: BrowserAction) -> BrowserResult:
        """Extract text, html, links, tables or a structured summary.

        Raises:
            ElementError: If an explicit extract_selector matches nothing
        """
        page = await self._live_page()
        data = await page.evaluate(
            scripts.EXTRACT,
            {
                "selector": action.extract_selector,
                "mode": action.extract_mode.value,
                "maxHeadings": self.config.max_headings,
                "maxContent": self.config.main_content_max_chars,
            },
        )
        if data is None:
            raise ElementError(f"Element not found: {action.extract_selector}")
        return self._ok(data=data, url=self._url_of(page))

    async def scroll(
        self,
        direction: ScrollDirection = ScrollDirection.DOWN,
        amount: int = 300,
        selector: Optional[str] = None,
    ) -> BrowserResult:
        """Scroll an element or the viewport by a signed pixel delta."""
        page = await self._live_page()
        if selector:
            await self._wait_for_selector(page, selector, self.config.element_timeout_ms, missing_ok=True)
        result = await page.evaluate(
            scripts.SCROLL,
            {"selector": selector, "direction": ScrollDirection(direction).value, "amount": amount},
        )
        if not result.get("success"):
            raise ElementError(result.get("error") or "Scroll failed")
        result.pop("success", None)
        return self._ok(data=result, url=self._url_of(page))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _evaluate_isolated(self, page: Page, script: str) -> dict[str, Any]:
        try:
            return await page.evaluate(scripts.wrap_expression(script))
        except PlaywrightError as e:
            if "SyntaxError" not in str(e):
                raise
        # Not an expression; run it as a function body instead
        try:
            return await page.evaluate(scripts.wrap_body(script))
        except PlaywrightError as e:
            if "SyntaxError" in str(e):
                return {"success": False, "error": _first_line(e)}
            raise

    async def _wait_for_selector(
        self,
        page: Page,
        selector: str,
        timeout_ms: int,
        missing_ok: bool = False,
    ) -> bool:
        """Poll for a selector at a short interval.

        Raises:
            BrowserTimeoutError: If the selector never appears and missing_ok is False
        """
        deadline = time.monotonic() + timeout_ms / 1000
        while True:
            if await page.evaluate(scripts.SELECTOR_PRESENT, selector):
                return True
            if time.monotonic() >= deadline:
                break
            await asyncio.sleep(SELECTOR_POLL_INTERVAL_S)
        if missing_ok:
            return False
        raise BrowserTimeoutError(f"Timeout waiting for selector: {selector}")

    async def _apply_wait(self, page: Page, wait_for: Union[str, int]) -> None:
        if isinstance(wait_for, int):
            await asyncio.sleep(wait_for / 1000)
        else:
            await self._wait_for_selector(page, wait_for, self.config.selector_timeout_ms)

    async def _visible_text(self, page: Page) -> str:
        text = await page.evaluate(scripts.VISIBLE_TEXT, self.config.visible_text_max_chars)
        return text or ""

    async def _screenshot_base64(self, page: Page) -> str:
        image = await page.screenshot(type="png", full_page=False)
        return base64.b64encode(image).decode("ascii")

    def _url_of(self, page: Page) -> str:
        return page.url

    def _ok(self, **payload: Any) -> BrowserResult:
        return BrowserResult.ok(self.name, **payload)

    def _fail(self, error: str, kind: ErrorKind = ErrorKind.UNEXPECTED) -> BrowserResult:
        return BrowserResult.failure(self.name, error, kind)


def _first_line(error: BaseException) -> str:
    """First line of a Playwright error; the rest is a call log."""
    text = str(error).strip()
    return text.splitlines()[0] if text else type(error).__name__
