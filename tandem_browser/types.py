"""
Type definitions for Tandem Browser.

Provides the action and result shapes shared by the manager and both tiers.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Optional, Union

from .errors import ErrorKind


class TierName(str, Enum):
    """Backend that services an action."""
    EMBEDDED = "embedded"
    REMOTE = "remote"


class ActionKind(str, Enum):
    """Browser operation requested by the caller."""
    NAVIGATE = "navigate"
    SCREENSHOT = "screenshot"
    CLICK = "click"
    TYPE = "type"
    EVALUATE = "evaluate"
    EXTRACT = "extract"
    SCROLL = "scroll"
    HOVER = "hover"
    DOWNLOAD = "download"
    UPLOAD = "upload"
    TABS_LIST = "tabs_list"
    TABS_OPEN = "tabs_open"
    TABS_CLOSE = "tabs_close"
    TABS_FOCUS = "tabs_focus"


TAB_ACTIONS = frozenset({
    ActionKind.TABS_LIST,
    ActionKind.TABS_OPEN,
    ActionKind.TABS_CLOSE,
    ActionKind.TABS_FOCUS,
})


class ExtractMode(str, Enum):
    """What extract() returns."""
    TEXT = "text"
    HTML = "html"
    LINKS = "links"
    TABLES = "tables"
    STRUCTURED = "structured"


class ScrollDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True)
class BrowserAction:
    """One requested browser operation.

    Attributes:
        kind: The operation to run
        url: Target URL (navigate, tabs_open, download)
        selector: CSS selector (click, type, hover, scroll, download, upload)
        text: Text to type
        script: JavaScript body for evaluate
        extract_mode: Extraction mode, structured when unset
        extract_selector: Root element for extraction, body when unset
        wait_for: Selector to wait for, or milliseconds to sleep, after navigate
        tier: Explicit tier override
        requires_auth: Hint that the page needs the user's logged-in session
        scroll_direction: Direction for scroll
        scroll_amount: Pixels for scroll
        download_path: Where to save a download (file or directory)
        download_timeout_ms: Bound on waiting for a download to finish
        file_path: Local file for upload
        tab_id: Tab identifier for tabs_close / tabs_focus
    """
    kind: ActionKind
    url: Optional[str] = None
    selector: Optional[str] = None
    text: Optional[str] = None
    script: Optional[str] = None
    extract_mode: ExtractMode = ExtractMode.STRUCTURED
    extract_selector: Optional[str] = None
    wait_for: Optional[Union[str, int]] = None
    tier: Optional[TierName] = None
    requires_auth: bool = False
    scroll_direction: ScrollDirection = ScrollDirection.DOWN
    scroll_amount: int = 300
    download_path: Optional[str] = None
    download_timeout_ms: Optional[int] = None
    file_path: Optional[str] = None
    tab_id: Optional[str] = None


@dataclass
class TabInfo:
    """An open page in the remote browser."""
    id: str
    url: str
    title: str
    active: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "active": self.active,
        }


@dataclass
class BrowserResult:
    """Outcome of a browser action.

    Either success is True with an optional payload, or success is False
    with error set. tier always names the backend that serviced the call.
    """
    success: bool
    tier: TierName
    url: Optional[str] = None
    title: Optional[str] = None
    text: Optional[str] = None
    html: Optional[str] = None
    data: Optional[Any] = None
    screenshot: Optional[str] = None
    downloaded_file: Optional[str] = None
    download_size: Optional[int] = None
    tabs: Optional[list[TabInfo]] = None
    tab_id: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, tier: TierName, **payload: Any) -> "BrowserResult":
        """Build a successful result."""
        return cls(success=True, tier=tier, **payload)

    @classmethod
    def failure(
        cls,
        tier: TierName,
        error: str,
        kind: ErrorKind = ErrorKind.UNEXPECTED,
        **details: Any,
    ) -> "BrowserResult":
        """Build a failed result."""
        return cls(
            success=False,
            tier=tier,
            error=error or "Unknown error",
            error_kind=kind,
            details=details,
        )

    @property
    def timed_out(self) -> bool:
        """True when the action ran out of time rather than failing outright."""
        return self.error_kind == ErrorKind.TIMEOUT

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary, dropping unset fields."""
        result: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None or f.name == "details":
                continue
            if isinstance(value, Enum):
                value = value.value
            elif f.name == "tabs":
                value = [tab.to_dict() for tab in value]
            result[f.name] = value
        if not self.success:
            result["timed_out"] = self.timed_out
        if self.details:
            result.update(self.details)
        return result
