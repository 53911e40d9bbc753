"""
Typed tool schemas for Tandem Browser.

Provides the Pydantic model for the flat tool-call input, the per-action
required-field table, and conversion to BrowserAction.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import ActionValidationError
from .types import ActionKind, BrowserAction, ExtractMode, ScrollDirection, TierName


# Accepted spellings for tier names coming from tool calls
TIER_ALIASES = {
    "embedded": TierName.EMBEDDED,
    "electron": TierName.EMBEDDED,
    "headless": TierName.EMBEDDED,
    "remote": TierName.REMOTE,
    "cdp": TierName.REMOTE,
    "chrome": TierName.REMOTE,
}

# Fields that must be present per action; download is handled separately
REQUIRED_FIELDS: dict[ActionKind, tuple[str, ...]] = {
    ActionKind.NAVIGATE: ("url",),
    ActionKind.CLICK: ("selector",),
    ActionKind.TYPE: ("selector", "text"),
    ActionKind.HOVER: ("selector",),
    ActionKind.EVALUATE: ("script",),
    ActionKind.UPLOAD: ("selector", "file_path"),
    ActionKind.TABS_CLOSE: ("tab_id",),
    ActionKind.TABS_FOCUS: ("tab_id",),
}


def missing_fields(action: BrowserAction) -> list[str]:
    """List the required fields an action lacks.

    Empty strings count as missing except for type's text, where an empty
    string clears the field.
    """
    missing = []
    for name in REQUIRED_FIELDS.get(action.kind, ()):
        value = getattr(action, name)
        if value is None or (name != "text" and value == ""):
            missing.append(name)
    if action.kind == ActionKind.DOWNLOAD and not (action.selector or action.url):
        missing.append("selector or url")
    return missing


def validate_action(action: BrowserAction) -> None:
    """Check an action before dispatch.

    Raises:
        ActionValidationError: Unknown kind or missing required fields
    """
    if not isinstance(action.kind, ActionKind):
        raise ActionValidationError(f"Unknown action: {action.kind}")
    missing = missing_fields(action)
    if missing:
        raise ActionValidationError(
            f"{action.kind.value} requires: {', '.join(missing)}"
        )


def normalize_tier(value: Any) -> Optional[TierName]:
    """Map a tier name or alias to TierName.

    Raises:
        ValueError: If the name is not recognised
    """
    if value is None or value == "":
        return None
    if isinstance(value, TierName):
        return value
    tier = TIER_ALIASES.get(str(value).strip().lower())
    if tier is None:
        raise ValueError(f"Unknown tier: {value}")
    return tier


class BrowserToolInput(BaseModel):
    """Flat input for the browser tool, one field per action parameter."""

    model_config = ConfigDict(extra="ignore")

    action: ActionKind = Field(description="The browser action to perform")
    url: Optional[str] = Field(default=None, description="URL for navigate, tabs_open, download")
    selector: Optional[str] = Field(default=None, description="CSS selector of the target element")
    text: Optional[str] = Field(default=None, description="Text to type")
    script: Optional[str] = Field(default=None, description="JavaScript to evaluate")
    extract_type: ExtractMode = Field(
        default=ExtractMode.STRUCTURED,
        description="Type of data to extract",
    )
    extract_selector: Optional[str] = Field(default=None, description="Root element for extraction")
    wait_for: Optional[Union[int, str]] = Field(
        default=None,
        description="CSS selector to wait for, or milliseconds to wait",
    )
    tier: Optional[TierName] = Field(default=None, description="Force a specific browser tier")
    requires_auth: bool = Field(default=False, description="Page needs the user's logged-in session")
    scroll_direction: ScrollDirection = Field(default=ScrollDirection.DOWN)
    scroll_amount: int = Field(default=300, ge=1, le=100000, description="Pixels to scroll")
    download_path: Optional[str] = Field(default=None, description="Where to save a download")
    download_timeout: Optional[int] = Field(
        default=None,
        ge=1,
        le=600000,
        description="Max ms to wait for a download",
    )
    file_path: Optional[str] = Field(default=None, description="Local file to upload")
    tab_id: Optional[str] = Field(default=None, description="Tab id for tabs_close, tabs_focus")

    @field_validator("tier", mode="before")
    @classmethod
    def validate_tier(cls, v: Any) -> Optional[TierName]:
        return normalize_tier(v)

    @field_validator("wait_for", mode="before")
    @classmethod
    def validate_wait_for(cls, v: Any) -> Optional[Union[int, str]]:
        """Numeric strings are milliseconds; anything else is a selector."""
        if v is None or v == "":
            return None
        if isinstance(v, bool):
            raise ValueError("wait_for must be a selector or a number of milliseconds")
        if isinstance(v, (int, float)):
            if v < 0:
                raise ValueError("wait_for cannot be negative")
            return int(v)
        text = str(v).strip()
        if text.isdigit():
            return int(text)
        return text

    @field_validator("scroll_direction", "extract_type", mode="before")
    @classmethod
    def lowercase_enum(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @model_validator(mode="after")
    def check_required(self) -> "BrowserToolInput":
        missing = missing_fields(self.to_action())
        if missing:
            raise ValueError(f"{self.action.value} requires: {', '.join(missing)}")
        return self

    def to_action(self) -> BrowserAction:
        """Convert to the internal action type."""
        return BrowserAction(
            kind=self.action,
            url=self.url,
            selector=self.selector,
            text=self.text,
            script=self.script,
            extract_mode=self.extract_type,
            extract_selector=self.extract_selector,
            wait_for=self.wait_for,
            tier=self.tier,
            requires_auth=self.requires_auth,
            scroll_direction=self.scroll_direction,
            scroll_amount=self.scroll_amount,
            download_path=self.download_path,
            download_timeout_ms=self.download_timeout,
            file_path=self.file_path,
            tab_id=self.tab_id,
        )


def format_validation_error(error: ValidationError) -> str:
    """Flatten a Pydantic error into one readable line."""
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ()) if p != "__root__")
        message = item.get("msg", "invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        parts.append(f"{location}: {message}" if location else message)
    return "Invalid browser action: " + "; ".join(parts)


def parse_tool_input(raw: dict[str, Any]) -> BrowserAction:
    """Validate raw tool input and build a BrowserAction.

    Raises:
        ActionValidationError: If the input is malformed
    """
    try:
        return BrowserToolInput.model_validate(raw).to_action()
    except ValidationError as e:
        raise ActionValidationError(format_validation_error(e)) from e
