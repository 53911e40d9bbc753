"""
Tests for tool input validation.
"""

import pytest

from tandem_browser.errors import ActionValidationError, ErrorKind
from tandem_browser.tool_schemas import (
    BrowserToolInput,
    missing_fields,
    normalize_tier,
    parse_tool_input,
    validate_action,
)
from tandem_browser.types import ActionKind, BrowserAction, ExtractMode, ScrollDirection, TierName


class TestRequiredFields:
    """Tests for per-action required fields."""

    @pytest.mark.parametrize("kind,expected", [
        (ActionKind.NAVIGATE, ["url"]),
        (ActionKind.CLICK, ["selector"]),
        (ActionKind.HOVER, ["selector"]),
        (ActionKind.TYPE, ["selector", "text"]),
        (ActionKind.EVALUATE, ["script"]),
        (ActionKind.UPLOAD, ["selector", "file_path"]),
        (ActionKind.TABS_CLOSE, ["tab_id"]),
        (ActionKind.TABS_FOCUS, ["tab_id"]),
        (ActionKind.DOWNLOAD, ["selector or url"]),
    ])
    def test_missing_fields_reported(self, kind, expected):
        assert missing_fields(BrowserAction(kind=kind)) == expected

    @pytest.mark.parametrize("kind", [
        ActionKind.SCREENSHOT,
        ActionKind.EXTRACT,
        ActionKind.SCROLL,
        ActionKind.TABS_LIST,
        ActionKind.TABS_OPEN,
    ])
    def test_actions_without_requirements(self, kind):
        assert missing_fields(BrowserAction(kind=kind)) == []

    def test_empty_text_allowed_for_type(self):
        """Typing an empty string clears the field."""
        action = BrowserAction(kind=ActionKind.TYPE, selector="#q", text="")
        assert missing_fields(action) == []

    def test_empty_selector_is_missing(self):
        action = BrowserAction(kind=ActionKind.CLICK, selector="")
        assert missing_fields(action) == ["selector"]

    def test_download_accepts_url_only(self):
        action = BrowserAction(kind=ActionKind.DOWNLOAD, url="https://example.com/a.pdf")
        assert missing_fields(action) == []

    def test_validate_action_raises_validation_error(self):
        with pytest.raises(ActionValidationError, match="click requires: selector") as exc:
            validate_action(BrowserAction(kind=ActionKind.CLICK))
        assert exc.value.kind == ErrorKind.VALIDATION

    def test_validate_action_unknown_kind(self):
        with pytest.raises(ActionValidationError, match="Unknown action"):
            validate_action(BrowserAction(kind="teleport"))


class TestTierNormalization:
    """Tests for tier names and aliases."""

    @pytest.mark.parametrize("value,expected", [
        ("embedded", TierName.EMBEDDED),
        ("electron", TierName.EMBEDDED),
        ("headless", TierName.EMBEDDED),
        ("remote", TierName.REMOTE),
        ("cdp", TierName.REMOTE),
        ("Chrome", TierName.REMOTE),
        (TierName.REMOTE, TierName.REMOTE),
        (None, None),
        ("", None),
    ])
    def test_aliases(self, value, expected):
        assert normalize_tier(value) == expected

    def test_unknown_tier_raises(self):
        with pytest.raises(ValueError, match="Unknown tier"):
            normalize_tier("firefox")


class TestBrowserToolInput:
    """Tests for the flat tool input model."""

    def test_defaults(self):
        model = BrowserToolInput(action="screenshot")
        assert model.extract_type == ExtractMode.STRUCTURED
        assert model.scroll_direction == ScrollDirection.DOWN
        assert model.scroll_amount == 300
        assert model.requires_auth is False
        assert model.tier is None

    def test_wait_for_numeric_string_is_milliseconds(self):
        model = BrowserToolInput(action="navigate", url="https://example.com", wait_for="1500")
        assert model.wait_for == 1500

    def test_wait_for_selector_kept(self):
        model = BrowserToolInput(action="navigate", url="https://example.com", wait_for="#content")
        assert model.wait_for == "#content"

    def test_wait_for_negative_rejected(self):
        with pytest.raises(ValueError):
            BrowserToolInput(action="navigate", url="https://example.com", wait_for=-5)

    def test_enum_values_case_insensitive(self):
        model = BrowserToolInput(action="extract", extract_type="LINKS")
        assert model.extract_type == ExtractMode.LINKS

    def test_scroll_amount_bounds(self):
        with pytest.raises(ValueError):
            BrowserToolInput(action="scroll", scroll_amount=0)

    def test_unknown_fields_ignored(self):
        model = BrowserToolInput(action="screenshot", something_else=True)
        assert not hasattr(model, "something_else")

    def test_to_action_maps_fields(self):
        model = BrowserToolInput(
            action="download",
            url="https://example.com/report.pdf",
            tier="cdp",
            download_path="/tmp/out",
            download_timeout=5000,
        )
        action = model.to_action()
        assert action.kind == ActionKind.DOWNLOAD
        assert action.tier == TierName.REMOTE
        assert action.download_path == "/tmp/out"
        assert action.download_timeout_ms == 5000


class TestParseToolInput:
    """Tests for parse_tool_input()."""

    def test_valid_input(self):
        action = parse_tool_input({"action": "click", "selector": "#go"})
        assert action == BrowserAction(kind=ActionKind.CLICK, selector="#go")

    def test_missing_field_message(self):
        with pytest.raises(ActionValidationError) as exc:
            parse_tool_input({"action": "upload", "selector": "input[type=file]"})
        assert exc.value.message.startswith("Invalid browser action:")
        assert "file_path" in exc.value.message

    def test_unknown_action(self):
        with pytest.raises(ActionValidationError, match="action"):
            parse_tool_input({"action": "teleport"})

    def test_unknown_tier(self):
        with pytest.raises(ActionValidationError, match="Unknown tier"):
            parse_tool_input({"action": "screenshot", "tier": "firefox"})
