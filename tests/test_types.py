"""
Tests for result types and errors.
"""

from tandem_browser.errors import (
    ActionValidationError,
    BrowserConnectionError,
    BrowserError,
    BrowserTimeoutError,
    ElementError,
    ErrorKind,
)
from tandem_browser.types import BrowserResult, TabInfo, TierName


class TestBrowserResult:
    """Tests for BrowserResult."""

    def test_ok_has_no_error(self):
        result = BrowserResult.ok(TierName.EMBEDDED, url="https://example.com", title="Example")
        assert result.success is True
        assert result.error is None
        assert result.error_kind is None
        assert result.timed_out is False

    def test_failure_always_has_error(self):
        result = BrowserResult.failure(TierName.REMOTE, "")
        assert result.success is False
        assert result.error == "Unknown error"
        assert result.error_kind == ErrorKind.UNEXPECTED

    def test_timed_out_only_for_timeout_kind(self):
        assert BrowserResult.failure(TierName.EMBEDDED, "slow", ErrorKind.TIMEOUT).timed_out
        assert not BrowserResult.failure(TierName.EMBEDDED, "gone", ErrorKind.ELEMENT).timed_out

    def test_to_dict_drops_unset_fields(self):
        data = BrowserResult.ok(TierName.EMBEDDED, url="https://example.com").to_dict()
        assert data == {"success": True, "tier": "embedded", "url": "https://example.com"}

    def test_to_dict_failure(self):
        result = BrowserResult.failure(TierName.REMOTE, "Download was canceled", canceled=True)
        data = result.to_dict()
        assert data["error"] == "Download was canceled"
        assert data["error_kind"] == "unexpected"
        assert data["timed_out"] is False
        assert data["canceled"] is True

    def test_to_dict_tabs(self):
        result = BrowserResult.ok(
            TierName.REMOTE,
            tabs=[TabInfo(id="tab-1", url="https://a.test", title="A", active=True)],
        )
        assert result.to_dict()["tabs"] == [
            {"id": "tab-1", "url": "https://a.test", "title": "A", "active": True},
        ]


class TestErrors:
    """Tests for the exception hierarchy."""

    def test_kinds(self):
        assert BrowserConnectionError("x").kind == ErrorKind.CONNECTION
        assert BrowserTimeoutError("x").kind == ErrorKind.TIMEOUT
        assert ElementError("x").kind == ErrorKind.ELEMENT
        assert ActionValidationError("x").kind == ErrorKind.VALIDATION
        assert BrowserError("x").kind == ErrorKind.UNEXPECTED

    def test_kind_override(self):
        error = BrowserError("late", kind=ErrorKind.TIMEOUT)
        assert error.kind == ErrorKind.TIMEOUT
        assert error.message == "late"
        assert str(error) == "late"
