"""
Configuration management for Tandem Browser.

Provides configuration dataclass and environment variable loading.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file if present
load_dotenv()


DEFAULT_CDP_URL = "http://localhost:9222"


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").lower() in ("1", "true", "yes")


def get_base_dir() -> Path:
    """Get the base directory for tandem browser data."""
    return Path.home() / ".tandem_browser"


def get_screenshots_dir() -> Path:
    """Get the directory where the tool layer stores screenshots."""
    return get_base_dir() / "screenshots"


def get_default_download_dir() -> Path:
    """Get the directory downloads land in when no path is given."""
    return Path.home() / "Downloads"


@dataclass
class BrowserConfig:
    """Configuration for the browser tiers."""

    # Remote debugging endpoint of the user's browser
    cdp_url: str = field(
        default_factory=lambda: os.getenv("TANDEM_BROWSER_CDP_URL", DEFAULT_CDP_URL)
    )

    # Route everything to the user's browser unless overridden per action
    prefer_external_browser: bool = field(
        default_factory=lambda: _env_flag("TANDEM_BROWSER_PREFER_EXTERNAL")
    )

    # Paths
    download_dir: Path = field(default_factory=get_default_download_dir)
    screenshots_dir: Path = field(default_factory=get_screenshots_dir)

    # Embedded browser settings
    headless: bool = True
    viewport_width: int = 1280
    viewport_height: int = 800
    user_agent: Optional[str] = (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    # Timeouts (ms)
    navigation_timeout_ms: int = 15000
    selector_timeout_ms: int = 10000
    element_timeout_ms: int = 5000
    download_timeout_ms: int = 30000
    dom_ready_fallback_ms: int = 3000

    # Remote endpoint probing (seconds)
    probe_timeout_s: float = 3.0
    health_check_interval_s: float = 30.0

    # Content limits
    visible_text_max_chars: int = 5000
    main_content_max_chars: int = 3000
    max_headings: int = 20

    # Debug mode - enables verbose logging (off by default)
    debug: bool = field(
        default_factory=lambda: _env_flag("TANDEM_BROWSER_DEBUG")
    )

    @property
    def debug_port(self) -> int:
        """Port of the remote debugging endpoint, used in launch instructions."""
        tail = self.cdp_url.rstrip("/").rsplit(":", 1)[-1]
        return int(tail) if tail.isdigit() else 9222

    def ensure_directories(self) -> None:
        """Ensure all required directories exist."""
        get_base_dir().mkdir(parents=True, exist_ok=True)
        self.screenshots_dir.mkdir(parents=True, exist_ok=True)
        self.download_dir.mkdir(parents=True, exist_ok=True)


# Default configuration values for documentation
DEFAULTS = {
    "cdp_url": DEFAULT_CDP_URL,
    "prefer_external_browser": False,
    "navigation_timeout_ms": 15000,
    "selector_timeout_ms": 10000,
    "download_timeout_ms": 30000,
    "health_check_interval_s": 30.0,
    "visible_text_max_chars": 5000,
}
