"""
Settings storage for Tandem Browser.

Provides persistent JSON-based settings storage for the values the user
can toggle at runtime (which browser to prefer, where it listens).
"""

import json
import logging
import threading
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional

from .config import BrowserConfig, DEFAULT_CDP_URL, get_base_dir


logger = logging.getLogger(__name__)


def get_settings_path() -> Path:
    """Get the path to the settings file."""
    return get_base_dir() / "settings.json"


@dataclass
class Settings:
    """Persisted browser settings."""

    # Always drive the user's own browser over CDP
    prefer_external_browser: bool = False

    # Remote debugging endpoint
    cdp_url: str = DEFAULT_CDP_URL


class SettingsStore:
    """Thread-safe settings storage.

    One store is created by the application and handed to whoever needs
    it; the manager reads the preference flag on every tier selection.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = path or get_settings_path()
        self._settings: Settings = Settings()
        self._file_lock = threading.Lock()
        self._load()

    @property
    def settings(self) -> Settings:
        """Get current settings."""
        return self._settings

    @property
    def prefer_external_browser(self) -> bool:
        return self._settings.prefer_external_browser

    def _load(self) -> None:
        """Load settings from file."""
        if not self.path.exists():
            return

        try:
            with self._file_lock:
                data = json.loads(self.path.read_text())
                self._settings = Settings(
                    prefer_external_browser=bool(data.get("prefer_external_browser", False)),
                    cdp_url=data.get("cdp_url") or DEFAULT_CDP_URL,
                )
        except (json.JSONDecodeError, AttributeError, OSError) as e:
            # Use defaults on error
            logger.warning(f"Ignoring unreadable settings file {self.path}: {e}")
            self._settings = Settings()

    def save(self) -> None:
        """Save settings to file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        with self._file_lock:
            self.path.write_text(json.dumps(asdict(self._settings), indent=2))

    def update(self, **kwargs) -> None:
        """Update settings and save.

        Args:
            **kwargs: Settings fields to update
        """
        for key, value in kwargs.items():
            if hasattr(self._settings, key):
                setattr(self._settings, key, value)
            else:
                logger.debug(f"Ignoring unknown setting: {key}")
        self.save()

    def reset(self) -> None:
        """Reset to default settings."""
        self._settings = Settings()
        self.save()

    def apply_to(self, config: BrowserConfig) -> BrowserConfig:
        """Overlay persisted values on a configuration.

        The persisted endpoint wins only when it differs from the default,
        so an explicit TANDEM_BROWSER_CDP_URL is not clobbered by defaults.
        """
        if self._settings.cdp_url and self._settings.cdp_url != DEFAULT_CDP_URL:
            config.cdp_url = self._settings.cdp_url
        config.prefer_external_browser = (
            config.prefer_external_browser or self._settings.prefer_external_browser
        )
        return config
