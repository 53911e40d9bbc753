"""
Utility functions for Tandem Browser.

Provides helpers for MIME types, download paths, and timing.
"""

import mimetypes
import time
from pathlib import Path
from typing import Optional, Union


# Types that mimetypes gets wrong or misses on minimal systems
_MIME_OVERRIDES = {
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".json": "application/json",
    ".pdf": "application/pdf",
}


def get_mime_type(path: Union[str, Path]) -> str:
    """Guess the MIME type of a local file from its extension.

    Args:
        path: File path

    Returns:
        MIME type, application/octet-stream when unknown
    """
    suffix = Path(path).suffix.lower()
    if suffix in _MIME_OVERRIDES:
        return _MIME_OVERRIDES[suffix]
    guessed, _ = mimetypes.guess_type(str(path))
    return guessed or "application/octet-stream"


def download_directory(save_path: Optional[str], default_dir: Path) -> Path:
    """Directory a download should land in.

    A save path naming an existing directory (or ending in a separator) is
    used as-is; otherwise its parent directory is used.
    """
    if not save_path:
        return default_dir
    target = Path(save_path).expanduser()
    if target.is_dir() or save_path.endswith(("/", "\\")):
        return target
    return target.parent


def resolve_save_path(
    save_path: Optional[str],
    suggested_filename: str,
    default_dir: Path,
) -> Path:
    """Final path for a downloaded file.

    Args:
        save_path: Caller-supplied file or directory path, if any
        suggested_filename: Name the server proposed
        default_dir: Directory used when no save path is given

    Returns:
        Absolute path the file should be written to
    """
    filename = Path(suggested_filename).name or "download"
    if not save_path:
        return default_dir / filename
    target = Path(save_path).expanduser()
    if target.is_dir() or save_path.endswith(("/", "\\")):
        return target / filename
    return target


def elapsed_ms(start: float) -> int:
    """Milliseconds since a time.monotonic() timestamp."""
    return int((time.monotonic() - start) * 1000)
