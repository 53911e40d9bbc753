"""
Tool-call adapter for the browser.

Exposes the tool definition an agent registers and the handler that turns
a tool call into a JSON string for the model.
"""

import base64
import json
import logging
import time
from pathlib import Path
from typing import Any, Optional

from .manager import BrowserManager
from .tool_schemas import BrowserToolInput
from .types import BrowserResult


logger = logging.getLogger(__name__)


TOOL_NAME = "browser"

TOOL_DESCRIPTION = """Browser automation for JS rendering and authenticated sessions.

Use THIS tool when you need:
- JavaScript rendering (SPAs, dynamic content)
- Screenshots of rendered pages
- Clicking/typing on interactive elements
- Access to the user's logged-in browser sessions
- File downloads/uploads
- Multi-tab workflows (remote tier only)

Actions:
- navigate: Go to URL
- screenshot: Capture page image
- click: Click an element
- type: Enter text in input
- evaluate: Run JavaScript
- extract: Get page data (text/html/links/tables/structured)
- scroll: Scroll page or element
- hover: Hover over element (triggers dropdowns)
- download: Download a file
- upload: Upload file to input
- tabs_list: List open tabs (remote only)
- tabs_open: Open new tab (remote only)
- tabs_close: Close a tab (remote only)
- tabs_focus: Switch to tab (remote only)

Tiers:
- embedded (default): Hidden browser for JS rendering
- remote: Connects to the user's Chrome for logged-in sessions + multi-tab

Set requires_auth=true for pages needing login (uses the remote tier).
For the remote tier, the user must start Chrome with: --remote-debugging-port=9222"""


def get_browser_tool_definition() -> dict[str, Any]:
    """Tool definition with a JSON schema generated from BrowserToolInput."""
    schema = BrowserToolInput.model_json_schema()
    schema.pop("title", None)
    return {
        "name": TOOL_NAME,
        "description": TOOL_DESCRIPTION,
        "input_schema": schema,
    }


def save_screenshot(image_b64: str, screenshots_dir: Path) -> Path:
    """Write a base64 PNG to the screenshots directory.

    Returns:
        Path of the written file
    """
    screenshots_dir.mkdir(parents=True, exist_ok=True)
    path = screenshots_dir / f"screenshot-{int(time.time() * 1000)}.png"
    path.write_bytes(base64.b64decode(image_b64))
    return path


def format_result(result: BrowserResult, screenshots_dir: Optional[Path] = None) -> dict[str, Any]:
    """Shape a result for the model.

    Failures carry the error, tier, error kind and any structured details
    such as a download cancellation. Screenshots are saved to disk
    and replaced by their path so the image bytes never reach the model.
    """
    if not result.success:
        response = {"error": result.error, "tier": result.tier.value}
        if result.error_kind is not None:
            response["error_kind"] = result.error_kind.value
        if result.timed_out:
            response["timed_out"] = True
        if result.details:
            response["details"] = dict(result.details)
        return response

    response: dict[str, Any] = {
        "success": True,
        "tier": result.tier.value,
        "url": result.url,
    }

    if result.title:
        response["title"] = result.title
    if result.text:
        response["text"] = result.text
    if result.data is not None:
        response["data"] = result.data
    if result.html:
        response["html"] = result.html
    if result.screenshot:
        if screenshots_dir is None:
            response["screenshot"] = result.screenshot
        else:
            path = save_screenshot(result.screenshot, screenshots_dir)
            response["screenshot"] = f"saved to {path}"
            response["screenshotSize"] = f"{round(len(result.screenshot) / 1024)}KB"
    if result.downloaded_file:
        response["downloadedFile"] = result.downloaded_file
        response["downloadSize"] = result.download_size
    if result.tabs is not None:
        response["tabs"] = [tab.to_dict() for tab in result.tabs]
    if result.tab_id:
        response["tabId"] = result.tab_id

    return response


async def handle_browser_tool(manager: BrowserManager, tool_input: dict[str, Any]) -> str:
    """Run one browser tool call.

    Args:
        manager: The manager the application created
        tool_input: Raw tool-call arguments

    Returns:
        JSON string for the model
    """
    result = await manager.handle_tool_input(tool_input)
    response = format_result(result, manager.config.screenshots_dir)
    return json.dumps(response, default=str)
