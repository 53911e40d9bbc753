"""
CLI for Tandem Browser.

Provides the command-line interface using argparse.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .config import BrowserConfig, DEFAULTS
from .launcher import detect_installed_browsers, launch_browser, probe_cdp_endpoint
from .manager import BrowserManager
from .settings_store import SettingsStore
from .tool import handle_browser_tool
from .types import ActionKind, ExtractMode, ScrollDirection


def configure_logging(debug: bool = False) -> None:
    """Route log records through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=debug)],
        force=True,
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tandem-browser",
        description="Tandem Browser - drive a hidden browser or your own Chrome from the command line.",
        epilog="""
Examples:
  # Load a page in the hidden browser and print its title and text
  tandem-browser run navigate --url https://example.com

  # Extract links from the page in your own browser
  tandem-browser run extract --extract-type links --tier remote

  # Start Chrome with remote debugging enabled
  tandem-browser launch chrome --port 9222

  # Always use your own browser
  tandem-browser config --prefer-external on
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Tandem Browser {__version__}",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run command
    run_parser = subparsers.add_parser(
        "run",
        help="Run a single browser action and print the result as JSON",
    )
    run_parser.add_argument(
        "action",
        choices=[kind.value for kind in ActionKind],
        help="The browser action to perform",
    )
    run_parser.add_argument("--url", help="URL for navigate, tabs_open, download")
    run_parser.add_argument("--selector", help="CSS selector of the target element")
    run_parser.add_argument("--text", help="Text to type")
    run_parser.add_argument("--script", help="JavaScript to evaluate")
    run_parser.add_argument(
        "--extract-type",
        choices=[mode.value for mode in ExtractMode],
        default=None,
        help="Type of data to extract (default: structured)",
    )
    run_parser.add_argument("--extract-selector", help="Root element for extraction")
    run_parser.add_argument("--wait-for", help="Selector to wait for, or milliseconds")
    run_parser.add_argument("--tier", help="Force a tier: embedded or remote")
    run_parser.add_argument(
        "--requires-auth",
        action="store_true",
        default=False,
        help="Page needs your logged-in session (uses the remote tier)",
    )
    run_parser.add_argument(
        "--scroll-direction",
        choices=[d.value for d in ScrollDirection],
        default=None,
    )
    run_parser.add_argument("--scroll-amount", type=int, default=None, help="Pixels to scroll (default: 300)")
    run_parser.add_argument("--download-path", help="Where to save a download")
    run_parser.add_argument(
        "--download-timeout",
        type=int,
        default=None,
        help=f"Max ms to wait for a download (default: {DEFAULTS['download_timeout_ms']})",
    )
    run_parser.add_argument("--file-path", help="Local file to upload")
    run_parser.add_argument("--tab-id", help="Tab id for tabs_close, tabs_focus")
    run_parser.add_argument(
        "--headed",
        action="store_true",
        default=False,
        help="Show the embedded browser window",
    )

    # Status command
    subparsers.add_parser(
        "status",
        help="Show settings and whether the remote debugging endpoint answers",
    )

    # Browsers command
    subparsers.add_parser(
        "browsers",
        help="List Chromium-family browsers installed on this machine",
    )

    # Launch command
    launch_parser = subparsers.add_parser(
        "launch",
        help="Start a browser with remote debugging enabled",
    )
    launch_parser.add_argument("browser", help="Browser id (see `browsers`)")
    launch_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Remote debugging port (default: port of the configured endpoint)",
    )

    # Config command
    config_parser = subparsers.add_parser(
        "config",
        help="Show or change persisted settings",
    )
    config_parser.add_argument(
        "--prefer-external",
        choices=["on", "off"],
        default=None,
        help="Route actions to your own browser by default",
    )
    config_parser.add_argument(
        "--cdp-url",
        default=None,
        help=f"Remote debugging endpoint (default: {DEFAULTS['cdp_url']})",
    )
    config_parser.add_argument(
        "--reset",
        action="store_true",
        default=False,
        help="Restore default settings",
    )

    return parser


def build_tool_input(args: argparse.Namespace) -> dict[str, Any]:
    """Map run arguments to the flat tool input, omitting unset options."""
    tool_input: dict[str, Any] = {"action": args.action}
    for name in (
        "url",
        "selector",
        "text",
        "script",
        "extract_type",
        "extract_selector",
        "wait_for",
        "tier",
        "scroll_direction",
        "scroll_amount",
        "download_path",
        "download_timeout",
        "file_path",
        "tab_id",
    ):
        value = getattr(args, name, None)
        if value is not None:
            tool_input[name] = value
    if args.requires_auth:
        tool_input["requires_auth"] = True
    return tool_input


def load_config(store: SettingsStore, debug: bool = False) -> BrowserConfig:
    """Build the configuration with persisted settings applied."""
    config = store.apply_to(BrowserConfig())
    config.debug = config.debug or debug
    return config


async def _run_action(args: argparse.Namespace, config: BrowserConfig, store: SettingsStore) -> str:
    async with BrowserManager(config, settings=store) as manager:
        return await handle_browser_tool(manager, build_tool_input(args))


def run_command(args: argparse.Namespace, store: SettingsStore) -> int:
    """Execute the run command."""
    config = load_config(store, args.debug)
    config.headless = not args.headed

    try:
        output = asyncio.run(_run_action(args, config, store))
    except KeyboardInterrupt:
        Console(stderr=True).print("\n[yellow]Interrupted by user[/yellow]")
        return 130

    print(output)
    return 0 if "error" not in json.loads(output) else 1


def status_command(store: SettingsStore, console: Console) -> int:
    """Execute the status command."""
    config = load_config(store)
    probe = asyncio.run(probe_cdp_endpoint(config.cdp_url))

    table = Table(title="Tandem Browser Status")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Settings file", str(store.path))
    table.add_row("Remote endpoint", config.cdp_url)
    table.add_row("Prefer external browser", "yes" if config.prefer_external_browser else "no")
    table.add_row("Download directory", str(config.download_dir))
    table.add_row("Screenshots directory", str(config.screenshots_dir))
    if probe.connected:
        browser = (probe.browser_info or {}).get("Browser", "unknown")
        table.add_row("Remote browser", f"[green]connected[/green] ({browser})")
    else:
        table.add_row("Remote browser", f"[red]not reachable[/red] ({probe.error})")
    console.print(table)

    return 0


def browsers_command(console: Console) -> int:
    """Execute the browsers command."""
    browsers = detect_installed_browsers()
    if not browsers:
        console.print("[dim]No supported browsers found.[/dim]")
        return 1

    table = Table(title="Installed Browsers")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Path", style="dim")
    for browser in browsers:
        table.add_row(browser.id, browser.name, browser.path)
    console.print(table)
    return 0


def launch_command(args: argparse.Namespace, store: SettingsStore, console: Console) -> int:
    """Execute the launch command."""
    port = args.port or load_config(store).debug_port

    console.print(f"[bold]Launching {args.browser} with remote debugging on port {port}...[/bold]")
    result = asyncio.run(launch_browser(args.browser, port))
    if result.success:
        console.print("[green]✓ Browser is ready for remote control[/green]")
        return 0

    console.print(f"[red]{result.error}[/red]")
    return 2 if result.already_running else 1


def config_command(args: argparse.Namespace, store: SettingsStore, console: Console) -> int:
    """Execute the config command."""
    if args.reset:
        store.reset()
        console.print("[green]✓ Settings reset to defaults[/green]")

    updates: dict[str, Any] = {}
    if args.prefer_external is not None:
        updates["prefer_external_browser"] = args.prefer_external == "on"
    if args.cdp_url:
        updates["cdp_url"] = args.cdp_url
    if updates:
        store.update(**updates)
        console.print("[green]✓ Settings saved[/green]")

    settings = store.settings
    console.print(f"[dim]Location: {store.path}[/dim]")
    console.print(f"prefer_external_browser = {str(settings.prefer_external_browser).lower()}")
    console.print(f"cdp_url = {settings.cdp_url}")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    configure_logging(args.debug or BrowserConfig().debug)
    console = Console()
    store = SettingsStore()

    if args.command == "run":
        return run_command(args, store)

    if args.command == "status":
        return status_command(store, console)

    if args.command == "browsers":
        return browsers_command(console)

    if args.command == "launch":
        return launch_command(args, store, console)

    if args.command == "config":
        return config_command(args, store, console)

    # Unknown command
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
