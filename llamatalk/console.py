"""
Shared Rich Console for everything printed outside the Textual screens.

The controller runs in phases: plain terminal output (install guidance, the
start confirmation, shutdown messages) alternates with full-screen Textual
apps (model selection, chat). The plain phases all print through this one
Console so colour detection and width handling stay consistent, and tests can
patch a single object to capture output.

Usage:
    from .console import console
    console.print("[green]Server started[/green]")
"""

from rich.console import Console

console = Console()

# Errors go to stderr so `llamatalk ... 2>/dev/null` still shows progress.
error_console = Console(stderr=True)
