"""
Registry of in-chat commands.

Typed lines that start with "/" and match a trigger here are handled by the
client and never sent to the model. The registry feeds the /help output and
the Tab completion in ChatInput, so adding a command means adding it here and
handling it in ChatApp.
"""

from typing import TypedDict

from .config import EXIT_COMMAND


class CommandInfo(TypedDict):
    """Type definition for command information."""

    triggers: list[str]  # e.g. ["/exit"]; matched case-insensitively
    description: str  # One line for /help


COMMANDS: list[CommandInfo] = [
    {
        "triggers": ["/help"],
        "description": "Show available commands and shortcuts",
    },
    {
        "triggers": [EXIT_COMMAND],
        "description": "End this chat and return to model selection",
    },
]

SHORTCUTS: list[tuple[str, str]] = [
    ("Enter", "Send message"),
    ("Shift+Enter", "Insert a newline"),
    ("Tab", "Accept command suggestion"),
    ("Escape", "Leave chat, even while waiting for a reply"),
    ("Ctrl+Q", "Quit llamatalk"),
]


def get_command_triggers() -> list[str]:
    triggers: list[str] = []
    for cmd in COMMANDS:
        triggers.extend(cmd["triggers"])
    return triggers


def find_command(text: str) -> CommandInfo | None:
    """Return the command whose trigger matches `text`, if any."""
    word = text.strip().lower()
    for cmd in COMMANDS:
        if word in (trigger.lower() for trigger in cmd["triggers"]):
            return cmd
    return None


def get_help_text() -> str:
    """Rich-markup help listing for the chat log."""
    lines = ["[bold]Available Commands:[/bold]"]
    for cmd in COMMANDS:
        trigger_str = ", ".join(cmd["triggers"])
        padding = " " * (14 - len(trigger_str))
        lines.append(f"  [cyan]{trigger_str}[/cyan]{padding}- {cmd['description']}")

    lines.append("")
    lines.append("[bold]Keyboard Shortcuts:[/bold]")
    for key, description in SHORTCUTS:
        padding = " " * (14 - len(key))
        lines.append(f"  [cyan]{key}[/cyan]{padding}- {description}")

    return "\n".join(lines)
