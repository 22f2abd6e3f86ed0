"""
Chat input widget for the llamatalk chat screen.

A multiline TextArea where Enter submits, Shift+Enter inserts a newline and
Tab completes a partially typed /command, previewed as ghost text.
"""

from dataclasses import dataclass

from textual import events
from textual.binding import Binding
from textual.message import Message
from textual.widgets import TextArea


class ChatInput(TextArea):
    """Multiline input with Enter to submit and Shift+Enter for newlines.

    Shift+Enter arrives as "shift+enter" in terminals speaking the Kitty
    keyboard protocol and as "ctrl+j" in terminals that send a raw newline.
    Grows from 1 to 5 lines with its content.
    """

    @dataclass
    class Submitted(Message):
        """Posted when the user presses Enter on non-blank text."""

        input: "ChatInput"
        value: str

    BINDINGS = [
        Binding("tab", "accept_suggestion", "Accept suggestion", show=False),
    ]

    # Top and bottom border rows
    _BORDER_OVERHEAD = 2

    def __init__(
        self,
        commands: list[str] | None = None,
        *,
        id: str | None = None,
        placeholder: str = "",
    ) -> None:
        super().__init__(
            id=id,
            show_line_numbers=False,
            soft_wrap=True,
            tab_behavior="focus",
            highlight_cursor_line=False,
        )
        self._commands = commands or []
        self._placeholder = placeholder
        # Full command the current text would complete to
        self._completion: str = ""

    def on_mount(self) -> None:
        self.placeholder = self._placeholder

    def set_placeholder(self, text: str) -> None:
        self._placeholder = text
        self.placeholder = text

    @property
    def completion(self) -> str:
        return self._completion

    async def _on_key(self, event: events.Key) -> None:
        if event.key == "enter":
            event.stop()
            event.prevent_default()
            text = self.text.strip()
            if text:
                self.post_message(self.Submitted(input=self, value=text))
            return
        elif event.key in ("shift+enter", "ctrl+j"):
            event.stop()
            event.prevent_default()
            self.insert("\n")
            self._auto_resize()
            return
        await super()._on_key(event)

    def _on_text_area_changed(self) -> None:
        self._auto_resize()
        self._complete_command()

    def _auto_resize(self) -> None:
        line_count = self.document.line_count
        content_height = max(1, min(5, line_count))
        self.styles.height = content_height + self._BORDER_OVERHEAD

    def _complete_command(self) -> None:
        """Offer the first command that extends the typed text.

        The untyped tail goes into TextArea's `suggestion`, which the widget
        draws as ghost text after the cursor and clears on the next edit.
        """
        typed = self.text.lower()
        self._completion = ""
        if typed.startswith("/") and "\n" not in typed:
            self._completion = next(
                (cmd for cmd in self._commands if cmd.startswith(typed) and cmd != typed), ""
            )
        self.suggestion = self._completion[len(typed):]

    def action_accept_suggestion(self) -> None:
        if not self._completion:
            return
        completion = self._completion
        self.clear()
        self.insert(completion)
