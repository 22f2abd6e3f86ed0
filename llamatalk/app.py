"""
Textual front end: model selection and the chat screen.

The apps here are the thin layer around the core. They render state and turn
key presses into calls on ChatSession; they own no chat logic of their own.

Generation runs in a Textual worker. The worker only awaits the HTTP call and
posts the outcome back as a message (GenerationFinished / GenerationFailed,
plus GenerationProgress while streaming). The message handlers run on the
app's event loop and are the only place the session is touched, so no locks
are needed. Leaving the chat exits the app; Textual cancels the worker on the
way out and any result it would have produced is simply never consumed.

TextualUI bundles these apps with a Rich confirmation prompt into the
TerminalUI interface the controller drives.
"""

from __future__ import annotations

import logging
import time
from typing import Sequence

from rich.markup import escape
from rich.prompt import Confirm
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import VerticalScroll
from textual.message import Message
from textual.widgets import Footer, Header, Label, ListItem, ListView, Markdown, Static

from .catalog import ModelDescriptor
from .commands import find_command, get_command_triggers, get_help_text
from .config import DEFAULT_CONFIG, EXIT_COMMAND
from .console import console
from .context import AppContext
from .errors import RequestFailed, UserQuit
from .llm import GenerationClient
from .session import ChatSession, ExitSignal, GenerationRequest
from .utils import count_tokens, format_stats
from .widgets import ChatInput

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------
# Model selection
# -----------------------------------------------------------------------


class ModelSelectApp(App[ModelDescriptor | None]):
    """Full-screen list of models. Exits with the chosen model, or None on quit."""

    TITLE = "llamatalk"
    SUB_TITLE = "Select an Ollama model"

    CSS = """
    #model-list {
        height: 1fr;
        padding: 1 2;
    }
    #model-list > ListItem {
        padding: 0 1;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
    ]

    def __init__(self, models: Sequence[ModelDescriptor], initial: str | None = None) -> None:
        super().__init__()
        self._models = list(models)
        names = [m.name for m in self._models]
        self._initial_index = names.index(initial) if initial in names else 0

    def compose(self) -> ComposeResult:
        yield Header()
        yield ListView(
            *(
                ListItem(
                    Label(f"[bold]{escape(model.name)}[/bold]"),
                    Label(f"[dim]Ollama model: {escape(model.name)}[/dim]"),
                )
                for model in self._models
            ),
            id="model-list",
            initial_index=self._initial_index,
        )
        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#model-list", ListView).focus()

    def on_list_view_selected(self, event: ListView.Selected) -> None:
        index = event.list_view.index
        if index is None:
            return
        self.exit(self._models[index])


# -----------------------------------------------------------------------
# Chat
# -----------------------------------------------------------------------


class GenerationProgress(Message):
    """Partial text of a streaming reply."""

    def __init__(self, request_id: int, text: str) -> None:
        super().__init__()
        self.request_id = request_id
        self.text = text


class GenerationFinished(Message):
    def __init__(self, request_id: int, text: str, duration: float) -> None:
        super().__init__()
        self.request_id = request_id
        self.text = text
        self.duration = duration


class GenerationFailed(Message):
    def __init__(self, request_id: int, error: str) -> None:
        super().__init__()
        self.request_id = request_id
        self.error = error


class ChatApp(App[ExitSignal]):
    """Chat screen for one ChatSession. Exits with the session's ExitSignal."""

    TITLE = "llamatalk"

    CSS = """
    #chat-log {
        height: 1fr;
        padding: 0 1;
    }
    #stats-bar {
        height: 1;
        background: $boost;
        text-style: dim;
    }
    #user-input {
        height: 3;
    }
    """

    BINDINGS = [
        Binding("escape", "leave_chat", "Models", priority=True),
        Binding("ctrl+q", "quit", "Quit", priority=True),
    ]

    IDLE_PLACEHOLDER = f"Send a message... ({EXIT_COMMAND} for models, /help for commands)"
    BUSY_PLACEHOLDER = "Waiting for a reply... (Escape to leave)"

    def __init__(
        self,
        session: ChatSession,
        generator: GenerationClient,
        encoding_name: str = DEFAULT_CONFIG["TIKTOKEN_ENCODING"],
    ) -> None:
        super().__init__()
        self.session = session
        self.generator = generator
        self.encoding_name = encoding_name
        self._reply_widget: Markdown | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        yield VerticalScroll(id="chat-log")
        yield Static(" Ready ", id="stats-bar")
        yield ChatInput(
            get_command_triggers(), id="user-input", placeholder=self.IDLE_PLACEHOLDER
        )
        yield Footer()

    def on_mount(self) -> None:
        self.sub_title = f"Chat with {self.session.model}"
        self._log_system(
            f"Chatting with [bold]{escape(self.session.model)}[/bold]. "
            f"Type {EXIT_COMMAND} to pick another model."
        )
        self.query_one("#user-input", ChatInput).focus()

    # -------------------------------------------------------------------
    # Rendering helpers
    # -------------------------------------------------------------------

    def _log_system(self, text: str, style: str | None = "dim") -> None:
        chat_log = self.query_one("#chat-log", VerticalScroll)
        widget = Static(f"[{style}]{text}[/]" if style else text, classes="system")
        chat_log.mount(widget)
        widget.scroll_visible()

    def _show_user_message(self, text: str) -> None:
        chat_log = self.query_one("#chat-log", VerticalScroll)
        widget = Static(f"\n[bold blue]You:[/bold blue] {escape(text)}", classes="user")
        chat_log.mount(widget)
        widget.scroll_visible()

    async def _start_reply(self, text: str) -> Markdown:
        chat_log = self.query_one("#chat-log", VerticalScroll)
        await chat_log.mount(
            Static("\n[bold magenta]AI:[/bold magenta]", classes="assistant-label")
        )
        widget = Markdown(text, classes="assistant")
        await chat_log.mount(widget)
        return widget

    def _sync_input(self) -> None:
        """Mirror session.input_enabled onto the input widget."""
        input_widget = self.query_one("#user-input", ChatInput)
        enabled = self.session.input_enabled
        input_widget.disabled = not enabled
        input_widget.set_placeholder(self.IDLE_PLACEHOLDER if enabled else self.BUSY_PLACEHOLDER)
        if enabled:
            input_widget.focus()

    def _set_stats(self, text: str) -> None:
        self.query_one("#stats-bar", Static).update(text)

    # -------------------------------------------------------------------
    # Input
    # -------------------------------------------------------------------

    def on_chat_input_submitted(self, event: ChatInput.Submitted) -> None:
        event.input.clear()

        command = find_command(event.value)
        if command is not None and "/help" in command["triggers"]:
            self._log_system(get_help_text(), style=None)
            return

        request = self.session.submit(event.value)
        if self.session.terminated:
            self.exit(self.session.exit_signal)
            return
        if request is None:
            return

        self._show_user_message(request.prompt)
        self._sync_input()
        self._set_stats(" Thinking... ")
        self._run_generation(request)

    def action_leave_chat(self) -> None:
        self.session.terminate(ExitSignal.RETURN_TO_SELECTION)
        self.exit(self.session.exit_signal)

    async def action_quit(self) -> None:
        self.session.terminate(ExitSignal.QUIT)
        self.exit(self.session.exit_signal)

    # -------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------

    @work(exclusive=True, group="generate")
    async def _run_generation(self, request: GenerationRequest) -> None:
        """Await the reply and post the outcome back to the event loop."""
        start_time = time.monotonic()

        def on_chunk(text: str) -> None:
            self.post_message(GenerationProgress(request.request_id, text))

        try:
            text = await self.generator.generate(request.model, request.prompt, on_chunk=on_chunk)
        except RequestFailed as e:
            logger.warning("Request %s failed: %s", request.request_id, e)
            self.post_message(GenerationFailed(request.request_id, str(e)))
            return
        self.post_message(
            GenerationFinished(request.request_id, text, time.monotonic() - start_time)
        )

    async def on_generation_progress(self, message: GenerationProgress) -> None:
        if not self.session.is_outstanding(message.request_id):
            return
        if self._reply_widget is None:
            self._reply_widget = await self._start_reply(message.text)
        else:
            await self._reply_widget.update(message.text)
        self.query_one("#chat-log", VerticalScroll).scroll_end(animate=False)

    async def on_generation_finished(self, message: GenerationFinished) -> None:
        if not self.session.response_arrived(message.request_id, message.text):
            return

        widget = self._reply_widget
        self._reply_widget = None
        if widget is None:
            widget = await self._start_reply(message.text)
        else:
            await widget.update(message.text)
        widget.scroll_visible()

        try:
            tokens = count_tokens(message.text, self.encoding_name)
        except Exception as e:
            # tiktoken fetches its BPE files on first use, which fails offline
            logger.warning("Token count unavailable: %s", e)
            tokens = None
        self._set_stats(format_stats(tokens, message.duration))
        self._sync_input()

    async def on_generation_failed(self, message: GenerationFailed) -> None:
        if not self.session.request_failed(message.request_id, message.error):
            return

        if self._reply_widget is not None:
            await self._reply_widget.remove()
            self._reply_widget = None
        self._log_system(f"Error: {escape(self.session.error or '')}", style="red")
        self._set_stats(" Request failed; you can try again ")
        self._sync_input()


# -----------------------------------------------------------------------
# TerminalUI implementation
# -----------------------------------------------------------------------


class TextualUI:
    """Runs each interactive phase of the controller in the terminal."""

    def __init__(self, context: AppContext) -> None:
        self.context = context

    def confirm_start(self) -> bool:
        return Confirm.ask(
            "Ollama server is not running. Would you like to start it?",
            console=console,
            default=True,
        )

    def select_model(self, models: Sequence[ModelDescriptor]) -> ModelDescriptor:
        choice = ModelSelectApp(models, initial=self.context.last_model).run()
        if choice is None:
            raise UserQuit()
        self.context.last_model = choice.name
        return choice

    def run_chat(self, session: ChatSession) -> ExitSignal:
        app = ChatApp(
            session,
            self.context.generator,
            encoding_name=self.context.settings.tiktoken_encoding,
        )
        signal = app.run()
        # A crashed or externally closed app returns None; treat it as quit.
        return signal or ExitSignal.QUIT

    def report(self, text: str, style: str | None = None) -> None:
        console.print(text, style=style, markup=False, highlight=False)
