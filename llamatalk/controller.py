"""
SessionController: one full run of the client.

    install check -> start confirmation -> [list models -> select -> chat]* -> shutdown

The controller only sequences; every terminal interaction goes through a
TerminalUI (see app.TextualUI) and every server interaction through the
AppContext. Failures before the chat loop, and catalog failures inside it,
propagate as LlamaTalkError subclasses for the CLI to report. UserQuit from
the selection screen ends the run normally. Whatever way the run ends, a
server this run started is stopped on the way out, and a failure to stop it
is reported but never raised.
"""

from __future__ import annotations

import logging
from typing import Protocol, Sequence

from .catalog import ModelDescriptor
from .context import AppContext
from .errors import (
    LlamaTalkError,
    NoModelsAvailable,
    NotInstalled,
    ServerNotRunning,
    UserQuit,
)
from .session import ChatSession, ExitSignal

logger = logging.getLogger(__name__)


class TerminalUI(Protocol):
    def confirm_start(self) -> bool: ...

    def select_model(self, models: Sequence[ModelDescriptor]) -> ModelDescriptor:
        """Return the chosen model or raise UserQuit."""
        ...

    def run_chat(self, session: ChatSession) -> ExitSignal: ...

    def report(self, text: str, style: str | None = None) -> None: ...


class SessionController:
    def __init__(self, context: AppContext, ui: TerminalUI) -> None:
        self.context = context
        self.ui = ui

    def run(self) -> None:
        """Run until the user quits. Raises LlamaTalkError on a fatal failure."""
        self.ensure_server()
        self.ui.report("Ollama server is running and ready.", style="green")
        try:
            self.chat_loop()
        except UserQuit:
            self.ui.report("Exiting llamatalk. Goodbye!", style="green")
        finally:
            self.shutdown()

    def ensure_server(self) -> None:
        server = self.context.server
        if not server.check_installed():
            self.ui.report(
                "Ollama is not installed. Installing Ollama is required to use llamatalk.",
                style="yellow",
            )
            server.request_install()
            raise NotInstalled("Install Ollama and run llamatalk again.")

        if server.is_running():
            return

        if not self.ui.confirm_start():
            raise ServerNotRunning(
                "The Ollama server is required. "
                "You can start it manually by running 'ollama serve' in a separate terminal."
            )

        self.ui.report("Starting Ollama server...")
        server.start_server()
        self.ui.report("Ollama server started successfully!", style="green")

    def chat_loop(self) -> None:
        while True:
            models = self.context.catalog.list_models()
            if not models:
                raise NoModelsAvailable(
                    "The Ollama server has no models. Pull one with 'ollama pull <model>'."
                )

            model = self.ui.select_model(models)
            logger.info("Selected model %s", model.name)

            session = ChatSession(model.name)
            signal = self.ui.run_chat(session)
            logger.info(
                "Session with %s ended after %d message(s): %s",
                model.name,
                len(session.conversation),
                signal.value,
            )
            if signal is not ExitSignal.RETURN_TO_SELECTION:
                break
            self.ui.report("Returning to model selection...")

    def shutdown(self) -> None:
        server = self.context.server
        if not server.owned_by_us:
            return
        self.ui.report("Stopping Ollama server...")
        try:
            server.stop_server()
        except LlamaTalkError as e:
            logger.warning("Failed to stop server: %s", e)
            self.ui.report(str(e), style="red")
        else:
            self.ui.report("Ollama server stopped successfully.", style="green")
