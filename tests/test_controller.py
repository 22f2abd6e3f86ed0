"""
Tests for SessionController (llamatalk/controller.py).

The controller is driven with a scripted FakeUI and MagicMock collaborators,
so every path through install check, start, selection, chat and shutdown is
exercised without a terminal, a server process or a network.
"""

from unittest.mock import MagicMock

import pytest

from llamatalk.catalog import ModelDescriptor
from llamatalk.config import Settings
from llamatalk.context import AppContext
from llamatalk.controller import SessionController
from llamatalk.errors import (
    CatalogUnavailable,
    NoModelsAvailable,
    NotInstalled,
    ServerNotRunning,
    ServerStartTimeout,
    ServerStopFailed,
    UserQuit,
)
from llamatalk.session import ExitSignal


class FakeUI:
    """Plays back canned answers for each TerminalUI call."""

    def __init__(self, confirm=True, selections=(), chat_signals=()):
        self.confirm = confirm
        self.selections = list(selections)
        self.chat_signals = list(chat_signals)
        self.sessions = []
        self.offered = []
        self.reports = []

    def confirm_start(self):
        return self.confirm

    def select_model(self, models):
        self.offered.append([m.name for m in models])
        choice = self.selections.pop(0)
        if choice is None:
            raise UserQuit()
        return ModelDescriptor(choice)

    def run_chat(self, session):
        self.sessions.append(session)
        return self.chat_signals.pop(0)

    def report(self, text, style=None):
        self.reports.append(text)


def make_context(installed=True, running=True, models=("llama3", "mistral")):
    server = MagicMock()
    server.check_installed.return_value = installed
    server.is_running.return_value = running
    server.owned_by_us = False

    def start():
        server.owned_by_us = True

    def stop(by_name=False):
        server.owned_by_us = False

    server.start_server.side_effect = start
    server.stop_server.side_effect = stop

    catalog = MagicMock()
    catalog.list_models.return_value = [ModelDescriptor(name) for name in models]

    return AppContext(
        settings=Settings(),
        server=server,
        catalog=catalog,
        generator=MagicMock(),
    )


class TestStartup:
    def test_not_installed_gives_guidance_and_stops(self):
        """Install guidance is shown once and the run ends, no retry."""
        context = make_context(installed=False)
        ui = FakeUI()

        with pytest.raises(NotInstalled):
            SessionController(context, ui).run()

        context.server.request_install.assert_called_once()
        context.server.start_server.assert_not_called()
        context.catalog.list_models.assert_not_called()

    def test_declining_start_stops_run(self):
        context = make_context(running=False)
        ui = FakeUI(confirm=False)

        with pytest.raises(ServerNotRunning):
            SessionController(context, ui).run()

        context.server.start_server.assert_not_called()
        context.catalog.list_models.assert_not_called()

    def test_start_failure_is_fatal(self):
        context = make_context(running=False)
        context.server.start_server.side_effect = ServerStartTimeout("no answer")
        ui = FakeUI(confirm=True)

        with pytest.raises(ServerStartTimeout):
            SessionController(context, ui).run()

        context.catalog.list_models.assert_not_called()
        context.server.stop_server.assert_not_called()

    def test_running_server_is_not_started(self):
        context = make_context(running=True)
        ui = FakeUI(selections=[None])

        SessionController(context, ui).run()

        context.server.start_server.assert_not_called()


class TestChatLoop:
    def test_user_quit_from_selection_is_normal_exit(self):
        context = make_context()
        ui = FakeUI(selections=[None])

        SessionController(context, ui).run()

        assert ui.offered == [["llama3", "mistral"]]
        assert ui.sessions == []

    def test_return_to_selection_loops_and_refreshes_catalog(self):
        context = make_context()
        ui = FakeUI(
            selections=["llama3", "mistral"],
            chat_signals=[ExitSignal.RETURN_TO_SELECTION, ExitSignal.QUIT],
        )

        SessionController(context, ui).run()

        assert [s.model for s in ui.sessions] == ["llama3", "mistral"]
        assert context.catalog.list_models.call_count == 2

    def test_each_chat_gets_a_fresh_session(self):
        context = make_context()
        ui = FakeUI(
            selections=["llama3", "llama3"],
            chat_signals=[ExitSignal.RETURN_TO_SELECTION, ExitSignal.QUIT],
        )

        SessionController(context, ui).run()

        assert ui.sessions[0] is not ui.sessions[1]

    def test_empty_catalog_stops_run(self):
        context = make_context(models=())
        ui = FakeUI()

        with pytest.raises(NoModelsAvailable):
            SessionController(context, ui).run()

        assert ui.offered == []

    def test_catalog_failure_stops_run(self):
        context = make_context()
        context.catalog.list_models.side_effect = CatalogUnavailable("refused")
        ui = FakeUI()

        with pytest.raises(CatalogUnavailable):
            SessionController(context, ui).run()


class TestShutdown:
    def test_server_we_started_is_stopped(self):
        context = make_context(running=False)
        ui = FakeUI(confirm=True, selections=["llama3"], chat_signals=[ExitSignal.QUIT])

        SessionController(context, ui).run()

        context.server.stop_server.assert_called_once_with()
        assert context.server.owned_by_us is False

    def test_server_we_did_not_start_is_left_alone(self):
        context = make_context(running=True)
        ui = FakeUI(selections=["llama3"], chat_signals=[ExitSignal.QUIT])

        SessionController(context, ui).run()

        context.server.stop_server.assert_not_called()

    def test_server_is_stopped_after_catalog_failure(self):
        """Cleanup runs even when the loop ends with an error."""
        context = make_context(running=False)
        context.catalog.list_models.side_effect = CatalogUnavailable("refused")
        ui = FakeUI(confirm=True)

        with pytest.raises(CatalogUnavailable):
            SessionController(context, ui).run()

        context.server.stop_server.assert_called_once()

    def test_server_is_stopped_after_user_quit(self):
        context = make_context(running=False)
        ui = FakeUI(confirm=True, selections=[None])

        SessionController(context, ui).run()

        context.server.stop_server.assert_called_once()

    def test_stop_failure_is_reported_not_raised(self):
        context = make_context(running=False)

        def failing_stop(by_name=False):
            context.server.owned_by_us = False
            raise ServerStopFailed("Failed to stop Ollama server: denied")

        context.server.stop_server.side_effect = failing_stop
        ui = FakeUI(confirm=True, selections=["llama3"], chat_signals=[ExitSignal.QUIT])

        SessionController(context, ui).run()

        assert "Failed to stop Ollama server: denied" in ui.reports
