"""
The chat session state machine.

A ChatSession holds one conversation with one model and decides what each
user action or network result means. It never performs I/O itself:

  - `submit()` returns a GenerationRequest for the UI to run as a background
    task; the session only records that the request is outstanding.
  - The task's outcome comes back as an event (`response_arrived()` or
    `request_failed()`), delivered on the UI event loop.

That split keeps every mutation on the loop thread and makes the whole
machine testable without a terminal or a server.

States:

    IDLE --submit--> AWAITING_RESPONSE --response/failure--> IDLE
      \\                    |
       '--- exit token / terminate() from any state ---> TERMINATED

Results are matched to the outstanding request by id, so a response that
arrives after `/exit`, or a duplicate of one already consumed, is dropped.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

from .config import EXIT_COMMAND

logger = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    TERMINATED = "terminated"


class Sender(Enum):
    USER = "You"
    ASSISTANT = "AI"


class ExitSignal(Enum):
    """What the controller should do after a session ends."""

    RETURN_TO_SELECTION = "return_to_selection"
    QUIT = "quit"


@dataclass(frozen=True)
class Message:
    sender: Sender
    content: str
    index: int


@dataclass(frozen=True)
class GenerationRequest:
    request_id: int
    model: str
    prompt: str


class Conversation:
    """Append-only, ordered list of messages."""

    def __init__(self) -> None:
        self._messages: list[Message] = []

    def append(self, sender: Sender, content: str) -> Message:
        message = Message(sender=sender, content=content, index=len(self._messages))
        self._messages.append(message)
        return message

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def __getitem__(self, index: int) -> Message:
        return self._messages[index]


def is_exit_command(text: str, exit_command: str = EXIT_COMMAND) -> bool:
    return text.strip().lower() == exit_command.lower()


class ChatSession:
    """One conversation with one model. See the module docstring."""

    def __init__(self, model: str, exit_command: str = EXIT_COMMAND) -> None:
        self.model = model
        self.exit_command = exit_command
        self.conversation = Conversation()
        self.state = SessionState.IDLE
        self.error: str | None = None
        self.exit_signal: ExitSignal | None = None
        self.pending: GenerationRequest | None = None
        self._request_ids = itertools.count(1)

    @property
    def input_enabled(self) -> bool:
        return self.state is SessionState.IDLE

    @property
    def terminated(self) -> bool:
        return self.state is SessionState.TERMINATED

    def submit(self, text: str) -> GenerationRequest | None:
        """Handle a line of user input.

        The exit token terminates the session from any state. Anything else
        is only accepted while IDLE and non-blank; accepted text becomes a
        User message and the returned request must be sent by the caller.
        """
        if is_exit_command(text, self.exit_command):
            self.terminate(ExitSignal.RETURN_TO_SELECTION)
            return None
        if self.state is not SessionState.IDLE:
            logger.debug("Rejected submit in state %s", self.state.value)
            return None

        prompt = text.strip()
        if not prompt:
            return None

        self.conversation.append(Sender.USER, prompt)
        self.error = None
        self.pending = GenerationRequest(
            request_id=next(self._request_ids), model=self.model, prompt=prompt
        )
        self.state = SessionState.AWAITING_RESPONSE
        return self.pending

    def is_outstanding(self, request_id: int) -> bool:
        return (
            self.state is SessionState.AWAITING_RESPONSE
            and self.pending is not None
            and self.pending.request_id == request_id
        )

    def response_arrived(self, request_id: int, text: str) -> bool:
        """Consume a finished request. Returns False if the result was discarded."""
        if not self.is_outstanding(request_id):
            logger.debug("Discarded response for request %s in state %s", request_id, self.state.value)
            return False
        self.conversation.append(Sender.ASSISTANT, text)
        self.pending = None
        self.state = SessionState.IDLE
        return True

    def request_failed(self, request_id: int, error: str | Exception) -> bool:
        """Record a failed request and go back to IDLE so the user can retry."""
        if not self.is_outstanding(request_id):
            logger.debug("Discarded failure for request %s in state %s", request_id, self.state.value)
            return False
        self.error = str(error)
        self.pending = None
        self.state = SessionState.IDLE
        return True

    def terminate(self, signal: ExitSignal = ExitSignal.RETURN_TO_SELECTION) -> None:
        """Move to TERMINATED. An in-flight request is abandoned, not awaited."""
        if self.state is SessionState.TERMINATED:
            return
        if self.pending is not None:
            logger.info("Abandoning in-flight request %s", self.pending.request_id)
        self.state = SessionState.TERMINATED
        self.exit_signal = signal
