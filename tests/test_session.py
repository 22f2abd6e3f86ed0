import unittest

from llamatalk.session import (
    ChatSession,
    ExitSignal,
    Sender,
    SessionState,
    is_exit_command,
)


class TestSubmit(unittest.TestCase):
    """Test how user input moves the session out of IDLE"""

    def setUp(self):
        self.session = ChatSession("llama3")

    def test_submit_appends_user_message_and_awaits(self):
        """Test that a normal submit records the prompt and issues one request"""
        request = self.session.submit("hi")

        self.assertIsNotNone(request)
        self.assertEqual(request.model, "llama3")
        self.assertEqual(request.prompt, "hi")
        self.assertEqual(self.session.state, SessionState.AWAITING_RESPONSE)
        self.assertFalse(self.session.input_enabled)
        self.assertEqual(len(self.session.conversation), 1)
        self.assertEqual(self.session.conversation[0].sender, Sender.USER)
        self.assertEqual(self.session.conversation[0].content, "hi")

    def test_submit_empty_text_is_ignored(self):
        """Test that blank input never appends a message"""
        for text in ("", "   ", "\n\t"):
            self.assertIsNone(self.session.submit(text))
        self.assertEqual(len(self.session.conversation), 0)
        self.assertEqual(self.session.state, SessionState.IDLE)

    def test_submit_exit_token_terminates_without_message(self):
        """Test that the exit token ends the session and appends nothing"""
        self.assertIsNone(self.session.submit("/EXIT"))
        self.assertEqual(self.session.state, SessionState.TERMINATED)
        self.assertEqual(self.session.exit_signal, ExitSignal.RETURN_TO_SELECTION)
        self.assertEqual(len(self.session.conversation), 0)

    def test_submit_while_awaiting_is_rejected(self):
        """Test that a second submit cannot create a second outstanding request"""
        first = self.session.submit("one")
        second = self.session.submit("two")

        self.assertIsNotNone(first)
        self.assertIsNone(second)
        self.assertEqual(self.session.pending, first)
        self.assertEqual(len(self.session.conversation), 1)

    def test_at_most_one_request_outstanding(self):
        """Test the one-request invariant across an arbitrary submit sequence"""
        outstanding = set()
        for i, text in enumerate(["a", "b", "", "c", "d", "e"]):
            request = self.session.submit(text)
            if request is not None:
                outstanding.add(request.request_id)
            self.assertLessEqual(len(outstanding), 1)
            # Resolve every other step so the sequence interleaves
            if i % 2 == 1 and self.session.pending is not None:
                self.session.response_arrived(self.session.pending.request_id, "ok")
                outstanding.clear()

    def test_submit_strips_whitespace(self):
        """Test that the stored prompt is trimmed"""
        request = self.session.submit("  hello there \n")
        self.assertEqual(request.prompt, "hello there")

    def test_submit_after_termination_is_ignored(self):
        """Test that TERMINATED is absorbing"""
        self.session.terminate()
        self.assertIsNone(self.session.submit("hi"))
        self.assertEqual(self.session.state, SessionState.TERMINATED)
        self.assertEqual(len(self.session.conversation), 0)


class TestResponses(unittest.TestCase):
    """Test how request outcomes are consumed"""

    def setUp(self):
        self.session = ChatSession("llama3")

    def test_response_appends_assistant_after_user(self):
        """Test that a reply lands directly after the prompt it answers"""
        request = self.session.submit("hi")
        self.assertTrue(self.session.response_arrived(request.request_id, "hello"))

        messages = self.session.conversation.messages
        self.assertEqual([m.sender for m in messages], [Sender.USER, Sender.ASSISTANT])
        self.assertEqual([m.content for m in messages], ["hi", "hello"])
        self.assertEqual([m.index for m in messages], [0, 1])
        self.assertEqual(self.session.state, SessionState.IDLE)
        self.assertTrue(self.session.input_enabled)
        self.assertIsNone(self.session.pending)

    def test_response_while_idle_is_discarded(self):
        """Test that a response with nothing outstanding changes nothing"""
        self.assertFalse(self.session.response_arrived(1, "stray"))
        self.assertEqual(len(self.session.conversation), 0)
        self.assertEqual(self.session.state, SessionState.IDLE)

    def test_duplicate_response_is_discarded(self):
        """Test that a second delivery of the same result is dropped"""
        request = self.session.submit("hi")
        self.session.response_arrived(request.request_id, "hello")
        self.assertFalse(self.session.response_arrived(request.request_id, "hello"))
        self.assertEqual(len(self.session.conversation), 2)

    def test_stale_request_id_is_discarded(self):
        """Test that a result for an older request cannot answer a newer one"""
        first = self.session.submit("one")
        self.session.request_failed(first.request_id, "boom")
        second = self.session.submit("two")

        self.assertFalse(self.session.response_arrived(first.request_id, "late"))
        self.assertEqual(self.session.state, SessionState.AWAITING_RESPONSE)
        self.assertTrue(self.session.response_arrived(second.request_id, "fresh"))
        self.assertEqual(self.session.conversation[-1].content, "fresh")

    def test_exit_while_awaiting_terminates_immediately(self):
        """Test that /exit does not wait for the pending reply"""
        request = self.session.submit("hi")
        self.session.submit("/exit")

        self.assertEqual(self.session.state, SessionState.TERMINATED)
        self.assertEqual(self.session.exit_signal, ExitSignal.RETURN_TO_SELECTION)

        # The reply turns up afterwards and is thrown away
        self.assertFalse(self.session.response_arrived(request.request_id, "hello"))
        self.assertEqual(len(self.session.conversation), 1)

    def test_request_failed_records_error_and_returns_to_idle(self):
        """Test that a failure is recoverable"""
        request = self.session.submit("hi")
        self.assertTrue(self.session.request_failed(request.request_id, RuntimeError("timeout")))

        self.assertEqual(self.session.state, SessionState.IDLE)
        self.assertEqual(self.session.error, "timeout")
        self.assertEqual(len(self.session.conversation), 1)

        # Retrying clears the advisory error
        self.assertIsNotNone(self.session.submit("hi again"))
        self.assertIsNone(self.session.error)

    def test_failure_after_termination_is_discarded(self):
        """Test that a late failure cannot revive a terminated session"""
        request = self.session.submit("hi")
        self.session.terminate(ExitSignal.QUIT)
        self.assertFalse(self.session.request_failed(request.request_id, "boom"))
        self.assertEqual(self.session.state, SessionState.TERMINATED)
        self.assertIsNone(self.session.error)


class TestTerminate(unittest.TestCase):
    """Test the absorbing TERMINATED state"""

    def test_first_signal_wins(self):
        """Test that terminating twice keeps the original exit signal"""
        session = ChatSession("llama3")
        session.terminate(ExitSignal.QUIT)
        session.terminate(ExitSignal.RETURN_TO_SELECTION)
        self.assertEqual(session.exit_signal, ExitSignal.QUIT)

    def test_messages_are_immutable(self):
        """Test that appended messages cannot be edited"""
        session = ChatSession("llama3")
        session.submit("hi")
        with self.assertRaises(AttributeError):
            session.conversation[0].content = "changed"  # type: ignore[misc]


class TestIsExitCommand(unittest.TestCase):
    def test_case_insensitive(self):
        self.assertTrue(is_exit_command("/exit"))
        self.assertTrue(is_exit_command("  /Exit "))
        self.assertFalse(is_exit_command("/exits"))
        self.assertFalse(is_exit_command("exit"))


if __name__ == "__main__":
    unittest.main()
