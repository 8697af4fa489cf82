import json
import unittest
from unittest.mock import MagicMock, patch
from uuid import uuid4

from src.core.logger import SeqSink, _sanitize_value, log_patcher
from src.domain.users.models import Role


class DummyConnection:
    """A minimal dummy class that relies on default object.__repr__ (containing 'at 0x...')."""


class TestLoggerSanitization(unittest.TestCase):
    """Test suite for Loguru context sanitization."""

    def test_sanitize_value_primitives_and_collections(self) -> None:
        raw_data = {"key1": "val1", "key2": [1, 2, 3], "key3": {"nested": True}}
        self.assertEqual(_sanitize_value(raw_data), raw_data)

    def test_sanitize_identifiers_and_enums(self) -> None:
        actor_id = uuid4()
        sanitized = _sanitize_value({"actor": actor_id, "role": Role.PM, "fields": frozenset({"eta"})})

        self.assertEqual(sanitized, {"actor": str(actor_id), "role": "pm", "fields": ["eta"]})

    def test_sanitize_value_memory_addresses(self) -> None:
        """Default __repr__ memory addresses are stripped into clean module strings."""
        dummy = DummyConnection()
        self.assertIn(" at 0x", repr(dummy))

        self.assertEqual(_sanitize_value(dummy), f"[{dummy.__class__.__module__}.DummyConnection]")

    def test_log_patcher_mutates_record(self) -> None:
        dummy = DummyConnection()
        record = {"extra": {"db": dummy, "request_id": "abc"}}

        log_patcher(record)

        self.assertEqual(record["extra"]["db"], f"[{dummy.__class__.__module__}.DummyConnection]")
        self.assertEqual(record["extra"]["request_id"], "abc")


class TestSeqSink(unittest.TestCase):
    """Test suite for the synchronous HTTP sink routing JSON logs to Seq."""

    def setUp(self) -> None:
        self.sink = SeqSink("http://fake-seq:5341/", api_key="secret123")

        # Construct a synthetic serialized Loguru record
        self.mock_loguru_json = json.dumps(
            {
                "record": {
                    "time": {"repr": "2026-10-19 15:00:00"},
                    "level": {"name": "WARNING"},
                    "message": "Denied 'create projects' for user 42 (role=pm)",
                    "extra": {"request_id": "req-1"},
                    "function": "enforce",
                    "module": "guard",
                    "line": 20,
                    "exception": None,
                }
            }
        )

    def test_build_event(self) -> None:
        event = self.sink.build_event(self.mock_loguru_json)

        self.assertEqual(event["Level"], "WARNING")
        self.assertEqual(event["Properties"]["request_id"], "req-1")
        self.assertEqual(event["Properties"]["Module"], "guard")
        self.assertIn("Service", event["Properties"])
        self.assertNotIn("Exception", event)

    @patch("src.core.logger.httpx.Client.post")
    def test_seq_sink_write_success(self, mock_post: MagicMock) -> None:
        mock_post.return_value = MagicMock(status_code=201)

        self.sink.write(self.mock_loguru_json)

        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], "http://fake-seq:5341/api/events/raw")
        self.assertEqual(kwargs["headers"]["X-Seq-ApiKey"], "secret123")
        event = kwargs["json"]["Events"][0]
        self.assertEqual(event["MessageTemplate"], "Denied 'create projects' for user 42 (role=pm)")

    @patch("src.core.logger.sys.stderr.write")
    @patch("src.core.logger.httpx.Client.post")
    def test_seq_sink_http_error_fallback(self, mock_post: MagicMock, mock_stderr_write: MagicMock) -> None:
        """An upstream Seq rejection is dumped to stderr instead of raising into the caller."""
        mock_post.return_value = MagicMock(status_code=401, text="Unauthorized")

        self.sink.write(self.mock_loguru_json)

        mock_stderr_write.assert_called_once()
        self.assertIn("Seq API Error 401", mock_stderr_write.call_args[0][0])


if __name__ == "__main__":
    unittest.main()
