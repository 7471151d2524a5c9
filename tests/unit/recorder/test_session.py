"""
Tests for the session controller and session files.
"""

import json
import logging

import pytest

from stepforge.recorder import (
    ActionRecord,
    ActionType,
    RecordingSession,
    SessionController,
    sanitize_feature_name,
    save_session,
)
from stepforge.recorder.session import normalize_url
from stepforge.selectors import Locator, LocatorKind


def click(ts, rid="go"):
    return ActionRecord(ActionType.CLICK, ts, Locator(LocatorKind.ID, rid))


@pytest.fixture
def completed():
    return []


@pytest.fixture
def controller(completed):
    controller = SessionController("Login", on_feature_complete=completed.append)
    controller.start()
    return controller


class TestNames:
    """Test name and URL normalisation."""

    @pytest.mark.parametrize("raw,expected", [
        ("login", "Login"),
        ("login flow / happy path", "LoginFlowHappyPath"),
        ("  checkout-v2 ", "Checkout-v2"),
        ("!!!", ""),
    ])
    def test_sanitize(self, raw, expected):
        assert sanitize_feature_name(raw) == expected

    def test_normalize_url(self):
        assert normalize_url("example.com") == "https://example.com"
        assert normalize_url("http://example.com") == "http://example.com"


class TestRecordingFlag:
    """Test start, stop, pause and resume."""

    def test_append_only_while_recording(self, controller):
        assert controller.append(click(1)) is True
        controller.pause()
        assert controller.append(click(2)) is False
        controller.resume()
        assert controller.append(click(3)) is True
        assert [a.timestamp_ms for a in controller.actions] == [1, 3]

    def test_stop_hands_off_deduplicated_session(self, controller, completed):
        controller.append(click(1000))
        controller.append(click(1100))
        session = controller.stop()
        assert controller.is_recording is False
        assert len(session.actions) == 1
        assert session.metadata["recorded_actions"] == 2
        assert completed == [session]

    def test_stop_without_actions_hands_off_nothing(self, controller, completed):
        controller.stop()
        assert completed == []

    def test_restart_begins_fresh_log(self, controller):
        controller.append(click(1))
        controller.stop()
        controller.start()
        assert controller.actions == []

    def test_callback_failure_is_logged(self, caplog):
        def broken(session):
            raise OSError("disk full")

        controller = SessionController("Login", on_feature_complete=broken)
        controller.start()
        controller.append(click(1))
        with caplog.at_level(logging.ERROR):
            session = controller.stop()
        assert len(session.actions) == 1
        assert "disk full" in caplog.text


class TestNavigation:
    """Test navigation recording rules."""

    def test_blank_pages_are_skipped(self, controller):
        assert controller.record_navigation("about:blank", 0) is False
        assert controller.record_navigation("", 0) is False

    def test_navigation_right_after_same_navigation_is_skipped(self, controller):
        assert controller.record_navigation("https://a.test/", 0) is True
        assert controller.record_navigation("https://a.test/", 10) is False
        assert controller.record_navigation("https://b.test/", 20) is True
        assert controller.start_url == "https://a.test/"

    def test_reload_after_other_action_is_kept(self, controller):
        # A form posting back to its own URL
        controller.record_navigation("https://a.test/", 0)
        controller.append(click(5))
        assert controller.record_navigation("https://a.test/", 10) is True
        assert [a.action_type for a in controller.actions] == [
            ActionType.NAVIGATE, ActionType.CLICK, ActionType.NAVIGATE,
        ]

    def test_navigate_command(self):
        visited = []
        controller = SessionController(navigator=visited.append)
        assert controller.process_command("navigate example.com/login") == "navigate"
        assert visited == ["https://example.com/login"]

    def test_navigate_without_url(self, controller, caplog):
        with caplog.at_level(logging.WARNING):
            assert controller.process_command("navigate") is None
        assert "URL cannot be empty" in caplog.text


class TestCommands:
    """Test console commands."""

    def test_undo_and_clear(self, controller):
        controller.append(click(1))
        controller.append(click(2))
        assert controller.process_command("undo") == "undo"
        assert [a.timestamp_ms for a in controller.actions] == [1]
        assert controller.process_command("CLEAR") == "clear"
        assert controller.actions == []
        assert controller.undo() is None

    def test_new_feature_completes_current(self, controller, completed):
        controller.append(click(1))
        assert controller.process_command("new feature Checkout flow") == "new feature"
        assert [s.name for s in completed] == ["Login"]
        assert controller.feature_name == "CheckoutFlow"
        assert controller.actions == []
        assert controller.is_recording is True

    def test_new_feature_requires_name(self, controller):
        assert controller.process_command("new feature") is None
        assert controller.feature_name == "Login"

    def test_rename(self, controller):
        assert controller.process_command("rename sign up") == "rename"
        assert controller.feature_name == "SignUp"

    def test_renamed_prefix_is_not_a_command(self, controller, caplog):
        with caplog.at_level(logging.WARNING):
            assert controller.process_command("renamed x") is None
        assert "Unknown command" in caplog.text

    def test_blank_command(self, controller):
        assert controller.process_command("   ") is None
        assert controller.process_command(None) is None

    def test_summary_counts(self, controller):
        controller.record_navigation("https://a.test/", 0)
        controller.append(click(1))
        controller.append(ActionRecord(ActionType.SEND_KEYS, 2, Locator(LocatorKind.NAME, "q"), "x"))
        summary = controller.summary()
        assert summary.total_actions == 3
        assert summary.navigate_actions == 1
        assert summary.click_actions == 1
        assert summary.input_actions == 1
        assert summary.is_recording is True


class TestSessionFiles:
    """Test saving and loading sessions."""

    def test_save_and_load(self, tmp_path):
        session = RecordingSession(
            name="Login",
            actions=[ActionRecord(ActionType.NAVIGATE, 0, value="https://a.test/"), click(1)],
            start_url="https://a.test/",
        )
        path = save_session(session, str(tmp_path / "out"))
        assert path.name == "Login.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["actions"][1]["locator"] == {"kind": "Id", "value": "go"}
        loaded = RecordingSession.from_json(path.read_text(encoding="utf-8"))
        assert loaded.actions == session.actions

    def test_unnamed_session_file(self, tmp_path):
        path = save_session(RecordingSession(name="???"), str(tmp_path))
        assert path.name == "Recording.json"
