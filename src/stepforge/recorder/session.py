"""
Recording sessions and the command controller that owns them.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from stepforge.recorder.actions import ActionRecord, ActionType
from stepforge.recorder.dedup import ActionDeduplicator

logger = logging.getLogger(__name__)

FeatureCallback = Callable[["RecordingSession"], Any]
Navigator = Callable[[str], Any]

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


def sanitize_feature_name(name: str) -> str:
    """
    Turn free text into a file-name-safe feature name.

    Words are split on anything that is not a letter, digit, ``_`` or ``-``
    and joined with their first letter upper-cased.

    Example:
        >>> sanitize_feature_name("login flow / happy path")
        'LoginFlowHappyPath'
    """
    words = [w for w in _UNSAFE_NAME_CHARS.split(name or "") if w]
    return "".join(w[0].upper() + w[1:] for w in words)


def normalize_url(url: str) -> str:
    """Add ``https://`` when no scheme is given."""
    url = url.strip()
    if not url.lower().startswith(("http://", "https://")):
        url = "https://" + url
    return url


@dataclass
class SessionSummary:
    """Action totals for one feature."""
    feature_name: str
    is_recording: bool
    total_actions: int = 0
    navigate_actions: int = 0
    click_actions: int = 0
    input_actions: int = 0
    select_actions: int = 0
    started_at: Optional[str] = None
    ended_at: Optional[str] = None

    @classmethod
    def from_actions(
        cls,
        feature_name: str,
        actions: List[ActionRecord],
        is_recording: bool = False,
        started_at: Optional[str] = None,
        ended_at: Optional[str] = None,
    ) -> "SessionSummary":
        return cls(
            feature_name=feature_name,
            is_recording=is_recording,
            total_actions=len(actions),
            navigate_actions=sum(1 for a in actions if a.action_type == ActionType.NAVIGATE),
            click_actions=sum(1 for a in actions if a.action_type == ActionType.CLICK),
            input_actions=sum(1 for a in actions if a.action_type.is_input),
            select_actions=sum(1 for a in actions if a.action_type == ActionType.SELECT_OPTION),
            started_at=started_at,
            ended_at=ended_at,
        )


@dataclass
class RecordingSession:
    """A complete recording of one feature."""
    name: str
    actions: List[ActionRecord] = field(default_factory=list)
    start_url: Optional[str] = None
    started_at: Optional[str] = None
    ended_at: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def summary(self) -> SessionSummary:
        return SessionSummary.from_actions(
            self.name, self.actions, started_at=self.started_at, ended_at=self.ended_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "start_url": self.start_url,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "actions": [a.to_dict() for a in self.actions],
            "metadata": self.metadata,
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecordingSession":
        """Create from dictionary."""
        return cls(
            name=data["name"],
            start_url=data.get("start_url"),
            started_at=data.get("started_at"),
            ended_at=data.get("ended_at"),
            actions=[ActionRecord.from_dict(a) for a in data.get("actions", [])],
            metadata=data.get("metadata", {}),
        )

    @classmethod
    def from_json(cls, json_str: str) -> "RecordingSession":
        """Create from JSON string."""
        return cls.from_dict(json.loads(json_str))


def save_session(session: RecordingSession, directory: str) -> Path:
    """Write ``<name>.json`` into ``directory`` and return its path."""
    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / f"{sanitize_feature_name(session.name) or 'Recording'}.json"
    path.write_text(session.to_json(), encoding="utf-8")
    return path


class SessionController:
    """
    Owns the session log and the recording-enabled flag.

    Actions arrive through ``append`` (the transport sink). Text commands
    from the console go through ``process_command``; unknown or malformed
    commands are logged and ignored.

    Args:
        feature_name: Name of the first feature
        deduplicator: Post-session cleanup pass
        on_feature_complete: Receives the deduplicated session on ``stop``
            and when a new feature starts
        navigator: Called with a normalised URL for ``navigate`` commands

    Example:
        >>> controller = SessionController("Login", on_feature_complete=save)
        >>> controller.start()
        >>> controller.process_command("new feature Checkout")
    """

    def __init__(
        self,
        feature_name: str = "MyFeature",
        deduplicator: Optional[ActionDeduplicator] = None,
        on_feature_complete: Optional[FeatureCallback] = None,
        navigator: Optional[Navigator] = None,
    ):
        self.feature_name = sanitize_feature_name(feature_name) or "MyFeature"
        self._deduplicator = deduplicator or ActionDeduplicator()
        self._on_feature_complete = on_feature_complete
        self._navigator = navigator
        self._actions: List[ActionRecord] = []
        self._is_recording = False
        self.start_url: Optional[str] = None
        self.started_at: Optional[str] = None
        self.ended_at: Optional[str] = None

    @property
    def is_recording(self) -> bool:
        return self._is_recording

    @property
    def actions(self) -> List[ActionRecord]:
        return list(self._actions)

    def summary(self) -> SessionSummary:
        return SessionSummary.from_actions(
            self.feature_name,
            self._actions,
            is_recording=self._is_recording,
            started_at=self.started_at,
            ended_at=self.ended_at,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, start_url: Optional[str] = None) -> None:
        """Begin a fresh log for the current feature."""
        self._actions = []
        self.start_url = None
        self._is_recording = True
        self.started_at = datetime.now().isoformat()
        self.ended_at = None
        if start_url:
            self.start_url = start_url
        logger.info(f"Recording started: {self.feature_name}")

    def stop(self) -> RecordingSession:
        """Stop recording and hand the finished feature on."""
        self._is_recording = False
        self.ended_at = datetime.now().isoformat()
        session = self.finalize()
        logger.info(
            f"Recording stopped: {self.feature_name} "
            f"({len(self._actions)} recorded, {len(session.actions)} kept)"
        )
        self._complete(session)
        return session

    def pause(self) -> None:
        self._is_recording = False
        logger.info("Recording paused")

    def resume(self) -> None:
        self._is_recording = True
        logger.info("Recording resumed")

    def finalize(self) -> RecordingSession:
        """Deduplicated copy of the current feature."""
        return RecordingSession(
            name=self.feature_name,
            actions=self._deduplicator.deduplicate(self._actions),
            start_url=self.start_url,
            started_at=self.started_at,
            ended_at=self.ended_at,
            metadata={"recorded_actions": len(self._actions)},
        )

    def _complete(self, session: RecordingSession) -> None:
        if not session.actions:
            logger.info(f"No actions recorded for '{session.name}', nothing to hand off")
            return
        if self._on_feature_complete is None:
            return
        try:
            self._on_feature_complete(session)
        except Exception as e:
            logger.error(f"Failed to complete feature '{session.name}': {e}")

    # ------------------------------------------------------------------
    # Session log
    # ------------------------------------------------------------------

    def append(self, record: ActionRecord) -> bool:
        """Add an action; ignored while not recording."""
        if not self._is_recording:
            logger.debug(f"Not recording, ignored {record.action_type.value}")
            return False
        self._actions.append(record)
        logger.info(record.describe())
        return True

    def record_navigation(self, url: str, timestamp_ms: float) -> bool:
        """Append a Navigate unless it is blank or the previous action went to the same URL."""
        if not url or url == "about:blank":
            return False
        last = self._actions[-1] if self._actions else None
        if last is not None and last.action_type == ActionType.NAVIGATE and last.value == url:
            return False
        if self.start_url is None:
            self.start_url = url
        return self.append(ActionRecord(
            action_type=ActionType.NAVIGATE,
            timestamp_ms=timestamp_ms,
            value=url,
            source_url=url,
        ))

    def clear(self) -> int:
        count = len(self._actions)
        self._actions.clear()
        logger.info(f"Cleared {count} actions from {self.feature_name}")
        return count

    def undo(self) -> Optional[ActionRecord]:
        if not self._actions:
            logger.info("No actions to undo")
            return None
        action = self._actions.pop()
        logger.info(f"Undid {action.describe()}")
        return action

    def new_feature(self, name: str) -> bool:
        """Finish the current feature (if any) and start a fresh log."""
        sanitized = sanitize_feature_name(name)
        if not sanitized:
            logger.warning("Feature name cannot be empty. Usage: new feature <FeatureName>")
            return False
        if self._actions:
            self._complete(self.finalize())
        self.feature_name = sanitized
        self._actions = []
        self.start_url = None
        self.started_at = datetime.now().isoformat()
        self.ended_at = None
        logger.info(f"Now recording: {sanitized}")
        return True

    def rename(self, name: str) -> bool:
        sanitized = sanitize_feature_name(name)
        if not sanitized:
            logger.warning("Feature name cannot be empty. Usage: rename <FeatureName>")
            return False
        logger.info(f"Renamed feature from '{self.feature_name}' to '{sanitized}'")
        self.feature_name = sanitized
        return True

    def navigate(self, url: str) -> Optional[str]:
        if not url.strip():
            logger.warning("URL cannot be empty. Usage: navigate <URL>")
            return None
        target = normalize_url(url)
        if self._navigator is not None:
            self._navigator(target)
        return target

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def process_command(self, command: Optional[str]) -> Optional[str]:
        """
        Run one console command.

        Returns:
            The command keyword that was handled, or None
        """
        if not command or not command.strip():
            return None

        text = command.strip()
        lowered = text.lower()
        try:
            if lowered == "start":
                self.start()
                return "start"
            if lowered == "stop":
                self.stop()
                return "stop"
            if lowered == "pause":
                self.pause()
                return "pause"
            if lowered == "resume":
                self.resume()
                return "resume"
            if lowered == "clear":
                self.clear()
                return "clear"
            if lowered == "undo":
                self.undo()
                return "undo"
            for keyword, handler in (
                ("new feature", self.new_feature),
                ("rename", self.rename),
                ("navigate", self.navigate),
            ):
                if lowered == keyword or lowered.startswith(keyword + " "):
                    return keyword if handler(text[len(keyword):]) else None
        except Exception as e:
            logger.error(f"Error processing command '{text}': {e}")
            return None

        logger.warning(f"Unknown command: {text}")
        return None
