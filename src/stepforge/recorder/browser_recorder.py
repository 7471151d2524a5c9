"""
Browser Recorder - Wires the reducer to a live Playwright page.

The page side is a thin listener (see ``page_script``) that forwards DOM
events with document snapshots through an exposed function. Everything
else happens here: reduction, navigation tracking, and the session log.
"""

import asyncio
import json
import logging
import time
from typing import Any, Optional, Set, TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError

from stepforge.config.settings import Settings
from stepforge.dom import DomSnapshot
from stepforge.exceptions import RecorderStateError, SnapshotError, TransportError
from stepforge.recorder.actions import ActionRecord
from stepforge.recorder.dedup import ActionDeduplicator
from stepforge.recorder.events import RawEvent
from stepforge.recorder.page_script import (
    BINDING_NAME,
    CLEANUP_JS,
    SNAPSHOT_JS,
    listener_script,
)
from stepforge.recorder.reducer import ActionRecorder
from stepforge.recorder.session import (
    FeatureCallback,
    RecordingSession,
    SessionController,
    normalize_url,
)
from stepforge.recorder.transport import BestEffortSender

if TYPE_CHECKING:
    from playwright.async_api import Frame, Page

logger = logging.getLogger(__name__)


class BrowserRecorder:
    """
    Records user actions on a Playwright page.

    Example:
        >>> recorder = BrowserRecorder(settings, on_feature_complete=save)
        >>> await recorder.start(page, "Login", start_url="https://example.com")
        >>> # User performs actions...
        >>> session = await recorder.stop()
        >>> print(session.to_json())
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        on_feature_complete: Optional[FeatureCallback] = None,
    ):
        self.settings = settings or Settings()
        self.controller = SessionController(
            feature_name=self.settings.output.default_feature,
            deduplicator=ActionDeduplicator(
                click_window_ms=self.settings.dedup.click_window_ms,
                enter_window_ms=self.settings.dedup.enter_window_ms,
            ),
            on_feature_complete=on_feature_complete,
            navigator=self._schedule_navigation,
        )
        self._sender = BestEffortSender(self._deliver)
        self._reducer = ActionRecorder(
            self.settings.recorder,
            self._sender,
            refresh=self.snapshot,
        )
        self._page: Optional["Page"] = None
        self._script = listener_script(BINDING_NAME)
        self._exposed = False
        self._tasks: Set[asyncio.Task] = set()

    @property
    def is_recording(self) -> bool:
        return self._reducer.is_recording

    @property
    def reducer(self) -> ActionRecorder:
        return self._reducer

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(
        self,
        page: "Page",
        feature: Optional[str] = None,
        start_url: Optional[str] = None,
    ) -> None:
        """
        Start recording actions on the page.

        Args:
            page: Playwright page to record
            feature: Feature name for this session
            start_url: Optional URL to navigate to first

        Raises:
            RecorderStateError: If already recording
        """
        if self._reducer.is_recording:
            raise RecorderStateError("Already recording. Call stop() first.", True)

        self._page = page
        if feature:
            self.controller.rename(feature)

        if not self._exposed:
            await page.expose_function(BINDING_NAME, self._on_page_message)
            self._exposed = True
            page.on("framenavigated", self._on_navigation)
            page.on("load", self._on_load)

        self._sender.connect(self._deliver)
        self.controller.start(start_url=start_url)
        self._reducer.start()

        if start_url and page.url != start_url:
            await page.goto(start_url)
        else:
            self.controller.record_navigation(page.url, _now_ms())

        await self._inject()
        logger.info(f"Started recording session: {self.controller.feature_name}")

    async def stop(self) -> RecordingSession:
        """
        Stop recording and return the deduplicated session.

        Raises:
            RecorderStateError: If not recording
        """
        if not self._reducer.is_recording:
            raise RecorderStateError("Not recording. Call start() first.", False)

        if self._tasks:
            # Let in-flight events (checkbox settles) finish first
            await asyncio.wait(list(self._tasks), timeout=1.0)

        snapshot = await self.snapshot()
        if snapshot is not None:
            self._reducer.flush_uncommitted(snapshot, _now_ms())

        await self._detach()
        self._reducer.stop()
        for task in list(self._tasks):
            task.cancel()
        self._sender.close()

        session = self.controller.stop()
        logger.info(f"Stopped recording. Captured {len(session.actions)} actions.")
        return session

    async def process_command(self, command: str) -> Optional[str]:
        """
        Run one console command.

        ``start`` and ``stop`` also attach or detach the page listeners;
        everything else operates on the session log only.
        """
        keyword = (command or "").strip().lower()
        if keyword == "stop":
            if not self.is_recording:
                logger.warning("Not recording")
                return None
            await self.stop()
            return "stop"
        if keyword == "start":
            if self._page is None or self.is_recording:
                logger.warning("Cannot start: no page or already recording")
                return None
            await self.start(self._page)
            return "start"
        return self.controller.process_command(command)

    # ------------------------------------------------------------------
    # Page plumbing
    # ------------------------------------------------------------------

    async def snapshot(self) -> Optional[DomSnapshot]:
        """Fresh snapshot of the current page, or None if it cannot be taken."""
        page = self._page
        if page is None or page.is_closed():
            return None
        try:
            payload = await page.evaluate(SNAPSHOT_JS)
        except PlaywrightError as e:
            logger.debug(f"Snapshot failed: {e}")
            return None
        if not payload:
            return None
        try:
            return DomSnapshot.from_json(payload)
        except SnapshotError as e:
            logger.warning(f"Discarded snapshot: {e}")
            return None

    async def _inject(self) -> None:
        if self._page is None or not self._reducer.is_recording:
            return
        try:
            await self._page.evaluate(self._script)
        except PlaywrightError as e:
            logger.debug(f"Listener injection failed: {e}")

    async def _detach(self) -> None:
        if self._page is None or self._page.is_closed():
            return
        try:
            await self._page.evaluate(CLEANUP_JS)
        except PlaywrightError as e:
            logger.debug(f"Listener cleanup failed: {e}")

    def _deliver(self, record: ActionRecord) -> None:
        """Sink for the sender; a closed page ends the channel."""
        if self._page is not None and self._page.is_closed():
            raise TransportError("Page closed", {"action_type": record.action_type.value})
        self.controller.append(record)

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _on_load(self, *_: Any) -> None:
        """Re-inject after every load; the old listeners died with the document."""
        if self._reducer.is_recording:
            self._spawn(self._inject())

    def _on_navigation(self, frame: "Frame") -> None:
        """Record main-frame navigations."""
        if not self._reducer.is_recording or self._page is None:
            return
        if frame != self._page.main_frame:
            return
        self.controller.record_navigation(frame.url, _now_ms())

    def _on_page_message(self, payload: str) -> None:
        """Exposed to the page; reduction runs as a task so the page never waits."""
        self._spawn(self._dispatch(payload))

    async def _dispatch(self, payload: str) -> None:
        try:
            event = RawEvent.from_message(json.loads(payload))
        except (ValueError, SnapshotError) as e:
            logger.warning(f"Discarded page message: {e}")
            return
        await self._reducer.handle_event(event)

    def _schedule_navigation(self, url: str) -> None:
        if self._page is None:
            logger.warning(f"No page to navigate to {url}")
            return
        self._spawn(self._goto(normalize_url(url)))

    async def _goto(self, url: str) -> None:
        try:
            await self._page.goto(url)
        except PlaywrightError as e:
            logger.warning(f"Navigation to {url} failed: {e}")


def _now_ms() -> float:
    return time.time() * 1000
