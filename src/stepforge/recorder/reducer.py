"""
Action Recorder - Reduces raw DOM events into action records.

Keystrokes are buffered per element and only committed on blur, change,
Enter or a submit-like click. Clicks are resolved to the control the user
meant (label targets, wrapper elements around checkboxes, shadow roots)
before a locator is computed.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from lxml import etree

from stepforge.config.settings import RecorderSettings
from stepforge.dom import DomSnapshot, element_type, is_toggle_control, is_toggle_input
from stepforge.recorder.actions import ActionRecord, ActionType
from stepforge.recorder.events import EventType, RawEvent
from stepforge.recorder.transport import BestEffortSender
from stepforge.selectors import Locator, SelectorEngine, css_escape

logger = logging.getLogger(__name__)

# Containers a click may land on instead of the checkbox they hold.
WRAPPER_TAGS = frozenset({"div", "span", "label", "li", "p"})

# Inputs whose value is typed text.
TEXT_LIKE_TYPES = frozenset({"text", "search", "email", "password", "tel", "url", "number"})

FORM_FIELD_TAGS = ("input", "textarea", "select")

SnapshotRefresher = Callable[[], Awaitable[Optional[DomSnapshot]]]


@dataclass(frozen=True)
class ClickFingerprint:
    """The most recently emitted click-family action."""
    locator_key: str
    action_type: ActionType
    timestamp_ms: float

    def matches(self, locator: Locator, action_type: ActionType, now_ms: float, window_ms: float) -> bool:
        return (
            self.locator_key == locator.key
            and self.action_type == action_type
            and now_ms - self.timestamp_ms < window_ms
        )


class ElementCaches:
    """
    Per-session side tables keyed by page element id.

    Entries live until the recording stops; ``clear`` drops everything.
    """

    def __init__(self):
        self.pending_values: Dict[int, str] = {}
        self.recorded_values: Dict[int, str] = {}
        self.checkbox_states: Dict[int, bool] = {}
        self.last_click: Optional[ClickFingerprint] = None

    def clear(self) -> None:
        self.pending_values.clear()
        self.recorded_values.clear()
        self.checkbox_states.clear()
        self.last_click = None

    def __len__(self) -> int:
        return len(self.pending_values) + len(self.recorded_values) + len(self.checkbox_states)


def is_text_like(el: Optional[etree._Element]) -> bool:
    """Textareas and inputs that take typed text."""
    if el is None:
        return False
    if el.tag == "textarea":
        return True
    return el.tag == "input" and element_type(el) in TEXT_LIKE_TYPES


def is_submit_like(el: etree._Element) -> bool:
    """Buttons, links and inputs that are not typed into."""
    if el.tag in ("button", "a"):
        return True
    return el.tag == "input" and element_type(el) not in TEXT_LIKE_TYPES


class ActionRecorder:
    """
    Event-to-action reducer.

    Emits zero or more action records per raw event and hands each one to
    the sender. Failures inside a handler are logged and the event is
    dropped; they never propagate to the caller.

    Args:
        settings: Recorder tuning (fidelity, distance gate, delays)
        sender: Best-effort channel to the host
        refresh: Coroutine returning a fresh snapshot, used after the
            checkbox settle delay

    Example:
        >>> recorder = ActionRecorder(RecorderSettings(), BestEffortSender(log.append))
        >>> recorder.start()
        >>> await recorder.handle_event(event)
    """

    def __init__(
        self,
        settings: Optional[RecorderSettings] = None,
        sender: Optional[BestEffortSender] = None,
        refresh: Optional[SnapshotRefresher] = None,
    ):
        self.settings = settings or RecorderSettings()
        self._sender = sender or BestEffortSender()
        self._refresh = refresh
        self._caches = ElementCaches()
        self._recording = False

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def caches(self) -> ElementCaches:
        return self._caches

    def start(self) -> None:
        self._recording = True
        logger.debug("Action recorder started")

    def stop(self) -> None:
        self._recording = False
        self._caches.clear()
        logger.debug("Action recorder stopped, caches cleared")

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def handle_event(self, event: RawEvent) -> List[ActionRecord]:
        """Reduce one raw event; returns the records emitted for it."""
        if not self._recording:
            return []

        try:
            if event.type == EventType.INPUT:
                self._on_input(event)
                return []

            snapshot = event.snapshot
            if snapshot is None:
                logger.debug(f"{event.type} event without snapshot ignored")
                return []

            target = snapshot.get(event.target)
            if target is None or target.tag in ("html", "body"):
                return []

            if event.type == EventType.CLICK:
                return await self._on_click(event, snapshot, target)
            if event.type == EventType.CHANGE:
                return self._on_change(event, snapshot, target)
            if event.type == EventType.BLUR:
                return self._on_blur(event, snapshot, target)
            if event.type == EventType.KEYDOWN:
                return self._on_keydown(event, snapshot, target)
            return []
        except Exception as e:
            logger.warning(f"Failed to handle {event.type} event: {e}")
            return []

    def _engine(self, snapshot: DomSnapshot) -> SelectorEngine:
        return SelectorEngine(
            snapshot,
            smart=self.settings.smart,
            css_path_depth=self.settings.css_path_depth,
            max_text_length=self.settings.max_text_length,
        )

    def _record(
        self,
        action_type: ActionType,
        event: RawEvent,
        snapshot: DomSnapshot,
        el: etree._Element,
        locator: Locator,
        value: Optional[str] = None,
        **extra,
    ) -> ActionRecord:
        return ActionRecord(
            action_type=action_type,
            timestamp_ms=event.timestamp_ms,
            locator=locator,
            value=value,
            tag_name=el.tag.upper(),
            element_type=element_type(el),
            source_url=event.url or snapshot.url,
            **extra,
        )

    def _emit(self, record: ActionRecord, out: List[ActionRecord]) -> None:
        self._sender.send(record)
        out.append(record)
        logger.debug(f"Recorded {record.describe()}")

    # ------------------------------------------------------------------
    # input
    # ------------------------------------------------------------------

    def _on_input(self, event: RawEvent) -> None:
        value = event.value if event.value is not None else ""
        rids = event.path or ([event.target] if event.target is not None else [])
        for rid in rids:
            self._caches.pending_values[rid] = value

    # ------------------------------------------------------------------
    # click
    # ------------------------------------------------------------------

    async def _on_click(
        self, event: RawEvent, snapshot: DomSnapshot, target: etree._Element
    ) -> List[ActionRecord]:
        engine = self._engine(snapshot)
        actual = self.resolve_target(snapshot, target, event.click_point, engine)
        locator = engine.best_locator(actual)

        if is_toggle_control(actual):
            return await self._settle_toggle(event, snapshot, actual, locator)

        emitted: List[ActionRecord] = []
        last = self._caches.last_click
        window = self.settings.click_dedup_window_ms
        if last and last.matches(locator, ActionType.CLICK, event.timestamp_ms, window):
            logger.debug(f"Suppressed duplicate click on {locator}")
            return emitted

        if is_submit_like(actual):
            emitted.extend(self._flush(snapshot, engine, event))

        rid = snapshot.rid_of(actual)
        value = self._caches.pending_values.get(rid) if rid is not None else None
        record = self._record(ActionType.CLICK, event, snapshot, actual, locator, value or None)
        self._emit(record, emitted)
        self._caches.last_click = ClickFingerprint(locator.key, ActionType.CLICK, event.timestamp_ms)
        return emitted

    async def _settle_toggle(
        self,
        event: RawEvent,
        snapshot: DomSnapshot,
        control: etree._Element,
        locator: Locator,
    ) -> List[ActionRecord]:
        """Read a checkbox/radio after its native toggle has settled."""
        rid = snapshot.rid_of(control)
        if self.settings.settle_delay_ms > 0:
            await asyncio.sleep(self.settings.settle_delay_ms / 1000)

        if not self._recording:
            return []

        current, el = snapshot, control
        if self._refresh is not None:
            fresh = await self._refresh()
            if fresh is not None and fresh.get(rid) is not None:
                current, el = fresh, fresh.get(rid)

        checked = _checked_state(current, el)
        if rid is not None and self._caches.checkbox_states.get(rid) == checked:
            logger.debug(f"Click on {locator} did not toggle state")
            return []
        if rid is not None:
            self._caches.checkbox_states[rid] = checked

        kind = element_type(el) if el.tag == "input" else (el.get("role") or "").lower()
        action_type = ActionType.RADIO if kind == "radio" else ActionType.CHECKBOX
        record = self._record(
            action_type, event, snapshot, el, locator,
            "check" if checked else "uncheck",
            checked=checked,
        )
        emitted: List[ActionRecord] = []
        self._emit(record, emitted)
        self._caches.last_click = ClickFingerprint(locator.key, action_type, event.timestamp_ms)
        return emitted

    # ------------------------------------------------------------------
    # Target resolution
    # ------------------------------------------------------------------

    def resolve_target(
        self,
        snapshot: DomSnapshot,
        target: etree._Element,
        point: Optional[Tuple[float, float]] = None,
        engine: Optional[SelectorEngine] = None,
    ) -> etree._Element:
        """
        Find the control a click on ``target`` was meant for.

        Labels redirect to their ``for`` control. Wrappers are searched for
        a checkbox/radio whose center lies within the distance gate of the
        click point, first inside the wrapper, then in up to
        ``parent_search_levels`` ancestors. A wrapper that already has a
        simple locator is trusted as is.
        """
        if target.tag == "label" and target.get("for"):
            control = snapshot.find("#" + css_escape(target.get("for")))
            if is_toggle_input(control):
                return control

        if is_toggle_input(target):
            return target

        if not self.settings.smart:
            return target

        is_wrapper = target.tag in WRAPPER_TAGS or snapshot.has_shadow_root(target)
        if not is_wrapper:
            return target

        engine = engine or self._engine(snapshot)
        if engine.best_locator(target).is_simple():
            return target

        if point is None:
            point = snapshot.state(target).rect.center

        found = self._nearby_toggle(snapshot, target, point)
        if found is not None:
            return found

        ancestor = snapshot.parent(target)
        for _ in range(self.settings.parent_search_levels):
            if ancestor is None or ancestor.tag in ("html", "body"):
                break
            found = self._nearby_toggle(snapshot, ancestor, point)
            if found is not None:
                return found
            ancestor = snapshot.parent(ancestor)

        return target

    def _nearby_toggle(
        self,
        snapshot: DomSnapshot,
        container: etree._Element,
        point: Tuple[float, float],
    ) -> Optional[etree._Element]:
        control = self.find_toggle_in(snapshot, container)
        if control is None:
            return None
        distance = snapshot.state(control).rect.distance_to(point)
        if distance < self.settings.checkbox_distance_px:
            return control
        logger.debug(f"Checkbox inside <{container.tag}> is {distance:.0f}px from the click, ignored")
        return None

    def find_toggle_in(
        self, snapshot: DomSnapshot, el: etree._Element, depth: int = 0
    ) -> Optional[etree._Element]:
        """First checkbox/radio under ``el``, descending into open shadow roots."""
        if depth > self.settings.checkbox_search_depth:
            return None

        found = _first_toggle(snapshot.iter_descendants(el))
        if found is not None:
            return found

        if not snapshot.has_shadow_root(el):
            return None

        shadow_elements: List[etree._Element] = []
        for top in snapshot.shadow_children(el):
            shadow_elements.append(top)
            shadow_elements.extend(snapshot.iter_descendants(top))

        found = _first_toggle(shadow_elements)
        if found is not None:
            return found

        for inner in shadow_elements:
            if snapshot.has_shadow_root(inner):
                found = self.find_toggle_in(snapshot, inner, depth + 1)
                if found is not None:
                    return found
        return None

    def find_input_element(
        self, snapshot: DomSnapshot, el: etree._Element
    ) -> Optional[etree._Element]:
        """The form field itself, its first field descendant, or one in its shadow root."""
        if el.tag in FORM_FIELD_TAGS:
            return el
        for node in snapshot.iter_descendants(el):
            if node.tag in FORM_FIELD_TAGS:
                return node
        for top in snapshot.shadow_children(el):
            if top.tag in FORM_FIELD_TAGS:
                return top
            for node in snapshot.iter_descendants(top):
                if node.tag in FORM_FIELD_TAGS:
                    return node
        return None

    # ------------------------------------------------------------------
    # Uncommitted input
    # ------------------------------------------------------------------

    def flush_uncommitted(
        self,
        snapshot: DomSnapshot,
        timestamp_ms: float = 0,
        url: Optional[str] = None,
    ) -> List[ActionRecord]:
        """Emit SendKeys for every typed value not yet recorded."""
        if not self._recording:
            return []
        event = RawEvent(type="flush", target=None, timestamp_ms=timestamp_ms, url=url or snapshot.url)
        try:
            return self._flush(snapshot, self._engine(snapshot), event)
        except Exception as e:
            logger.warning(f"Failed to flush typed values: {e}")
            return []

    def _flush(
        self, snapshot: DomSnapshot, engine: SelectorEngine, event: RawEvent
    ) -> List[ActionRecord]:
        emitted: List[ActionRecord] = []
        fields: List[etree._Element] = []

        active = snapshot.active_element
        if is_text_like(active):
            fields.append(active)
        for el in snapshot.iter_descendants(snapshot.root):
            if is_text_like(el) and el is not active:
                fields.append(el)

        for el in fields:
            rid = snapshot.rid_of(el)
            value = snapshot.state(el).value or ""
            if not value or rid is None or self._caches.recorded_values.get(rid) == value:
                continue
            locator = engine.best_locator(el)
            self._emit(self._record(ActionType.SEND_KEYS, event, snapshot, el, locator, value), emitted)
            self._caches.recorded_values[rid] = value
        return emitted

    # ------------------------------------------------------------------
    # change / blur / keydown
    # ------------------------------------------------------------------

    def _on_change(
        self, event: RawEvent, snapshot: DomSnapshot, target: etree._Element
    ) -> List[ActionRecord]:
        if is_toggle_input(target):
            return []

        rid = snapshot.rid_of(target)
        state = snapshot.state(target)
        value = state.value or ""
        emitted: List[ActionRecord] = []

        if target.tag == "select":
            locator = self._engine(snapshot).best_locator(target)
            record = self._record(
                ActionType.SELECT_OPTION, event, snapshot, target, locator, value,
                selected_text=state.selected_text or value,
            )
            self._emit(record, emitted)
            self._caches.recorded_values[rid] = value
            return emitted

        recorded = self._caches.recorded_values
        if rid in recorded and recorded[rid] == value:
            return emitted

        locator = self._engine(snapshot).best_locator(target)
        self._emit(self._record(ActionType.SEND_KEYS, event, snapshot, target, locator, value), emitted)
        self._caches.recorded_values[rid] = value
        return emitted

    def _on_blur(
        self, event: RawEvent, snapshot: DomSnapshot, target: etree._Element
    ) -> List[ActionRecord]:
        if not is_text_like(target):
            return []

        rid = snapshot.rid_of(target)
        value = snapshot.state(target).value or ""
        if not value or self._caches.recorded_values.get(rid) == value:
            return []

        emitted: List[ActionRecord] = []
        locator = self._engine(snapshot).best_locator(target)
        self._emit(self._record(ActionType.SEND_KEYS, event, snapshot, target, locator, value), emitted)
        self._caches.recorded_values[rid] = value
        return emitted

    def _on_keydown(
        self, event: RawEvent, snapshot: DomSnapshot, target: etree._Element
    ) -> List[ActionRecord]:
        if event.key != "Enter":
            return []

        rid = snapshot.rid_of(target)
        field_el = self.find_input_element(snapshot, target)
        value = self._caches.pending_values.get(rid)
        if not value:
            source = field_el if field_el is not None else target
            value = snapshot.state(source).value or ""

        emitted: List[ActionRecord] = []
        locator = self._engine(snapshot).best_locator(target)
        record = self._record(
            ActionType.SEND_KEYS_ENTER, event, snapshot, target, locator, value, key="Enter",
        )
        self._emit(record, emitted)
        self._caches.recorded_values[rid] = value
        if field_el is not None and field_el is not target:
            self._caches.recorded_values[snapshot.rid_of(field_el)] = value
        return emitted


def _first_toggle(elements) -> Optional[etree._Element]:
    """Native inputs win over ARIA toggles."""
    candidates = list(elements)
    for el in candidates:
        if is_toggle_input(el):
            return el
    for el in candidates:
        if (el.get("role") or "").lower() in ("checkbox", "radio"):
            return el
    return None


def _checked_state(snapshot: DomSnapshot, el: etree._Element) -> bool:
    checked = snapshot.state(el).checked
    if checked is not None:
        return bool(checked)
    return (el.get("aria-checked") or "").lower() == "true"
