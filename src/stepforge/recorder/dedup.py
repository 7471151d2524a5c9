"""
Post-session deduplication of recorded actions.
"""

import logging
from typing import List, Optional, Sequence

from stepforge.recorder.actions import ActionRecord, ActionType

logger = logging.getLogger(__name__)


class ActionDeduplicator:
    """
    Remove noise that survived live reduction.

    Single forward pass; every rule compares against the last *kept* action
    and output order always matches input order.

    Rules:
        - A Navigate repeating the previous kept Navigate's URL is dropped.
        - A Click with the same locator as the previous kept Click, less than
          ``click_window_ms`` later, is dropped.
        - A SendKeysEnter right after a SendKeys on the same locator is kept,
          and so is the SendKeys: the pair is left for code generation to
          fold.

    Example:
        >>> dedup = ActionDeduplicator()
        >>> kept = dedup.deduplicate(session.actions)
    """

    def __init__(self, click_window_ms: float = 500, enter_window_ms: float = 1000):
        self.click_window_ms = click_window_ms
        self.enter_window_ms = enter_window_ms

    def deduplicate(self, actions: Sequence[ActionRecord]) -> List[ActionRecord]:
        kept: List[ActionRecord] = []
        last: Optional[ActionRecord] = None

        for action in actions:
            if last is not None and self._is_duplicate(last, action):
                logger.debug(f"Dropped duplicate: {action.describe()}")
                continue
            if last is not None and self._is_enter_after_typing(last, action):
                logger.debug(f"Keeping Enter after typed value on {action.locator}")
            kept.append(action)
            last = action

        return kept

    def _is_duplicate(self, last: ActionRecord, action: ActionRecord) -> bool:
        if action.action_type == ActionType.NAVIGATE:
            return last.action_type == ActionType.NAVIGATE and last.value == action.value

        if action.action_type == ActionType.CLICK:
            return (
                last.action_type == ActionType.CLICK
                and last.same_target(action)
                and action.timestamp_ms - last.timestamp_ms < self.click_window_ms
            )

        return False

    def _is_enter_after_typing(self, last: ActionRecord, action: ActionRecord) -> bool:
        return (
            action.action_type == ActionType.SEND_KEYS_ENTER
            and last.action_type == ActionType.SEND_KEYS
            and last.same_target(action)
            and action.timestamp_ms - last.timestamp_ms < self.enter_window_ms
        )
