"""
Best-effort delivery of action records to the host.
"""

import logging
from typing import Any, Callable, Optional

from stepforge.exceptions import TransportError
from stepforge.recorder.actions import ActionRecord

logger = logging.getLogger(__name__)

ActionSink = Callable[[ActionRecord], Any]


class BestEffortSender:
    """
    At-most-once sender.

    A record is handed to the sink exactly once. If the sink is missing or
    raises, the record is dropped and logged; there is no retry and no
    queue, and the failure never reaches the caller. A sink that raises
    ``TransportError`` has lost its channel, so the sender closes.

    Example:
        >>> sent = []
        >>> sender = BestEffortSender(sent.append)
        >>> sender.send(record)
        True
    """

    def __init__(self, sink: Optional[ActionSink] = None):
        self._sink = sink
        self.sent_count = 0
        self.dropped_count = 0

    @property
    def is_open(self) -> bool:
        return self._sink is not None

    def connect(self, sink: ActionSink) -> None:
        self._sink = sink

    def close(self) -> None:
        self._sink = None

    def send(self, record: ActionRecord) -> bool:
        """Deliver one record; returns False if it was dropped."""
        if self._sink is None:
            self.dropped_count += 1
            logger.debug(f"No host connected, dropped {record.action_type.value}")
            return False
        try:
            self._sink(record)
        except TransportError as e:
            self.dropped_count += 1
            self.close()
            logger.warning(f"Channel closed, dropped {record.action_type.value} action: {e}")
            return False
        except Exception as e:
            self.dropped_count += 1
            logger.warning(f"Failed to deliver {record.action_type.value} action: {e}")
            return False
        self.sent_count += 1
        return True
