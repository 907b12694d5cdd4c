"""
Outbound Queue - FIFO buffer for messages sent while the link is down.

The queue is unbounded by default. With a positive ``max_size`` the oldest
entry is evicted to make room; the caller is told which message was lost.
There is no persistence and no backpressure signal.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, List, Optional

from .messages import Message

logger = logging.getLogger(__name__)


class OutboundQueue:
    """Insertion-ordered buffer of not-yet-sent messages."""

    def __init__(self, max_size: int = 0):
        if max_size < 0:
            raise ValueError("max_size must be >= 0")
        self.max_size = max_size
        self._items: Deque[Message] = deque()
        self.evicted = 0

    def __len__(self) -> int:
        return len(self._items)

    @property
    def bounded(self) -> bool:
        return self.max_size > 0

    def enqueue(self, message: Message) -> Optional[Message]:
        """Append a message.

        Returns:
            The evicted message when the bound was hit, else None
        """
        evicted = None
        if self.bounded and len(self._items) >= self.max_size:
            evicted = self._items.popleft()
            self.evicted += 1
            logger.warning(
                f"Outbound queue full ({self.max_size}), dropping oldest message "
                f"{evicted.message_id} ({evicted.type.value})"
            )
        self._items.append(message)
        return evicted

    def drain(self) -> List[Message]:
        """Remove and return every queued message in enqueue order."""
        items = list(self._items)
        self._items.clear()
        return items

    def clear(self) -> int:
        """Discard everything. Returns the number of messages discarded."""
        count = len(self._items)
        self._items.clear()
        return count

    def snapshot(self) -> List[Message]:
        """Copy of the current contents, oldest first."""
        return list(self._items)
