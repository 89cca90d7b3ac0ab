"""Delayed callbacks for the game loop.

The scheduler never sleeps or starts threads: the host loop calls
``run_due(now)`` every frame (the same way ``GameSession.update`` is polled)
and due callbacks run synchronously. Every callback is tagged with the
generation that was current when it was scheduled; ``invalidate()`` starts a
new generation so callbacks left over from an earlier game are dropped when
they come due instead of touching the new one.
"""
import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass(order=True)
class ScheduledCall:
    due: float
    seq: int
    generation: int = field(compare=False)
    name: str = field(compare=False)
    callback: Callable[[], None] = field(compare=False, repr=False)


class Scheduler:
    """Generation-tagged delayed callbacks, advanced by the caller's clock."""

    def __init__(self):
        self._queue: List[ScheduledCall] = []
        self._seq = itertools.count()
        self.generation = 0

    def schedule(self, now: float, delay: float, callback: Callable[[], None],
                 name: str = "callback") -> ScheduledCall:
        call = ScheduledCall(
            due=now + delay,
            seq=next(self._seq),
            generation=self.generation,
            name=name,
            callback=callback,
        )
        heapq.heappush(self._queue, call)
        return call

    def invalidate(self) -> int:
        """Start a new generation; everything scheduled so far becomes stale."""
        self.generation += 1
        return self.generation

    def next_due(self) -> Optional[float]:
        return self._queue[0].due if self._queue else None

    def pending(self) -> int:
        return len(self._queue)

    def run_next(self, now: float) -> bool:
        """Run the earliest callback if it is due. Returns True if one was popped."""
        if not self._queue or self._queue[0].due > now:
            return False
        call = heapq.heappop(self._queue)
        if call.generation != self.generation:
            logger.debug("Dropping stale %s from generation %d (current %d)",
                         call.name, call.generation, self.generation)
            return True
        call.callback()
        return True

    def run_due(self, now: float) -> int:
        """Run every callback due at ``now``, including ones scheduled while running."""
        ran = 0
        while self.run_next(now):
            ran += 1
        return ran
