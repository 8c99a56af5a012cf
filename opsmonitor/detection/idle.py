"""
Idle-input tracker.

Tracks how long each interactive session has been sitting at an empty
prompt. When a session is first seen idle the tracker records the time; when
it is no longer idle (or no longer listed at all) the record is cleared. The
records live in the cooldown document so they survive restarts.

Note:
    Records are cleared for every session missing from the current listing,
    including when the task lister fails and returns nothing. A flaky lister
    therefore restarts every idle timer.

Example:
    >>> tracker = IdleTracker(cooldown_store, glyph="❯")
    >>> for task, first_seen_ms in tracker.observe(tasks, now_ms):
    ...     print(task.session, now_ms - first_seen_ms)
"""

from typing import List, Tuple

import structlog

from opsmonitor.detection.rules import is_idle_prompt
from opsmonitor.errors import PersistenceError
from opsmonitor.models.sessions import TaskDescriptor
from opsmonitor.storage.cooldown import CooldownState, CooldownStore

logger = structlog.get_logger(__name__)


class IdleTracker:
    """
    Maintains first-observed-idle timestamps per session.

    Attributes:
        store: Cooldown document holding the timestamps.
        glyph: Prompt marker that identifies an idle session.
    """

    def __init__(self, store: CooldownStore, glyph: str = "❯") -> None:
        self.store = store
        self.glyph = glyph

    def observe(
        self,
        tasks: List[TaskDescriptor],
        now_ms: int,
    ) -> List[Tuple[TaskDescriptor, int]]:
        """
        Update idle timers from one task listing.

        Args:
            tasks: Current interactive tasks.
            now_ms: Observation time.

        Returns:
            List of (task, first_seen_ms) for every task currently idle.
        """
        idle: List[Tuple[TaskDescriptor, int]] = []

        def record(state: CooldownState) -> None:
            timers = state.idle_first_seen_by_session
            idle_sessions = set()

            for task in tasks:
                if task.session in idle_sessions or not is_idle_prompt(task.last_lines, self.glyph):
                    continue
                idle_sessions.add(task.session)
                first_seen = timers.get(task.session)
                if first_seen is None:
                    first_seen = now_ms
                    timers[task.session] = now_ms
                    logger.debug("idle_tracking_started", session=task.session)
                idle.append((task, first_seen))

            for session in list(timers):
                if session not in idle_sessions:
                    del timers[session]
                    logger.debug("idle_tracking_cleared", session=session)

        try:
            self.store.update(record)
        except PersistenceError as e:
            logger.warning("idle_state_persist_failed", error=str(e))

        return idle
