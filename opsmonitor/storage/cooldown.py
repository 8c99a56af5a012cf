"""
Durable cooldown and idle-timer state.

The whole state is one small JSON document, read and rewritten on every
mutation. All operations are synchronous: a caller on the event loop that
loads, mutates and saves without awaiting in between cannot interleave with
another coroutine doing the same.

Document shape:
    {
        "lastSentAtByKey": {"p0:cron:job-1:0:error": 1700000000000},
        "idleFirstSeenBySession": {"cc-42": 1700000000000}
    }
"""

import json
import os
from pathlib import Path
from typing import Callable, Dict, Union

import structlog
from pydantic import AliasChoices, BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from opsmonitor.errors import PersistenceError

logger = structlog.get_logger(__name__)


class CooldownState(BaseModel):
    """
    Typed cooldown document.

    Attributes:
        last_sent_at_by_key: Dedup key to the epoch ms it was last sent.
        idle_first_seen_by_session: Session id to the epoch ms it was first
            observed idle.
    """

    model_config = {"populate_by_name": True}

    last_sent_at_by_key: Dict[str, int] = Field(
        default_factory=dict,
        alias="lastSentAtByKey",
    )
    idle_first_seen_by_session: Dict[str, int] = Field(
        default_factory=dict,
        alias="idleFirstSeenBySession",
        validation_alias=AliasChoices("idleFirstSeenBySession", "idleFirstSeenAtBySession"),
    )


class CooldownStore:
    """
    File-backed cooldown store.

    Attributes:
        path: Location of the JSON document.
        cooldown_ms: Minimum time between sends sharing a dedup key.

    Example:
        >>> store = CooldownStore("state/notify-state.json", cooldown_ms=1_800_000)
        >>> store.try_acquire("p0:tokens:main:300", now_ms=1_700_000_000_000)
        True
        >>> store.try_acquire("p0:tokens:main:300", now_ms=1_700_000_060_000)
        False
    """

    def __init__(self, path: Union[Path, str], cooldown_ms: int) -> None:
        self.path = Path(path)
        self.cooldown_ms = cooldown_ms

    def load(self) -> CooldownState:
        """
        Read the document.

        A missing, unreadable or malformed document yields an empty state.
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return CooldownState()
        except OSError as e:
            logger.warning("cooldown_state_unreadable", path=str(self.path), error=str(e))
            return CooldownState()

        try:
            return CooldownState.model_validate(json.loads(raw))
        except (json.JSONDecodeError, PydanticValidationError) as e:
            logger.warning("cooldown_state_corrupt", path=str(self.path), error=str(e))
            return CooldownState()

    def save(self, state: CooldownState) -> None:
        """
        Write the document atomically (temp file, then rename).

        Raises:
            PersistenceError: If the document cannot be written.
        """
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(
                json.dumps(state.model_dump(by_alias=True), indent=2),
                encoding="utf-8",
            )
            os.replace(tmp, self.path)
        except OSError as e:
            raise PersistenceError(f"Failed to write {self.path}: {e}") from e

    def update(self, mutator: Callable[[CooldownState], None]) -> CooldownState:
        """
        Load, apply ``mutator`` in place, and save.

        Raises:
            PersistenceError: If the document cannot be written.
        """
        state = self.load()
        mutator(state)
        self.save(state)
        return state

    def try_acquire(self, key: str, now_ms: int) -> bool:
        """
        Claim a send slot for ``key``.

        Returns False while the key is cooling down. Otherwise records
        ``now_ms`` as the send time, persists it and returns True.

        Raises:
            PersistenceError: If the send time cannot be persisted.
        """
        state = self.load()
        last = state.last_sent_at_by_key.get(key)
        if last is not None and now_ms - last < self.cooldown_ms:
            return False

        state.last_sent_at_by_key[key] = now_ms
        self.save(state)
        return True
