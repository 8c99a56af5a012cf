"""
Automation tool output normalizer.

Converts the JSON printed by the automation tool into the unified Pydantic
models. Anything that is not JSON, or whose top-level shape is wrong, raises
ParseError; individual malformed entries inside an otherwise valid listing
are skipped with a warning so one odd record cannot block every refresh.

Tool output formats:

    agents list --json --bindings:
        [{"id": "main", "identityName": "Jarvis", "identityEmoji": "🤖",
          "workspace": "...", "model": "...", "bindings": [...]}, ...]

    sessions --all-agents --json --active <minutes>:
        {"count": 2, "activeMinutes": 1440,
         "sessions": [{"key": "agent:main:main", "agentId": "main",
                       "updatedAt": 1700000000000, "totalTokens": 1234}, ...]}

    cron list --all --json:
        {"jobs": [{"id": "...", "agentId": "main", "payload": {...},
                   "state": {"lastStatus": "ok", ...}}, ...],
         "total": 1}

    task lister --json:
        [{"session": "cc-42", "label": "refactor", "lastLines": "..."}, ...]

    channels list --json --no-usage:
        {"chat": {"telegram": ["default", "coding"]},
         "channels": [{"channel": "telegram", "accountId": "default"}]}
"""

import json
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from opsmonitor.errors import ParseError
from opsmonitor.models.agents import AgentRecord
from opsmonitor.models.cron import CronJobList, CronJobRecord
from opsmonitor.models.sessions import SessionRecord, SessionWindow, TaskDescriptor

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


def _validate_items(
    items: List[Any],
    model: Type[M],
    source: str,
    accept: Optional[Callable[[Any], bool]] = None,
) -> List[M]:
    """Validate each entry, skipping malformed ones."""
    out: List[M] = []
    for index, item in enumerate(items):
        if accept is not None and not accept(item):
            continue
        try:
            out.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning(
                "tool_entry_skipped",
                source=source,
                index=index,
                error=str(e).splitlines()[0],
            )
    return out


class CliNormalizer:
    """
    Normalizes automation tool output to unified models.

    Example:
        >>> value = CliNormalizer.parse_json(stdout, source="cron")
        >>> jobs = CliNormalizer.normalize_cron_jobs(value)
    """

    @staticmethod
    def parse_json(text: str, source: str, stderr: str = "") -> Any:
        """
        Decode tool stdout as JSON.

        Raises:
            ParseError: If the text is empty or not valid JSON.
        """
        if not text or not text.strip():
            raise ParseError("empty output", source=source, stderr=stderr)
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(str(e), source=source, stderr=stderr) from e

    @staticmethod
    def normalize_agents(value: Any) -> List[AgentRecord]:
        """
        Normalize the agent listing.

        Raises:
            ParseError: If the value is not a list.
        """
        if not isinstance(value, list):
            raise ParseError(f"expected a list, got {type(value).__name__}", source="agents")
        return _validate_items(value, AgentRecord, "agents")

    @staticmethod
    def normalize_sessions(value: Any, window: str, active_minutes: int) -> SessionWindow:
        """
        Normalize a session listing into a SessionWindow.

        A bare list is accepted as the session list itself.

        Raises:
            ParseError: If the value is neither an object nor a list, or its
                ``sessions`` field is not a list.
        """
        if isinstance(value, list):
            raw_sessions: Any = value
            metadata: Dict[str, Any] = {}
        elif isinstance(value, dict):
            raw_sessions = value.get("sessions") or []
            metadata = {k: v for k, v in value.items() if k != "sessions"}
        else:
            raise ParseError(f"expected an object, got {type(value).__name__}", source="sessions")

        if not isinstance(raw_sessions, list):
            raise ParseError("'sessions' is not a list", source="sessions")

        return SessionWindow(
            window=window,
            active_minutes=active_minutes,
            sessions=_validate_items(raw_sessions, SessionRecord, "sessions"),
            metadata=metadata,
        )

    @staticmethod
    def normalize_cron_jobs(value: Any) -> CronJobList:
        """
        Normalize and redact the cron job listing.

        Raises:
            ParseError: If the value is not an object or ``jobs`` is not a list.
        """
        if not isinstance(value, dict):
            raise ParseError(f"expected an object, got {type(value).__name__}", source="cron")
        raw_jobs = value.get("jobs") or []
        if not isinstance(raw_jobs, list):
            raise ParseError("'jobs' is not a list", source="cron")

        jobs = _validate_items(raw_jobs, CronJobRecord, "cron")
        total = value.get("total")
        if not isinstance(total, int) or isinstance(total, bool) or total < 0:
            total = len(jobs)
        return CronJobList(jobs=jobs, total=total)

    @staticmethod
    def normalize_tasks(value: Any) -> List[TaskDescriptor]:
        """
        Normalize the interactive task listing.

        Raises:
            ParseError: If the value is not a list (or an object with ``tasks``).
        """
        if isinstance(value, dict):
            value = value.get("tasks")
        if not isinstance(value, list):
            raise ParseError("expected a task list", source="tasks")
        return _validate_items(
            value,
            TaskDescriptor,
            "tasks",
            accept=lambda item: isinstance(item, dict) and bool(item.get("session")),
        )

    @staticmethod
    def extract_channel_accounts(value: Any, channel: str = "telegram") -> List[str]:
        """
        Collect account ids configured for a channel, sorted and unique.

        Both the ``chat.<channel>`` list form and the ``channels`` entry form
        are understood; anything else contributes nothing.
        """
        accounts = set()
        if not isinstance(value, dict):
            return []

        chat = value.get("chat")
        if isinstance(chat, dict) and isinstance(chat.get(channel), list):
            accounts.update(str(a) for a in chat[channel] if a)

        entries = value.get("channels")
        if isinstance(entries, list):
            for entry in entries:
                if (
                    isinstance(entry, dict)
                    and entry.get("channel") == channel
                    and entry.get("accountId")
                ):
                    accounts.add(str(entry["accountId"]))

        return sorted(accounts)
