"""
Anomaly rules.

Each rule turns one slice of live state into AlertCandidates carrying a
deterministic dedup key. The key identifies the logical occurrence, so a
condition that persists across ticks keeps producing the same key and the
cooldown store suppresses the repeats.

Dedup keys:
    p0:cron:{jobId}:{lastRunAtMs or 0}:{lastStatus or lastRunStatus or "error"}
    p0:tokens:{agentId}:{bucket}
    p0:idle:{session}:{firstSeenMs // 1000}

Example:
    >>> rules = AnomalyRules(config.alerts, public_base_url=None)
    >>> candidates = rules.cron_failures(cron_jobs)
"""

from typing import List, Optional
from urllib.parse import quote

from opsmonitor.config.models import AlertsConfig
from opsmonitor.models.alerts import AlertButton, AlertCandidate, AlertKind, Destination
from opsmonitor.models.cron import CronJobList, CronJobRecord
from opsmonitor.models.sessions import SessionWindow, TaskDescriptor

TOKEN_KEY_UNIT = 10_000


def cron_failure_key(job: CronJobRecord) -> str:
    state = job.state
    return f"p0:cron:{job.id}:{state.last_run_at_ms or 0}:{state.status_label}"


def token_bucket(total: int, bucket_tokens: int) -> int:
    """
    Dedup bucket of a token total, in units of 10,000 tokens.

    The total is rounded down to a multiple of ``bucket_tokens`` first, so
    growth inside one bucket keeps the same key.

    Example:
        >>> token_bucket(3_041_000, 50_000)
        300
        >>> token_bucket(3_051_000, 50_000)
        305
    """
    return (total // bucket_tokens) * bucket_tokens // TOKEN_KEY_UNIT


def token_spike_key(agent_id: str, total: int, bucket_tokens: int) -> str:
    return f"p0:tokens:{agent_id}:{token_bucket(total, bucket_tokens)}"


def idle_key(session: str, first_seen_ms: int) -> str:
    return f"p0:idle:{session}:{first_seen_ms // 1000}"


def is_idle_prompt(text: Optional[str], glyph: str = "❯") -> bool:
    """
    Whether a log tail ends at an empty input prompt.

    The last non-blank line, whitespace-trimmed, must be the glyph alone or
    the glyph followed by a space.

    Example:
        >>> is_idle_prompt("done\\n❯ \\n\\n")
        True
        >>> is_idle_prompt("❯ foo\\nworking...")
        False
    """
    if not text:
        return False
    lines = [line.strip() for line in text.splitlines()]
    lines = [line for line in lines if line]
    if not lines:
        return False
    last = lines[-1]
    return last == glyph or last.startswith(glyph + " ")


def tail_lines(text: Optional[str], n: int) -> str:
    """Last ``n`` lines of ``text`` with trailing whitespace removed."""
    lines = (text or "").splitlines()
    return "\n".join(lines[-n:]).rstrip()


class AnomalyRules:
    """
    Builds alert candidates from live state.

    Attributes:
        config: Thresholds, destinations and idle settings.
        public_base_url: Dashboard URL for links, or None to omit links.
    """

    def __init__(self, config: AlertsConfig, public_base_url: Optional[str] = None) -> None:
        self.config = config
        self.public_base_url = public_base_url

    def _tag(self, destination: Destination) -> str:
        dest = self.config.general if destination == Destination.GENERAL else self.config.secondary
        return f"[P0][{dest.label}]" if dest.label else "[P0]"

    def _dashboard_line(self, tab: str) -> str:
        if not self.public_base_url:
            return ""
        return f"\n- Dashboard: {self.public_base_url}/ ({tab} tab)"

    def detail_url(self, session: str) -> Optional[str]:
        if not self.public_base_url:
            return None
        return f"{self.public_base_url}/detail/{quote(session, safe='')}"

    def cron_failures(self, cron: CronJobList) -> List[AlertCandidate]:
        """One candidate per failing job."""
        candidates = []
        for job in cron.jobs:
            if not job.is_failing:
                continue
            state = job.state
            reason = state.last_error or "(unknown)"
            message = (
                f"{self._tag(Destination.GENERAL)} Cron job failing: {job.title}\n"
                f"- Job: {job.id}\n"
                f"- Agent: {job.agent_id or '-'}\n"
                f"- Status: {state.status_label} ({state.consecutive_errors} consecutive)\n"
                f"- Cause: {reason}"
                f"{self._dashboard_line('cron')}"
            )
            candidates.append(
                AlertCandidate(
                    dedup_key=cron_failure_key(job),
                    kind=AlertKind.CRON_ERROR,
                    agent_id=job.agent_id,
                    title=job.title,
                    message=message,
                    destination=Destination.GENERAL,
                )
            )
        return candidates

    def token_spikes(self, sessions: SessionWindow) -> List[AlertCandidate]:
        """One candidate per agent whose window token sum reaches the threshold."""
        threshold = self.config.token_spike_threshold
        candidates = []
        for agent_id, total in sorted(sessions.tokens_by_agent().items()):
            if total < threshold:
                continue
            message = (
                f"{self._tag(Destination.GENERAL)} Token usage spike: {agent_id}\n"
                f"- Tokens ({sessions.window}): {total:,}\n"
                f"- Threshold: {threshold:,}"
                f"{self._dashboard_line('usage')}"
            )
            bucket_tokens = self.config.token_spike_bucket_tokens
            candidates.append(
                AlertCandidate(
                    dedup_key=token_spike_key(agent_id, total, bucket_tokens),
                    kind=AlertKind.TOKEN_SPIKE,
                    agent_id=agent_id,
                    title=f"Token spike: {agent_id}",
                    message=message,
                    destination=Destination.GENERAL,
                )
            )
        return candidates

    def idle_input(
        self,
        task: TaskDescriptor,
        first_seen_ms: int,
        now_ms: int,
    ) -> Optional[AlertCandidate]:
        """Candidate for a session idle at its prompt for at least the threshold."""
        idle_ms = now_ms - first_seen_ms
        if idle_ms < self.config.idle_threshold_ms:
            return None

        label = task.label or task.session
        snippet = tail_lines(task.last_lines, self.config.idle_snippet_lines)
        body = f"```\n{snippet}\n```" if snippet else "(empty)"
        message = (
            f"{self._tag(Destination.SECONDARY)} Waiting for input "
            f"{idle_ms // 60_000}m+ (interactive session)\n"
            f"- Session: {task.session}\n"
            f"- Label: {label}\n"
            f"- Last {self.config.idle_snippet_lines} lines:\n\n{body}"
        )

        buttons = None
        detail = self.detail_url(task.session)
        if detail:
            message += f"\n\nOpen the detail view for the last {self.config.detail_lines} lines."
            buttons = [
                [
                    AlertButton(text=f"Details ({self.config.detail_lines} lines)", url=detail),
                    AlertButton(text="Open dashboard", url=f"{self.public_base_url}/"),
                ]
            ]

        return AlertCandidate(
            dedup_key=idle_key(task.session, first_seen_ms),
            kind=AlertKind.IDLE_INPUT,
            agent_id=self.config.idle_agent_id,
            title=label,
            message=message,
            destination=Destination.SECONDARY,
            buttons=buttons,
        )
