"""
Best-effort parser for agent routing binding descriptors.

Bindings arrive either as objects or as free-form strings such as
``telegram accountId=coding peer=group:-1001234``. This parser extracts the
channel, account and peer where it can recognize them. Anything it cannot
recognize falls back to "-" for channel/account/peer label while the raw
descriptor is always preserved in ``raw``, so no binding is ever dropped.
"""

import json
import re
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel

from opsmonitor.models.agents import AgentRecord

_PEER_RE = re.compile(r"^([^:/\s]+)[/:](.+)$")
_KV_RE = re.compile(r"^([a-zA-Z0-9_.-]+)=(.+)$")

UNKNOWN = "-"


class RoutingRow(BaseModel):
    """One normalized binding of an agent."""

    model_config = {"frozen": True, "populate_by_name": True}

    channel: str
    account_id: str
    peer_kind: Optional[str] = None
    peer_id: Optional[str] = None
    peer_label: str
    agent_id: str
    label: str
    raw: str

    def to_response(self) -> Dict[str, Any]:
        return {
            "channel": self.channel,
            "accountId": self.account_id,
            "peerKind": self.peer_kind,
            "peerId": self.peer_id,
            "peerLabel": self.peer_label,
            "agentId": self.agent_id,
            "label": self.label,
            "raw": self.raw,
        }


def parse_peer(value: Any) -> Tuple[Optional[str], Optional[str], str]:
    """
    Parse a peer reference into (kind, id, label).

    Example:
        >>> parse_peer("group:-100123")
        ('group', '-100123', 'group/-100123')
        >>> parse_peer("538226139")
        (None, '538226139', '538226139')
    """
    if not value:
        return None, None, ""

    if isinstance(value, dict):
        kind = value.get("kind") or value.get("type") or value.get("peerKind")
        peer_id = value.get("id") or value.get("peerId") or value.get("target") or value.get("value")
        kind = str(kind) if kind else None
        peer_id = str(peer_id) if peer_id else None
        return kind, peer_id, "/".join(p for p in (kind, peer_id) if p)

    text = str(value).strip()
    if not text:
        return None, None, ""
    m = _PEER_RE.match(text)
    if m:
        return m.group(1), m.group(2), f"{m.group(1)}/{m.group(2)}"
    return None, text, text


def _first(mapping: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if mapping.get(key):
            return mapping[key]
    return None


def normalize_binding(detail: Any, agent: AgentRecord) -> RoutingRow:
    """Normalize one binding descriptor of ``agent``."""
    channel = ""
    account = ""
    peer: Tuple[Optional[str], Optional[str], str] = (None, None, "")
    raw = ""

    if isinstance(detail, str):
        raw = detail
        tokens = detail.split()
        if tokens and "=" not in tokens[0]:
            channel = tokens[0]
        kv: Dict[str, str] = {}
        for token in tokens[1:]:
            m = _KV_RE.match(token)
            if m:
                kv[m.group(1)] = m.group(2)
        channel = channel or _first(kv, "channel", "provider") or ""
        account = _first(kv, "accountId", "account", "profile") or ""
        target = _first(kv, "peer", "target", "to", "chat")
        if target:
            peer = parse_peer(target)
        elif kv.get("peerKind") or kv.get("peerId"):
            peer = parse_peer({"kind": kv.get("peerKind"), "id": kv.get("peerId")})
    elif isinstance(detail, dict):
        raw = json.dumps(detail, ensure_ascii=False)
        channel = str(_first(detail, "channel", "provider", "kind") or "")
        account = str(_first(detail, "accountId", "account", "profile") or "")
        target = _first(detail, "peer", "target")
        if target:
            peer = parse_peer(target)
        elif detail.get("peerKind") or detail.get("peerId"):
            peer = parse_peer({"kind": detail.get("peerKind"), "id": detail.get("peerId")})

    peer_kind, peer_id, peer_label = peer
    human = " ".join(
        part
        for part in (
            channel or UNKNOWN,
            f"@{account}" if account else None,
            f"({peer_label})" if peer_label else None,
        )
        if part
    )

    return RoutingRow(
        channel=channel or UNKNOWN,
        account_id=account or UNKNOWN,
        peer_kind=peer_kind,
        peer_id=peer_id,
        peer_label=peer_label or UNKNOWN,
        agent_id=agent.id,
        label=f"{human} -> {agent.display_name}",
        raw=raw,
    )


def routing_rows(agents: List[AgentRecord]) -> List[RoutingRow]:
    """Flatten every agent's bindings into routing rows."""
    rows: List[RoutingRow] = []
    for agent in agents:
        for detail in agent.routing_entries:
            rows.append(normalize_binding(detail, agent))
    return rows
