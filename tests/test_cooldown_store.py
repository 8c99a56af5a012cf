from __future__ import annotations

import json

import pytest

from opsmonitor.errors import PersistenceError
from opsmonitor.storage.cooldown import CooldownState, CooldownStore

NOW = 1_700_000_000_000
COOLDOWN = 30 * 60 * 1000


def test_acquire_then_suppress_within_window(cooldown) -> None:
    assert cooldown.try_acquire("p0:cron:a:0:error", NOW) is True
    assert cooldown.try_acquire("p0:cron:a:0:error", NOW + COOLDOWN - 1) is False
    assert cooldown.try_acquire("p0:cron:a:0:error", NOW + COOLDOWN) is True


def test_acquire_is_persisted_across_instances(tmp_path) -> None:
    path = tmp_path / "notify-state.json"
    CooldownStore(path, COOLDOWN).try_acquire("k", NOW)

    restarted = CooldownStore(path, COOLDOWN)
    assert restarted.try_acquire("k", NOW + 1000) is False
    assert json.loads(path.read_text())["lastSentAtByKey"] == {"k": NOW}


def test_missing_or_corrupt_document_is_empty(tmp_path) -> None:
    path = tmp_path / "notify-state.json"
    store = CooldownStore(path, COOLDOWN)
    assert store.load() == CooldownState()

    path.write_text("{not json")
    assert store.load() == CooldownState()
    assert store.try_acquire("k", NOW) is True


def test_reads_legacy_idle_key(tmp_path) -> None:
    path = tmp_path / "notify-state.json"
    path.write_text(json.dumps({"lastSentAtByKey": {}, "idleFirstSeenAtBySession": {"cc-1": NOW}}))
    state = CooldownStore(path, COOLDOWN).load()
    assert state.idle_first_seen_by_session == {"cc-1": NOW}


def test_update_preserves_other_map(cooldown) -> None:
    cooldown.try_acquire("k", NOW)
    cooldown.update(lambda st: st.idle_first_seen_by_session.update({"cc-1": NOW}))
    state = cooldown.load()
    assert state.last_sent_at_by_key == {"k": NOW}
    assert state.idle_first_seen_by_session == {"cc-1": NOW}


def test_unwritable_location_raises(tmp_path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x")
    store = CooldownStore(blocker / "state.json", COOLDOWN)
    with pytest.raises(PersistenceError):
        store.try_acquire("k", NOW)
