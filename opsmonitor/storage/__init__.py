"""
Durable stores.

Exports:
    TimeSeriesStore: SQLite trend samples and alert event log
    CooldownStore: JSON cooldown and idle-timer document
    CooldownState: Typed cooldown document
"""

from opsmonitor.storage.cooldown import CooldownState, CooldownStore
from opsmonitor.storage.timeseries import TimeSeriesStore

__all__ = [
    "CooldownState",
    "CooldownStore",
    "TimeSeriesStore",
]
