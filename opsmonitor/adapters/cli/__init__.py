"""
Automation tool CLI adapter.

Components:
    adapter: CliOpsGateway implementing OpsGateway over the CLI
    normalizer: CliNormalizer converting tool JSON to models
    bindings: Best-effort routing binding parser
"""

from opsmonitor.adapters.cli.adapter import CliOpsGateway
from opsmonitor.adapters.cli.bindings import RoutingRow, normalize_binding, routing_rows
from opsmonitor.adapters.cli.normalizer import CliNormalizer

__all__ = [
    "CliNormalizer",
    "CliOpsGateway",
    "RoutingRow",
    "normalize_binding",
    "routing_rows",
]
