"""
Adapters to the external automation tool.

Components:
    command: CommandRunner for bounded subprocess invocation
    cli/: CliOpsGateway and output normalization
"""

from opsmonitor.adapters.cli import CliNormalizer, CliOpsGateway
from opsmonitor.adapters.command import CommandResult, CommandRunner

__all__ = [
    "CliNormalizer",
    "CliOpsGateway",
    "CommandResult",
    "CommandRunner",
]
