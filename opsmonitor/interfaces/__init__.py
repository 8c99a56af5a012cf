"""
Abstract interfaces for the ops monitor.

Components:
    ops_gateway: OpsGateway capability interface over the automation tool
"""

from opsmonitor.interfaces.ops_gateway import CronAction, OpsGateway

__all__ = ["CronAction", "OpsGateway"]
