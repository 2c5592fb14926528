"""
Orchestrator Package - Monitor Coordination Layer.

============================================================
PACKAGE OVERVIEW
============================================================
Wires configuration, the node catalog, chain adapters, health checks
and alerting into one runtime, and drives it on a fixed cadence.

============================================================
ARCHITECTURE
============================================================

    +-----------------------------------------------------+
    |                     NodeMonitor                     |
    |-----------------------------------------------------|
    |  MonitorSettings | environment driven settings      |
    |  Catalog         | built-in or YAML node list       |
    |  PeriodicJob     | wall-clock aligned loops         |
    |  CLI             | command-line interface           |
    +-----------------------------------------------------+

============================================================
"""

from orchestrator.config import Environment, MonitorSettings
from orchestrator.catalog import (
    PRODUCTION_NODES,
    PUBLIC_NODES,
    MonitoredNode,
    default_metrics,
    default_nodes,
    load_nodes_file,
)
from orchestrator.scheduler import PeriodicJob
from orchestrator.monitor import NodeMonitor, NodeTarget, build_targets, create_monitor


__all__ = [
    "Environment",
    "MonitorSettings",
    "PRODUCTION_NODES",
    "PUBLIC_NODES",
    "MonitoredNode",
    "default_metrics",
    "default_nodes",
    "load_nodes_file",
    "PeriodicJob",
    "NodeMonitor",
    "NodeTarget",
    "build_targets",
    "create_monitor",
]
