"""Workflow nodes for the consolidation state machine."""

from wipsquash.workflow.nodes.commit import Commit
from wipsquash.workflow.nodes.reset import Reset
from wipsquash.workflow.nodes.restore import Restore
from wipsquash.workflow.nodes.snapshot import Snapshot

__all__ = [
    "Snapshot",
    "Reset",
    "Commit",
    "Restore",
]
