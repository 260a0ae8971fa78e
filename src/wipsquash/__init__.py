"""Auto-commit work-in-progress snapshots and squash them into one commit."""

__version__ = "0.1.0"
