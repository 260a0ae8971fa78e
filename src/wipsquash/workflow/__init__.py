"""Consolidation workflow."""

from wipsquash.workflow.graph import consolidate, create_workflow

__all__ = ["consolidate", "create_workflow"]
