"""Commit message generation."""
