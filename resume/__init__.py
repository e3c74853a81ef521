"""Grouped changelogs from Conventional Commits history."""

__version__ = "0.3.0"
