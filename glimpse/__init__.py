"""Glimpse: the like, match and discovery core of a group-scoped dating service."""

__version__ = "1.0.0"
