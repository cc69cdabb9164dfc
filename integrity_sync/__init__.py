"""Bidirectional GitHub Issues <-> Microsoft To Do synchronization engine."""

from .constants import VERSION

__version__ = VERSION
