"""API routes package."""

from . import health, interview, script, snapshot

__all__ = ["health", "interview", "script", "snapshot"]
