"""
Persistence for the activity monitor: cursor state, the activity log and
the optional dedup index.
"""

__all__ = ["state", "writer", "dedup"]
