"""
Snapshot comparison for ACL Snapshot.

Provides the diff engine that turns two snapshots of the same platform
into a flat, ordered list of changes.
"""

from aclsnap.compare.changes import Change, summarize

__all__ = [
    "Change",
    "summarize",
]
