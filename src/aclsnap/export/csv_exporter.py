"""
CSV rendering of change lists.
"""

from __future__ import annotations

import csv
import io

from aclsnap.compare import Change

CHANGE_HEADERS = ["Kind", "ID", "Entity", "Mod", "FromDate", "ToDate"]


def render_changes(changes: list[Change], include_header: bool = True) -> str:
    """
    Render changes as CSV.

    Args:
        changes: Changes in emission order
        include_header: Whether to start with the header row

    Returns:
        CSV text
    """
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")

    if include_header:
        writer.writerow(CHANGE_HEADERS)
    for c in changes:
        writer.writerow([c.kind, c.id, c.entity, c.mod, c.from_date, c.to_date])

    return output.getvalue()
