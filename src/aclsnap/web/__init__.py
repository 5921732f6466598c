"""
Web upload UI for ACL Snapshot.

Provides an HTTP server that converts uploaded exports into YAML
snapshots.
"""

from aclsnap.web.server import (
    AclSnapRequestHandler,
    AclSnapServer,
    parse_multipart,
    render_home,
    serve,
)

__all__ = [
    "AclSnapRequestHandler",
    "AclSnapServer",
    "parse_multipart",
    "render_home",
    "serve",
]
