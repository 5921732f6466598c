"""
HTTP server for the ACL Snapshot upload UI.

Serves a page listing every kind with its collection instructions and an
upload form. Submitting an export runs the matching ingester and returns
the rendered YAML snapshot.
"""

from __future__ import annotations

import html
import io
import logging
import threading
from email.parser import BytesParser
from email.policy import default as default_policy
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import urlparse

from aclsnap.config import DEFAULT_PORT
from aclsnap.errors import AclSnapError, ParseError
from aclsnap.export import render_artifact
from aclsnap.gcloud import GCPMemberCache
from aclsnap.ingesters import (
    IngesterConfig,
    available,
    ingest,
    render_steps,
    suggest_kind,
)

logger = logging.getLogger(__name__)

# Failures caused by the submitted data rather than the server
CLIENT_ERROR_KINDS = ("parse-error", "schema-error", "unknown-kind", "no-input")

MAX_UPLOAD_BYTES = 32 * 1024 * 1024


def parse_multipart(content_type: str, body: bytes) -> dict[str, tuple[str, bytes]]:
    """
    Parse a multipart/form-data body.

    Args:
        content_type: Value of the Content-Type header, including boundary
        body: Raw request body

    Returns:
        Mapping of field name to (filename, content)

    Raises:
        ParseError: If the body is not multipart form data
    """
    if not content_type.startswith("multipart/form-data"):
        raise ParseError(f"expected multipart/form-data, got {content_type or 'nothing'}")

    header = f"Content-Type: {content_type}\r\nMIME-Version: 1.0\r\n\r\n".encode("latin-1")
    message = BytesParser(policy=default_policy).parsebytes(header + body)
    if not message.is_multipart():
        raise ParseError("malformed multipart body")

    fields: dict[str, tuple[str, bytes]] = {}
    for part in message.iter_parts():
        name = part.get_param("name", header="content-disposition")
        if not name:
            continue
        content = part.get_payload(decode=True) or b""
        fields[name] = (part.get_filename() or "", content)
    return fields


def render_home() -> str:
    """Render the landing page with every kind and the upload form."""
    options = []
    sections = []
    for ingester in available():
        desc = ingester.description()
        kind = html.escape(desc.kind)
        options.append(f'<option value="{kind}">{html.escape(desc.name)}</option>')
        steps = "".join(
            f"<li>{html.escape(s)}</li>"
            for s in render_steps(desc.steps, IngesterConfig(), desc.kind)
        )
        sections.append(f"<h3>{html.escape(desc.name)} ({kind})</h3><ol>{steps}</ol>")

    return (
        "<!DOCTYPE html><html><head><title>ACL Snapshot</title></head><body>"
        "<h1>ACL Snapshot</h1>"
        '<form action="/submit" method="post" enctype="multipart/form-data">'
        '<select name="kind"><option value="">(guess from file name)</option>'
        + "".join(options)
        + '</select> <input type="file" name="file"> '
        '<input type="submit" value="Generate"></form>'
        "<h2>Collecting exports</h2>"
        + "".join(sections)
        + "</body></html>"
    )


class AclSnapRequestHandler(BaseHTTPRequestHandler):
    """
    HTTP request handler for the upload UI.

    Routes:
        GET /: Landing page
        GET /healthz: Liveness check
        POST /submit: Convert an uploaded export into a YAML snapshot
    """

    # Shared by every request of one server (set by AclSnapServer)
    member_cache: GCPMemberCache | None = None

    def do_GET(self):
        """Handle GET requests."""
        path = urlparse(self.path).path

        if path == "/healthz":
            self._send_text(200, "ok\n")
        elif path in ("/", ""):
            self._send_text(200, render_home(), content_type="text/html; charset=utf-8")
        else:
            self._send_text(404, "not found\n")

    def do_POST(self):
        """Handle POST requests."""
        path = urlparse(self.path).path
        if path != "/submit":
            self._send_text(404, "not found\n")
            return

        try:
            content_length = int(self.headers.get("Content-Length", 0))
        except ValueError:
            self._send_text(400, "invalid Content-Length\n")
            return
        if content_length > MAX_UPLOAD_BYTES:
            self._send_text(413, "upload too large\n")
            return
        body = self.rfile.read(content_length) if content_length > 0 else b""

        try:
            self._send_text(200, self._submit(body))
        except AclSnapError as e:
            logger.error(f"Submission failed: {e}")
            code = 400 if e.kind in CLIENT_ERROR_KINDS else 500
            self._send_text(code, f"{e.kind}: {e}\n")

    def _submit(self, body: bytes) -> str:
        """Run the ingester on an uploaded export and render the result."""
        fields = parse_multipart(self.headers.get("Content-Type", ""), body)

        kind = fields.get("kind", ("", b""))[1].decode("utf-8", "replace").strip()
        if "file" not in fields:
            raise ParseError("missing file field")
        filename, content = fields["file"]
        logger.info(f"Received {filename or '<unnamed>'} ({len(content)} bytes)")

        config = IngesterConfig(
            reader=io.BytesIO(content),
            kind=kind,
            gcp_member_cache=(
                self.member_cache if self.member_cache is not None else GCPMemberCache()
            ),
        )
        if not kind:
            config.kind = suggest_kind(filename)

        return render_artifact(ingest(config))

    def _send_text(self, code: int, text: str, content_type: str = "text/plain; charset=utf-8"):
        """Send a text response."""
        data = text.encode("utf-8")
        self.send_response(code)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def log_message(self, format: str, *args):
        """Route access logs through logging."""
        logger.debug(f"{self.address_string()} - {format % args}")


class AclSnapServer:
    """
    Simple HTTP server for the upload UI.
    """

    def __init__(self, host: str = "", port: int = DEFAULT_PORT):
        """
        Initialize the server.

        Args:
            host: Host to bind to (default: all interfaces)
            port: Port to listen on (default: 8080)
        """
        self.host = host
        self.port = port
        self._server: HTTPServer | None = None
        self._thread: threading.Thread | None = None

    def _bind(self) -> HTTPServer:
        """Create the listening socket; port 0 picks a free port."""
        AclSnapRequestHandler.member_cache = GCPMemberCache()
        server = HTTPServer((self.host, self.port), AclSnapRequestHandler)
        self.port = server.server_address[1]
        self._server = server
        logger.info(f"Listening on {self.url}")
        return server

    def _serve(self, server: HTTPServer):
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            pass
        finally:
            server.server_close()

    def start(self):
        """
        Start the HTTP server (blocking).

        This method blocks until the server is stopped.
        """
        self._serve(self._bind())

    def start_background(self) -> threading.Thread:
        """
        Start server in background thread.

        The socket is bound before returning, so the server accepts
        connections as soon as this call completes.

        Returns:
            Thread running the server
        """
        server = self._bind()
        self._thread = threading.Thread(target=self._serve, args=(server,), daemon=True)
        self._thread.start()
        return self._thread

    def stop(self):
        """Stop the server."""
        server = self._server
        if server:
            self._server = None
            server.shutdown()
            if self._thread is not None:
                self._thread.join()
                self._thread = None

    @property
    def url(self) -> str:
        """Get the server URL."""
        return f"http://{self.host or 'localhost'}:{self.port}"


def serve(port: int = DEFAULT_PORT, host: str = "") -> None:
    """Run the upload UI until interrupted."""
    AclSnapServer(host=host, port=port).start()
