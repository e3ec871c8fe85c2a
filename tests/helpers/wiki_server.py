"""Local MediaWiki API stand-in for integration tests."""

import threading
import time
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qsl, urlsplit

from tests.helpers.mobileview import api_error_payload


@dataclass
class WikiState:
    """Pages served by the stand-in and the requests it saw.

    Attributes:
        pages: Response body per ``page`` query parameter.
        etag: ETag sent with every 200; matching If-None-Match gets a 304.
        failures: Number of leading requests answered with a 503 error page.
        chunk_delay: Seconds to sleep between 8 KiB body chunks.
        requests: ``page`` and ``If-None-Match`` of each request.
    """

    pages: dict[str, bytes]
    etag: str | None = None
    failures: int = 0
    chunk_delay: float = 0.0
    requests: list[dict[str, str]] = field(default_factory=list)


def _handler_for(state: WikiState) -> type[BaseHTTPRequestHandler]:
    class WikiApiHandler(BaseHTTPRequestHandler):
        def log_message(self, format: str, *args: object) -> None:  # noqa: A002
            """Suppress log messages during tests."""

        def do_GET(self) -> None:  # noqa: N802
            query = dict(parse_qsl(urlsplit(self.path).query))
            page = query.get("page", "")
            if_none_match = self.headers.get("If-None-Match", "")
            state.requests.append({"page": page, "if_none_match": if_none_match})

            if state.failures > 0:
                state.failures -= 1
                error_page = b"<html><body>Service Unavailable</body></html>" * 20
                self.send_response(503)
                self.send_header("Content-Type", "text/html")
                self.send_header("Content-Length", str(len(error_page)))
                self.end_headers()
                self.wfile.write(error_page)
                return

            if state.etag and if_none_match == state.etag:
                self.send_response(304)
                self.send_header("ETag", state.etag)
                self.end_headers()
                return

            body = state.pages.get(page)
            if body is None:
                body = api_error_payload(
                    "missingtitle", "The page you specified doesn't exist"
                )

            self.send_response(200)
            self.send_header("Content-Type", "application/json; charset=utf-8")
            self.send_header("Content-Length", str(len(body)))
            if state.etag:
                self.send_header("ETag", state.etag)
            self.end_headers()
            try:
                for start in range(0, len(body), 8192):
                    self.wfile.write(body[start : start + 8192])
                    self.wfile.flush()
                    if state.chunk_delay:
                        time.sleep(state.chunk_delay)
            except (BrokenPipeError, ConnectionResetError):
                # Client went away, e.g. after cancelling
                return

    return WikiApiHandler


@contextmanager
def running_wiki(state: WikiState) -> Generator[str]:
    """Serve ``state`` on an ephemeral port.

    Yields:
        The ``host:port`` site name to fetch from.
    """
    server = ThreadingHTTPServer(("127.0.0.1", 0), _handler_for(state))
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        host, port = server.server_address[0], server.server_address[1]
        if isinstance(host, bytes):
            host = host.decode("utf-8")
        yield f"{host}:{port}"
    finally:
        server.shutdown()
        server.server_close()
