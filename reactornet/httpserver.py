"""HTTP server with regex routing and static file serving over ``TcpServer``."""

from __future__ import annotations

import argparse
import logging
import re
from typing import Callable

from .buffer import Buffer
from .connection import Connection
from .httpcontext import ENCODING, HttpContext, RecvStatus, _ERRORS
from .httputil import (
    DEFAULT_MIME,
    is_directory,
    is_regular_file,
    read_file,
    status_message,
    valid_path,
)
from .message import KEEP_ALIVE, HttpRequest, HttpResponse
from .netsocket import DEFAULT_PORT, DEFAULT_SERVER_ADDRESS
from .tcpserver import TcpServer

DEFAULT_TIMEOUT = 10
INDEX_FILE = "index.html"

log = logging.getLogger(__name__)

Handler = Callable[[HttpRequest, HttpResponse], object]
Routes = list[tuple["re.Pattern[str]", Handler]]


class HttpServer:
    """Parses requests from connections and answers them through routes or files."""

    def __init__(
        self,
        port: int = DEFAULT_PORT,
        timeout: int = DEFAULT_TIMEOUT,
        address: str = DEFAULT_SERVER_ADDRESS,
        thread_count: int = 0,
        tick_interval: float = 1.0,
    ) -> None:
        self.tcp = TcpServer(port, address, tick_interval)
        self.tcp.set_thread_count(thread_count)
        self.tcp.enable_inactive_release(timeout)
        self.tcp.on_connected = self.on_connected
        self.tcp.on_message = self.on_message
        self.base_dir = ""
        self.routes: dict[str, Routes] = {
            "GET": [],
            "POST": [],
            "PUT": [],
            "DELETE": [],
        }

    @property
    def port(self) -> int:
        return self.tcp.port

    def error_handle(self, request: HttpRequest, response: HttpResponse) -> None:
        """Fill the response with an error page for its status."""
        body = (
            "<html><head>"
            "<meta http-equiv='Content-Type' content='text/html;charset=utf-8'>"
            "</head>"
            f"<h1>{response.status} {status_message(response.status)}</h1>"
            "</body></html>"
        )
        response.set_content(body, "text/html")

    def build_response(self, response: HttpResponse, request: HttpRequest) -> bytes:
        """Complete the headers and serialise the response."""
        response.insert_header(
            "Connection", KEEP_ALIVE if request.is_keep_alive() else "close"
        )
        body = response.body
        if isinstance(body, str):
            body = body.encode(ENCODING, _ERRORS)
        if body and not response.has_header("Content-Length"):
            response.insert_header("Content-Length", str(len(body)))
        if body and not (
            response.has_header("Content-Type") or response.has_header("Content-type")
        ):
            response.insert_header("Content-type", DEFAULT_MIME)
        if response.is_redirect:
            response.set_redirect(response.redirect_url)
        if response.redirect_url:
            response.insert_header("Location", response.redirect_url)
        lines = [
            f"{request.version} {response.status} {status_message(response.status)}"
        ]
        lines.extend(f"{key}:{value}" for key, value in response.headers.items())
        head = "\r\n".join(lines) + "\r\n\r\n"
        return head.encode(ENCODING, _ERRORS) + body

    def write_response(
        self, conn: Connection, response: HttpResponse, request: HttpRequest
    ) -> None:
        conn.send(self.build_response(response, request))

    def _file_path(self, request: HttpRequest) -> str:
        path = request.path
        if path.endswith("/"):
            path += INDEX_FILE
        return self.base_dir + path

    def is_file_request(self, request: HttpRequest) -> bool:
        """True for GET/HEAD of an existing file inside the base directory."""
        if not self.base_dir:
            return False
        if request.method not in ("GET", "HEAD"):
            return False
        if not valid_path(request.path):
            return False
        return is_regular_file(self._file_path(request))

    def file_handler(self, request: HttpRequest, response: HttpResponse) -> None:
        """Load the requested file into the response body."""
        try:
            response.body = read_file(self._file_path(request))
        except OSError:
            return
        response.insert_header("Content-type", "text/html")

    def dispatch(
        self, request: HttpRequest, response: HttpResponse, handlers: Routes
    ) -> None:
        """Run the first handler whose pattern matches the whole path, else 404."""
        for pattern, handler in handlers:
            match = pattern.fullmatch(request.path)
            if match is None:
                continue
            request.matches = match.groups()
            handler(request, response)
            return
        response.status = 404

    def route(self, request: HttpRequest, response: HttpResponse) -> None:
        if self.is_file_request(request):
            self.file_handler(request, response)
            return
        method = request.method
        if method in ("GET", "HEAD"):
            handlers = self.routes["GET"]
        elif method in ("PUT", "POST", "DELETE"):
            handlers = self.routes[method]
        else:
            log.error("Method not allowed: %s", method)
            response.status = 405
            return
        self.dispatch(request, response, handlers)

    def on_connected(self, conn: Connection) -> None:
        conn.context = HttpContext()
        log.debug("New connection %r", conn)

    def on_message(self, conn: Connection, buffer: Buffer) -> None:
        """Parse buffered requests and answer each complete one."""
        while len(buffer):
            context: HttpContext = conn.context
            context.recv(buffer)
            request = context.request
            response = HttpResponse()
            if context.recv_status is RecvStatus.ERROR:
                response.status = context.status_code
                self.error_handle(request, response)
                self.write_response(conn, response, request)
                context.reset()
                buffer.consume(len(buffer))
                conn.shutdown()
                return
            if context.recv_status is not RecvStatus.OVER:
                return
            self.route(request, response)
            self.write_response(conn, response, request)
            context.reset()
            if not response.is_keep_alive():
                conn.shutdown()
                return

    def set_base_dir(self, path: str) -> None:
        """Serve static files from ``path``."""
        if not is_directory(path):
            raise NotADirectoryError(path)
        self.base_dir = str(path)

    def _add_route(self, method: str, pattern: str, handler: Handler) -> None:
        self.routes[method].append((re.compile(pattern), handler))

    def get(self, pattern: str, handler: Handler) -> None:
        self._add_route("GET", pattern, handler)

    def post(self, pattern: str, handler: Handler) -> None:
        self._add_route("POST", pattern, handler)

    def put(self, pattern: str, handler: Handler) -> None:
        self._add_route("PUT", pattern, handler)

    def delete(self, pattern: str, handler: Handler) -> None:
        self._add_route("DELETE", pattern, handler)

    def start(self) -> None:
        """Serve in the calling thread until ``stop`` is called."""
        self.tcp.start()

    def stop(self) -> None:
        self.tcp.stop()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run an HTTP server.")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--address", default=DEFAULT_SERVER_ADDRESS)
    parser.add_argument("--timeout", type=int, default=DEFAULT_TIMEOUT)
    parser.add_argument("--threads", type=int, default=0)
    parser.add_argument("--base-dir", default="")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    server = HttpServer(args.port, args.timeout, args.address, args.threads)
    if args.base_dir:
        server.set_base_dir(args.base_dir)
    try:
        server.start()
    except KeyboardInterrupt:
        server.stop()
    return 0