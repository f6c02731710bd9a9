"""HTTP request and response value objects."""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_VERSION = "HTTP/1.1"
DEFAULT_STATUS = 201
DEFAULT_REDIRECT_STATUS = 302
DEFAULT_CONTENT_TYPE = "text/html"
KEEP_ALIVE = "keep-alive"


@dataclass
class HttpRequest:
    """A parsed HTTP request: request line, headers, query parameters and body."""

    method: str = ""
    path: str = ""
    version: str = DEFAULT_VERSION
    body: str = ""
    matches: tuple[str, ...] = ()
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)

    def reset(self) -> None:
        self.method = ""
        self.path = ""
        self.version = DEFAULT_VERSION
        self.body = ""
        self.matches = ()
        self.headers.clear()
        self.params.clear()

    def has_header(self, key: str) -> bool:
        return key in self.headers

    def get_header(self, key: str) -> str:
        """Header value, or "" when absent."""
        return self.headers.get(key, "")

    def insert_header(self, key: str, value: str) -> bool:
        """Add a header unless present; returns whether it was added."""
        if key in self.headers:
            return False
        self.headers[key] = value
        return True

    def has_param(self, key: str) -> bool:
        return key in self.params

    def get_param(self, key: str) -> str:
        """Query parameter value, or "" when absent."""
        return self.params.get(key, "")

    def insert_param(self, key: str, value: str) -> bool:
        """Add a parameter unless present; returns whether it was added."""
        if key in self.params:
            return False
        self.params[key] = value
        return True

    def content_length(self) -> int:
        """Value of Content-Length; raises ``ValueError`` if missing or malformed."""
        value = self.get_header("Content-Length")
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"invalid Content-Length {value!r}") from None

    def is_keep_alive(self) -> bool:
        return self.get_header("Connection") == KEEP_ALIVE


@dataclass
class HttpResponse:
    """An HTTP response under construction."""

    version: str = DEFAULT_VERSION
    status: int = DEFAULT_STATUS
    is_redirect: bool = False
    redirect_url: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    body: str | bytes = ""

    def reset(self) -> None:
        self.version = DEFAULT_VERSION
        self.status = DEFAULT_STATUS
        self.is_redirect = False
        self.redirect_url = ""
        self.headers.clear()
        self.body = ""

    def insert_header(self, key: str, value: str) -> bool:
        """Add a header; an existing value is kept."""
        self.headers.setdefault(key, value)
        return True

    def has_header(self, key: str) -> bool:
        return key in self.headers

    def get_header(self, key: str) -> str:
        """Header value, or "" when absent."""
        return self.headers.get(key, "")

    def set_content(
        self, content: str | bytes, content_type: str = DEFAULT_CONTENT_TYPE
    ) -> None:
        self.body = content
        self.insert_header("Content-Type", content_type)

    def set_redirect(self, url: str, status: int = DEFAULT_REDIRECT_STATUS) -> None:
        self.status = status
        self.redirect_url = url

    def is_keep_alive(self) -> bool:
        return self.get_header("Connection") == KEEP_ALIVE