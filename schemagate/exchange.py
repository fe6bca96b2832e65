"""
Per-request state shared by the handlers of a ``HandlerChain``.

``RequestState`` holds the request input that validation reads and
rewrites: the parsed body, the headers, the query string and the path
parameters.  ``ResponseState`` is the mutable response under construction:
a status code, response headers, the ``locals`` bag, and the two
body-emission operations handlers use:

- ``json(value)`` emits a structured value serialised as JSON.
- ``send(value)`` emits a value that may already be serialised: text,
  bytes, or a structured value that is then sent as JSON.

Both objects are created fresh for every request by ``HandlerChain`` and
discarded once the response has been handed to Starlette.
"""

import http
import json
import typing

import starlette.requests
import starlette.responses

import schemagate.exceptions
import schemagate.schemas

STATUS_CODES_WITHOUT_BODY: frozenset[int] = frozenset({204, 304})
"""Statuses whose responses never carry a body."""

_DEFAULT_TEXT_CONTENT_TYPE = "text/html; charset=utf-8"
_DEFAULT_BINARY_CONTENT_TYPE = "application/octet-stream"
_JSON_CONTENT_TYPE = "application/json"
_PLAIN_TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


def _collect_multi_items(items: typing.Iterable[tuple[str, str]]) -> dict[str, str | list[str]]:
    """
    Fold ``(key, value)`` pairs into a dict, turning repeated keys into lists.

    Used for both headers and query strings so that a value that appears
    once stays a plain string and a repeated value keeps every occurrence.
    """
    collected: dict[str, str | list[str]] = {}
    for key, value in items:
        if key not in collected:
            collected[key] = value
            continue
        existing_value = collected[key]
        if isinstance(existing_value, list):
            existing_value.append(value)
        else:
            collected[key] = [existing_value, value]
    return collected


async def _parse_request_body(request: starlette.requests.Request) -> typing.Any:
    """
    Read and decode the request body according to its Content-Type.

    - Empty body → ``None``
    - JSON content types → the decoded JSON value
    - ``text/*`` → ``str``
    - anything else → raw ``bytes``
    """
    raw_body = await request.body()
    if not raw_body:
        return None

    content_type = request.headers.get("content-type")
    if schemagate.schemas.is_structured_media_type(content_type):
        try:
            return json.loads(raw_body)
        except ValueError as decode_error:
            raise schemagate.exceptions.MalformedRequestBodyError(
                f"The request body contains invalid JSON: {decode_error}."
            ) from decode_error

    media_type = schemagate.schemas.extract_media_type(content_type)
    if media_type is not None and media_type.startswith("text/"):
        return raw_body.decode("utf-8", errors="replace")
    return raw_body


class RequestState:
    """
    Mutable request input seen by every handler in a chain.

    Attributes:
        method: The HTTP method, uppercased.
        path: The request path.
        body: The parsed request body (see ``_parse_request_body``).
        headers: Request headers with lowercased names.  A header sent more
            than once is a list of its values.
        query: Query string parameters.  A repeated key is a list.
        params: Path parameters captured by the router.
        starlette_request: The underlying Starlette request.
    """

    def __init__(
        self,
        starlette_request: starlette.requests.Request,
        body: typing.Any = None,
    ) -> None:
        self.starlette_request = starlette_request
        self.method: str = starlette_request.method
        self.path: str = starlette_request.url.path
        self.body: typing.Any = body
        self.headers: dict[str, typing.Any] = _collect_multi_items(
            (name.decode("latin-1").lower(), value.decode("latin-1"))
            for name, value in starlette_request.headers.raw
        )
        self.query: typing.Any = _collect_multi_items(starlette_request.query_params.multi_items())
        self.params: typing.Any = dict(starlette_request.path_params)

    @classmethod
    async def from_starlette_request(cls, starlette_request: starlette.requests.Request) -> "RequestState":
        """Build the request state, reading and parsing the body up front."""
        return cls(starlette_request, body=await _parse_request_body(starlette_request))

    @property
    def app(self) -> typing.Any:
        """The ASGI application serving this request."""
        return self.starlette_request.app


class ResponseState:
    """
    The response under construction for one request.

    A response can be emitted exactly once.  Emission records the body and
    marks the response as finished; ``HandlerChain`` converts the finished
    state into a Starlette response afterwards.

    Attributes:
        status_code: The HTTP status code, 200 until changed.
        headers: Response headers keyed by lowercased name.
        locals: Per-request key/value bag shared between handlers.
        body: The encoded body, set on emission.
        finished: True once a body has been emitted.
    """

    def __init__(self, locals: dict[str, typing.Any] | None = None) -> None:
        self.status_code: int = 200
        self.headers: dict[str, str] = {}
        self.locals: typing.Any = dict(locals or {})
        self.body: bytes = b""
        self.finished: bool = False

    # ── Status and headers ───────────────────────────────────────────

    def status(self, status_code: int) -> "ResponseState":
        """Set the status code; returns the response so calls can be chained."""
        self.status_code = status_code
        return self

    def set_header(self, name: str, value: str) -> "ResponseState":
        self.headers[name.lower()] = value
        return self

    def get_header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    def set_content_type(self, content_type: str) -> "ResponseState":
        return self.set_header("content-type", content_type)

    @property
    def content_type(self) -> str | None:
        return self.get_header("content-type")

    # ── Body emission ────────────────────────────────────────────────

    def json(self, value: typing.Any) -> "ResponseState":
        """Emit ``value`` serialised as JSON."""
        if self.content_type is None:
            self.set_content_type(_JSON_CONTENT_TYPE)
        return self._finish(schemagate.schemas.serialise_json(value).encode("utf-8"))

    def send(self, value: typing.Any = None) -> "ResponseState":
        """
        Emit a body that may already be serialised.

        ``str`` and ``bytes`` are sent as they are (defaulting the content
        type to HTML and octet-stream respectively when none is set),
        ``None`` sends an empty body, and any other value is sent as JSON.
        """
        if value is None:
            return self._finish(b"")
        if isinstance(value, str):
            if self.content_type is None:
                self.set_content_type(_DEFAULT_TEXT_CONTENT_TYPE)
            return self._finish(value.encode("utf-8"))
        if isinstance(value, (bytes, bytearray)):
            if self.content_type is None:
                self.set_content_type(_DEFAULT_BINARY_CONTENT_TYPE)
            return self._finish(bytes(value))
        return self.json(value)

    def send_status(self, status_code: int) -> "ResponseState":
        """Set the status and send its reason phrase as plain text."""
        self.status(status_code)
        if status_code in STATUS_CODES_WITHOUT_BODY:
            return self.send(None)
        self.set_content_type(_PLAIN_TEXT_CONTENT_TYPE)
        return self.send(status_reason_phrase(status_code))

    def end(self) -> "ResponseState":
        """Finish the response without a body."""
        return self._finish(b"")

    def _finish(self, encoded_body: bytes) -> "ResponseState":
        if self.finished:
            raise schemagate.exceptions.ResponseAlreadySentError()
        if self.status_code in STATUS_CODES_WITHOUT_BODY:
            encoded_body = b""
            self.headers.pop("content-type", None)
        self.body = encoded_body
        self.finished = True
        return self

    def to_starlette_response(self) -> starlette.responses.Response:
        """Convert the emitted state into a Starlette ``Response``."""
        return starlette.responses.Response(
            content=self.body,
            status_code=self.status_code,
            headers=self.headers,
        )


def status_reason_phrase(status_code: int) -> str:
    """Return the standard reason phrase for a status code, or the code itself when unknown."""
    try:
        return http.HTTPStatus(status_code).phrase
    except ValueError:
        return str(status_code)
