"""
The declarative schema contract a route author attaches to a route.

A ``SchemaContract`` has five optional request-side slots (``headers``,
``body``, ``query``, ``params``, ``locals``) and at most one of two
response configurations:

- **Simple mode** (``response``): a single schema validated against every
  emitted body, whatever the status code.
- **Typed mode** (``responses``): a mapping from HTTP status code to the
  schema governing bodies emitted under that status.

The contract is built once at route-registration time, shared by every
request to the route, and read back by the OpenAPI emitter.  It is frozen;
nothing in the middleware mutates it.
"""

import dataclasses
import enum
import types
import typing

import pydantic

import schemagate.exceptions
import schemagate.schemas

REQUEST_FIELD_NAMES: tuple[str, ...] = ("headers", "body", "query", "params", "locals")
"""Request fields in validation order; issues are reported in this order too."""

_MINIMUM_STATUS_CODE = 100
_MAXIMUM_STATUS_CODE = 599


class ResponseMode(enum.Enum):
    """Which response configuration a contract carries."""

    NONE = "none"
    SIMPLE = "simple"
    TYPED = "typed"


def _normalise_status_code(status_key: typing.Any) -> int:
    """Convert a ``responses`` key (int or numeric string) into an int status code."""
    if isinstance(status_key, bool):
        raise schemagate.exceptions.InvalidStatusCodeError(
            f"Response schema key {status_key!r} is not an HTTP status code."
        )
    try:
        status_code = int(status_key)
    except (TypeError, ValueError):
        raise schemagate.exceptions.InvalidStatusCodeError(
            f"Response schema key {status_key!r} is not an HTTP status code."
        ) from None
    if not _MINIMUM_STATUS_CODE <= status_code <= _MAXIMUM_STATUS_CODE:
        raise schemagate.exceptions.InvalidStatusCodeError(
            f"Response schema key {status_key!r} is outside the HTTP status code range "
            f"{_MINIMUM_STATUS_CODE}-{_MAXIMUM_STATUS_CODE}."
        )
    return status_code


@dataclasses.dataclass(frozen=True, eq=False)
class SchemaContract:
    """
    Immutable description of what a route accepts and emits.

    Attributes:
        headers: Schema for the normalised request headers.
        body: Schema for the parsed request body.
        query: Schema for the query string.
        params: Schema for the path parameters.
        locals: Schema for the per-request locals bag.
        response: Single response schema (simple mode).
        responses: Status-code-keyed response schemas (typed mode).  A value
            of ``None`` declares a status without a body.
    """

    headers: typing.Any = None
    body: typing.Any = None
    query: typing.Any = None
    params: typing.Any = None
    locals: typing.Any = None
    response: typing.Any = None
    responses: typing.Mapping[int, typing.Any] | None = None

    _request_adapters: dict[str, pydantic.TypeAdapter] = dataclasses.field(
        init=False, repr=False, compare=False
    )
    _response_adapters: dict[int, pydantic.TypeAdapter] = dataclasses.field(
        init=False, repr=False, compare=False
    )
    _simple_response_adapter: pydantic.TypeAdapter | None = dataclasses.field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        if self.response is not None and self.responses is not None:
            raise schemagate.exceptions.ConflictingResponseSchemasError()

        request_adapters = {
            field_name: schemagate.schemas.compile_schema(getattr(self, field_name))
            for field_name in REQUEST_FIELD_NAMES
            if getattr(self, field_name) is not None
        }

        normalised_responses = None
        response_adapters: dict[int, pydantic.TypeAdapter] = {}
        if self.responses is not None:
            normalised_responses = {
                _normalise_status_code(status_key): schema for status_key, schema in self.responses.items()
            }
            response_adapters = {
                status_code: schemagate.schemas.compile_schema(schema)
                for status_code, schema in normalised_responses.items()
            }
            normalised_responses = types.MappingProxyType(normalised_responses)

        simple_response_adapter = None
        if self.response is not None:
            simple_response_adapter = schemagate.schemas.compile_schema(self.response)

        # Frozen dataclass: derived fields are assigned through object.__setattr__.
        object.__setattr__(self, "responses", normalised_responses)
        object.__setattr__(self, "_request_adapters", request_adapters)
        object.__setattr__(self, "_response_adapters", response_adapters)
        object.__setattr__(self, "_simple_response_adapter", simple_response_adapter)

    @property
    def response_mode(self) -> ResponseMode:
        if self.responses is not None:
            return ResponseMode.TYPED
        if self.response is not None:
            return ResponseMode.SIMPLE
        return ResponseMode.NONE

    def request_adapter(self, field_name: str) -> pydantic.TypeAdapter | None:
        """Return the compiled schema for a request field, or ``None`` when the field is unchecked."""
        return self._request_adapters.get(field_name)

    def simple_response_adapter(self) -> pydantic.TypeAdapter | None:
        """Return the compiled single response schema (simple mode only)."""
        return self._simple_response_adapter

    def response_adapter_for_status(self, status_code: int) -> pydantic.TypeAdapter | None:
        """Return the compiled schema registered for ``status_code`` (typed mode only)."""
        return self._response_adapters.get(status_code)
