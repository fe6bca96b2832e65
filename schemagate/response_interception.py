"""
Response validation: the proxy that checks every emitted body.

When a route declares response schemas, the handler does not receive the
raw ``ResponseState``.  It receives a ``ValidatedResponse``, a proxy with the
same interface whose emission operations validate the body against the
schema for the currently active status code before delegating to the
wrapped response.

Status routing
--------------
The proxy tracks an *active status* per response:

- ``UNSET`` (initial): emitting a body validates against status 200.
- ``SET(code)``: after ``status(code)``, emission validates against the
  schema registered for ``code``.

Selecting a status that has no schema is allowed (a handler may set a
status and then delegate); only emitting a body under it raises
``ResponseSchemaNotDefinedError``.  In simple mode a single schema is
validated whatever the status.

Emission paths
--------------
``json(value)``
    The value is validated directly and the validated, JSON-ready dump is
    forwarded, so schema stripping and coercion show up on the wire.

``send(value)``
    The value may be pre-serialised.  If the response content type is
    structured (``application/json`` or ``*/*+json``) and the value is text
    or bytes, it is decoded first; a decode failure raises
    ``ResponseBodyDecodeError`` naming the failure position.  After
    validation a structured response is re-serialised to JSON text; any
    other response forwards the validated value unchanged, which allows
    schemas over plain strings and other primitives.

Concurrency
-----------
A ``ValidatedResponse`` belongs to exactly one request.  It must not be
driven from two tasks at once; the middleware never shares one.
"""

import json
import typing

import pydantic
import structlog

import schemagate.contract
import schemagate.exceptions
import schemagate.exchange
import schemagate.models
import schemagate.schemas

logger = structlog.get_logger()

DEFAULT_STATUS_CODE = 200


class ResponseSchemaResolver(typing.Protocol):
    """Chooses the compiled schema that governs a body emitted under a status code."""

    def resolve(self, status_code: int) -> pydantic.TypeAdapter: ...


class SingleResponseSchema:
    """Simple mode: one schema for every status code."""

    def __init__(self, adapter: pydantic.TypeAdapter) -> None:
        self._adapter = adapter

    def resolve(self, status_code: int) -> pydantic.TypeAdapter:
        return self._adapter


class StatusKeyedResponseSchemas:
    """Typed mode: one schema per registered status code."""

    def __init__(self, contract: schemagate.contract.SchemaContract) -> None:
        self._contract = contract

    def resolve(self, status_code: int) -> pydantic.TypeAdapter:
        adapter = self._contract.response_adapter_for_status(status_code)
        if adapter is None:
            logger.error(
                "response_schema_not_defined",
                status_code=status_code,
                registered_status_codes=sorted(self._contract.responses or {}),
            )
            raise schemagate.exceptions.ResponseSchemaNotDefinedError(status_code)
        return adapter


def decode_structured_payload(serialised_payload: str | bytes | bytearray) -> typing.Any:
    """
    Decode a pre-serialised JSON response body.

    Raises:
        ResponseBodyDecodeError: The payload is not valid JSON.  The
            message names the line and column where parsing failed.
    """
    try:
        return json.loads(serialised_payload)
    except json.JSONDecodeError as decode_error:
        raise schemagate.exceptions.ResponseBodyDecodeError(
            f"Failed to parse the response body as JSON at line {decode_error.lineno} "
            f"column {decode_error.colno} (char {decode_error.pos}): {decode_error.msg}."
        ) from decode_error
    except UnicodeDecodeError as decode_error:
        raise schemagate.exceptions.ResponseBodyDecodeError(
            f"Failed to parse the response body as JSON at byte {decode_error.start}: {decode_error.reason}."
        ) from decode_error


class ValidatedResponse:
    """
    Proxy over a ``ResponseState`` that validates every emitted body.

    Status, header and ``locals`` operations are forwarded unchanged;
    ``json``, ``send``, ``send_status`` and ``end`` validate first.
    """

    def __init__(
        self,
        response: schemagate.exchange.ResponseState,
        schema_resolver: ResponseSchemaResolver,
    ) -> None:
        self._response = response
        self._schema_resolver = schema_resolver
        self._active_status_code: int | None = None

    # ── Active status ────────────────────────────────────────────────

    @property
    def active_status_code(self) -> int:
        """The status whose schema governs the next emission (200 until one is chosen)."""
        if self._active_status_code is None:
            return DEFAULT_STATUS_CODE
        return self._active_status_code

    @property
    def status_is_set(self) -> bool:
        return self._active_status_code is not None

    def status(self, status_code: int) -> "StatusBoundResponse":
        """
        Choose the response status.

        Returns a handle whose emission operations are bound to
        ``status_code``.  No schema lookup happens here.
        """
        self._active_status_code = status_code
        self._response.status(status_code)
        return StatusBoundResponse(self, status_code)

    # ── Forwarded state ──────────────────────────────────────────────

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> dict[str, str]:
        return self._response.headers

    @property
    def locals(self) -> typing.Any:
        return self._response.locals

    @locals.setter
    def locals(self, value: typing.Any) -> None:
        self._response.locals = value

    @property
    def finished(self) -> bool:
        return self._response.finished

    @property
    def content_type(self) -> str | None:
        return self._response.content_type

    def set_header(self, name: str, value: str) -> "ValidatedResponse":
        self._response.set_header(name, value)
        return self

    def get_header(self, name: str) -> str | None:
        return self._response.get_header(name)

    def set_content_type(self, content_type: str) -> "ValidatedResponse":
        self._response.set_content_type(content_type)
        return self

    # ── Validated emission ───────────────────────────────────────────

    def json(self, value: typing.Any) -> "ValidatedResponse":
        self.emit_json(value, self.active_status_code)
        return self

    def send(self, value: typing.Any = None) -> "ValidatedResponse":
        self.emit_possibly_serialised(value, self.active_status_code)
        return self

    def send_status(self, status_code: int) -> "ValidatedResponse":
        """Choose ``status_code`` and send its default body (nothing for 204/304)."""
        self.status(status_code)
        if status_code in schemagate.exchange.STATUS_CODES_WITHOUT_BODY:
            expected_payload = None
        else:
            expected_payload = schemagate.exchange.status_reason_phrase(status_code)
        self._validate(expected_payload, status_code)
        self._response.send_status(status_code)
        return self

    def end(self) -> "ValidatedResponse":
        """Finish without a body; the active schema must accept an absent payload."""
        self.emit_end(self.active_status_code)
        return self

    def emit_json(self, value: typing.Any, status_code: int) -> None:
        adapter, validated_value = self._validate(value, status_code)
        self._response.json(schemagate.schemas.dump_validated_value(adapter, validated_value))

    def emit_end(self, status_code: int) -> None:
        self._validate(None, status_code)
        self._response.end()

    def emit_possibly_serialised(self, value: typing.Any, status_code: int) -> None:
        is_structured = schemagate.schemas.is_structured_media_type(self._response.content_type)

        payload = value
        if is_structured and isinstance(value, (str, bytes, bytearray)):
            payload = decode_structured_payload(value)

        adapter, validated_value = self._validate(payload, status_code)

        if is_structured:
            dumped_value = schemagate.schemas.dump_validated_value(adapter, validated_value)
            self._response.send(schemagate.schemas.serialise_json(dumped_value))
        else:
            self._response.send(validated_value)

    def _validate(
        self,
        value: typing.Any,
        status_code: int,
    ) -> tuple[pydantic.TypeAdapter, typing.Any]:
        """
        Validate ``value`` against the schema for ``status_code``.

        Raises:
            ResponseSchemaNotDefinedError: No schema for ``status_code``.
            ResponseValidationError: The schema rejected ``value``.
        """
        adapter = self._schema_resolver.resolve(status_code)
        try:
            validated_value = adapter.validate_python(value)
        except pydantic.ValidationError as validation_error:
            issues = schemagate.models.ValidationIssue.from_validation_error(
                validation_error,
                location="response",
            )
            logger.error(
                "response_validation_failed",
                status_code=status_code,
                issues=[issue.model_dump() for issue in issues],
            )
            raise schemagate.exceptions.ResponseValidationError(status_code, issues) from validation_error
        return adapter, validated_value


class StatusBoundResponse:
    """
    Handle returned by ``ValidatedResponse.status``.

    Its emission operations validate against the status it was created
    for; every other operation is forwarded to the proxy.
    """

    def __init__(self, validated_response: ValidatedResponse, status_code: int) -> None:
        self._validated_response = validated_response
        self.bound_status_code = status_code

    def status(self, status_code: int) -> "StatusBoundResponse":
        return self._validated_response.status(status_code)

    def json(self, value: typing.Any) -> ValidatedResponse:
        self._validated_response.emit_json(value, self.bound_status_code)
        return self._validated_response

    def send(self, value: typing.Any = None) -> ValidatedResponse:
        self._validated_response.emit_possibly_serialised(value, self.bound_status_code)
        return self._validated_response

    def end(self) -> ValidatedResponse:
        self._validated_response.emit_end(self.bound_status_code)
        return self._validated_response

    def set_header(self, name: str, value: str) -> "StatusBoundResponse":
        self._validated_response.set_header(name, value)
        return self

    def set_content_type(self, content_type: str) -> "StatusBoundResponse":
        self._validated_response.set_content_type(content_type)
        return self

    def __getattr__(self, attribute_name: str) -> typing.Any:
        return getattr(self._validated_response, attribute_name)


def install_response_interceptor(
    contract: schemagate.contract.SchemaContract,
    response: schemagate.exchange.ResponseState,
) -> schemagate.exchange.ResponseState | ValidatedResponse:
    """
    Wrap ``response`` according to the contract's response configuration.

    Returns the response untouched when the contract declares no response
    schema, a single-schema proxy in simple mode, and a status-routing
    proxy in typed mode.
    """
    response_mode = contract.response_mode
    if response_mode is schemagate.contract.ResponseMode.TYPED:
        return ValidatedResponse(response, StatusKeyedResponseSchemas(contract))
    if response_mode is schemagate.contract.ResponseMode.SIMPLE:
        return ValidatedResponse(response, SingleResponseSchema(contract.simple_response_adapter()))
    return response
