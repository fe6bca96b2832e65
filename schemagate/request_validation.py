"""
Request-side validation: headers, body, query, params and locals.

Every field with a schema is validated, in the order headers, body,
query, params, locals, even when an earlier field has already failed, so
that one response can report every problem in the request.  Successful
fields are written back with their validated values: downstream handlers
see coerced types (for example a numeric path parameter as an ``int``)
and models with unknown keys stripped.

The only short-circuit is a schema that raises something other than a
``pydantic.ValidationError``.  That is a defect in the schema itself, not
bad client input, so it propagates immediately to the error handlers.
"""

import typing

import pydantic

import schemagate.contract
import schemagate.exchange
import schemagate.models


def normalise_headers(raw_headers: typing.Mapping[str, typing.Any]) -> dict[str, str | None]:
    """
    Build the view of the request headers that the headers schema sees.

    - Keys are lowercased.
    - A header carrying several values is reduced to its first value.
      This is lossy by design: repeated headers are not reconstructed.
    - ``None`` stays ``None`` rather than becoming an empty string.
    """
    normalised_headers: dict[str, str | None] = {}
    for header_name, header_value in raw_headers.items():
        if isinstance(header_value, (list, tuple)):
            header_value = header_value[0] if header_value else None
        normalised_headers[header_name.lower()] = header_value
    return normalised_headers


def _extract_field_input(
    field_name: str,
    request: schemagate.exchange.RequestState,
    response: typing.Any,
) -> typing.Any:
    if field_name == "headers":
        return normalise_headers(request.headers)
    if field_name == "locals":
        return response.locals
    return getattr(request, field_name)


def _write_back_field_value(
    field_name: str,
    adapter: pydantic.TypeAdapter,
    validated_value: typing.Any,
    request: schemagate.exchange.RequestState,
    response: typing.Any,
) -> None:
    if field_name == "headers":
        # Merge rather than replace so headers outside the schema stay readable.
        if isinstance(validated_value, pydantic.BaseModel):
            validated_value = adapter.dump_python(validated_value, by_alias=True)
        request.headers.update(validated_value)
    elif field_name == "locals":
        response.locals = validated_value
    else:
        setattr(request, field_name, validated_value)


def validate_request_fields(
    contract: schemagate.contract.SchemaContract,
    request: schemagate.exchange.RequestState,
    response: typing.Any,
) -> list[schemagate.models.ValidationIssue]:
    """
    Validate every request field the contract has a schema for.

    Args:
        contract: The route's schema contract.
        request: The request state; validated values are written back to it.
        response: The response state (or a proxy over it) owning ``locals``.

    Returns:
        The issues found across all fields, in field order.  An empty list
        means the request is valid.
    """
    issues: list[schemagate.models.ValidationIssue] = []

    for field_name in schemagate.contract.REQUEST_FIELD_NAMES:
        adapter = contract.request_adapter(field_name)
        if adapter is None:
            continue

        field_input = _extract_field_input(field_name, request, response)
        try:
            validated_value = adapter.validate_python(field_input)
        except pydantic.ValidationError as validation_error:
            issues.extend(
                schemagate.models.ValidationIssue.from_validation_error(
                    validation_error,
                    location=field_name,
                )
            )
            continue

        _write_back_field_value(field_name, adapter, validated_value, request, response)

    return issues
