"""
Pydantic models for the payloads the middleware itself produces.

Two wire formats exist:

- **Validation failure** (HTTP 400): ``{"errors": [ValidationIssue, ...]}``,
  produced when one or more request fields are rejected by their schemas.
- **Error envelope** (HTTP 4xx/5xx from the error-handling layer):
  ``{"error": {"code", "message", "correlation_id"}}``, produced for
  configuration faults, response validation faults, malformed request
  bodies and framework errors such as 404 and 405.
"""

import typing

import pydantic

# ──────────────────────────────────────────────────────────────────────────────
#  Validation issues
# ──────────────────────────────────────────────────────────────────────────────


class ValidationIssue(pydantic.BaseModel):
    """
    One structured report of a single value failing its schema.

    ``path`` is relative to the validated field: an issue on the ``name``
    key of the request body has the path ``["name"]`` and the location
    ``"body"``.
    """

    path: list[str | int] = pydantic.Field(
        ...,
        description="Key and index segments identifying the offending value within the field.",
    )

    message: str = pydantic.Field(
        ...,
        description="A human-readable description of the failure.",
    )

    code: str = pydantic.Field(
        ...,
        description="A machine-readable issue code (the pydantic error type, e.g. 'string_too_short').",
    )

    location: str = pydantic.Field(
        ...,
        description="The request field the issue belongs to: headers, body, query, params, locals or response.",
    )

    @classmethod
    def from_validation_error(
        cls,
        validation_error: pydantic.ValidationError,
        location: str,
    ) -> list["ValidationIssue"]:
        """
        Convert a pydantic ``ValidationError`` into issues, preserving the
        order in which pydantic reported them.

        Only the location, message and type of each error are kept.  Input
        values, context objects and documentation URLs are dropped so they
        never leak into a response body.
        """
        return [
            cls(
                path=list(error_details.get("loc", ())),
                message=error_details.get("msg", ""),
                code=error_details.get("type", ""),
                location=location,
            )
            for error_details in validation_error.errors(include_url=False, include_context=False)
        ]


class ValidationErrorResponse(pydantic.BaseModel):
    """Response body for HTTP 400 answers to requests that failed validation."""

    errors: list[ValidationIssue] = pydantic.Field(
        ...,
        description="Every issue found across all validated request fields.",
    )


# ──────────────────────────────────────────────────────────────────────────────
#  Error envelope
# ──────────────────────────────────────────────────────────────────────────────


class ErrorDetail(pydantic.BaseModel):
    """Detailed error information nested inside the error response."""

    code: str = pydantic.Field(
        ...,
        description="A machine-readable error code in snake_case format.",
    )

    message: str = pydantic.Field(
        ...,
        description="A human-readable error description safe for display to end users.",
    )

    details: str | list[typing.Any] | None = pydantic.Field(
        default=None,
        description="Additional context about the error, when available.",
    )

    correlation_id: str = pydantic.Field(
        ...,
        description="UUID v4 correlation identifier matching the X-Correlation-ID response header.",
    )


class ErrorResponse(pydantic.BaseModel):
    """Standardised error envelope returned by the error-handling layer."""

    error: ErrorDetail = pydantic.Field(
        ...,
        description="An object containing error details.",
    )
