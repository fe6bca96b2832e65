"""
Exception hierarchy for the schemagate validation middleware.

Every exception raised by the middleware derives from ``SchemaGateError``
and carries a ``detail`` attribute with a human-readable message.  The
error-handling layer (``error_handling.py``) maps each category to an HTTP
response.

Exception hierarchy
-------------------
::

    Exception (Python built-in)
    └── SchemaGateError
        ├── ConfigurationError                   → HTTP 500
        │   ├── ConflictingResponseSchemasError
        │   ├── InvalidStatusCodeError
        │   ├── ResponseSchemaNotDefinedError
        │   ├── UnattachedHandlerError
        │   └── ResponseAlreadySentError
        ├── ResponseValidationError              → HTTP 500
        ├── ResponseBodyDecodeError              → HTTP 500
        └── MalformedRequestBodyError            → HTTP 400

Client-side validation failures (a request field rejected by its schema)
are deliberately absent from this hierarchy.  They are collected into a
list of ``ValidationIssue`` objects and answered with HTTP 400 by the
composer without ever raising.
"""


class SchemaGateError(Exception):
    """
    Base exception for all schemagate errors.

    Attributes:
        detail: A human-readable description of the error.  Configuration
            faults name the offending status code or misuse so that the
            message alone is enough to locate the defect.
    """

    default_detail: str = "A schemagate error occurred."

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ConfigurationError(SchemaGateError):
    """
    Raised when a route's schemas are wired in a way that can never work.

    These are programming defects rather than runtime conditions: they are
    never converted into a 400 response and never retried.
    """

    default_detail = "The validation middleware is misconfigured."


class ConflictingResponseSchemasError(ConfigurationError):
    """Raised when both a single response schema and a status-keyed map are given."""

    default_detail = (
        "A route may declare either a single 'response' schema or a "
        "status-keyed 'responses' map, not both."
    )


class InvalidStatusCodeError(ConfigurationError):
    """Raised when a ``responses`` map is keyed by something that is not an HTTP status code."""

    default_detail = "Response schemas must be keyed by HTTP status codes (100-599)."


class ResponseSchemaNotDefinedError(ConfigurationError):
    """
    Raised at emission time when no schema is registered for the active
    status code of a typed response.

    Selecting an unregistered status is allowed on its own; the error only
    fires when a body is actually emitted under that status.
    """

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"No response schema defined for status code {status_code}.")


class UnattachedHandlerError(ConfigurationError):
    """
    Raised when status-keyed response validation is used as a plain
    handler instead of being combined with a handler through ``use()``.
    """

    default_detail = (
        "Validation with status-keyed response schemas must be attached to "
        "a handler with validate(...).use(handler)."
    )


class ResponseAlreadySentError(ConfigurationError):
    """Raised when a handler emits a second response body on the same request."""

    default_detail = "A response has already been sent for this request."


class ResponseValidationError(SchemaGateError):
    """
    Raised when a handler emits a response body that its schema rejects.

    The fault lies with the server, so the client never sees the issues:
    the error handler answers HTTP 500 and logs them instead.

    Attributes:
        status_code: The status code the body was emitted under.
        issues: The ``ValidationIssue`` list describing the mismatch.
    """

    def __init__(self, status_code: int, issues: list) -> None:
        self.status_code = status_code
        self.issues = issues
        super().__init__(
            f"Response body for status code {status_code} failed schema validation "
            f"with {len(issues)} issue(s)."
        )


class ResponseBodyDecodeError(SchemaGateError):
    """
    Raised when a pre-serialized response body cannot be decoded according
    to its declared structured content type.
    """

    default_detail = "The response body could not be decoded."


class MalformedRequestBodyError(SchemaGateError):
    """Raised when a request declares a JSON body that does not parse."""

    default_detail = "The request body contains invalid JSON."
