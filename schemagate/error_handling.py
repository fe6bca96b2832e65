"""
Exception handlers that turn middleware faults into JSON error responses.

Mapping
-------
::

    MalformedRequestBodyError         →  400 invalid_request_json
    ResponseValidationError           →  500 response_validation_failed
    ResponseBodyDecodeError           →  500 response_body_decode_failed
    ConfigurationError (and subclasses) → 500 configuration_error
    starlette HTTPException 404       →  404 not_found
    starlette HTTPException 405       →  405 method_not_allowed (+ Allow)

Request validation failures never reach this module: the composer answers
them directly with ``{"errors": [...]}``.

Server-side faults (response validation, decode and configuration errors)
are logged with their full detail, but the client only sees a generic
message.  The issues describing why a response body was rejected stay in
the logs.

Unexpected exceptions of any other type are caught by
``CorrelationIdMiddleware``, the outermost layer, so that they are fully
contained instead of being re-raised by Starlette's
``ServerErrorMiddleware``.
"""

import typing

import fastapi
import fastapi.responses
import starlette.exceptions
import starlette.routing
import starlette.types
import structlog

import schemagate.exceptions
import schemagate.models

logger = structlog.get_logger()

_HTTP_STATUS_CODE_TO_ERROR_CODE: dict[int, str] = {
    404: "not_found",
    405: "method_not_allowed",
}

_HTTP_STATUS_CODE_TO_ERROR_MESSAGE: dict[int, str] = {
    404: "The requested endpoint does not exist.",
    405: "The HTTP method is not allowed for this endpoint.",
}

_HTTP_STATUS_CODE_TO_LOG_EVENT_NAME: dict[int, str] = {
    404: "http_not_found",
    405: "http_method_not_allowed",
}

_INTERNAL_ERROR_MESSAGE = "An unexpected internal error occurred."


def _get_correlation_id(request: fastapi.Request) -> str:
    return getattr(request.state, "correlation_id", "unknown")


def _collect_allowed_methods(
    routes: typing.Iterable[starlette.routing.BaseRoute],
    scope: starlette.types.Scope,
    allowed_methods: set[str],
) -> None:
    for route in routes:
        if isinstance(route, starlette.routing.Mount):
            match, child_scope = route.matches(scope)
            if match is starlette.routing.Match.FULL:
                _collect_allowed_methods(route.routes, {**scope, **child_scope}, allowed_methods)
            continue

        if not isinstance(route, starlette.routing.Route) or not route.methods:
            continue
        match, _ = route.matches(scope)
        if match is not starlette.routing.Match.NONE:
            allowed_methods.update(route.methods)


def discover_allowed_methods(request: fastapi.Request) -> str:
    """
    List the methods the application serves for the request's path.

    Every route whose path pattern matches is consulted, including routes
    under mounts and parameterised paths such as ``/todo/{todo_id}``.
    Several routes may share a path with different methods, so the union
    is returned, sorted, as an ``Allow`` header value.
    """
    # Routing mutates the live scope (mount prefixes move into root_path),
    # so matching starts again from the bare request path.
    matching_scope: starlette.types.Scope = {
        "type": "http",
        "method": request.method,
        "path": request.url.path,
        "root_path": "",
    }
    allowed_methods: set[str] = set()
    _collect_allowed_methods(request.app.routes, matching_scope, allowed_methods)

    if "GET" in allowed_methods:
        allowed_methods.add("HEAD")

    return ", ".join(sorted(allowed_methods))


def _build_error_response(
    status_code: int,
    code: str,
    message: str,
    correlation_id: str,
    details: str | list | None = None,
) -> fastapi.responses.JSONResponse:
    """
    Build the ``{"error": {...}}`` envelope.

    ``details`` is omitted from the payload entirely when not given.
    """
    error_detail_keyword_arguments: dict = {
        "code": code,
        "message": message,
        "correlation_id": correlation_id,
    }
    if details is not None:
        error_detail_keyword_arguments["details"] = details

    error_response = schemagate.models.ErrorResponse(
        error=schemagate.models.ErrorDetail(**error_detail_keyword_arguments),
    )

    return fastapi.responses.JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(exclude_unset=True),
    )


def register_error_handlers(fastapi_application: fastapi.FastAPI) -> None:
    """
    Register the exception handlers on ``fastapi_application``.

    Call once while building the application (see
    ``server_factory.create_application``).  Handlers are looked up along
    the exception's MRO, so a subclass of ``ConfigurationError`` without a
    dedicated handler falls through to the ``ConfigurationError`` one.
    """

    @fastapi_application.exception_handler(
        schemagate.exceptions.MalformedRequestBodyError,
    )
    async def handle_malformed_request_body(
        request: fastapi.Request,
        malformed_body_error: schemagate.exceptions.MalformedRequestBodyError,
    ) -> fastapi.responses.JSONResponse:
        """Return 400 when a JSON request body does not parse."""
        logger.warning(
            "request_body_malformed",
            method=request.method,
            path=request.url.path,
            detail=malformed_body_error.detail,
        )
        return _build_error_response(
            400,
            "invalid_request_json",
            "The request body contains invalid JSON.",
            _get_correlation_id(request),
        )

    @fastapi_application.exception_handler(
        schemagate.exceptions.ResponseValidationError,
    )
    async def handle_response_validation_error(
        request: fastapi.Request,
        response_validation_error: schemagate.exceptions.ResponseValidationError,
    ) -> fastapi.responses.JSONResponse:
        """
        Return 500 when a handler emitted a body its schema rejects.

        The issues are logged, never returned: they describe server
        internals, not anything the client can fix.
        """
        logger.error(
            "response_contract_violated",
            method=request.method,
            path=request.url.path,
            status_code=response_validation_error.status_code,
            issues=[issue.model_dump() for issue in response_validation_error.issues],
        )
        return _build_error_response(
            500,
            "response_validation_failed",
            _INTERNAL_ERROR_MESSAGE,
            _get_correlation_id(request),
        )

    @fastapi_application.exception_handler(
        schemagate.exceptions.ResponseBodyDecodeError,
    )
    async def handle_response_body_decode_error(
        request: fastapi.Request,
        decode_error: schemagate.exceptions.ResponseBodyDecodeError,
    ) -> fastapi.responses.JSONResponse:
        """Return 500 when a pre-serialised response body is not valid JSON."""
        logger.error(
            "response_body_decode_failed",
            method=request.method,
            path=request.url.path,
            detail=decode_error.detail,
        )
        return _build_error_response(
            500,
            "response_body_decode_failed",
            _INTERNAL_ERROR_MESSAGE,
            _get_correlation_id(request),
        )

    @fastapi_application.exception_handler(
        schemagate.exceptions.ConfigurationError,
    )
    async def handle_configuration_error(
        request: fastapi.Request,
        configuration_error: schemagate.exceptions.ConfigurationError,
    ) -> fastapi.responses.JSONResponse:
        """
        Return 500 for misconfigured routes.

        The detail names the offending status code or misuse and goes to
        the log at ERROR level so the defect can be located.
        """
        logger.error(
            "route_misconfigured",
            method=request.method,
            path=request.url.path,
            error_type=type(configuration_error).__name__,
            detail=configuration_error.detail,
        )
        return _build_error_response(
            500,
            "configuration_error",
            _INTERNAL_ERROR_MESSAGE,
            _get_correlation_id(request),
        )

    @fastapi_application.exception_handler(
        starlette.exceptions.HTTPException,
    )
    async def handle_starlette_http_exception(
        request: fastapi.Request,
        http_exception: starlette.exceptions.HTTPException,
    ) -> fastapi.responses.JSONResponse:
        """
        Return the JSON envelope for framework-raised HTTP errors.

        Unmapped status codes use ``unexpected_error`` and the exception's
        own detail.  A 405 carries an ``Allow`` header built from the
        registered routes.
        """
        error_code = _HTTP_STATUS_CODE_TO_ERROR_CODE.get(
            http_exception.status_code,
            "unexpected_error",
        )
        error_message = _HTTP_STATUS_CODE_TO_ERROR_MESSAGE.get(
            http_exception.status_code,
            str(http_exception.detail),
        )

        logger.warning(
            _HTTP_STATUS_CODE_TO_LOG_EVENT_NAME.get(http_exception.status_code, "http_framework_error"),
            method=request.method,
            path=request.url.path,
            status_code=http_exception.status_code,
            error_code=error_code,
        )

        response = _build_error_response(
            http_exception.status_code,
            error_code,
            error_message,
            _get_correlation_id(request),
        )

        if http_exception.status_code == 405:
            response.headers["Allow"] = discover_allowed_methods(request)

        return response
