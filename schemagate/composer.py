"""
The ``validate`` entry point: composing request validation and response
interception into handlers.

Two usage forms exist.

**Direct form**, for contracts without status-keyed response schemas.
The middleware is itself a handler placed in front of the route handler::

    schemagate.routing.route(
        "/users",
        schemagate.composer.validate(body=CreateUserRequest, response=UserResponse),
        create_user,
        methods=["POST"],
    )

**Attach form**, required when ``responses`` maps status codes to schemas.
The route handler is attached with ``use()`` and receives the
status-routing response proxy::

    schemagate.routing.route(
        "/users/{user_id}",
        schemagate.composer.validate(
            params=UserPathParameters,
            responses={200: UserResponse, 404: NotFoundResponse},
        ).use(get_user),
    )

A typed contract used in the direct form has no handler to route
responses for, so it is rejected as soon as the chain is built.

In both forms the request is validated first.  Failures are answered
with HTTP 400 and ``{"errors": [...]}``; the route handler never runs.
"""

import inspect
import typing

import structlog

import schemagate.contract
import schemagate.exceptions
import schemagate.exchange
import schemagate.models
import schemagate.request_validation
import schemagate.response_interception
import schemagate.routing

logger = structlog.get_logger()

REQUEST_VALIDATION_FAILURE_STATUS_CODE = 400


def _reject_invalid_request(
    request: schemagate.exchange.RequestState,
    response: schemagate.exchange.ResponseState,
    issues: list[schemagate.models.ValidationIssue],
) -> None:
    logger.warning(
        "request_validation_failed",
        method=request.method,
        path=request.path,
        issue_count=len(issues),
        locations=sorted({issue.location for issue in issues}),
    )
    error_response = schemagate.models.ValidationErrorResponse(errors=issues)
    response.status(REQUEST_VALIDATION_FAILURE_STATUS_CODE).json(error_response.model_dump())


class ValidationMiddleware:
    """
    Handler that validates a request against a ``SchemaContract``.

    Attributes:
        contract: The schema contract, read back by the OpenAPI emitter.
    """

    def __init__(self, contract: schemagate.contract.SchemaContract) -> None:
        self.contract = contract

    @property
    def requires_attached_handler(self) -> bool:
        """True for typed contracts, which must be combined with a handler through ``use()``."""
        return self.contract.response_mode is schemagate.contract.ResponseMode.TYPED

    def use(self, handler: schemagate.routing.Handler) -> "AttachedValidationMiddleware":
        """Attach the route handler that runs once the request is valid."""
        return AttachedValidationMiddleware(self.contract, handler)

    def validate_request(
        self,
        request: schemagate.exchange.RequestState,
        response: schemagate.exchange.ResponseState,
    ) -> bool:
        """
        Validate the request, answering 400 when it is invalid.

        Returns:
            True when the request passed and processing should continue.
        """
        issues = schemagate.request_validation.validate_request_fields(self.contract, request, response)
        if issues:
            _reject_invalid_request(request, response, issues)
            return False
        return True

    async def __call__(
        self,
        request: schemagate.exchange.RequestState,
        response: schemagate.exchange.ResponseState,
        call_next: schemagate.routing.CallNext,
    ) -> None:
        if self.requires_attached_handler:
            raise schemagate.exceptions.UnattachedHandlerError()

        if not self.validate_request(request, response):
            return

        intercepted_response = schemagate.response_interception.install_response_interceptor(
            self.contract,
            response,
        )
        await call_next(request, intercepted_response)


class AttachedValidationMiddleware:
    """
    Handler combining validation with the route handler it guards.

    Attributes:
        contract: The schema contract, read back by the OpenAPI emitter.
        handler: The attached route handler.
    """

    requires_attached_handler = False

    def __init__(
        self,
        contract: schemagate.contract.SchemaContract,
        handler: schemagate.routing.Handler,
    ) -> None:
        self.contract = contract
        self.handler = handler
        self._validation_middleware = ValidationMiddleware(contract)

    async def __call__(
        self,
        request: schemagate.exchange.RequestState,
        response: schemagate.exchange.ResponseState,
        call_next: schemagate.routing.CallNext,
    ) -> None:
        if not self._validation_middleware.validate_request(request, response):
            return

        intercepted_response = schemagate.response_interception.install_response_interceptor(
            self.contract,
            response,
        )
        handler_result = self.handler(request, intercepted_response, call_next)
        if inspect.isawaitable(handler_result):
            await handler_result


def validate(
    *,
    headers: typing.Any = None,
    body: typing.Any = None,
    query: typing.Any = None,
    params: typing.Any = None,
    locals: typing.Any = None,
    response: typing.Any = None,
    responses: typing.Mapping[int, typing.Any] | None = None,
) -> ValidationMiddleware:
    """
    Create validation middleware for a route.

    Args:
        headers: Schema for the request headers (names lowercased, first
            value of repeated headers).
        body: Schema for the parsed request body.
        query: Schema for the query string.
        params: Schema for the path parameters.
        locals: Schema for the per-request locals bag.
        response: A single schema for every response body (simple mode).
        responses: Response schemas keyed by status code (typed mode).
            Use ``None`` for statuses without a body.  Requires ``use()``.

    Raises:
        ConflictingResponseSchemasError: Both ``response`` and ``responses``
            were given.
        InvalidStatusCodeError: A ``responses`` key is not a status code.
    """
    return ValidationMiddleware(
        schemagate.contract.SchemaContract(
            headers=headers,
            body=body,
            query=query,
            params=params,
            locals=locals,
            response=response,
            responses=responses,
        )
    )
