"""
Handler chains: the per-route unit Starlette dispatches into.

A ``HandlerChain`` is an ASGI application holding an ordered sequence of
handlers.  Each handler is called as::

    handler(request, response, call_next)

and may be a plain function or a coroutine function.  A handler continues
the chain with ``await call_next(request, response)`` (passing a wrapped
response if it wants downstream handlers to see one) or ends it by simply
returning.  Raising an exception is the error channel: the exception
propagates to Starlette's exception middleware and the handlers installed
by ``schemagate.error_handling.register_error_handlers``.

Because a ``HandlerChain`` is not a plain function, Starlette's ``Route``
mounts it as a raw ASGI endpoint and keeps it available as
``route.endpoint``.  The OpenAPI emitter relies on that to read the schema
contract back.
"""

import inspect
import typing

import starlette.exceptions
import starlette.requests
import starlette.routing
import starlette.types
import structlog

import schemagate.exceptions
import schemagate.exchange

logger = structlog.get_logger()

CallNext = typing.Callable[[schemagate.exchange.RequestState, typing.Any], typing.Awaitable[None]]

Handler = typing.Callable[
    [schemagate.exchange.RequestState, typing.Any, CallNext],
    typing.Awaitable[None] | None,
]


class HandlerChain:
    """
    An ordered chain of handlers served as one ASGI endpoint.

    Raises:
        ValueError: No handlers were given.
        UnattachedHandlerError: A handler needs a follow-up handler attached
            with ``use()`` (validation with status-keyed response schemas).
            Raised here, at route construction, before any request.
    """

    def __init__(self, *handlers: Handler) -> None:
        if not handlers:
            raise ValueError("A handler chain needs at least one handler.")
        for handler in handlers:
            if getattr(handler, "requires_attached_handler", False):
                raise schemagate.exceptions.UnattachedHandlerError()
        self.handlers: tuple[Handler, ...] = handlers

    @property
    def contract(self) -> typing.Any:
        """The schema contract of the first validating handler, or ``None``."""
        for handler in self.handlers:
            handler_contract = getattr(handler, "contract", None)
            if handler_contract is not None:
                return handler_contract
        return None

    async def __call__(
        self,
        scope: starlette.types.Scope,
        receive: starlette.types.Receive,
        send: starlette.types.Send,
    ) -> None:
        starlette_request = starlette.requests.Request(scope, receive)
        request = await schemagate.exchange.RequestState.from_starlette_request(starlette_request)
        response = schemagate.exchange.ResponseState(locals=scope.get("state"))

        await self._dispatch(0, request, response)

        if not response.finished:
            logger.warning(
                "handler_chain_finished_without_response",
                method=request.method,
                path=request.path,
            )
        starlette_response = response.to_starlette_response()
        await starlette_response(scope, receive, send)

    async def _dispatch(
        self,
        handler_index: int,
        request: schemagate.exchange.RequestState,
        response: typing.Any,
    ) -> None:
        if handler_index >= len(self.handlers):
            # Continuing past the last handler behaves like an unmatched route.
            raise starlette.exceptions.HTTPException(status_code=404)

        async def call_next(
            next_request: schemagate.exchange.RequestState,
            next_response: typing.Any,
        ) -> None:
            await self._dispatch(handler_index + 1, next_request, next_response)

        handler_result = self.handlers[handler_index](request, response, call_next)
        if inspect.isawaitable(handler_result):
            await handler_result


def route(
    path: str,
    *handlers: Handler,
    methods: typing.Sequence[str] = ("GET",),
    name: str | None = None,
) -> starlette.routing.Route:
    """
    Build a Starlette ``Route`` serving ``handlers`` as one chain.

    Example::

        route(
            "/users/{user_id}",
            schemagate.composer.validate(params=UserPathParameters),
            get_user,
            methods=["GET"],
        )
    """
    return starlette.routing.Route(
        path,
        HandlerChain(*handlers),
        methods=list(methods),
        name=name,
    )
