"""
Request-context middleware.

``CorrelationIdMiddleware`` is the outermost layer of the application:

- It assigns a UUID v4 correlation ID to every HTTP request, stores it on
  the scope state (``request.state.correlation_id``), binds it to the
  structlog context, and returns it in the ``X-Correlation-ID`` header.
- It logs ``http_request_received`` and ``http_request_completed`` for
  every request.
- It is the catch-all error boundary: an exception that no registered
  handler took care of becomes a JSON 500 response here.

Handler chains copy the scope state into the per-request ``locals`` bag,
so the correlation ID is also readable as ``response.locals["correlation_id"]``.
"""

import json
import time
import uuid

import starlette.types
import structlog
import structlog.contextvars

logger = structlog.get_logger()

CORRELATION_ID_HEADER_NAME = b"x-correlation-id"


class CorrelationIdMiddleware:
    """
    Assign a correlation ID to every request and contain unhandled errors.

    Implemented as a pure ASGI middleware.  ``BaseHTTPMiddleware`` would
    wrap unhandled exceptions in an ``ExceptionGroup``, and an ``Exception``
    handler registered on the application is run by Starlette's
    ``ServerErrorMiddleware``, which re-raises after responding.  Catching
    here keeps the failure inside this layer.
    """

    def __init__(self, app: starlette.types.ASGIApp) -> None:
        self.app = app

    async def __call__(
        self,
        scope: starlette.types.Scope,
        receive: starlette.types.Receive,
        send: starlette.types.Send,
    ) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        correlation_id = str(uuid.uuid4())
        method = scope.get("method", "")
        path = scope.get("path", "")
        start_time = time.monotonic()
        response_status = 0
        response_started = False

        if "state" not in scope:
            scope["state"] = {}
        scope["state"]["correlation_id"] = correlation_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

        logger.info("http_request_received", method=method, path=path)

        async def send_with_correlation_id(message: starlette.types.Message) -> None:
            nonlocal response_status, response_started
            if message["type"] == "http.response.start":
                response_status = message.get("status", 0)
                response_started = True
                headers = list(message.get("headers", []))
                headers.append((CORRELATION_ID_HEADER_NAME, correlation_id.encode()))
                message["headers"] = headers
            await send(message)

        try:
            await self.app(scope, receive, send_with_correlation_id)
        except Exception:
            logger.exception("unexpected_exception", method=method, path=path)
            if response_started:
                # Headers are already on the wire; nothing more can be sent.
                raise
            response_status = 500
            await self._send_internal_server_error(send, correlation_id)
        finally:
            duration_milliseconds = (time.monotonic() - start_time) * 1000
            logger.info(
                "http_request_completed",
                method=method,
                path=path,
                status=response_status,
                duration_milliseconds=round(duration_milliseconds, 1),
            )

    @staticmethod
    async def _send_internal_server_error(
        send: starlette.types.Send,
        correlation_id: str,
    ) -> None:
        error_response_body = json.dumps(
            {
                "error": {
                    "code": "internal_server_error",
                    "message": "An unexpected internal error occurred.",
                    "correlation_id": correlation_id,
                }
            }
        ).encode()
        await send(
            {
                "type": "http.response.start",
                "status": 500,
                "headers": [
                    (b"content-type", b"application/json"),
                    (CORRELATION_ID_HEADER_NAME, correlation_id.encode()),
                ],
            }
        )
        await send({"type": "http.response.body", "body": error_response_body})
