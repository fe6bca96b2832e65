"""
FastAPI application factory for the example todo service.

``create_application`` builds a fully configured FastAPI instance:
structured logging, error handlers, the correlation-ID middleware, the
in-memory todo repository, and the validated health and todo routes.

The OpenAPI document FastAPI serves at ``/openapi.json`` (and therefore
the ``/docs`` page) is produced by ``schemagate.openapi`` from the route
contracts.  ``/openapi.yaml`` serves the same document as YAML.
"""

import collections.abc
import contextlib

import fastapi
import fastapi.responses
import structlog

import configuration
import schemagate.error_handling
import schemagate.logging_config
import schemagate.middleware
import schemagate.openapi
import schemagate.routes.health_routes
import schemagate.routes.todo_routes
import schemagate.services.todo_repository

logger = structlog.get_logger()


def build_openapi_document_configuration(
    application_configuration: configuration.ApplicationConfiguration,
) -> schemagate.openapi.OpenApiDocumentConfiguration:
    """Translate the environment-driven settings into document settings."""
    servers = None
    if application_configuration.openapi_server_urls:
        servers = [
            schemagate.openapi.OpenApiServer(url=server_url)
            for server_url in application_configuration.openapi_server_urls
        ]
    return schemagate.openapi.OpenApiDocumentConfiguration(
        openapi=application_configuration.openapi_version,
        info=schemagate.openapi.OpenApiInfo(
            title=application_configuration.openapi_document_title,
            version=application_configuration.openapi_document_version,
            description=application_configuration.openapi_document_description,
        ),
        servers=servers,
    )


def create_application(
    application_configuration: configuration.ApplicationConfiguration | None = None,
) -> fastapi.FastAPI:
    """
    Create and fully configure the FastAPI application.

    Args:
        application_configuration: Settings to use.  Read from the
            environment when omitted.
    """
    if application_configuration is None:
        application_configuration = configuration.ApplicationConfiguration()
    schemagate.logging_config.configure_logging(
        log_level=application_configuration.log_level,
        log_format=application_configuration.log_format,
    )

    @contextlib.asynccontextmanager
    async def application_lifespan(
        fastapi_application: fastapi.FastAPI,
    ) -> collections.abc.AsyncIterator[None]:
        logger.info(
            "application_started",
            validated_route_count=len(
                schemagate.openapi.collect_validated_routes(fastapi_application.routes)
            ),
        )
        yield
        logger.info(
            "application_shutdown_complete",
            todo_item_count=len(fastapi_application.state.todo_repository),
        )

    openapi_document_configuration = build_openapi_document_configuration(application_configuration)

    fastapi_application = fastapi.FastAPI(
        title=openapi_document_configuration.info.title,
        description=openapi_document_configuration.info.description or "",
        version=openapi_document_configuration.info.version,
        lifespan=application_lifespan,
    )
    fastapi_application.state.todo_repository = schemagate.services.todo_repository.TodoRepository()

    schemagate.error_handling.register_error_handlers(fastapi_application)

    fastapi_application.add_middleware(schemagate.middleware.CorrelationIdMiddleware)

    fastapi_application.router.routes.extend(schemagate.routes.health_routes.health_routes)
    fastapi_application.router.routes.extend(schemagate.routes.todo_routes.todo_routes)

    _serve_generated_openapi_document(fastapi_application, openapi_document_configuration)

    return fastapi_application


def _serve_generated_openapi_document(
    fastapi_application: fastapi.FastAPI,
    openapi_document_configuration: schemagate.openapi.OpenApiDocumentConfiguration,
) -> None:
    """
    Replace FastAPI's own OpenAPI generation with the contract-based one.

    FastAPI only documents its ``APIRoute``s; the validated handler chains
    are plain Starlette routes and would be missing.  The document is
    generated on first use and cached on ``openapi_schema``.
    """

    def generated_openapi() -> dict:
        if fastapi_application.openapi_schema:
            return fastapi_application.openapi_schema
        fastapi_application.openapi_schema = schemagate.openapi.generate_openapi_spec(
            fastapi_application,
            openapi_document_configuration,
        )
        return fastapi_application.openapi_schema

    fastapi_application.openapi = generated_openapi  # type: ignore[method-assign]

    @fastapi_application.get("/openapi.yaml", include_in_schema=False)
    async def openapi_yaml() -> fastapi.responses.PlainTextResponse:
        return fastapi.responses.PlainTextResponse(
            schemagate.openapi.render_openapi_document(fastapi_application.openapi(), "yaml"),
            media_type="application/yaml",
        )
