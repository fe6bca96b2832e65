"""
Application configuration module.

Loads configuration values from environment variables with the prefix
SCHEMAGATE_.  Defaults suit local development.  A .env file is also
supported via pydantic-settings.
"""

import typing

import pydantic
import pydantic_settings


class ApplicationConfiguration(pydantic_settings.BaseSettings):
    """
    Centralised configuration for the schemagate example service.

    Every field maps to an environment variable prefixed with SCHEMAGATE_.
    For example, ``openapi_document_title`` is populated from
    SCHEMAGATE_OPENAPI_DOCUMENT_TITLE.

    Configuration categories
    ------------------------
    - **Application**: host, port, log level, log format
    - **OpenAPI document**: OpenAPI version, API title, version and
      description, server URLs
    """

    # ── Application settings ─────────────────────────────────────────────

    application_host: str = "127.0.0.1"

    application_port: int = pydantic.Field(default=8000, ge=1, le=65535)

    log_level: str = pydantic.Field(
        default="INFO",
        description=(
            "Minimum log level for structured logging. "
            "Accepted values: DEBUG, INFO, WARNING, ERROR, CRITICAL."
        ),
    )

    log_format: typing.Literal["json", "console"] = pydantic.Field(
        default="json",
        description="Log rendering: one JSON object per line, or console key=value lines.",
    )

    # ── OpenAPI document settings ─────────────────────────────────────────

    openapi_version: str = pydantic.Field(
        default="3.0.0",
        description="Value of the ``openapi`` field of the generated document.",
    )

    openapi_document_title: str = pydantic.Field(
        default="API",
        min_length=1,
        description="Title of the described API (``info.title``).",
    )

    openapi_document_version: str = pydantic.Field(
        default="1.0.0",
        min_length=1,
        description="Version of the described API (``info.version``).",
    )

    openapi_document_description: str = pydantic.Field(
        default="Auto Generated API by schemagate",
        description="Description of the described API (``info.description``).",
    )

    openapi_server_urls: list[str] = pydantic.Field(
        default=[],
        description=(
            "Server URLs listed in the document as a JSON list. An empty list "
            "omits ``servers``. Example: '[\"https://api.example.com\"]'."
        ),
    )

    model_config = pydantic_settings.SettingsConfigDict(
        env_file=".env",
        env_prefix="SCHEMAGATE_",
    )

    @pydantic.field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, log_level: str) -> str:
        normalised_log_level = log_level.upper()
        if normalised_log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level {log_level!r}.")
        return normalised_log_level
