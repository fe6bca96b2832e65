"""
Liveness endpoint.

``GET /health`` answers ``{"status": "healthy"}`` while the process is
running.  It is a validated route like any other, so it shows up in the
generated OpenAPI document.
"""

import typing

import pydantic

import schemagate.composer
import schemagate.exchange
import schemagate.routing

_CACHE_SUPPRESSION_HEADERS: dict[str, str] = {
    "Cache-Control": "no-store, no-cache",
    "Pragma": "no-cache",
}


class HealthResponse(pydantic.BaseModel):
    status: typing.Literal["healthy"] = pydantic.Field(
        ...,
        description="Always ``healthy`` when the process is alive.",
    )


def health_check(
    request: schemagate.exchange.RequestState,
    response: typing.Any,
    call_next: schemagate.routing.CallNext,
) -> None:
    for header_name, header_value in _CACHE_SUPPRESSION_HEADERS.items():
        response.set_header(header_name, header_value)
    response.json({"status": "healthy"})


health_routes = [
    schemagate.routing.route(
        "/health",
        schemagate.composer.validate(response=HealthResponse),
        health_check,
        methods=["GET"],
        name="health_check",
    ),
]
