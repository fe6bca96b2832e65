"""
Write the example service's OpenAPI document to a file.

Usage::

    python generate_docs.py output/openapi-spec.json
    python generate_docs.py output/openapi-spec.yaml --format yaml
"""

import argparse
import pathlib

import configuration
import schemagate.openapi
import schemagate.server_factory


def main(argument_list: list[str] | None = None) -> None:
    argument_parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    argument_parser.add_argument("output_path", type=pathlib.Path)
    argument_parser.add_argument("--format", choices=["json", "yaml"], default="json", dest="output_format")
    arguments = argument_parser.parse_args(argument_list)

    application_configuration = configuration.ApplicationConfiguration()
    fastapi_application = schemagate.server_factory.create_application(application_configuration)
    document = schemagate.openapi.generate_openapi_spec(
        fastapi_application,
        schemagate.server_factory.build_openapi_document_configuration(application_configuration),
    )

    arguments.output_path.parent.mkdir(parents=True, exist_ok=True)
    arguments.output_path.write_text(
        schemagate.openapi.render_openapi_document(document, arguments.output_format),
        encoding="utf-8",
    )


if __name__ == "__main__":
    main()
