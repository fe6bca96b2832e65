"""Tests for schemagate/schemas.py: schema compilation, media types and JSON Schema output."""

import datetime
import uuid

import pydantic
import pytest

import schemagate.schemas


class Address(pydantic.BaseModel):
    city: str


class Person(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(populate_by_name=True)

    full_name: str = pydantic.Field(alias="fullName")
    address: Address


class TestCompileSchema:

    def test_none_compiles_to_a_no_body_schema(self):
        adapter = schemagate.schemas.compile_schema(schemagate.schemas.NO_CONTENT)

        assert adapter.validate_python(None) is None
        with pytest.raises(pydantic.ValidationError):
            adapter.validate_python("")

    def test_type_adapters_are_passed_through(self):
        adapter = pydantic.TypeAdapter(int)
        assert schemagate.schemas.compile_schema(adapter) is adapter

    def test_no_body_detection(self):
        assert schemagate.schemas.is_no_body_schema(None)
        assert schemagate.schemas.is_no_body_schema(type(None))
        assert not schemagate.schemas.is_no_body_schema(Person)


class TestMediaTypes:

    @pytest.mark.parametrize(
        ("content_type", "is_structured"),
        [
            ("application/json", True),
            ("Application/JSON; charset=utf-8", True),
            ("application/problem+json", True),
            ("text/html", False),
            ("application/octet-stream", False),
            ("", False),
            (None, False),
        ],
    )
    def test_is_structured_media_type(self, content_type, is_structured):
        assert schemagate.schemas.is_structured_media_type(content_type) is is_structured

    def test_extract_media_type_drops_parameters(self):
        assert schemagate.schemas.extract_media_type("text/plain; charset=utf-8") == "text/plain"


class TestSerialisation:

    def test_dump_uses_aliases(self):
        adapter = pydantic.TypeAdapter(Person)
        person = adapter.validate_python({"fullName": "Ada", "address": {"city": "London"}})

        assert schemagate.schemas.dump_validated_value(adapter, person) == {
            "fullName": "Ada",
            "address": {"city": "London"},
        }

    def test_serialise_json_handles_non_json_types(self):
        identifier = uuid.UUID("5ee71256-98e7-4892-bae0-305b4992412c")
        serialised = schemagate.schemas.serialise_json(
            {"id": identifier, "at": datetime.date(2024, 1, 2), "name": "é"}
        )

        assert serialised == '{"id":"5ee71256-98e7-4892-bae0-305b4992412c","at":"2024-01-02","name":"é"}'


class TestGenerateJsonSchemas:

    def test_definitions_are_shared_and_referenced_from_components(self):
        schemas, definitions = schemagate.schemas.generate_json_schemas(
            [
                ("person", "validation", pydantic.TypeAdapter(Person)),
                ("people", "serialization", pydantic.TypeAdapter(list[Person])),
            ]
        )

        assert schemas["person"] == {"$ref": "#/components/schemas/Person"}
        assert schemas["people"]["items"] == {"$ref": "#/components/schemas/Person"}
        assert definitions["Person"]["properties"]["address"] == {"$ref": "#/components/schemas/Address"}
        assert "fullName" in definitions["Person"]["properties"]
        assert definitions["Address"]["properties"]["city"]["type"] == "string"

    def test_modes_with_different_schemas_get_distinct_names(self):
        class Account(pydantic.BaseModel):
            name: str

            @pydantic.computed_field
            @property
            def display_name(self) -> str:
                return self.name.title()

        adapter = pydantic.TypeAdapter(Account)
        schemas, definitions = schemagate.schemas.generate_json_schemas(
            [("input", "validation", adapter), ("output", "serialization", adapter)]
        )

        assert schemas["input"] != schemas["output"]
        assert len(definitions) == 2

    def test_no_inputs_yield_nothing(self):
        assert schemagate.schemas.generate_json_schemas([]) == ({}, {})


class TestConvertToOpenapi30:

    def test_null_union_becomes_nullable(self):
        converted = schemagate.schemas.convert_to_openapi_30(
            {"anyOf": [{"type": "string", "maxLength": 5}, {"type": "null"}], "default": None, "title": "Note"}
        )

        assert converted == {"type": "string", "maxLength": 5, "default": None, "title": "Note", "nullable": True}

    def test_union_of_several_types_keeps_any_of(self):
        converted = schemagate.schemas.convert_to_openapi_30(
            {"anyOf": [{"type": "string"}, {"type": "integer"}, {"type": "null"}]}
        )

        assert converted == {"anyOf": [{"type": "string"}, {"type": "integer"}], "nullable": True}

    def test_type_list_with_null(self):
        assert schemagate.schemas.convert_to_openapi_30({"type": ["integer", "null"]}) == {
            "type": "integer",
            "nullable": True,
        }

    def test_nested_schemas_are_converted(self):
        converted = schemagate.schemas.convert_to_openapi_30(
            {
                "type": "object",
                "properties": {
                    "tags": {"type": "array", "items": {"const": "x"}},
                    "const": {"type": "integer", "exclusiveMinimum": 1},
                },
            }
        )

        assert converted["properties"]["tags"]["items"] == {"enum": ["x"]}
        assert converted["properties"]["const"] == {"type": "integer", "minimum": 1, "exclusiveMinimum": True}

    def test_values_of_non_schema_keywords_are_left_alone(self):
        json_schema = {"type": "object", "default": {"const": 1}, "examples": [{"anyOf": None}]}

        assert schemagate.schemas.convert_to_openapi_30(json_schema) == json_schema
