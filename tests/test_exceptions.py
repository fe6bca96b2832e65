"""Tests for schemagate/exceptions.py: custom exception classes."""

import schemagate.exceptions
import schemagate.models


class TestSchemaGateErrorBase:

    def test_all_exceptions_inherit_from_schema_gate_error(self):
        for exception_class in (
            schemagate.exceptions.ConfigurationError,
            schemagate.exceptions.ResponseValidationError,
            schemagate.exceptions.ResponseBodyDecodeError,
            schemagate.exceptions.MalformedRequestBodyError,
        ):
            assert issubclass(exception_class, schemagate.exceptions.SchemaGateError)

    def test_configuration_faults_share_a_category(self):
        for exception_class in (
            schemagate.exceptions.ConflictingResponseSchemasError,
            schemagate.exceptions.InvalidStatusCodeError,
            schemagate.exceptions.ResponseSchemaNotDefinedError,
            schemagate.exceptions.UnattachedHandlerError,
            schemagate.exceptions.ResponseAlreadySentError,
        ):
            assert issubclass(exception_class, schemagate.exceptions.ConfigurationError)


class TestDetail:

    def test_default_message(self):
        exc = schemagate.exceptions.UnattachedHandlerError()
        assert "use(handler)" in exc.detail
        assert str(exc) == exc.detail

    def test_custom_message(self):
        exc = schemagate.exceptions.ResponseBodyDecodeError(detail="Custom detail")
        assert exc.detail == "Custom detail"
        assert str(exc) == "Custom detail"


class TestResponseSchemaNotDefinedError:

    def test_message_names_the_status_code(self):
        exc = schemagate.exceptions.ResponseSchemaNotDefinedError(418)
        assert exc.status_code == 418
        assert exc.detail == "No response schema defined for status code 418."


class TestResponseValidationError:

    def test_carries_status_and_issues(self):
        issues = [schemagate.models.ValidationIssue(path=["id"], message="Field required", code="missing", location="response")]
        exc = schemagate.exceptions.ResponseValidationError(200, issues)

        assert exc.status_code == 200
        assert exc.issues == issues
        assert "1 issue(s)" in exc.detail
