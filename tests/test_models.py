"""Tests for schemagate/models.py: validation issues and error envelopes."""

import pydantic
import pytest

import schemagate.models


class Order(pydantic.BaseModel):
    quantity: int = pydantic.Field(gt=0)
    items: list[str]


class TestValidationIssue:

    def test_issues_are_built_from_a_validation_error(self):
        with pytest.raises(pydantic.ValidationError) as exception_info:
            Order.model_validate({"quantity": 0, "items": ["a", 2]})

        issues = schemagate.models.ValidationIssue.from_validation_error(exception_info.value, location="body")

        assert [(issue.path, issue.code) for issue in issues] == [
            (["quantity"], "greater_than"),
            (["items", 1], "string_type"),
        ]
        assert all(issue.location == "body" for issue in issues)

    def test_issue_never_carries_the_input_value(self):
        with pytest.raises(pydantic.ValidationError) as exception_info:
            Order.model_validate({"quantity": "secret-token", "items": []})

        [issue] = schemagate.models.ValidationIssue.from_validation_error(exception_info.value, location="body")

        assert "secret-token" not in issue.model_dump_json()


class TestErrorResponse:

    def test_details_are_omitted_when_unset(self):
        error_response = schemagate.models.ErrorResponse(
            error=schemagate.models.ErrorDetail(code="not_found", message="Missing.", correlation_id="abc"),
        )

        assert error_response.model_dump(exclude_unset=True) == {
            "error": {"code": "not_found", "message": "Missing.", "correlation_id": "abc"},
        }
