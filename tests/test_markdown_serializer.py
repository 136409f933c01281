"""
Tests for model to Markdown serialization.
"""

from datetime import datetime, timezone

import pytest

from graphify.markdown_errors import FormatError, SchemaError
from graphify.markdown_serializer import MarkdownSerializer, serialize
from graphify.models import Endpoint, Endpoints, Relations, Service, UseCase, UseCaseStep
from tests.markdown_fixtures import (
    CUSTOM_OBJ,
    CUSTOM_OBJ_MARKDOWN,
    GUID_1,
    GUID_2,
    NESTED,
    NESTED_MARKDOWN,
    OBJECT_ARRAY,
    OBJECT_ARRAY_MARKDOWN,
    SCALAR_ARRAYS,
    SCALAR_ARRAYS_MARKDOWN,
    STAMP,
    CustomObj,
    Holder,
    Mixed,
    Named,
    ObjectArrayObj,
    ScalarArraysObj,
    SubHeaded,
    Titled,
    WithIgnored,
)


class TestFixtureDocuments:

    def test_scalars_only(self):
        assert serialize(CUSTOM_OBJ) == CUSTOM_OBJ_MARKDOWN

    def test_object_array(self):
        assert serialize(OBJECT_ARRAY) == OBJECT_ARRAY_MARKDOWN

    def test_scalar_arrays(self):
        assert serialize(SCALAR_ARRAYS) == SCALAR_ARRAYS_MARKDOWN

    def test_nested_object(self):
        assert serialize(NESTED) == NESTED_MARKDOWN

    def test_facade(self):
        assert MarkdownSerializer.serialize(CUSTOM_OBJ) == CUSTOM_OBJ_MARKDOWN

    def test_output_is_stable(self):
        assert serialize(NESTED) == serialize(NESTED.model_copy(deep=True))


class TestHeaders:

    def test_nested_section_uses_field_name_not_type_title(self):
        holder = Holder(inner=Titled(value=1), titled_list=[Titled(value=2)])
        assert serialize(holder) == (
            "# Holder\n"
            "\n"
            "## Inner\n"
            "- Value: 1\n"
            "\n"
            "## Titled thing\n"
            "- Value: 2"
        )

    def test_root_uses_display_title(self):
        assert serialize(Titled(value=3)) == "# Titled thing\n- Value: 3"

    def test_elements_use_header_field_value(self):
        doc = Mixed(title="T", stamp=STAMP,
                    named=[Named(name="First", value=1), Named(name="Second", value=2)])
        assert serialize(doc) == (
            "# Mixed\n"
            "- Title: T\n"
            "- Stamp: 2024-10-15T14:30:00Z\n"
            "\n"
            "## Labels\n"
            "\n"
            "## First\n"
            "- Name: First\n"
            "- Value: 1\n"
            "\n"
            "## Second\n"
            "- Name: Second\n"
            "- Value: 2"
        )

    def test_sections_follow_kind_order(self):
        doc = Mixed(title="T", stamp=STAMP, labels=["x"],
                    child=CustomObj(id=1, name="c", is_some_flag=False),
                    named=[Named(name="N", value=1)])
        lines = serialize(doc).split("\n")
        headings = [line for line in lines if line.startswith("#")]
        assert headings == ["# Mixed", "## Child", "## Labels", "## N"]

    def test_sub_header_wraps_elements(self):
        doc = SubHeaded(named=[Named(name="A", value=1)], tags=[])
        assert serialize(doc) == (
            "# SubHeaded\n"
            "\n"
            "## Named items\n"
            "\n"
            "### A\n"
            "- Name: A\n"
            "- Value: 1\n"
            "\n"
            "## Tags"
        )


class TestOmission:

    def test_ignored_field_never_appears(self):
        text = serialize(WithIgnored(id=1, secret="do not write"))
        assert "Secret" not in text
        assert "do not write" not in text

    def test_absent_optional_scalar_is_omitted(self):
        assert serialize(WithIgnored(id=1)) == "# WithIgnored\n- Id: 1"

    def test_present_optional_scalar_is_written(self):
        text = serialize(WithIgnored(id=1, comment="hi", created_at=STAMP))
        assert text == "# WithIgnored\n- Id: 1\n- Comment: hi\n- CreatedAt: 2024-10-15T14:30:00Z"

    def test_empty_string_keeps_its_bullet(self):
        assert serialize(CustomObj(id=0, name="", is_some_flag=False)) == (
            "# CustomObj\n- Id: 0\n- Name: \n- IsSomeFlag: False"
        )

    def test_empty_scalar_arrays_keep_their_headers(self):
        doc = ScalarArraysObj(names=[], indexes=[], ids=[])
        assert serialize(doc) == "# ScalarArraysObj\n\n## Names\n\n## Indexes\n\n## Ids"

    def test_empty_object_array_writes_nothing(self):
        assert serialize(ObjectArrayObj(items=[])) == "# ObjectArrayObj"


class TestErrors:

    def test_naive_timestamp_aborts_serialization(self):
        doc = WithIgnored(id=1, created_at=datetime(2024, 1, 1))
        with pytest.raises(FormatError) as info:
            serialize(doc)
        assert info.value.path == "WithIgnored.CreatedAt"

    def test_error_path_points_into_arrays(self):
        doc = Mixed(title="T", stamp=STAMP, named=[Named(name="ok", value=1)])
        doc.named[0].value = "not an int"
        with pytest.raises(FormatError) as info:
            serialize(doc)
        assert info.value.path == "Mixed.Named[0].Value"

    def test_undecorated_type(self):
        class Child(CustomObj):
            pass

        with pytest.raises(SchemaError):
            serialize(Child(id=1, name="n", is_some_flag=True))


class TestGraphDocuments:
    """Documents of the stored graph entities."""

    def test_service(self):
        service = Service(
            id=GUID_1,
            name="UserService",
            description="Handles user authentication and management",
            last_analyzed_at=STAMP,
            relative_code_path="src/services/UserService.cs",
        )
        assert serialize(service) == (
            "# Service\n"
            f"- Id: {GUID_1}\n"
            "- Name: UserService\n"
            "- Description: Handles user authentication and management\n"
            "- LastAnalyzedAt: 2024-10-15T14:30:00Z\n"
            "- RelativeCodePath: src/services/UserService.cs"
        )

    def test_endpoints(self):
        endpoints = Endpoints(endpoint_list=[
            Endpoint(id=GUID_2, name="GetUser", description="Retrieves user by ID", type="http",
                     last_analyzed_at=datetime(2024, 10, 15, 15, 0, tzinfo=timezone.utc),
                     relative_code_path="src/controllers/UserController.cs"),
            Endpoint(id=GUID_1, name="CreateUser", description="Creates a new user", type="http",
                     last_analyzed_at=datetime(2024, 10, 15, 16, 0, tzinfo=timezone.utc)),
        ])
        assert serialize(endpoints) == (
            "# Endpoints\n"
            "\n"
            "## GetUser\n"
            f"- Id: {GUID_2}\n"
            "- Name: GetUser\n"
            "- Description: Retrieves user by ID\n"
            "- Type: http\n"
            "- LastAnalyzedAt: 2024-10-15T15:00:00Z\n"
            "- RelativeCodePath: src/controllers/UserController.cs\n"
            "\n"
            "## CreateUser\n"
            f"- Id: {GUID_1}\n"
            "- Name: CreateUser\n"
            "- Description: Creates a new user\n"
            "- Type: http\n"
            "- LastAnalyzedAt: 2024-10-15T16:00:00Z"
        )

    def test_relations(self):
        relations = Relations(target_endpoint_ids=[GUID_1, GUID_2])
        assert serialize(relations) == (
            "# Relations\n"
            "\n"
            "## TargetEndpointIds\n"
            f"- {GUID_1}\n"
            f"- {GUID_2}"
        )

    def test_use_case_ignores_location_ids(self):
        use_case = UseCase(
            id=GUID_1,
            service_id=GUID_2,
            name="Sign up",
            description="New user registration",
            initiating_endpoint_id=GUID_2,
            last_analyzed_at=STAMP,
            steps=[UseCaseStep(name="Validate", description="Check input", endpoint_id=GUID_2)],
        )
        assert serialize(use_case) == (
            "# UseCase\n"
            "- Name: Sign up\n"
            "- Description: New user registration\n"
            f"- InitiatingEndpointId: {GUID_2}\n"
            "- LastAnalyzedAt: 2024-10-15T14:30:00Z\n"
            "\n"
            "## Validate\n"
            "- Name: Validate\n"
            "- Description: Check input\n"
            f"- EndpointId: {GUID_2}"
        )
