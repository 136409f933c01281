"""
Model to Markdown serialization.

The output grammar:

    # <root header>
    - <Field>: <value>            one bullet per scalar, declaration order

    ## <nested field name>        one section per nested object
    ## <scalar array field name>  followed by "- <value>" per element
    ## <element header>           one section per object array element

Sections are separated by a single blank line; there is no trailing newline.
"""

from typing import List

from graphify.markdown_errors import FormatError
from graphify.markdown_schema import (
    FieldKind,
    SchemaDescriptor,
    element_header,
    get_schema,
    nested_header,
    root_header,
)
from graphify.markdown_values import format_value


def serialize(instance) -> str:
    """
    Serialize a ``@markdown_serializable`` model instance to Markdown.

    Args:
        instance: Model instance to serialize

    Returns:
        The Markdown document

    Raises:
        SchemaError: If the instance's type cannot be described
        FormatError: If any value cannot be formatted (no partial output)
    """
    schema = get_schema(type(instance))
    sections: List[List[str]] = []
    _write_object(instance, schema, root_header(schema), 1, sections, schema.type_name)
    return "\n\n".join("\n".join(lines) for lines in sections)


def _heading(level: int, text: str) -> str:
    return f"{'#' * level} {text}"


def _format(value, scalar_type, path: str) -> str:
    try:
        return format_value(value, scalar_type)
    except FormatError as e:
        raise FormatError(e.message, expected=e.expected, path=path) from e


def _write_object(instance, schema: SchemaDescriptor, header: str, level: int,
                  sections: List[List[str]], path: str):
    lines = [_heading(level, header)]
    sections.append(lines)

    for f in schema.fields_of(FieldKind.SCALAR):
        value = getattr(instance, f.attribute)
        field_path = f"{path}.{f.name}"
        if value is None:
            if f.nullable:
                continue
            raise FormatError("Required value is missing", path=field_path)
        lines.append(f"- {f.name}: {_format(value, f.item_type, field_path)}")

    for f in schema.sections():
        value = getattr(instance, f.attribute)
        field_path = f"{path}.{f.name}"

        if f.kind is FieldKind.NESTED_OBJECT:
            if value is None:
                if f.nullable:
                    continue
                raise FormatError("Required object is missing", path=field_path)
            _write_object(value, get_schema(f.item_type), nested_header(f),
                          level + 1, sections, field_path)

        elif f.kind is FieldKind.SCALAR_ARRAY:
            array_lines = [_heading(level + 1, nested_header(f))]
            for index, item in enumerate(value):
                array_lines.append(f"- {_format(item, f.item_type, f'{field_path}[{index}]')}")
            sections.append(array_lines)

        else:
            element_level = level + 1
            if f.sub_header:
                sections.append([_heading(level + 1, f.sub_header)])
                element_level = level + 2
            element_schema = get_schema(f.item_type)
            for index, item in enumerate(value):
                item_path = f"{field_path}[{index}]"
                try:
                    item_header = element_header(element_schema, item)
                except FormatError as e:
                    raise FormatError(e.message, expected=e.expected, path=item_path) from e
                _write_object(item, element_schema, item_header, element_level, sections, item_path)


class MarkdownSerializer:
    """Entry points mirroring ``serialize`` / ``deserialize``."""

    @staticmethod
    def serialize(instance) -> str:
        return serialize(instance)

    @staticmethod
    def deserialize(cls, markdown: str):
        from graphify.markdown_parser import deserialize
        return deserialize(cls, markdown)
