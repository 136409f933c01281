"""
Schema descriptors for Markdown-serializable models.

A serializable type is a pydantic model decorated with
``@markdown_serializable``. Its descriptor is derived once from the model's
declared fields (pydantic keeps declaration order) and cached for the life
of the process.

Per-field options are attached through ``typing.Annotated``:

    @markdown_serializable
    class Endpoint(MarkdownModel):
        id: UUID
        name: Annotated[str, MarkdownHeader()]
        parent: Annotated[Optional[str], MarkdownIgnore()] = None

Header text resolution depends on where a section is placed:

    root document         -> display title, else type name
    singular nested field -> the field's own name
    object array element  -> header field value, else display title, else type name
"""

import enum
import logging
import threading
import types
import typing
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_pascal

from graphify.markdown_errors import SchemaError
from graphify.markdown_values import SCALAR_TYPES, format_value

logger = logging.getLogger("graphify.markdown")


class MarkdownModel(BaseModel):
    """Base model whose attribute names appear in Markdown in PascalCase."""

    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True)


class MarkdownHeader:
    """Marks the field whose value labels the section of an array element."""

    def __repr__(self):
        return "MarkdownHeader()"


class MarkdownIgnore:
    """Excludes a field from serialization and parsing."""

    def __repr__(self):
        return "MarkdownIgnore()"


class MarkdownSubHeader:
    """Wraps the elements of an object array field in a section with this title."""

    def __init__(self, title: str):
        if not title:
            raise SchemaError("MarkdownSubHeader requires a non-empty title")
        self.title = title

    def __repr__(self):
        return f"MarkdownSubHeader({self.title!r})"


# Exact class -> display title. Not inherited by subclasses.
_SERIALIZABLE: Dict[type, Optional[str]] = {}


def markdown_serializable(cls=None, *, title: Optional[str] = None):
    """
    Mark a pydantic model as eligible for the Markdown codec.

    Usable bare (``@markdown_serializable``) or with a display title
    (``@markdown_serializable(title="Services overview")``) that replaces the
    class name wherever the type's own identity is shown as a header.
    """
    def wrap(model):
        if not (isinstance(model, type) and issubclass(model, BaseModel)):
            raise SchemaError(f"{model!r} is not a pydantic model")
        _SERIALIZABLE[model] = title
        return model

    if cls is None:
        return wrap
    return wrap(cls)


def is_markdown_serializable(cls) -> bool:
    return isinstance(cls, type) and cls in _SERIALIZABLE


class FieldKind(enum.Enum):
    SCALAR = "scalar"
    NESTED_OBJECT = "nested_object"
    SCALAR_ARRAY = "scalar_array"
    OBJECT_ARRAY = "object_array"


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    attribute: str
    kind: FieldKind
    required: bool
    nullable: bool = False
    ignored: bool = False
    is_header_source: bool = False
    sub_header: Optional[str] = None
    # scalar type for SCALAR / SCALAR_ARRAY, model class for the others
    item_type: Optional[type] = None

    @property
    def is_object(self) -> bool:
        return self.kind in (FieldKind.NESTED_OBJECT, FieldKind.OBJECT_ARRAY)


@dataclass(frozen=True)
class SchemaDescriptor:
    model: type
    type_name: str
    display_title: Optional[str]
    fields: Tuple[FieldDescriptor, ...] = field(default_factory=tuple)

    @property
    def title(self) -> str:
        return self.display_title or self.type_name

    @property
    def header_field(self) -> Optional[FieldDescriptor]:
        for f in self.fields:
            if f.is_header_source:
                return f
        return None

    def fields_of(self, kind: FieldKind) -> Tuple[FieldDescriptor, ...]:
        return tuple(f for f in self.fields if f.kind is kind and not f.ignored)

    def sections(self) -> Tuple[FieldDescriptor, ...]:
        """Non-scalar fields in the order their sections are written."""
        return (self.fields_of(FieldKind.NESTED_OBJECT)
                + self.fields_of(FieldKind.SCALAR_ARRAY)
                + self.fields_of(FieldKind.OBJECT_ARRAY))


_CACHE: Dict[type, SchemaDescriptor] = {}
_CACHE_LOCK = threading.RLock()


def get_schema(model) -> SchemaDescriptor:
    """
    Return the descriptor of a serializable model, building it on first use.

    Raises:
        SchemaError: If the model or any model reachable from it cannot be described
    """
    schema = _CACHE.get(model)
    if schema is not None:
        return schema
    with _CACHE_LOCK:
        schema = _CACHE.get(model)
        if schema is None:
            schema = _build(model, ())
        return schema


def _build(model, visiting: Tuple[type, ...]) -> SchemaDescriptor:
    if model in _CACHE:
        return _CACHE[model]
    if model in visiting:
        chain = " -> ".join(m.__name__ for m in visiting + (model,))
        raise SchemaError(f"Recursive schema: {chain}")
    if not is_markdown_serializable(model):
        raise SchemaError(f"{getattr(model, '__name__', model)!r} is not marked @markdown_serializable")

    if not model.__pydantic_complete__:
        model.model_rebuild()

    visiting = visiting + (model,)
    descriptors = []
    for attribute, info in model.model_fields.items():
        descriptor = _describe_field(model, attribute, info)
        if descriptor.is_object and not descriptor.ignored:
            _build(descriptor.item_type, visiting)
        descriptors.append(descriptor)

    headers = [d for d in descriptors if d.is_header_source]
    if len(headers) > 1:
        names = ", ".join(d.name for d in headers)
        raise SchemaError(f"{model.__name__} declares more than one header field: {names}")

    schema = SchemaDescriptor(
        model=model,
        type_name=model.__name__,
        display_title=_SERIALIZABLE[model],
        fields=tuple(descriptors),
    )
    _CACHE[model] = schema
    logger.debug(f"Built markdown schema for {model.__name__}: {[f.name for f in schema.fields]}")
    return schema


def _describe_field(model, attribute: str, info) -> FieldDescriptor:
    where = f"{model.__name__}.{attribute}"
    metadata = info.metadata or []
    ignored = any(isinstance(m, MarkdownIgnore) for m in metadata)
    is_header = any(isinstance(m, MarkdownHeader) for m in metadata)
    sub_headers = [m for m in metadata if isinstance(m, MarkdownSubHeader)]
    required = info.is_required()

    if ignored and required:
        raise SchemaError(f"Ignored field {where} must declare a default")
    if ignored and is_header:
        raise SchemaError(f"Header field {where} cannot be ignored")

    if ignored:
        # Never read or written, so its type does not matter.
        return FieldDescriptor(name=info.alias or attribute, attribute=attribute,
                               kind=FieldKind.SCALAR, required=False, ignored=True)

    annotation, nullable = _unwrap_optional(info.annotation, where)
    kind, item_type = _classify(annotation, where)

    if is_header and kind is not FieldKind.SCALAR:
        raise SchemaError(f"Header field {where} must be a scalar")
    if sub_headers and kind is not FieldKind.OBJECT_ARRAY:
        raise SchemaError(f"MarkdownSubHeader on {where} requires a list of models")
    if nullable and kind in (FieldKind.SCALAR_ARRAY, FieldKind.OBJECT_ARRAY):
        raise SchemaError(f"List field {where} cannot be optional; use an empty list")

    return FieldDescriptor(
        name=info.alias or attribute,
        attribute=attribute,
        kind=kind,
        required=required,
        nullable=nullable,
        is_header_source=is_header,
        sub_header=sub_headers[0].title if sub_headers else None,
        item_type=item_type,
    )


def _classify(annotation, where: str):
    if typing.get_origin(annotation) is list:
        args = typing.get_args(annotation)
        if len(args) != 1:
            raise SchemaError(f"List field {where} must declare its element type")
        element = args[0]
        if element in SCALAR_TYPES:
            return FieldKind.SCALAR_ARRAY, element
        if is_markdown_serializable(element):
            return FieldKind.OBJECT_ARRAY, element
        raise SchemaError(f"Unsupported list element type {element!r} for {where}")
    if annotation in SCALAR_TYPES:
        return FieldKind.SCALAR, annotation
    if is_markdown_serializable(annotation):
        return FieldKind.NESTED_OBJECT, annotation
    raise SchemaError(f"Unsupported field type {annotation!r} for {where}")


def _unwrap_optional(annotation, where: str):
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is getattr(types, "UnionType", None):
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) != 1:
            raise SchemaError(f"Union type on {where} is not supported")
        return args[0], True
    return annotation, False


# ---------------------------------------------------------------------------
# Header resolution
# ---------------------------------------------------------------------------

def root_header(schema: SchemaDescriptor) -> str:
    return schema.title


def nested_header(descriptor: FieldDescriptor) -> str:
    return descriptor.name


def element_header(schema: SchemaDescriptor, instance) -> str:
    header = schema.header_field
    if header is not None:
        value = getattr(instance, header.attribute)
        if value is not None:
            return format_value(value, header.item_type)
    return schema.title


def fixed_header(descriptor: FieldDescriptor) -> Optional[str]:
    """
    Exact header text that opens the first section of a field, or None when
    the text depends on element values.
    """
    if descriptor.kind in (FieldKind.NESTED_OBJECT, FieldKind.SCALAR_ARRAY):
        return nested_header(descriptor)
    if descriptor.kind is FieldKind.OBJECT_ARRAY:
        if descriptor.sub_header:
            return descriptor.sub_header
        element = get_schema(descriptor.item_type)
        if element.header_field is None:
            return element.title
    return None
