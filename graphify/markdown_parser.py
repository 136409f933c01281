"""
Markdown to model parsing.

Parsing runs in two stages:

1. ``tokenize`` turns the text into a flat list of blocks, either headings
   (``Header``) or bullet lines (``Item``). Blank lines are dropped; any
   other line is a grammar error.
2. ``deserialize`` walks those blocks against the target model's schema
   descriptor. Field kinds come from the schema, never from the text: each
   field in turn says which heading it expects next, and the walk fails on
   the first block that no field claims.

The result is built only once the whole document has been accepted, so a
failed parse never yields a partially populated model.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from graphify.markdown_errors import (
    AmbiguousFieldError,
    DeserializationError,
    FormatError,
    GrammarError,
    MissingFieldError,
)
from graphify.markdown_schema import (
    FieldDescriptor,
    FieldKind,
    SchemaDescriptor,
    element_header,
    fixed_header,
    get_schema,
    nested_header,
    root_header,
)
from graphify.markdown_values import parse_value

logger = logging.getLogger("graphify.markdown")


@dataclass(frozen=True)
class Header:
    level: int
    text: str
    line: int


@dataclass(frozen=True)
class Item:
    raw: str
    line: int


Block = Union[Header, Item]


def tokenize(text: str) -> List[Block]:
    """
    Split a document into heading and bullet blocks.

    Raises:
        GrammarError: On a line that is neither a heading nor a bullet
    """
    blocks: List[Block] = []
    for number, line in enumerate(text.split("\n"), start=1):
        line = line.rstrip("\r")
        if not line.strip():
            continue
        if line.startswith("#"):
            level = len(line) - len(line.lstrip("#"))
            rest = line[level:]
            if not rest.startswith(" "):
                raise GrammarError(f"Malformed heading {line!r}", line=number,
                                   expected="'#' characters followed by a space")
            blocks.append(Header(level, rest[1:], number))
        elif line.startswith("- "):
            blocks.append(Item(line[2:], number))
        elif line == "-":
            # "- " with its trailing space trimmed by an editor
            blocks.append(Item("", number))
        else:
            raise GrammarError(f"Unexpected text {line!r}", line=number,
                               expected="a heading or a bullet")
    return blocks


class _Cursor:
    def __init__(self, blocks: List[Block]):
        self.blocks = blocks
        self.pos = 0

    def peek(self) -> Optional[Block]:
        if self.pos < len(self.blocks):
            return self.blocks[self.pos]
        return None

    def take(self) -> Block:
        block = self.blocks[self.pos]
        self.pos += 1
        return block

    def header_at(self, level: int) -> Optional[Header]:
        """Next block if it is a heading at ``level``; None if the current section has ended."""
        block = self.peek()
        if block is None or isinstance(block, Item):
            return None
        if block.level > level:
            raise GrammarError(f"Heading '{block.text}' skips a nesting level", line=block.line,
                               expected=f"heading level {level} or lower")
        if block.level < level:
            return None
        return block


def deserialize(cls, markdown: str):
    """
    Parse a Markdown document into an instance of ``cls``.

    Args:
        cls: A ``@markdown_serializable`` pydantic model class
        markdown: The document text

    Returns:
        A fully populated instance of ``cls``

    Raises:
        SchemaError: If ``cls`` cannot be described
        FormatError: If a value does not match its declared type
        MissingFieldError: If a required field has no block
        GrammarError: If a block appears where none is expected
        AmbiguousFieldError: If a heading could belong to more than one field
    """
    schema = get_schema(cls)
    cursor = _Cursor(tokenize(markdown))
    expected = root_header(schema)

    first = cursor.peek()
    if first is None:
        raise MissingFieldError("Document is empty", expected=f"'# {expected}'", path=schema.type_name)
    if not isinstance(first, Header) or first.level != 1:
        raise GrammarError("Document must start with a level 1 heading", line=first.line,
                           expected=f"'# {expected}'", path=schema.type_name)
    if first.text != expected:
        raise GrammarError(f"Unexpected document heading '{first.text}'", line=first.line,
                           expected=f"'# {expected}'", path=schema.type_name)
    cursor.take()

    instance = _read_object(cursor, schema, 1, first, schema.type_name)

    leftover = cursor.peek()
    if leftover is not None:
        raise GrammarError("Unexpected content after the document", line=leftover.line,
                           expected="end of document", path=schema.type_name)
    return instance


def _split_item(item: Item, path: str) -> Tuple[str, str]:
    key, sep, value = item.raw.partition(": ")
    if sep:
        return key, value
    if item.raw.endswith(":"):
        return item.raw[:-1], ""
    raise GrammarError(f"Bullet {item.raw!r} is not a key/value pair", line=item.line,
                       expected="'- Key: value'", path=path)


def _parse(text: str, scalar_type, line: int, path: str):
    try:
        return parse_value(text, scalar_type)
    except FormatError as e:
        raise FormatError(e.message, line=line, expected=e.expected, path=path) from e


def _read_object(cursor: _Cursor, schema: SchemaDescriptor, level: int,
                 header: Header, path: str):
    values: Dict[str, object] = {}

    items: List[Item] = []
    while isinstance(cursor.peek(), Item):
        items.append(cursor.take())

    pos = 0
    for f in schema.fields_of(FieldKind.SCALAR):
        field_path = f"{path}.{f.name}"
        if pos < len(items):
            key, raw = _split_item(items[pos], path)
            if key == f.name:
                values[f.name] = _parse(raw, f.item_type, items[pos].line, field_path)
                pos += 1
                continue
        _handle_missing(f, values, items[pos].line if pos < len(items) else header.line,
                        f"'- {f.name}: ...'", field_path)

    if pos < len(items):
        key, _ = _split_item(items[pos], path)
        known = any(f.name == key for f in schema.fields_of(FieldKind.SCALAR))
        reason = "is out of declaration order" if known else "matches no field"
        raise GrammarError(f"Bullet '{key}' {reason}", line=items[pos].line,
                           expected=f"fields of {schema.type_name} in declaration order", path=path)

    sections = schema.sections()
    for index, f in enumerate(sections):
        field_path = f"{path}.{f.name}"
        h = cursor.header_at(level + 1)

        if f.kind is FieldKind.NESTED_OBJECT:
            if h is not None and h.text == nested_header(f):
                rival = None
                if f.nullable:
                    # An omitted optional object leaves this heading to a later array.
                    rival = next((other for other in sections[index + 1:]
                                  if _element_may_claim(other, h.text)), None)
                if rival is not None and _parses_as(cursor, rival, level + 1, field_path):
                    if _parses_as(cursor, f, level + 1, field_path):
                        raise AmbiguousFieldError(
                            f"Heading '{h.text}' could be '{f.name}' or an element of '{rival.name}'",
                            line=h.line, expected="a heading claimed by exactly one field", path=field_path)
                    values[f.name] = None
                    continue
                cursor.take()
                values[f.name] = _read_object(cursor, get_schema(f.item_type), level + 1, h, field_path)
            else:
                _handle_missing(f, values, h.line if h else header.line, f"'## {f.name}'", field_path)

        elif f.kind is FieldKind.SCALAR_ARRAY:
            if h is not None and h.text == nested_header(f):
                cursor.take()
                elements = []
                while isinstance(cursor.peek(), Item):
                    item = cursor.take()
                    elements.append(_parse(item.raw, f.item_type, item.line, f"{field_path}[{len(elements)}]"))
                values[f.name] = elements
            else:
                _handle_missing(f, values, h.line if h else header.line, f"'## {f.name}'", field_path)

        elif f.sub_header:
            if h is not None and h.text == f.sub_header:
                cursor.take()
                wrapper_items = cursor.peek()
                if isinstance(wrapper_items, Item):
                    raise GrammarError("Bullet inside an array section", line=wrapper_items.line,
                                       expected="element headings", path=field_path)
                values[f.name] = _read_elements(cursor, f, level + 2, (), field_path)
            else:
                _handle_missing(f, values, h.line if h else header.line, f"'## {f.sub_header}'", field_path)

        else:
            values[f.name] = _read_elements(cursor, f, level + 1, sections[index + 1:], field_path)

    h = cursor.header_at(level + 1)
    if h is not None:
        raise GrammarError(f"Unexpected section '{h.text}'", line=h.line,
                           expected=f"a section of {schema.type_name}", path=path)

    try:
        return schema.model.model_validate(values)
    except ValidationError as e:
        raise DeserializationError(f"Invalid {schema.type_name}: {e}", line=header.line, path=path) from e


def _handle_missing(f: FieldDescriptor, values: Dict[str, object], line: int,
                    expected: str, path: str):
    if f.nullable:
        values[f.name] = None
    elif f.required:
        raise MissingFieldError(f"Missing required field '{f.name}'", line=line,
                                expected=expected, path=path)
    # otherwise the model default applies


def _element_may_claim(f: FieldDescriptor, text: str) -> bool:
    """Whether an element section of object array ``f`` could be headed ``text``."""
    if f.kind is not FieldKind.OBJECT_ARRAY or f.sub_header:
        return False
    element_schema = get_schema(f.item_type)
    return element_schema.header_field is not None or element_schema.title == text


def _parses_as(cursor: _Cursor, f: FieldDescriptor, level: int, path: str) -> bool:
    """
    Trial-read the section at the cursor as one object of field ``f``.

    The cursor is left where it was; an element must also carry a header
    value matching its heading.
    """
    start = cursor.pos
    h = cursor.take()
    try:
        schema = get_schema(f.item_type)
        element = _read_object(cursor, schema, level, h, path)
        return f.kind is FieldKind.NESTED_OBJECT or element_header(schema, element) == h.text
    except (DeserializationError, FormatError):
        return False
    finally:
        cursor.pos = start


def _read_elements(cursor: _Cursor, f: FieldDescriptor, level: int,
                   later: Tuple[FieldDescriptor, ...], path: str) -> list:
    element_schema = get_schema(f.item_type)
    own_text = None if element_schema.header_field else element_schema.title
    later_texts = {}
    for other in later:
        text = fixed_header(other)
        if text is not None:
            later_texts.setdefault(text, other)

    elements = []
    while True:
        h = cursor.header_at(level)
        if h is None:
            break
        if own_text is not None:
            # Same-titled later fields get nothing: the first array takes every match.
            if h.text != own_text:
                break
        elif h.text in later_texts:
            raise AmbiguousFieldError(
                f"Heading '{h.text}' could be an element of '{f.name}' or start '{later_texts[h.text].name}'",
                line=h.line, expected="a heading claimed by exactly one field", path=path)

        cursor.take()
        item_path = f"{path}[{len(elements)}]"
        element = _read_object(cursor, element_schema, level, h, item_path)
        label = element_header(element_schema, element)
        if label != h.text:
            raise GrammarError(f"Heading '{h.text}' does not match the element's header value",
                               line=h.line, expected=f"'{label}'", path=item_path)
        elements.append(element)

    if elements:
        logger.debug(f"Parsed {len(elements)} element(s) for {path}")
    return elements
