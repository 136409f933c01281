"""
Models and documents shared by the codec tests.
"""

from datetime import datetime, timezone
from typing import Annotated, List, Optional
from uuid import UUID

from pydantic import Field

from graphify.markdown_schema import (
    MarkdownHeader,
    MarkdownIgnore,
    MarkdownModel,
    MarkdownSubHeader,
    markdown_serializable,
)

GUID_1 = UUID("89b71ddd-553a-4861-9383-f9ce24494c3e")
GUID_2 = UUID("c97aa83a-8947-49d9-b1a3-d61bc47e361e")


@markdown_serializable
class CustomObj(MarkdownModel):
    id: int
    name: str
    is_some_flag: bool


@markdown_serializable
class ObjectArrayObj(MarkdownModel):
    items: List[CustomObj]


@markdown_serializable
class ScalarArraysObj(MarkdownModel):
    names: List[str]
    indexes: List[int]
    ids: List[UUID]


@markdown_serializable
class NestedObj(MarkdownModel):
    id: int
    name: str
    is_some_flag: bool
    nested: CustomObj


@markdown_serializable(title="Titled thing")
class Titled(MarkdownModel):
    value: int


@markdown_serializable
class Holder(MarkdownModel):
    """Nested field of a titled type; the field name labels the section."""
    inner: Titled
    titled_list: List[Titled] = Field(default_factory=list)


@markdown_serializable
class Named(MarkdownModel):
    name: Annotated[str, MarkdownHeader()]
    value: int


@markdown_serializable
class Labelled(MarkdownModel):
    label: Annotated[Optional[str], MarkdownHeader()] = None
    count: int


@markdown_serializable
class Tag(MarkdownModel):
    text: str


@markdown_serializable(title="Note")
class NoteItem(MarkdownModel):
    text: str


@markdown_serializable
class WithIgnored(MarkdownModel):
    id: int
    secret: Annotated[str, MarkdownIgnore()] = "hidden"
    comment: Optional[str] = None
    created_at: Optional[datetime] = None


@markdown_serializable
class TwoFixedArrays(MarkdownModel):
    tags: List[Tag] = Field(default_factory=list)
    notes: List[NoteItem] = Field(default_factory=list)


@markdown_serializable
class SameTypeArrays(MarkdownModel):
    first: List[Tag] = Field(default_factory=list)
    second: List[Tag] = Field(default_factory=list)


@markdown_serializable
class NamedThenTags(MarkdownModel):
    named: List[Named] = Field(default_factory=list)
    tags: List[Tag] = Field(default_factory=list)


@markdown_serializable
class SubHeaded(MarkdownModel):
    named: Annotated[List[Named], MarkdownSubHeader("Named items")] = Field(default_factory=list)
    tags: Annotated[List[Tag], MarkdownSubHeader("Tags")] = Field(default_factory=list)


@markdown_serializable
class OptionalThenItems(MarkdownModel):
    """Optional nested field named like the element title of the array after it."""
    custom_obj: Optional[CustomObj] = None
    items: List[CustomObj] = Field(default_factory=list)


@markdown_serializable
class RequiredThenItems(MarkdownModel):
    custom_obj: CustomObj
    items: List[CustomObj] = Field(default_factory=list)


@markdown_serializable
class Mixed(MarkdownModel):
    """Fields declared out of kind order; sections follow kind order."""
    named: List[Named] = Field(default_factory=list)
    labels: List[str] = Field(default_factory=list)
    title: str
    child: Optional[CustomObj] = None
    stamp: datetime


CUSTOM_OBJ = CustomObj(id=1, name="SomeName", is_some_flag=True)

CUSTOM_OBJ_MARKDOWN = "# CustomObj\n- Id: 1\n- Name: SomeName\n- IsSomeFlag: True"

OBJECT_ARRAY = ObjectArrayObj(items=[
    CustomObj(id=1, name="SomeName1", is_some_flag=True),
    CustomObj(id=2, name="SomeName2", is_some_flag=False),
])

OBJECT_ARRAY_MARKDOWN = """# ObjectArrayObj

## CustomObj
- Id: 1
- Name: SomeName1
- IsSomeFlag: True

## CustomObj
- Id: 2
- Name: SomeName2
- IsSomeFlag: False"""

SCALAR_ARRAYS = ScalarArraysObj(names=["A", "B"], indexes=[1, 2], ids=[GUID_1, GUID_2])

SCALAR_ARRAYS_MARKDOWN = f"""# ScalarArraysObj

## Names
- A
- B

## Indexes
- 1
- 2

## Ids
- {GUID_1}
- {GUID_2}"""

NESTED = NestedObj(id=1, name="SomeName", is_some_flag=True,
                   nested=CustomObj(id=2, name="Inner", is_some_flag=False))

NESTED_MARKDOWN = """# NestedObj
- Id: 1
- Name: SomeName
- IsSomeFlag: True

## Nested
- Id: 2
- Name: Inner
- IsSomeFlag: False"""

STAMP = datetime(2024, 10, 15, 14, 30, 0, tzinfo=timezone.utc)
