"""
Catalog-mapped form values.

A form field that should point at a catalog record is either Resolved (holds the
catalog id or name) or Unresolved (holds the text taken from the CV). The
discriminator keeps the two apart so nothing downstream has to sniff string
prefixes to find out whether a value still needs mapping.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class Resolved(BaseModel):
    kind: Literal["resolved"] = "resolved"
    value: str = Field(..., description="Catalog id (skills, categories) or catalog name (degrees, institutions)")
    match_type: Optional[Literal["exact", "fuzzy", "created"]] = None


class Unresolved(BaseModel):
    kind: Literal["unresolved"] = "unresolved"
    text: str = Field(..., description="Original text from the CV")


MappedValue = Annotated[Union[Resolved, Unresolved], Field(discriminator="kind")]


def is_resolved(value: MappedValue) -> bool:
    return isinstance(value, Resolved)


def display_value(value: MappedValue) -> str:
    """Bare string for a mapped value: the catalog value, or the original text."""
    if isinstance(value, Resolved):
        return value.value
    return value.text
