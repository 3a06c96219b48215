"""
Typed item models for Knowledge Hub.

Each block kind has its own item model. The four models form a tagged union
discriminated by ``kind`` so code that dispatches on the block kind can match
on the item type directly.
"""

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import Field, TypeAdapter, model_validator

from .workspace import HubModel, new_id, utc_now


class NoteItem(HubModel):
    """
    A folder or a note inside a notes block.

    Folders and notes share one collection and reference each other through
    ``parent_id``; the hierarchy is rebuilt by whoever walks the collection.
    """

    kind: Literal["notes"] = "notes"
    id: str = Field(default_factory=new_id)
    block_id: str
    parent_id: Optional[str] = None
    variant: Literal["folder", "note"] = Field("note", alias="type")
    name: str = "Untitled"
    content: Optional[str] = Field(None, description="Body text, notes only")
    tags: List[str] = Field(default_factory=list)
    order: int = 0
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _folders_have_no_body(self) -> "NoteItem":
        if self.variant == "folder" and self.content:
            raise ValueError(f"Folder {self.name!r} cannot carry a body")
        return self

    @property
    def is_folder(self) -> bool:
        return self.variant == "folder"


class CardItem(HubModel):
    """A kanban-style card."""

    kind: Literal["cards"] = "cards"
    id: str = Field(default_factory=new_id)
    block_id: str
    title: str = "New Card"
    content: str = ""
    color: str = "#6366f1"
    tags: List[str] = Field(default_factory=list)
    category: Optional[str] = None
    priority: Optional[Literal["low", "medium", "high"]] = None
    due_date: Optional[str] = None
    completed: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    order: int = 0


class LinkItem(HubModel):
    """A bookmark."""

    kind: Literal["links"] = "links"
    id: str = Field(default_factory=new_id)
    block_id: str
    title: str = "New Link"
    url: str = ""
    description: Optional[str] = None
    favicon: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    category: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    order: int = 0


class CommandItem(HubModel):
    """A saved shell command snippet."""

    kind: Literal["commands"] = "commands"
    id: str = Field(default_factory=new_id)
    block_id: str
    title: str = "New Command"
    command: str = ""
    description: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    copy_count: int = 0
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    order: int = 0


Item = Annotated[
    Union[NoteItem, CardItem, LinkItem, CommandItem],
    Field(discriminator="kind"),
]

ITEM_ADAPTER: TypeAdapter = TypeAdapter(Item)

ITEM_TYPES = {
    "notes": NoteItem,
    "cards": CardItem,
    "links": LinkItem,
    "commands": CommandItem,
}


def parse_item(data) -> Union[NoteItem, CardItem, LinkItem, CommandItem]:
    """
    Parse a stored item payload into the matching item model.

    Args:
        data: Dictionary or JSON string carrying a ``kind`` discriminator

    Returns:
        The typed item
    """
    if isinstance(data, (str, bytes)):
        return ITEM_ADAPTER.validate_json(data)
    return ITEM_ADAPTER.validate_python(data)
