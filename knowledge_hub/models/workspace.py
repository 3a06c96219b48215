"""
Workspace and block models for Knowledge Hub.

A workspace is the top-level container the user creates; it owns an ordered
list of typed blocks. The block kind decides which item collection the block
indexes into and never changes after creation.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate a fresh identifier for a workspace, block or item."""
    return uuid.uuid4().hex


class HubModel(BaseModel):
    """Base model: snake_case in Python, camelCase on disk."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )


class BlockKind(str, Enum):
    """The four kinds of block content."""

    NOTES = "notes"
    CARDS = "cards"
    LINKS = "links"
    COMMANDS = "commands"

    @classmethod
    def _missing_(cls, value):
        # The web app stored note blocks as "folders"
        if value == "folders":
            return cls.NOTES
        return None

    @property
    def wire_name(self) -> str:
        """Name written to workspace config files."""
        return "folders" if self is BlockKind.NOTES else self.value


BLOCK_DEFAULTS: Dict[BlockKind, Dict[str, str]] = {
    BlockKind.NOTES: {"name": "Notes", "icon": "folder", "color": "#6366f1"},
    BlockKind.CARDS: {"name": "Cards", "icon": "layout-grid", "color": "#8b5cf6"},
    BlockKind.LINKS: {"name": "Links", "icon": "link", "color": "#06b6d4"},
    BlockKind.COMMANDS: {"name": "Commands", "icon": "terminal", "color": "#22c55e"},
}


class Block(HubModel):
    """
    A typed content container inside a workspace.
    """

    id: str = Field(default_factory=new_id)
    kind: BlockKind = Field(..., description="Content kind, fixed at creation")
    name: str = ""
    icon: str = ""
    color: str = ""
    workspace_id: str
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def create(cls, kind: BlockKind, workspace_id: str, **fields) -> "Block":
        """Build a block, filling name/icon/color from the per-kind defaults."""
        kind = BlockKind(kind)
        values = dict(BLOCK_DEFAULTS[kind])
        values.update(fields)
        return cls(kind=kind, workspace_id=workspace_id, **values)


class Workspace(HubModel):
    """
    A user-defined project container. Owns its blocks exclusively; the list
    order is the display order.
    """

    id: str = Field(default_factory=new_id)
    name: str = "New Workspace"
    icon: str = "📁"
    blocks: List[Block] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
