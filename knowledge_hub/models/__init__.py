"""Data models for Knowledge Hub."""

from .workspace import Block, BlockKind, Workspace, new_id, utc_now
from .items import CardItem, CommandItem, Item, LinkItem, NoteItem, parse_item
from .sync import SyncConfig, SyncState, SyncStatus, split_repository

__all__ = [
    "Block",
    "BlockKind",
    "Workspace",
    "NoteItem",
    "CardItem",
    "LinkItem",
    "CommandItem",
    "Item",
    "parse_item",
    "SyncConfig",
    "SyncState",
    "SyncStatus",
    "split_repository",
    "new_id",
    "utc_now",
]
