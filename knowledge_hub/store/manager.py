"""
In-memory workspace store for Knowledge Hub.

This module holds the workspaces, their blocks and every typed item, and is
the only place that mutates them. Each successful mutation notifies the
subscribed listeners, which is how the sync scheduler learns about changes.
"""

import logging
from typing import Callable, Dict, List, Optional, Set

from ..models import (
    Block,
    BlockKind,
    CommandItem,
    Item,
    NoteItem,
    Workspace,
    utc_now,
)
from ..models.items import ITEM_TYPES


MutationListener = Callable[[], None]


class WorkspaceStore:
    """
    Keyed collections of workspaces and items with change notification.
    """

    def __init__(self):
        """Initialize an empty store."""
        self.workspaces: List[Workspace] = []
        self._items: List[Item] = []
        self._listeners: List[MutationListener] = []

    # Notification

    def subscribe(self, listener: MutationListener) -> Callable[[], None]:
        """
        Register a callback invoked after every mutation.

        Args:
            listener: Zero-argument callable

        Returns:
            A function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    # Workspaces

    def get_workspace(self, workspace_id: str) -> Workspace:
        for workspace in self.workspaces:
            if workspace.id == workspace_id:
                return workspace
        raise KeyError(f"Unknown workspace: {workspace_id}")

    def add_workspace(self, **fields) -> Workspace:
        workspace = Workspace(**fields)
        self.workspaces.append(workspace)
        self._notify()
        return workspace

    def update_workspace(self, workspace_id: str, **updates) -> Workspace:
        """
        Update workspace fields such as name or icon.

        Blocks are managed through the block operations and cannot be
        replaced here.
        """
        if "blocks" in updates:
            raise ValueError("Use the block operations to change a workspace's blocks")
        workspace = self.get_workspace(workspace_id)
        updated = _apply_updates(workspace, updates)
        self._replace_workspace(updated)
        self._notify()
        return updated

    def delete_workspace(self, workspace_id: str) -> None:
        """Delete a workspace together with all its blocks and their items."""
        workspace = self.get_workspace(workspace_id)
        block_ids = {block.id for block in workspace.blocks}
        self.workspaces = [w for w in self.workspaces if w.id != workspace_id]
        self._items = [i for i in self._items if i.block_id not in block_ids]
        self._notify()

    def _replace_workspace(self, workspace: Workspace) -> None:
        self.workspaces = [
            workspace if w.id == workspace.id else w for w in self.workspaces
        ]

    # Blocks

    def add_block(self, kind: BlockKind, workspace_id: str, **fields) -> Block:
        workspace = self.get_workspace(workspace_id)
        block = Block.create(kind, workspace_id, **fields)
        workspace.blocks = workspace.blocks + [block]
        workspace.updated_at = utc_now()
        self._notify()
        return block

    def get_block(self, block_id: str) -> Optional[Block]:
        for workspace in self.workspaces:
            for block in workspace.blocks:
                if block.id == block_id:
                    return block
        return None

    def get_blocks_by_workspace(self, workspace_id: str) -> List[Block]:
        for workspace in self.workspaces:
            if workspace.id == workspace_id:
                return list(workspace.blocks)
        return []

    def update_block(self, block_id: str, **updates) -> Block:
        block = self._require_block(block_id)
        if "kind" in updates and BlockKind(updates["kind"]) != block.kind:
            raise ValueError(f"Block kind is fixed at creation ({block.kind.value})")
        if "workspace_id" in updates and updates["workspace_id"] != block.workspace_id:
            raise ValueError("Blocks cannot move between workspaces")
        updated = _apply_updates(block, updates)
        workspace = self.get_workspace(block.workspace_id)
        workspace.blocks = [updated if b.id == block_id else b for b in workspace.blocks]
        self._notify()
        return updated

    def delete_block(self, block_id: str) -> None:
        """Delete a block and every item it indexes."""
        block = self._require_block(block_id)
        workspace = self.get_workspace(block.workspace_id)
        workspace.blocks = [b for b in workspace.blocks if b.id != block_id]
        self._items = [i for i in self._items if i.block_id != block_id]
        self._notify()

    def _require_block(self, block_id: str) -> Block:
        block = self.get_block(block_id)
        if block is None:
            raise KeyError(f"Unknown block: {block_id}")
        return block

    # Items

    def add_item(self, block_id: str, **fields) -> Item:
        """
        Create an item in a block. The item type follows the block's kind.

        Args:
            block_id: Owning block
            **fields: Item fields (snake_case names)

        Returns:
            The new item
        """
        block = self._require_block(block_id)
        item_type = ITEM_TYPES[block.kind.value]
        item = item_type(block_id=block_id, **fields)
        if isinstance(item, NoteItem) and item.parent_id is not None:
            self._check_parent(item, item.parent_id)
        self._items.append(item)
        self._notify()
        return item

    def add_items(self, items: List[Item]) -> None:
        """Bulk-load items without notification (used when restoring state)."""
        self._items.extend(items)

    def get_item(self, item_id: str) -> Optional[Item]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def get_items_by_block(self, block_id: str) -> List[Item]:
        """Items of one block in insertion order."""
        return [item for item in self._items if item.block_id == block_id]

    @property
    def items(self) -> List[Item]:
        return list(self._items)

    def update_item(self, item_id: str, **updates) -> Item:
        item = self.get_item(item_id)
        if item is None:
            raise KeyError(f"Unknown item: {item_id}")
        for fixed in ("kind", "block_id", "id"):
            if fixed in updates and updates[fixed] != getattr(item, fixed):
                raise ValueError(f"Item field {fixed!r} cannot be changed")
        if isinstance(item, NoteItem) and updates.get("parent_id") is not None:
            self._check_parent(item, updates["parent_id"])
        updated = _apply_updates(item, updates)
        self._items = [updated if i.id == item_id else i for i in self._items]
        self._notify()
        return updated

    def delete_item(self, item_id: str) -> None:
        """Delete an item; deleting a folder also deletes everything below it."""
        item = self.get_item(item_id)
        if item is None:
            raise KeyError(f"Unknown item: {item_id}")
        doomed = {item_id}
        if isinstance(item, NoteItem) and item.is_folder:
            doomed |= self._descendants(item)
        self._items = [i for i in self._items if i.id not in doomed]
        self._notify()

    def increment_copy_count(self, item_id: str) -> CommandItem:
        item = self.get_item(item_id)
        if not isinstance(item, CommandItem):
            raise KeyError(f"Unknown command item: {item_id}")
        return self.update_item(item_id, copy_count=item.copy_count + 1)

    def _descendants(self, folder: NoteItem) -> Set[str]:
        found: Set[str] = set()
        frontier = [folder.id]
        while frontier:
            parent = frontier.pop()
            for item in self._items:
                if (isinstance(item, NoteItem) and item.parent_id == parent
                        and item.id not in found):
                    found.add(item.id)
                    frontier.append(item.id)
        return found

    def _check_parent(self, item: NoteItem, parent_id: str) -> None:
        """Reject a parent assignment that would make the item its own ancestor."""
        by_id: Dict[str, NoteItem] = {
            i.id: i for i in self._items
            if isinstance(i, NoteItem) and i.block_id == item.block_id
        }
        seen: Set[str] = set()
        current: Optional[str] = parent_id
        while current is not None and current not in seen:
            if current == item.id:
                raise ValueError(
                    f"Moving {item.name!r} under {parent_id} would create a cycle"
                )
            seen.add(current)
            parent = by_id.get(current)
            current = parent.parent_id if parent else None


def _apply_updates(model, updates: dict):
    """Return a validated copy of ``model`` with ``updates`` applied and a fresh updated_at."""
    data = model.model_dump()
    data.update(updates)
    data["updated_at"] = utc_now()
    return type(model).model_validate(data)


def create_initial_state(store: Optional[WorkspaceStore] = None) -> WorkspaceStore:
    """
    Seed a store with the sample "Personal" workspace.

    Args:
        store: Store to populate (a new one is created when omitted)

    Returns:
        The populated store
    """
    store = store or WorkspaceStore()
    workspace = store.add_workspace(name="Personal", icon="🏠")
    notes = store.add_block(BlockKind.NOTES, workspace.id, name="Notes")
    cards = store.add_block(BlockKind.CARDS, workspace.id, name="Tasks")
    links = store.add_block(BlockKind.LINKS, workspace.id, name="Bookmarks")

    store.add_item(
        notes.id,
        id="welcome",
        name="Welcome to Knowledge Hub",
        content=(
            "# Welcome to Knowledge Hub 📚\n\n"
            "This is your personal knowledge base!\n\n"
            "## Features\n"
            "- **Wikilinks**: Link notes using [[Note Name]] syntax\n"
            "- **Graph View**: Visualize connections\n"
            "- **Multiple Block Types**: Notes, Cards, Links, Commands\n\n"
            "Happy note-taking! 🎉"
        ),
        tags=["welcome"],
        order=0,
    )
    store.add_item(
        notes.id,
        id="getting-started",
        name="Getting Started",
        content=(
            "# Getting Started\n\n"
            "Welcome! Create notes, cards, and links to organize your knowledge."
        ),
        tags=["tutorial"],
        order=1,
    )
    store.add_item(
        cards.id,
        id="card-1",
        title="Explore features",
        content="Try creating notes and cards",
        priority="medium",
    )
    store.add_item(
        links.id,
        id="link-1",
        title="GitHub",
        url="https://github.com",
        description="Where the world builds software",
        category="Dev",
    )
    logging.info(f"Seeded initial workspace {workspace.name!r}")
    return store
