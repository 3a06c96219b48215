"""
Projection of workspace state onto a file tree.

The projection is the snapshot pushed to the remote repository on every sync:
notes become Markdown files with front matter, the other block kinds become
one JSON file per block, and every workspace gets a config file describing
its blocks.
"""

import json
from datetime import datetime, timezone
from typing import Dict, List, NamedTuple, Optional, Sequence, Set

from ..models import Block, BlockKind, NoteItem, Workspace
from ..store import WorkspaceStore
from .paths import sanitize

CONFIG_DIRECTORY = ".knowledge-hub"


class ProjectedFile(NamedTuple):
    """One file of the projected tree."""

    path: str
    content: str


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision, e.g. 2024-01-01T00:00:00.000Z."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def render_note(note: NoteItem) -> str:
    """
    Render a note as front matter followed directly by its body.

    Args:
        note: A note-variant item

    Returns:
        The Markdown file content
    """
    lines = [
        "---",
        f"id: {note.id}",
        f"created: {format_timestamp(note.created_at)}",
        f"updated: {format_timestamp(note.updated_at)}",
    ]
    if note.tags:
        lines.append(f"tags: [{', '.join(note.tags)}]")
    lines.append("---")
    return "\n".join(lines) + "\n" + (note.content or "")


def dump_json(data) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _project_notes(items: Sequence[NoteItem], block_path: str) -> List[ProjectedFile]:
    folders = {item.id for item in items if item.is_folder}
    children: Dict[Optional[str], List[NoteItem]] = {}
    for item in items:
        # A dangling or non-folder parent makes the item a root
        parent = item.parent_id if item.parent_id in folders else None
        children.setdefault(parent, []).append(item)
    for siblings in children.values():
        siblings.sort(key=lambda i: i.order)

    files: List[ProjectedFile] = []
    visited: Set[str] = set()

    def walk(parent_id: Optional[str], path: str) -> None:
        for item in children.get(parent_id, []):
            if item.id in visited:
                continue
            visited.add(item.id)
            if item.is_folder:
                walk(item.id, f"{path}/{sanitize(item.name)}")
            else:
                files.append(ProjectedFile(
                    f"{path}/{sanitize(item.name)}.md", render_note(item)
                ))

    walk(None, block_path)

    # Items whose parent chain loops never hang off a root; walk them as roots
    for item in items:
        if item.id in visited:
            continue
        visited.add(item.id)
        if item.is_folder:
            walk(item.id, f"{block_path}/{sanitize(item.name)}")
        else:
            files.append(ProjectedFile(
                f"{block_path}/{sanitize(item.name)}.md", render_note(item)
            ))
    return files


def _project_collection(block: Block, items: Sequence, block_path: str) -> ProjectedFile:
    payload = [
        item.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"kind"})
        for item in items
    ]
    return ProjectedFile(f"{block_path}/{block.kind.value}.json", dump_json(payload))


def workspace_config(workspace: Workspace) -> Dict:
    """Workspace description written next to its content; items are not included."""
    return {
        "id": workspace.id,
        "name": workspace.name,
        "icon": workspace.icon,
        "blocks": [
            {
                "id": block.id,
                "type": block.kind.wire_name,
                "name": block.name,
                "icon": block.icon,
                "color": block.color,
            }
            for block in workspace.blocks
        ],
    }


def project_workspace(workspace: Workspace, store: WorkspaceStore) -> List[ProjectedFile]:
    """
    Project one workspace onto file paths and contents.

    Args:
        workspace: Workspace to project
        store: Store used to look up each block's items

    Returns:
        The workspace's files, config file last
    """
    root = sanitize(workspace.name)
    files: List[ProjectedFile] = []

    for block in workspace.blocks:
        block_path = f"{root}/{sanitize(block.name)}"
        items = store.get_items_by_block(block.id)
        if block.kind is BlockKind.NOTES:
            notes = [item for item in items if isinstance(item, NoteItem)]
            files.extend(_project_notes(notes, block_path))
        elif block.kind in (BlockKind.CARDS, BlockKind.LINKS, BlockKind.COMMANDS):
            files.append(_project_collection(block, items, block_path))
        else:
            raise AssertionError(f"Unhandled block kind: {block.kind}")

    files.append(ProjectedFile(
        f"{root}/{CONFIG_DIRECTORY}/config.json", dump_json(workspace_config(workspace))
    ))
    return files


def project(workspaces: Sequence[Workspace], store: WorkspaceStore) -> List[ProjectedFile]:
    """
    Project every workspace. The result is a set of path/content pairs; when
    two entries share a path the later one wins at commit time.
    """
    files: List[ProjectedFile] = []
    for workspace in workspaces:
        files.extend(project_workspace(workspace, store))
    return files


def project_store(store: WorkspaceStore) -> List[ProjectedFile]:
    """Project the full state held by ``store``."""
    return project(store.workspaces, store)
