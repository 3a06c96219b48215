"""
Knowledge Hub: workspaces of notes, cards, links and commands, synced to a
GitHub repository as a plain file tree.
"""

__version__ = "0.1.0"
__author__ = "Knowledge Hub Project"

# Import main components
from .models import (
    Block,
    BlockKind,
    CardItem,
    CommandItem,
    LinkItem,
    NoteItem,
    SyncConfig,
    SyncState,
    SyncStatus,
    Workspace,
)
from .store import WorkspaceStore, create_initial_state
from .database import StateDatabase
from .sync import GitHubClient, RemoteRequestError, SyncScheduler, project, sanitize

__all__ = [
    "Block",
    "BlockKind",
    "CardItem",
    "CommandItem",
    "LinkItem",
    "NoteItem",
    "SyncConfig",
    "SyncState",
    "SyncStatus",
    "Workspace",
    "WorkspaceStore",
    "create_initial_state",
    "StateDatabase",
    "GitHubClient",
    "RemoteRequestError",
    "SyncScheduler",
    "project",
    "sanitize",
]
