"""In-memory workspace state."""

from .manager import WorkspaceStore, create_initial_state

__all__ = ["WorkspaceStore", "create_initial_state"]
