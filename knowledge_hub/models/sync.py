"""
Sync configuration and state models.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, Field


def split_repository(repository: str) -> Tuple[str, str]:
    """Split an owner/repo string, rejecting anything else."""
    owner, _, repo = repository.partition("/")
    if not owner or not repo or "/" in repo:
        raise ValueError(f"Repository must look like owner/repo, got {repository!r}")
    return owner, repo


class SyncStatus(str, Enum):
    """Status shown by the sync indicator."""

    SYNCED = "synced"
    SYNCING = "syncing"
    PENDING = "pending"
    OFFLINE = "offline"
    CONFLICT = "conflict"
    ERROR = "error"


class SyncConfig(BaseModel):
    """
    User-editable sync settings, persisted in the config file.
    """

    token: str = Field("", description="Bearer token for the remote API")
    repository: str = Field("", description="Remote repository as owner/repo")
    branch: str = "main"
    auto_sync: bool = True
    debounce_ms: int = Field(2000, ge=0)
    last_synced_at: Optional[datetime] = None
    skip_unchanged_blobs: bool = False
    api_url: str = "https://api.github.com"

    @property
    def owner_and_repo(self) -> Tuple[str, str]:
        """Split ``repository`` into its owner and name parts."""
        return split_repository(self.repository)

    @property
    def is_configured(self) -> bool:
        """True when a token and a well-formed repository are present."""
        if not self.token:
            return False
        try:
            self.owner_and_repo
        except ValueError:
            return False
        return True

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0


class SyncState(BaseModel):
    """
    Transient sync status, rebuilt every session.
    """

    status: SyncStatus = SyncStatus.SYNCED
    pending_changes: int = 0
    is_online: bool = True
    last_error: Optional[str] = None
