"""Projection of local state and its synchronization to GitHub."""

from .paths import sanitize
from .projector import ProjectedFile, project, project_store, project_workspace
from .github import (
    BlobCache,
    GitHubClient,
    MalformedResponseError,
    RemoteFile,
    RemoteRequestError,
    TreeEntry,
)
from .scheduler import SyncScheduler

__all__ = [
    "sanitize",
    "ProjectedFile",
    "project",
    "project_store",
    "project_workspace",
    "BlobCache",
    "GitHubClient",
    "MalformedResponseError",
    "RemoteFile",
    "RemoteRequestError",
    "TreeEntry",
    "SyncScheduler",
]
