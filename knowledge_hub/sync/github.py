"""
Client for the GitHub contents and git-data REST APIs.

This module wraps the handful of endpoints the sync path needs: reading and
writing single files, listing the branch tree, and committing many files at
once through blob, tree and commit objects followed by a branch ref move.
"""

import asyncio
import base64
import hashlib
import logging
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Set, Tuple
from urllib.parse import quote

import httpx

from ..models import SyncConfig, split_repository

DEFAULT_API_URL = "https://api.github.com"
MEDIA_TYPE = "application/vnd.github.v3+json"
REGULAR_FILE_MODE = "100644"


class RemoteRequestError(Exception):
    """
    A request to the remote failed.

    ``status_code`` is None when no HTTP response was received.
    """

    def __init__(self, status_code: Optional[int], reason: str):
        self.status_code = status_code
        self.reason = reason
        prefix = f"{status_code} " if status_code is not None else ""
        super().__init__(f"GitHub API error: {prefix}{reason}")


class MalformedResponseError(RemoteRequestError):
    """The remote answered successfully but without an expected field."""


class RemoteFile(NamedTuple):
    content: str
    sha: str


class TreeEntry(NamedTuple):
    path: str
    sha: str
    type: str


class BranchHead(NamedTuple):
    commit_sha: str
    tree_sha: str


def git_blob_sha(content: str) -> str:
    """SHA-1 object id git assigns to a blob holding ``content`` as UTF-8."""
    data = content.encode("utf-8")
    header = f"blob {len(data)}\0".encode("ascii")
    return hashlib.sha1(header + data).hexdigest()


class BlobCache:
    """
    Blob ids known to exist on the remote because a committed tree references them.

    Lets ``commit_batch`` skip re-uploading unchanged files. Ids are only
    remembered once the branch has moved to a commit that uses them.
    """

    def __init__(self):
        self._known: Set[str] = set()

    def __contains__(self, sha: str) -> bool:
        return sha in self._known

    def __len__(self) -> int:
        return len(self._known)

    def remember(self, shas: Iterable[str]) -> None:
        self._known.update(shas)

    def clear(self) -> None:
        self._known.clear()


def _field(data: Any, *keys: str) -> Any:
    """Walk nested response keys, raising MalformedResponseError when one is missing."""
    value = data
    for key in keys:
        if not isinstance(value, dict) or key not in value:
            raise MalformedResponseError(None, f"Response is missing '{'.'.join(keys)}'")
        value = value[key]
    return value


class GitHubClient:
    """
    Authenticated async client for one repository branch.
    """

    def __init__(self, token: str, repository: str, branch: str = "main",
                 api_url: str = DEFAULT_API_URL,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 max_concurrency: int = 8,
                 blob_cache: Optional[BlobCache] = None):
        """
        Initialize the client.

        Args:
            token: Bearer token
            repository: Repository as owner/repo
            branch: Branch that reads resolve against and commits move
            api_url: API root
            transport: Optional httpx transport (tests pass a MockTransport)
            max_concurrency: Upper bound on concurrent blob uploads
            blob_cache: Optional cache of blob ids already on the remote
        """
        self.owner, self.repo = split_repository(repository)
        self.branch = branch
        self.max_concurrency = max(1, max_concurrency)
        self.blob_cache = blob_cache
        self.client = httpx.AsyncClient(
            base_url=api_url,
            transport=transport,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": MEDIA_TYPE,
                "Content-Type": "application/json",
            },
        )

    @classmethod
    def from_config(cls, sync_config: SyncConfig, **kwargs) -> "GitHubClient":
        """Build a client from the sync settings."""
        kwargs.setdefault("api_url", sync_config.api_url)
        if sync_config.skip_unchanged_blobs:
            kwargs.setdefault("blob_cache", BlobCache())
        return cls(sync_config.token, sync_config.repository, sync_config.branch, **kwargs)

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    @property
    def repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    async def _request(self, method: str, endpoint: str,
                       json: Optional[Dict[str, Any]] = None,
                       params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Send one request and decode its JSON body.

        Raises:
            RemoteRequestError: On transport failure or a non-2xx status
        """
        try:
            response = await self.client.request(method, endpoint, json=json, params=params)
        except httpx.RequestError as e:
            raise RemoteRequestError(None, f"Failed to reach GitHub: {e}") from e

        if not response.is_success:
            raise RemoteRequestError(response.status_code, response.reason_phrase)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(response.status_code, f"Invalid JSON: {e}") from e

    def _contents_path(self, path: str) -> str:
        return f"{self.repo_path}/contents/{quote(path)}"

    # Single-file operations

    async def get_file(self, path: str) -> Optional[RemoteFile]:
        """
        Read a file at the branch tip.

        Args:
            path: Path inside the repository

        Returns:
            The decoded content and blob sha, or None when the file cannot be
            read (a missing file is expected before the first sync)
        """
        try:
            data = await self._request("GET", self._contents_path(path),
                                       params={"ref": self.branch})
            encoded = _field(data, "content")
            content = base64.b64decode(encoded).decode("utf-8")
            return RemoteFile(content=content, sha=_field(data, "sha"))
        except (RemoteRequestError, ValueError) as e:
            logging.debug(f"Could not read {path} from {self.owner}/{self.repo}: {e}")
            return None

    async def create_or_update_file(self, path: str, content: str,
                                    sha: Optional[str] = None) -> None:
        """
        Write one file as its own commit.

        Args:
            path: Path inside the repository
            content: New file content
            sha: Current blob sha, required when the file already exists
        """
        body = {
            "message": f"Update {path}" if sha else f"Create {path}",
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": self.branch,
        }
        if sha:
            body["sha"] = sha
        await self._request("PUT", self._contents_path(path), json=body)

    async def delete_file(self, path: str, sha: str) -> None:
        """
        Delete one file. The remote rejects the call if ``sha`` is stale.
        """
        await self._request("DELETE", self._contents_path(path), json={
            "message": f"Delete {path}",
            "sha": sha,
            "branch": self.branch,
        })

    # Git data operations

    async def get_branch_head(self) -> BranchHead:
        """Resolve the branch tip to its commit and that commit's tree."""
        data = await self._request("GET", f"{self.repo_path}/branches/{quote(self.branch)}")
        return BranchHead(
            commit_sha=_field(data, "commit", "sha"),
            tree_sha=_field(data, "commit", "commit", "tree", "sha"),
        )

    async def get_tree(self, sha: Optional[str] = None) -> List[TreeEntry]:
        """
        List every entry of a tree recursively.

        Args:
            sha: Tree or commit sha (defaults to the branch tip)
        """
        if sha is None:
            sha = (await self.get_branch_head()).commit_sha
        data = await self._request("GET", f"{self.repo_path}/git/trees/{sha}",
                                   params={"recursive": "1"})
        return [
            TreeEntry(path=_field(entry, "path"), sha=_field(entry, "sha"),
                      type=_field(entry, "type"))
            for entry in _field(data, "tree")
        ]

    async def create_blob(self, content: str) -> str:
        data = await self._request("POST", f"{self.repo_path}/git/blobs", json={
            "content": content,
            "encoding": "utf-8",
        })
        return _field(data, "sha")

    async def create_tree(self, base_tree: str, entries: List[Dict[str, str]]) -> str:
        data = await self._request("POST", f"{self.repo_path}/git/trees", json={
            "base_tree": base_tree,
            "tree": entries,
        })
        return _field(data, "sha")

    async def create_commit(self, message: str, tree: str, parents: List[str]) -> str:
        data = await self._request("POST", f"{self.repo_path}/git/commits", json={
            "message": message,
            "tree": tree,
            "parents": parents,
        })
        return _field(data, "sha")

    async def update_ref(self, commit_sha: str) -> None:
        await self._request("PATCH", f"{self.repo_path}/git/refs/heads/{quote(self.branch)}",
                            json={"sha": commit_sha})

    async def _upload_blobs(self, files: List[Tuple[str, str]]) -> Dict[str, str]:
        """Create a blob per file and return path -> blob sha."""
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def upload(content: str) -> str:
            if self.blob_cache is not None:
                known = git_blob_sha(content)
                if known in self.blob_cache:
                    return known
            async with semaphore:
                return await self.create_blob(content)

        # Later duplicates of a path replace earlier ones
        latest: Dict[str, str] = {}
        for path, content in files:
            latest.pop(path, None)
            latest[path] = content

        shas = await asyncio.gather(*(upload(content) for content in latest.values()))
        return dict(zip(latest.keys(), shas))

    async def commit_batch(self, files: Iterable[Tuple[str, str]],
                           message: Optional[str] = None) -> str:
        """
        Commit many files to the branch in one commit.

        The branch only moves in the final step, so a failure anywhere before
        it leaves the branch untouched. Paths not listed keep their content
        from the base tree.

        Args:
            files: (path, content) pairs
            message: Commit message (defaults to a file count summary)

        Returns:
            The sha of the new commit

        Raises:
            RemoteRequestError: If any step fails
        """
        files = list(files)
        head = await self.get_branch_head()

        blob_shas = await self._upload_blobs(files)
        entries = [
            {"path": path, "mode": REGULAR_FILE_MODE, "type": "blob", "sha": sha}
            for path, sha in blob_shas.items()
        ]

        tree_sha = await self.create_tree(head.tree_sha, entries)
        commit_sha = await self.create_commit(
            message or f"Update {len(blob_shas)} files", tree_sha, [head.commit_sha]
        )
        await self.update_ref(commit_sha)

        if self.blob_cache is not None:
            self.blob_cache.remember(blob_shas.values())
        logging.info(
            f"Committed {len(blob_shas)} files to {self.owner}/{self.repo}@{self.branch}: "
            f"{commit_sha[:8]}"
        )
        return commit_sha
