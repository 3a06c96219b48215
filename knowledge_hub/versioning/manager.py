"""
Local Git mirror for Knowledge Hub.

This module writes the projected file tree into a local Git repository and
commits it, giving an offline history of exactly what the sync pushes.
"""

import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple

import git
from git import InvalidGitRepositoryError, Repo


class LocalMirror:
    """
    Manages a local Git repository that mirrors the synced file tree.
    """

    def __init__(self, repo_path: str = "mirror"):
        """
        Initialize the mirror.

        Args:
            repo_path: Path to the Git repository
        """
        self.repo_path = Path(repo_path)
        self.repo: Optional[Any] = None
        logging.info(f"Initialized LocalMirror for: {self.repo_path}")

    def initialize_repository(self) -> bool:
        """
        Open the repository, creating it if it doesn't exist.

        Returns:
            True if the repository is ready, False on error
        """
        try:
            if self._is_git_repository():
                self.repo = Repo(self.repo_path)
                return True

            self.repo_path.mkdir(parents=True, exist_ok=True)
            self.repo = Repo.init(self.repo_path)
            logging.info(f"Git repository initialized at {self.repo_path}")
            return True

        except (OSError, git.GitError) as e:
            logging.error(f"Failed to initialize Git repository: {e}")
            return False

    def _is_git_repository(self) -> bool:
        """Check if the path is already a Git repository."""
        try:
            if not self.repo_path.exists():
                return False
            Repo(self.repo_path)
            return True
        except InvalidGitRepositoryError:
            return False

    def _resolve(self, relative_path: str) -> Path:
        root = self.repo_path.resolve()
        target = (root / relative_path).resolve()
        if target == root or root not in target.parents:
            raise ValueError(f"Path escapes the mirror: {relative_path}")
        if ".git" in Path(relative_path).parts:
            raise ValueError(f"Refusing to write inside .git: {relative_path}")
        return target

    def write_files(self, files: Iterable[Tuple[str, str]]) -> List[str]:
        """
        Write projected files into the working tree.

        Args:
            files: (path, content) pairs relative to the repository root

        Returns:
            The relative paths written
        """
        written = []
        for path, content in files:
            target = self._resolve(path)
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, 'w', encoding='utf-8', newline='') as f:
                f.write(content)
            written.append(path)
        logging.info(f"Wrote {len(written)} files to {self.repo_path}")
        return written

    def commit_snapshot(self, message: str, author_name: str = "Knowledge Hub",
                        author_email: str = "sync@knowledge-hub.local") -> Optional[str]:
        """
        Stage everything in the working tree and commit it.

        Args:
            message: Commit message
            author_name: Name of the commit author
            author_email: Email of the commit author

        Returns:
            The new commit sha, or None when nothing changed
        """
        if not self.repo:
            raise RuntimeError("Repository not initialized")

        self.repo.git.add(A=True)
        has_head = self.repo.head.is_valid()
        if has_head and not self.repo.index.diff("HEAD"):
            logging.info("No changes to commit")
            return None

        actor = git.Actor(author_name, author_email)
        commit = self.repo.index.commit(message, author=actor, committer=actor)
        logging.info(f"Created commit: {commit.hexsha[:8]} - {message}")
        return commit.hexsha

    def get_commit_history(self, limit: int = 10) -> List[dict]:
        """
        Get the commit history for the repository.

        Args:
            limit: Maximum number of commits to return

        Returns:
            List of commit information dictionaries
        """
        if not self.repo or not self.repo.head.is_valid():
            return []

        return [
            {
                'hash': commit.hexsha,
                'short_hash': commit.hexsha[:8],
                'message': commit.message.strip(),
                'author': str(commit.author),
                'date': commit.committed_datetime.isoformat(),
            }
            for commit in self.repo.iter_commits(max_count=limit)
        ]
