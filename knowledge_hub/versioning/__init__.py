"""Local Git mirror of the synced tree."""

from .manager import LocalMirror

__all__ = ["LocalMirror"]
