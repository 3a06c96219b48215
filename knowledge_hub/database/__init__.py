"""Local persistence for Knowledge Hub."""

from .manager import StateDatabase

__all__ = ["StateDatabase"]
