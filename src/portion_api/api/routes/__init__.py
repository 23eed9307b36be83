"""API routes."""

from . import portion

__all__ = ["portion"]
