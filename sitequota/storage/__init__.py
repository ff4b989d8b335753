"""Persistent storage for sitequota."""

from sitequota.storage.db import AccessStore

__all__ = ["AccessStore"]
