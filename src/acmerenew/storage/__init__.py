"""Filesystem collaborators."""

from acmerenew.storage.files import FileManager, FileManagerError

__all__ = ["FileManager", "FileManagerError"]
