"""
Storage Interface - The persistence contract shared by the record stores,
customer memory and the business knowledge search.

Paths are relative to the storage root: ``orders/orders.json``,
``memory/customers.json``, ``business/faq.md``.
"""

from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any


class StorageInterface(ABC):
    """
    Whole-file storage. Implementations never raise for I/O failures:
    writes report False and reads report None / empty results.
    """

    @abstractmethod
    async def save(self, path: str, content: bytes | str) -> bool:
        """Replace the file at ``path``. Returns False if the write failed."""

    @abstractmethod
    async def load(self, path: str) -> Optional[bytes]:
        """Raw file content, or None when the file is missing or unreadable."""

    @abstractmethod
    async def list(
        self,
        path: str,
        pattern: Optional[str] = None,
        recursive: bool = False
    ) -> List[str]:
        """
        Files under a directory.

        Args:
            path: Directory to list
            pattern: Glob filter such as ``"*.md"``
            recursive: Descend into subdirectories

        Returns:
            Sorted paths relative to the storage root
        """

    @abstractmethod
    async def search(
        self,
        path: str,
        query: str,
        file_pattern: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Case-insensitive substring search over the text files under ``path``.

        Returns one entry per matching file: ``file``, ``content`` (leading
        excerpt) and ``matches`` (``line_number`` / ``content`` pairs).
        """
