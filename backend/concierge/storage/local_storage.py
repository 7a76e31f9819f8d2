"""
Local Filesystem Storage - Keeps orders, customer memory and business
knowledge files under one data directory.
"""

import glob as glob_module
import logging
from pathlib import Path
from typing import Optional, List, Dict, Any

import aiofiles

from .interface import StorageInterface

logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 500


class LocalStorage(StorageInterface):
    """
    Stores files below ``base_dir``. Writes go to a temp file first and are
    renamed into place; paths escaping the base directory are rejected.
    """

    def __init__(self, base_dir: str = "./data"):
        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, path: str) -> Path:
        """Convert relative path to full absolute path within base directory."""
        full_path = (self.base_dir / path).resolve()

        if full_path != self.base_dir and self.base_dir not in full_path.parents:
            raise ValueError(f"Invalid path: {path} - path traversal detected")

        return full_path

    async def save(self, path: str, content: bytes | str) -> bool:
        """Save content to local filesystem."""
        try:
            full_path = self._get_full_path(path)
            full_path.parent.mkdir(parents=True, exist_ok=True)

            # Write to a sibling temp file first so readers never see a partial file
            tmp_path = full_path.with_suffix(full_path.suffix + ".tmp")
            if isinstance(content, str):
                async with aiofiles.open(tmp_path, 'w', encoding='utf-8') as f:
                    await f.write(content)
            else:
                async with aiofiles.open(tmp_path, 'wb') as f:
                    await f.write(content)
            tmp_path.replace(full_path)

            return True
        except Exception:
            logger.exception(f"Error saving file {path}")
            return False

    async def load(self, path: str) -> Optional[bytes]:
        """Load content from local filesystem."""
        try:
            full_path = self._get_full_path(path)
            if not full_path.exists():
                return None

            async with aiofiles.open(full_path, 'rb') as f:
                return await f.read()
        except Exception:
            logger.exception(f"Error loading file {path}")
            return None

    async def list(
        self,
        path: str,
        pattern: Optional[str] = None,
        recursive: bool = False
    ) -> List[str]:
        """List files in directory."""
        try:
            full_path = self._get_full_path(path)
            if not full_path.exists():
                return []

            if pattern:
                if recursive:
                    files = glob_module.glob(str(full_path / "**" / pattern), recursive=True)
                else:
                    files = glob_module.glob(str(full_path / pattern))
            else:
                walker = full_path.rglob("*") if recursive else full_path.glob("*")
                files = [str(p) for p in walker if p.is_file()]

            relative_paths = [
                str(Path(file_path).relative_to(self.base_dir))
                for file_path in files
                if not file_path.endswith('.tmp')
            ]
            return sorted(relative_paths)
        except Exception:
            logger.exception(f"Error listing files in {path}")
            return []

    async def search(
        self,
        path: str,
        query: str,
        file_pattern: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Search for content within files."""
        results = []
        needle = query.lower()
        files = await self.list(path, pattern=file_pattern, recursive=True)

        for file_path in files:
            content = await self.load(file_path)
            if content is None:
                continue

            try:
                text_content = content.decode('utf-8')
            except UnicodeDecodeError:
                # Skip binary files
                continue

            if needle not in text_content.lower():
                continue

            matches = [
                {'line_number': line_num, 'content': line.strip()}
                for line_num, line in enumerate(text_content.split('\n'), 1)
                if needle in line.lower()
            ]
            results.append({
                'file': file_path,
                'content': text_content[:EXCERPT_LENGTH],
                'matches': matches,
            })

        return results
