"""
Filesystem inspector.

Sizes every file beneath a path and checksums single files.
Blocking filesystem work runs in a worker thread so polling stays
cooperative on the event loop.
"""

import asyncio
import hashlib
from pathlib import Path
from typing import Dict

from .errors import InspectorError
from .models import FileSizeSnapshot


def compute_file_sha256(file_path: Path) -> str:
    """Compute SHA256 hash of file contents."""
    sha256_hash = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            sha256_hash.update(chunk)
    return sha256_hash.hexdigest()


def collect_sizes(root: Path) -> FileSizeSnapshot:
    """
    Map every regular file at or beneath root to its size in bytes.

    Keys are the file paths as strings, built from root, so a relative root
    yields relative keys.

    Raises:
        OSError: If root does not exist or a file vanishes mid-walk
    """
    if root.is_file():
        return {str(root): root.stat().st_size}

    if not root.is_dir():
        raise FileNotFoundError(f"No such file or directory: {root}")

    sizes: Dict[str, int] = {}
    for item in sorted(root.rglob("*")):
        if item.is_symlink():
            continue
        if item.is_file():
            sizes[str(item)] = item.stat().st_size
    return sizes


class FileTreeInspector:
    """
    Inspector backed by the real filesystem.

    Symlinks beneath a directory are not followed.
    """

    async def get_sizes_under(self, path: str) -> FileSizeSnapshot:
        """
        Sizes of all files under path.

        Raises:
            InspectorError: If path is missing or unreadable
        """
        try:
            return await asyncio.to_thread(collect_sizes, Path(path))
        except OSError as e:
            raise InspectorError(str(path), str(e)) from e

    async def get_checksum(self, path: str) -> str:
        """
        SHA256 of a single file.

        Raises:
            InspectorError: If path is missing or unreadable
        """
        try:
            return await asyncio.to_thread(compute_file_sha256, Path(path))
        except OSError as e:
            raise InspectorError(str(path), str(e)) from e
