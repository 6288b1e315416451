"""In-memory index: file_id -> set of chunk numbers stored on this peer."""

import logging
import threading
from typing import Dict, List, Set

logger = logging.getLogger(__name__)


class ChunkIndex:
    """
    Thread-safe index of which chunks of which files this peer holds.

    A file's record is created on its first chunk and never removed.
    """

    def __init__(self):
        """Initialize empty chunk index."""
        self._files: Dict[str, Set[int]] = {}
        self._lock = threading.RLock()

    def add_chunk(self, file_id: str, chunk_no: int) -> bool:
        """
        Record a chunk unless it is already recorded.

        Args:
            file_id: ID of the file
            chunk_no: Number of the chunk

        Returns:
            True if the chunk was added, False if it was already present
        """
        with self._lock:
            chunks = self._files.setdefault(file_id, set())
            if chunk_no in chunks:
                return False
            chunks.add(chunk_no)
            return True

    def contains(self, file_id: str, chunk_no: int) -> bool:
        """
        Check if a chunk is in the index.

        Args:
            file_id: ID of the file
            chunk_no: Number of the chunk

        Returns:
            True if the chunk is recorded, False otherwise
        """
        with self._lock:
            return chunk_no in self._files.get(file_id, ())

    def chunks_for_file(self, file_id: str) -> List[int]:
        """
        Get the chunk numbers recorded for a file.

        Returns:
            Sorted chunk numbers (empty if the file is unknown)
        """
        with self._lock:
            return sorted(self._files.get(file_id, ()))

    def file_ids(self) -> List[str]:
        """Get IDs of all files with at least one recorded chunk."""
        with self._lock:
            return [file_id for file_id, chunks in self._files.items() if chunks]

    def count(self) -> int:
        """
        Get number of chunks in index.

        Returns:
            Count of (file_id, chunk_no) pairs
        """
        with self._lock:
            return sum(len(chunks) for chunks in self._files.values())
