"""
Local chunk store of a backup peer.

Persists chunks under the peer's storage tree, keeps the per-file chunk
index and accounts for the storage space used. Safe to share between
message-handling threads: storing a given (file_id, chunk_no) is one atomic
step, so retransmitted duplicates are neither written nor counted twice.
"""

import logging
import threading
from pathlib import Path
from typing import List, Optional, Union

from common.constants import CHUNK_ENCODING, CHUNKS_DIR_NAME
from common.exceptions import StorageIOError
from peer.chunk_index import ChunkIndex
from peer.chunk_storage import (
    PathLike,
    check_chunk_key,
    get_chunk_path,
    init_storage,
    list_stored_chunks,
    read_chunk,
    write_chunk,
)
from peer.config import LOCK_STRIPES, PEER_ID, STORAGE_ROOT

logger = logging.getLogger(__name__)

ChunkContent = Union[str, bytes, bytearray, memoryview]


class StorageUsageCounter:
    """Monotonic byte counter guarded by a lock."""

    def __init__(self):
        self._value = 0
        self._lock = threading.Lock()

    def add(self, size: int) -> int:
        """
        Add size bytes and return the new total.

        Raises:
            ValueError: If size is negative
        """
        if size < 0:
            raise ValueError(f"Storage usage cannot decrease (got {size})")
        with self._lock:
            self._value += size
            return self._value

    @property
    def value(self) -> int:
        """Current total in bytes."""
        with self._lock:
            return self._value


def _to_bytes(content: ChunkContent) -> bytes:
    if isinstance(content, str):
        return content.encode(CHUNK_ENCODING)
    return bytes(content)


class ChunkStore:
    """
    Stores and retrieves the chunks held by one peer.

    Usage:
        store = ChunkStore(peer_id=1, storage_root="/var/backup")
        store.store_chunk("abc123", 0, b"hello")
        store.retrieve_chunk("abc123", 0)  # 'hello'
        store.used_storage_space()         # 5
    """

    def __init__(
        self,
        peer_id=None,
        storage_root: Optional[PathLike] = None,
        lock_stripes: Optional[int] = None
    ):
        """
        Initialize the store and create the peer's storage directories.

        Args:
            peer_id: ID of the peer whose chunks are managed (default: configured PEER_ID)
            storage_root: Root of the storage tree (default: configured STORAGE_ROOT)
            lock_stripes: Number of per-key locks (default: configured LOCK_STRIPES)

        Raises:
            StorageIOError: If the storage directories cannot be created
            ValueError: If lock_stripes is not positive
        """
        stripes = LOCK_STRIPES if lock_stripes is None else lock_stripes
        if stripes < 1:
            raise ValueError(f"lock_stripes must be positive, got {stripes}")

        self.peer_id = PEER_ID if peer_id is None else peer_id
        self.storage_root = Path(storage_root) if storage_root is not None else Path(STORAGE_ROOT)
        self.chunks_dir, self.files_dir = init_storage(self.peer_id, self.storage_root)

        self._index = ChunkIndex()
        self._usage = StorageUsageCounter()
        self._stripes = [threading.Lock() for _ in range(stripes)]

        logger.info(f"Chunk store ready for peer {self.peer_id} at {self.chunks_dir}")

    def _lock_for(self, file_id: str, chunk_no: int) -> threading.Lock:
        return self._stripes[hash((file_id, chunk_no)) % len(self._stripes)]

    def chunk_path(self, file_id: str, chunk_no: int) -> Path:
        """Get the on-disk path of a chunk held by this peer."""
        return get_chunk_path(self.peer_id, CHUNKS_DIR_NAME, file_id, chunk_no, self.storage_root)

    def store_chunk(self, file_id: str, chunk_no: int, content: ChunkContent) -> bool:
        """
        Persist a chunk unless this peer already holds it.

        Args:
            file_id: ID of the file
            chunk_no: Number of the chunk
            content: Chunk data; str content is stored in the chunk encoding

        Returns:
            True once the chunk is held, whether it was written now or earlier

        Raises:
            InvalidChunkKeyError: If file_id or chunk_no cannot name a chunk file
            StorageIOError: If the chunk cannot be written
        """
        file_id, chunk_no = check_chunk_key(file_id, chunk_no)
        data = _to_bytes(content)

        with self._lock_for(file_id, chunk_no):
            if self._index.contains(file_id, chunk_no):
                logger.debug(f"Chunk {file_id}_{chunk_no} already stored, skipping")
                return True

            filepath = self.chunk_path(file_id, chunk_no)
            try:
                written = write_chunk(filepath, data)
            except StorageIOError as e:
                logger.error(f"Failed to store chunk {file_id}_{chunk_no}: {e}")
                raise

            self._index.add_chunk(file_id, chunk_no)
            total = self._usage.add(written)

        logger.debug(f"Stored chunk {file_id}_{chunk_no} ({written} bytes, {total} bytes used)")
        return True

    def retrieve_chunk(self, file_id: str, chunk_no: int) -> str:
        """
        Read back the full content of a stored chunk.

        Returns:
            Chunk content decoded with the chunk encoding

        Raises:
            InvalidChunkKeyError: If file_id or chunk_no cannot name a chunk file
            ChunkNotFoundError: If the chunk is not stored on this peer
            StorageIOError: If the chunk cannot be read
        """
        return read_chunk(self.chunk_path(file_id, chunk_no)).decode(CHUNK_ENCODING)

    def used_storage_space(self) -> int:
        """Get the number of bytes stored so far."""
        return self._usage.value

    def is_chunk_stored(self, file_id: str, chunk_no: int) -> bool:
        """
        Check if this peer holds a chunk.

        Args:
            file_id: ID of the file
            chunk_no: Number of the chunk

        Returns:
            True if the chunk has been stored, False otherwise

        Raises:
            InvalidChunkKeyError: If file_id or chunk_no cannot name a chunk file
        """
        file_id, chunk_no = check_chunk_key(file_id, chunk_no)
        return self._index.contains(file_id, chunk_no)

    def stored_chunks(self, file_id: str) -> List[int]:
        """
        Get the chunk numbers held for a file.

        Args:
            file_id: ID of the file

        Returns:
            Sorted chunk numbers (empty if none are held)
        """
        return self._index.chunks_for_file(file_id)

    def stored_files(self) -> List[str]:
        """
        Get IDs of all files with at least one chunk held.

        Returns:
            List of file IDs
        """
        return self._index.file_ids()

    def rebuild_index(self) -> int:
        """
        Index chunk files already present in the chunk directory.

        Chunks found on disk but missing from the index are recorded and
        their size added to the storage usage.

        Returns:
            Number of chunks added to the index
        """
        logger.info(f"Rebuilding chunk index from {self.chunks_dir}...")

        added = 0
        for file_id, chunk_no, size in list_stored_chunks(self.peer_id, self.storage_root):
            with self._lock_for(file_id, chunk_no):
                if self._index.add_chunk(file_id, chunk_no):
                    self._usage.add(size)
                    added += 1

        logger.info(f"Rebuilt index with {added} new chunks ({self._index.count()} total)")
        return added
