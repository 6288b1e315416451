"""Manages physical chunk files on disk: directory layout, read/write and scanning."""

import logging
import operator
import os
from pathlib import Path
from typing import Iterator, Optional, Tuple, Union

from common.constants import (
    CHUNK_NAME_SEPARATOR,
    CHUNKS_DIR_NAME,
    FILES_DIR_NAME,
    STORAGE_BASE_DIR,
)
from common.exceptions import ChunkNotFoundError, InvalidChunkKeyError, StorageIOError
from peer.config import STORAGE_ROOT

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _resolve_root(storage_root: Optional[PathLike]) -> Path:
    return Path(storage_root) if storage_root is not None else Path(STORAGE_ROOT)


def get_directory_path(peer_id, dir_name: str, storage_root: Optional[PathLike] = None) -> Path:
    """
    Get a peer's storage directory.

    Args:
        peer_id: ID of the peer owning the directory
        dir_name: Storage area, e.g. 'chunks' or 'files'
        storage_root: Root of the storage tree (default: configured STORAGE_ROOT)

    Returns:
        <storage_root>/peer/<dir_name>/<peer_id>
    """
    return _resolve_root(storage_root) / STORAGE_BASE_DIR / dir_name / str(peer_id)


def check_chunk_key(file_id: str, chunk_no) -> Tuple[str, int]:
    """
    Validate a chunk key before it is used to build a path.

    Args:
        file_id: ID of the file; must be a single path component
        chunk_no: Number of the chunk; an integer, not negative

    Returns:
        (file_id, chunk_no) with chunk_no as a plain int

    Raises:
        InvalidChunkKeyError: If either part cannot name a chunk file
    """
    if not isinstance(file_id, str) or file_id in ("", ".", ".."):
        raise InvalidChunkKeyError(f"Invalid file ID: {file_id!r}")
    separators = {"/", "\0", os.sep} | ({os.altsep} if os.altsep else set())
    if any(sep in file_id for sep in separators):
        raise InvalidChunkKeyError(f"File ID must be a single path component: {file_id!r}")

    if isinstance(chunk_no, bool):
        raise InvalidChunkKeyError(f"Invalid chunk number: {chunk_no!r}")
    try:
        chunk_no = operator.index(chunk_no)
    except TypeError:
        raise InvalidChunkKeyError(f"Chunk number must be an integer: {chunk_no!r}") from None
    if chunk_no < 0:
        raise InvalidChunkKeyError(f"Chunk number must not be negative: {chunk_no}")

    return file_id, chunk_no


def get_chunk_path(
    peer_id,
    dir_name: str,
    file_id: str,
    chunk_no: int,
    storage_root: Optional[PathLike] = None
) -> Path:
    """
    Get file path for a chunk. Depends only on its arguments.

    Args:
        peer_id: ID of the peer storing the chunk
        dir_name: Storage area holding the chunk (normally 'chunks')
        file_id: ID of the file the chunk belongs to
        chunk_no: Number of the chunk within the file
        storage_root: Root of the storage tree (default: configured STORAGE_ROOT)

    Returns:
        <storage_root>/peer/<dir_name>/<peer_id>/<file_id>_<chunk_no>

    Raises:
        InvalidChunkKeyError: If file_id or chunk_no cannot name a chunk file
    """
    file_id, chunk_no = check_chunk_key(file_id, chunk_no)
    directory = get_directory_path(peer_id, dir_name, storage_root)
    return directory / f"{file_id}{CHUNK_NAME_SEPARATOR}{chunk_no}"


def init_storage(peer_id, storage_root: Optional[PathLike] = None) -> Tuple[Path, Path]:
    """
    Create the peer's chunk and file directories if they don't exist yet.

    Args:
        peer_id: ID of the peer
        storage_root: Root of the storage tree (default: configured STORAGE_ROOT)

    Returns:
        (chunks directory, files directory)

    Raises:
        StorageIOError: If a directory cannot be created
    """
    directories = (
        get_directory_path(peer_id, CHUNKS_DIR_NAME, storage_root),
        get_directory_path(peer_id, FILES_DIR_NAME, storage_root),
    )
    for directory in directories:
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create storage directory {directory}: {e}")
            raise StorageIOError(f"Cannot create storage directory {directory}") from e
    return directories


def write_chunk(filepath: Path, data: bytes) -> int:
    """
    Write chunk data to disk, replacing any previous content.

    A failed write leaves no partial file behind.

    Args:
        filepath: Destination chunk path
        data: Raw chunk data

    Returns:
        Number of bytes written

    Raises:
        StorageIOError: If the write operation fails
    """
    try:
        with open(filepath, 'wb') as f:
            f.write(data)
    except OSError as e:
        try:
            filepath.unlink(missing_ok=True)
        except OSError as cleanup_error:
            logger.warning(f"Could not remove partial chunk {filepath}: {cleanup_error}")
        raise StorageIOError(f"Failed to write chunk {filepath}") from e
    return len(data)


def read_chunk(filepath: Path) -> bytes:
    """
    Read entire chunk from disk.

    Raises:
        ChunkNotFoundError: If the chunk does not exist
        StorageIOError: If the read operation fails
    """
    try:
        return filepath.read_bytes()
    except FileNotFoundError as e:
        raise ChunkNotFoundError(f"Chunk not found: {filepath}") from e
    except OSError as e:
        raise StorageIOError(f"Failed to read chunk {filepath}") from e


def parse_chunk_name(name: str) -> Optional[Tuple[str, int]]:
    """
    Split a chunk file name into (file_id, chunk_no).

    Returns:
        The pair, or None if the name does not follow <file_id>_<chunk_no>
    """
    file_id, separator, chunk_part = name.rpartition(CHUNK_NAME_SEPARATOR)
    if not separator or not file_id or not (chunk_part.isascii() and chunk_part.isdigit()):
        return None
    return file_id, int(chunk_part)


def list_stored_chunks(peer_id, storage_root: Optional[PathLike] = None) -> Iterator[Tuple[str, int, int]]:
    """
    Scan the peer's chunk directory.

    Yields:
        (file_id, chunk_no, size in bytes) for each well-named chunk file
    """
    directory = get_directory_path(peer_id, CHUNKS_DIR_NAME, storage_root)
    if not directory.exists():
        return

    for filepath in sorted(directory.iterdir()):
        if not filepath.is_file():
            continue
        parsed = parse_chunk_name(filepath.name)
        if parsed is None:
            logger.warning(f"Ignoring unexpected file in chunk directory: {filepath.name}")
            continue
        file_id, chunk_no = parsed
        yield file_id, chunk_no, filepath.stat().st_size
