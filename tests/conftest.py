"""Shared pytest fixtures for all tests."""

import pytest

from peer.chunk_store import ChunkStore


@pytest.fixture
def storage_root(tmp_path):
    """
    Create temporary storage root.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path under which the peer/ storage tree is created
    """
    root = tmp_path / 'storage'
    root.mkdir()
    return root


@pytest.fixture
def chunk_store(storage_root):
    """
    Create a chunk store for peer 1.

    Args:
        storage_root: Temporary storage root fixture

    Returns:
        ChunkStore instance rooted at the temporary directory
    """
    return ChunkStore(peer_id=1, storage_root=storage_root)


@pytest.fixture
def sample_chunk():
    """Chunk payload covering every byte value."""
    return bytes(range(256)) * 4
