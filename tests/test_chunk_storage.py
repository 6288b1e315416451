"""Unit tests for chunk file layout and disk primitives."""

from pathlib import Path
from unittest.mock import patch

import pytest

from common.exceptions import ChunkNotFoundError, InvalidChunkKeyError, StorageIOError
from peer.chunk_storage import (
    check_chunk_key,
    get_chunk_path,
    get_directory_path,
    init_storage,
    list_stored_chunks,
    parse_chunk_name,
    read_chunk,
    write_chunk,
)


class TestPaths:
    """Tests for directory and chunk path helpers."""

    def test_directory_path(self, tmp_path):
        assert get_directory_path(3, 'files', tmp_path) == tmp_path / 'peer' / 'files' / '3'

    def test_chunk_path_layout(self, tmp_path):
        path = get_chunk_path(1, 'chunks', 'abc123', 0, tmp_path)

        assert path == tmp_path / 'peer' / 'chunks' / '1' / 'abc123_0'

    def test_chunk_path_deterministic(self, tmp_path):
        first = get_chunk_path('7', 'chunks', 'f' * 64, 12, str(tmp_path))
        second = get_chunk_path('7', 'chunks', 'f' * 64, 12, str(tmp_path))

        assert first == second
        assert str(first) == f"{tmp_path}/peer/chunks/7/{'f' * 64}_12"

    def test_chunk_path_does_not_touch_disk(self, tmp_path):
        get_chunk_path(1, 'chunks', 'abc', 0, tmp_path)

        assert not (tmp_path / 'peer').exists()

    def test_default_root_from_config(self):
        with patch('peer.chunk_storage.STORAGE_ROOT', '/srv/backup'):
            path = get_chunk_path(2, 'chunks', 'abc', 1)

        assert path == Path('/srv/backup/peer/chunks/2/abc_1')


class TestInitStorage:
    """Tests for storage directory creation."""

    def test_creates_both_directories(self, tmp_path):
        chunks_dir, files_dir = init_storage(1, tmp_path)

        assert chunks_dir.is_dir()
        assert files_dir.is_dir()

    def test_idempotent(self, tmp_path):
        init_storage(1, tmp_path)
        (tmp_path / 'peer' / 'chunks' / '1' / 'keep_0').write_bytes(b'x')

        init_storage(1, tmp_path)

        assert (tmp_path / 'peer' / 'chunks' / '1' / 'keep_0').read_bytes() == b'x'

    def test_failure_raises_storage_error(self, tmp_path):
        with patch.object(Path, 'mkdir', side_effect=PermissionError('denied')):
            with pytest.raises(StorageIOError) as exc_info:
                init_storage(1, tmp_path)

        assert isinstance(exc_info.value.__cause__, PermissionError)


class TestReadWrite:
    """Tests for raw chunk reads and writes."""

    def test_write_then_read(self, tmp_path):
        path = tmp_path / 'f_0'

        assert write_chunk(path, b'hello') == 5
        assert read_chunk(path) == b'hello'

    def test_write_truncates(self, tmp_path):
        path = tmp_path / 'f_0'
        path.write_bytes(b'a much longer previous content')

        write_chunk(path, b'short')

        assert path.read_bytes() == b'short'

    def test_write_failure_removes_partial_file(self, tmp_path):
        path = tmp_path / 'f_0'

        with patch('builtins.open', side_effect=OSError('no space left on device')):
            with pytest.raises(StorageIOError):
                write_chunk(path, b'hello')

        assert not path.exists()

    def test_read_missing(self, tmp_path):
        with pytest.raises(ChunkNotFoundError):
            read_chunk(tmp_path / 'missing_0')

    def test_read_directory_is_storage_error(self, tmp_path):
        with pytest.raises(StorageIOError):
            read_chunk(tmp_path)


class TestScan:
    """Tests for chunk directory scanning."""

    def test_parse_chunk_name(self):
        assert parse_chunk_name('abc_0') == ('abc', 0)
        assert parse_chunk_name('my_file_12') == ('my_file', 12)

    @pytest.mark.parametrize('name', ['abc', 'abc_', '_3', 'abc_x1', 'abc_-1', 'abc_\u00b2', 'abc_\u0663'])
    def test_parse_rejects_bad_names(self, name):
        assert parse_chunk_name(name) is None

    def test_list_stored_chunks(self, tmp_path):
        chunks_dir, _ = init_storage(1, tmp_path)
        (chunks_dir / 'f1_0').write_bytes(b'hello')
        (chunks_dir / 'f1_1').write_bytes(b'abc')
        (chunks_dir / 'stray.tmp').write_bytes(b'zzz')

        assert list(list_stored_chunks(1, tmp_path)) == [('f1', 0, 5), ('f1', 1, 3)]

    def test_list_without_directory(self, tmp_path):
        assert list(list_stored_chunks(1, tmp_path)) == []

    def test_list_skips_non_ascii_digit_suffix(self, tmp_path):
        chunks_dir, _ = init_storage(1, tmp_path)
        (chunks_dir / 'f1_0').write_bytes(b'hello')
        (chunks_dir / 'f1_²').write_bytes(b'stray')

        assert list(list_stored_chunks(1, tmp_path)) == [('f1', 0, 5)]


class TestChunkKey:
    """Tests for chunk key validation."""

    def test_valid_key(self):
        assert check_chunk_key('abc123', 4) == ('abc123', 4)

    def test_chunk_no_normalised_to_int(self):
        class ChunkNumber:
            def __index__(self):
                return 3

        file_id, chunk_no = check_chunk_key('abc', ChunkNumber())

        assert chunk_no == 3
        assert type(chunk_no) is int

    @pytest.mark.parametrize('file_id', ['', '.', '..', '../x', 'a/b', '../../../escaped', 'a\0b', None])
    def test_rejects_bad_file_ids(self, file_id):
        with pytest.raises(InvalidChunkKeyError):
            check_chunk_key(file_id, 0)

    @pytest.mark.parametrize('chunk_no', ['0', 1.0, True, None, -1])
    def test_rejects_bad_chunk_numbers(self, chunk_no):
        with pytest.raises(InvalidChunkKeyError):
            check_chunk_key('abc', chunk_no)

    def test_chunk_path_rejects_traversal(self, tmp_path):
        with pytest.raises(InvalidChunkKeyError):
            get_chunk_path(1, 'chunks', '../../outside', 0, tmp_path)
