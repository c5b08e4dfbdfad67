"""Unit tests for dirshare.api.listing module."""
import os
import sys
from datetime import datetime

import pytest
from structlog.testing import capture_logs

from dirshare.api.errors import NotADirectoryPathError, PathNotFoundError
from dirshare.api.listing import (
    KIND_DIRECTORY,
    KIND_FILE,
    format_modified,
    format_size,
    list_directory,
)


@pytest.fixture
def sort_root(tmp_path):
    """Root holding the mixed-case sort example."""
    root = tmp_path / 'root'
    root.mkdir()
    (root / 'b.txt').write_text('b')
    (root / 'A.txt').write_text('a')
    (root / 'sub2').mkdir()
    (root / 'sub1').mkdir()
    return root.resolve()


class TestFormatSize:
    @pytest.mark.parametrize('num_bytes, expected', [
        (0, '0 B'),
        (10, '10 B'),
        (1023, '1023 B'),
        (1024, '1 KiB'),
        (1536, '1.50 KiB'),
        (1024 * 1024 - 1, '1 MiB'),
        (1024 * 1024, '1 MiB'),
        (1024 ** 3 - 1, '1 GiB'),
        (5 * 1024 ** 3 + 512 * 1024 ** 2, '5.50 GiB'),
    ])
    def test_binary_units(self, num_bytes, expected):
        assert format_size(num_bytes) == expected


class TestFormatModified:
    def test_minute_granularity_local_time(self):
        ts = datetime(2024, 3, 5, 14, 7, 59).timestamp()
        assert format_modified(ts) == '2024-03-05 14:07'


class TestListDirectory:
    def test_directories_first_case_insensitive(self, sort_root):
        entries = list_directory(sort_root, sort_root)
        assert [e.name for e in entries] == ['sub1', 'sub2', 'A.txt', 'b.txt']
        assert [e.kind for e in entries] == [KIND_DIRECTORY] * 2 + [KIND_FILE] * 2

    def test_no_parent_entry_at_root(self, sort_root):
        entries = list_directory(sort_root, sort_root)
        assert not any(e.is_parent for e in entries)

    def test_parent_entry_prepended_below_root(self, root_dir):
        entries = list_directory(root_dir, root_dir / 'docs')
        assert entries[0].is_parent
        assert entries[0].name == '..'
        assert entries[0].path == '.'
        assert entries[0].kind == KIND_DIRECTORY

    def test_parent_entry_of_nested_directory(self, root_dir):
        (root_dir / 'docs' / 'deep').mkdir()
        entries = list_directory(root_dir, root_dir / 'docs' / 'deep')
        assert entries[0].path == 'docs'

    def test_file_size_and_relative_path(self, root_dir):
        entries = list_directory(root_dir, root_dir / 'docs')
        readme = next(e for e in entries if e.name == 'readme.md')
        assert readme.path == 'docs/readme.md'
        assert readme.size == '10 B'
        assert readme.size_bytes == 10
        assert readme.modified is not None

    def test_directories_report_no_size(self, root_dir):
        entries = list_directory(root_dir, root_dir)
        docs = next(e for e in entries if e.name == 'docs')
        assert docs.size is None
        assert docs.size_bytes is None

    def test_hidden_entries_follow_sanitizer_policy(self, root_dir):
        names = [e.name for e in list_directory(root_dir, root_dir)]
        assert '.git' not in names
        assert '.bashrc' in names

    def test_encoded_paths_for_special_names(self, root_dir):
        (root_dir / 'a b%.txt').write_text('x')
        entries = list_directory(root_dir, root_dir)
        entry = next(e for e in entries if e.name == 'a b%.txt')
        assert entry.path == 'a%20b%25.txt'

    def test_broken_symlink_skipped_and_logged(self, root_dir):
        (root_dir / 'broken').symlink_to(root_dir / 'missing-target')
        with capture_logs() as logs:
            entries = list_directory(root_dir, root_dir)
        assert 'broken' not in [e.name for e in entries]
        assert any(
            e['event'] == 'listing_entry_skipped' and e['reason'] == 'metadata_unavailable'
            for e in logs
        )

    def test_symlink_to_file_outside_root_skipped(self, root_dir, outside_dir):
        (outside_dir / 'big_secret.bin').write_bytes(b'x' * 12345)
        (root_dir / 'leak.bin').symlink_to(outside_dir / 'big_secret.bin')
        with capture_logs() as logs:
            entries = list_directory(root_dir, root_dir)
        assert 'leak.bin' not in [e.name for e in entries]
        assert all(e.size_bytes != 12345 for e in entries)
        assert any(
            e['event'] == 'listing_entry_skipped'
            and e['reason'] == 'outside_root'
            and e['entry'] == 'leak.bin'
            for e in logs
        )

    def test_symlink_to_directory_outside_root_skipped(self, root_dir, outside_dir):
        (root_dir / 'elsewhere').symlink_to(outside_dir, target_is_directory=True)
        names = [e.name for e in list_directory(root_dir, root_dir)]
        assert 'elsewhere' not in names

    def test_symlink_inside_root_reports_target(self, root_dir):
        (root_dir / 'readme-link.md').symlink_to(root_dir / 'docs' / 'readme.md')
        (root_dir / 'docs-link').symlink_to(root_dir / 'docs', target_is_directory=True)
        entries = list_directory(root_dir, root_dir)
        link = next(e for e in entries if e.name == 'readme-link.md')
        assert link.kind == KIND_FILE
        assert link.size_bytes == 10
        assert next(e for e in entries if e.name == 'docs-link').kind == KIND_DIRECTORY

    def test_hidden_directory_with_previewable_name_skipped(self, root_dir):
        (root_dir / '.notes.md').mkdir()
        (root_dir / '.notes.md' / 'secret.txt').write_text('hidden')
        names = [e.name for e in list_directory(root_dir, root_dir)]
        assert '.notes.md' not in names

    @pytest.mark.skipif(sys.platform != 'linux', reason='needs byte-level filenames')
    def test_non_utf8_name_skipped(self, root_dir):
        raw = os.fsencode(root_dir) + b'/bad\xffname.txt'
        with open(raw, 'wb') as f:
            f.write(b'x')
        entries = list_directory(root_dir, root_dir)
        assert all('bad' not in e.name for e in entries)
        assert 'docs' in [e.name for e in entries]

    def test_listing_a_file_fails(self, root_dir):
        with pytest.raises(NotADirectoryPathError):
            list_directory(root_dir, root_dir / 'data.bin')

    def test_vanished_directory_not_found(self, root_dir):
        gone = root_dir / 'gone'
        gone.mkdir()
        gone.rmdir()
        with pytest.raises(PathNotFoundError):
            list_directory(root_dir, gone)

    def test_to_dict_shape(self, root_dir):
        entry = list_directory(root_dir, root_dir)[0]
        assert set(entry.to_dict()) == {
            'name', 'path', 'kind', 'size', 'size_bytes', 'modified', 'is_parent',
        }
