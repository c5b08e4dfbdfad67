"""Directory enumeration for validated paths."""
from __future__ import annotations

import errno
import os
import stat
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path, PurePosixPath

from ..observability import get_logger
from .errors import InternalFileError, NotADirectoryPathError, PathNotFoundError
from .paths import (
    CURRENT_DIR,
    is_previewable,
    is_within_root,
    parent_of,
    relative_from_root,
    relative_to_string,
)

logger = get_logger(__name__)

KIND_DIRECTORY = 'directory'
KIND_FILE = 'file'

_BINARY_UNITS = ('KiB', 'MiB', 'GiB', 'TiB', 'PiB', 'EiB')


def format_size(num_bytes: int) -> str:
    """Human-readable size using binary units (``10 B``, ``1.50 KiB``).

    The unit is picked after rounding, so ``1048575`` is ``1 MiB``.
    """
    if num_bytes < 1024:
        return f'{num_bytes} B'
    value = float(num_bytes)
    unit = _BINARY_UNITS[0]
    for unit in _BINARY_UNITS:
        value /= 1024
        if round(value, 2) < 1024:
            break
    value = round(value, 2)
    if value == int(value):
        return f'{int(value)} {unit}'
    return f'{value:.2f} {unit}'


def format_modified(timestamp: float) -> str:
    """Local-time, minute-granularity rendering of an mtime."""
    return datetime.fromtimestamp(timestamp).strftime('%Y-%m-%d %H:%M')


@dataclass(frozen=True)
class DirectoryEntry:
    """One row of a directory listing.

    ``path`` is the root-relative path in the encoded form clients send
    back as the ``path`` parameter. ``size`` and ``size_bytes`` are only
    set for files.
    """
    name: str
    path: str
    kind: str
    size: str | None = None
    size_bytes: int | None = None
    modified: str | None = None
    is_parent: bool = False

    @property
    def is_dir(self) -> bool:
        return self.kind == KIND_DIRECTORY

    def to_dict(self) -> dict:
        return asdict(self)


def _is_listable_name(name: str) -> bool:
    # Hidden entries are listed only when the sanitizer would let a
    # client address them afterwards.
    return not name.startswith('.') or is_previewable(name)


def _stat_within_root(root: Path, item: os.DirEntry) -> os.stat_result | None:
    """Metadata for ``item``, or None if it is a symlink leading out of ``root``.

    Symlinks are followed only after their target has been canonicalized
    and found inside the root, and the stat is taken on that target.

    Raises:
        OSError: Metadata (or the link target) could not be read.
    """
    if not item.is_symlink():
        return item.stat()
    try:
        target = Path(item.path).resolve(strict=True)
    except RuntimeError as e:
        raise OSError(errno.ELOOP, str(e))
    if not is_within_root(root, target):
        return None
    return target.stat()


def _has_text_name(name: str) -> bool:
    try:
        name.encode('utf-8')
    except UnicodeEncodeError:
        return False
    return True


def _sort_key(entry: DirectoryEntry) -> str:
    return entry.name.lower()


def list_directory(root: Path, directory: Path) -> list[DirectoryEntry]:
    """List a validated directory.

    Directories come first, then files, each group sorted
    case-insensitively by name. When ``directory`` is not the root a
    synthetic parent entry (``..``) is prepended.

    Entries with undecodable names, unreadable metadata or symlinks that
    resolve outside ``root`` are skipped and logged. Only a failure to
    read the directory itself is raised.

    Raises:
        NotADirectoryPathError: ``directory`` is not a directory.
        PathNotFoundError: ``directory`` vanished after validation.
        InternalFileError: The directory could not be read.
    """
    relative = relative_from_root(root, directory)
    dirs: list[DirectoryEntry] = []
    files: list[DirectoryEntry] = []

    try:
        with os.scandir(directory) as it:
            for item in it:
                name = item.name
                if not _has_text_name(name):
                    logger.warning(
                        'listing_entry_skipped',
                        reason='non_utf8_name',
                        directory=relative.as_posix(),
                    )
                    continue
                if not _is_listable_name(name):
                    continue
                try:
                    st = _stat_within_root(root, item)
                except OSError as e:
                    logger.warning(
                        'listing_entry_skipped',
                        reason='metadata_unavailable',
                        directory=relative.as_posix(),
                        entry=name,
                        error=str(e),
                    )
                    continue
                if st is None:
                    logger.warning(
                        'listing_entry_skipped',
                        reason='outside_root',
                        directory=relative.as_posix(),
                        entry=name,
                    )
                    continue

                is_dir = stat.S_ISDIR(st.st_mode)
                if is_dir and name.startswith('.'):
                    # The sanitizer drops hidden components before the leaf.
                    continue
                entry_rel = relative / name if relative != CURRENT_DIR else PurePosixPath(name)
                entry = DirectoryEntry(
                    name=name,
                    path=relative_to_string(entry_rel),
                    kind=KIND_DIRECTORY if is_dir else KIND_FILE,
                    size=None if is_dir else format_size(st.st_size),
                    size_bytes=None if is_dir else st.st_size,
                    modified=format_modified(st.st_mtime),
                )
                (dirs if is_dir else files).append(entry)
    except NotADirectoryError:
        raise NotADirectoryPathError()
    except FileNotFoundError:
        raise PathNotFoundError()
    except OSError as e:
        logger.error('listing_failed', directory=relative.as_posix(), error=str(e))
        raise InternalFileError('Error reading directory contents.')

    dirs.sort(key=_sort_key)
    files.sort(key=_sort_key)

    entries: list[DirectoryEntry] = []
    if relative != CURRENT_DIR:
        entries.append(DirectoryEntry(
            name='..',
            path=relative_to_string(parent_of(relative)),
            kind=KIND_DIRECTORY,
            is_parent=True,
        ))
    entries.extend(dirs)
    entries.extend(files)
    return entries
