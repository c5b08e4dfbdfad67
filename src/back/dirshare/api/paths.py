"""Path sanitization and root-boundary validation.

Every client-supplied path goes through two stages before any file is
read:

1. ``sanitize_path`` is a pure, syntactic normalization. It decodes
   percent-escapes, drops root markers, collapses ``..`` against what it
   has already accumulated and removes hidden components. It never
   touches the filesystem and never fails.

2. ``validate_path`` joins the sanitized path to the canonical root,
   resolves it against the live filesystem (symlinks included) and
   proves the result is still inside the root, comparing whole path
   components rather than string prefixes.

A sanitized path is not proof of containment: a symlink inside the root
can still point outside it. Only a path returned by ``validate_path``
(or ``canonicalize_within``) may be handed to the listing, share or
transfer code, and only for the filesystem operation immediately
following the check.
"""
from __future__ import annotations

import errno
from pathlib import Path, PurePosixPath
from urllib.parse import quote, unquote

from ..observability import get_logger
from ..observability.metrics import PATH_REJECTIONS_TOTAL
from .errors import AccessDeniedError, InternalFileError, PathNotFoundError

logger = get_logger(__name__)

CURRENT_DIR = PurePosixPath('.')

TEXT_PREVIEW_EXTENSIONS = frozenset({
    'txt', 'md', 'rst', 'log', 'csv',
    'py', 'rs', 'js', 'ts', 'c', 'h', 'cpp', 'hpp', 'go', 'java', 'rb', 'sql',
    'sh', 'bash', 'zsh',
    'json', 'toml', 'yaml', 'yml', 'ini', 'cfg', 'conf', 'xml',
    'css', 'html', 'htm',
})

IMAGE_PREVIEW_EXTENSIONS = frozenset({
    'png', 'jpg', 'jpeg', 'gif', 'bmp', 'svg', 'webp',
})

# Dotfiles with no extension that are still worth previewing.
PREVIEWABLE_DOTFILES = frozenset({
    '.bashrc', '.zshrc', '.profile', '.gitignore', '.editorconfig', '.env.example',
})


def _extension(name: str) -> str:
    """Lower-cased text after the last dot, ignoring a single leading dot."""
    stem = name[1:] if name.startswith('.') else name
    if '.' not in stem:
        return ''
    return stem.rsplit('.', 1)[1].lower()


def is_previewable(name: str) -> bool:
    """Return True if ``name`` is on the preview allowlist.

    Matches either an exact dotfile name or a known extension. Anything
    else, including names that merely contain an allowed extension
    somewhere in the middle, is not previewable.
    """
    if name in PREVIEWABLE_DOTFILES:
        return True
    ext = _extension(name)
    return ext in TEXT_PREVIEW_EXTENSIONS or ext in IMAGE_PREVIEW_EXTENSIONS


def is_image(name: str) -> bool:
    """Return True if ``name`` has a previewable image extension."""
    return _extension(name) in IMAGE_PREVIEW_EXTENSIONS


def _percent_decode(value: str) -> str:
    try:
        return unquote(value, errors='strict')
    except UnicodeDecodeError:
        return value


def sanitize_path(path_str: str) -> PurePosixPath:
    """Normalize a client-supplied path into a conservative relative path.

    - percent-escapes are decoded first; undecodable input is used raw
    - empty components, root markers and ``.`` are dropped
    - ``..`` removes the last accumulated component and is never emitted
    - components starting with ``.`` are dropped unless they are the last
      component and on the preview allowlist

    Returns ``PurePosixPath('.')`` when nothing survives.
    """
    components = [
        c for c in _percent_decode(path_str).split('/') if c not in ('', '.')
    ]
    last = len(components) - 1
    parts: list[str] = []
    for i, component in enumerate(components):
        if component == '..':
            if parts:
                parts.pop()
            continue
        if component.startswith('.') and not (i == last and is_previewable(component)):
            continue
        parts.append(component)
    if not parts:
        return CURRENT_DIR
    return PurePosixPath(*parts)


def relative_to_string(relative: PurePosixPath) -> str:
    """Encode a relative path for clients to send back as ``path``.

    Percent-escapes any character that sanitize_path would otherwise
    decode, so ``sanitize_path(relative_to_string(p)) == p`` for every
    sanitized ``p``.
    """
    if relative == CURRENT_DIR:
        return '.'
    return quote(relative.as_posix(), safe='/')


def display_path(relative: PurePosixPath) -> str:
    """Human-readable root-relative path: ``/`` for the root itself."""
    if relative == CURRENT_DIR:
        return '/'
    return '/' + relative.as_posix()


def parent_of(relative: PurePosixPath) -> PurePosixPath:
    """Parent of a relative path, ``.`` for top-level entries."""
    parent = relative.parent
    return parent if parent.parts else CURRENT_DIR


def is_within_root(root: Path, candidate: Path) -> bool:
    """Component-wise containment check (``/data`` does not contain ``/data-other``)."""
    return candidate == root or candidate.is_relative_to(root)


def canonicalize_within(root: Path, candidate: Path, *, requested: str) -> Path:
    """Resolve ``candidate`` on the live filesystem and prove it is under ``root``.

    Args:
        root: Canonical root directory.
        candidate: Absolute path to check.
        requested: What the client asked for, used only in log entries.

    Returns:
        The canonical, symlink-free path.

    Raises:
        PathNotFoundError: The path (or a symlink target) does not exist.
        AccessDeniedError: The resolved path is outside ``root``.
        InternalFileError: Resolution failed for another OS reason.
    """
    try:
        resolved = candidate.resolve(strict=True)
    except (FileNotFoundError, NotADirectoryError, ValueError):
        # ValueError: embedded NUL byte, which no real file can have.
        logger.info('path_not_found', requested=requested)
        PATH_REJECTIONS_TOTAL.labels(reason='not_found').inc()
        raise PathNotFoundError()
    except OSError as e:
        if e.errno in (errno.ENOENT, errno.ENOTDIR):
            logger.info('path_not_found', requested=requested)
            PATH_REJECTIONS_TOTAL.labels(reason='not_found').inc()
            raise PathNotFoundError()
        logger.error('path_resolve_failed', requested=requested, error=str(e))
        PATH_REJECTIONS_TOTAL.labels(reason='os_error').inc()
        raise InternalFileError()
    except RuntimeError as e:
        # Symlink loops raise RuntimeError on Python < 3.13.
        logger.error('path_resolve_failed', requested=requested, error=str(e))
        PATH_REJECTIONS_TOTAL.labels(reason='os_error').inc()
        raise InternalFileError()

    if not is_within_root(root, resolved):
        logger.warning(
            'path_traversal_blocked',
            requested=requested,
            resolved=str(resolved),
            root=str(root),
        )
        PATH_REJECTIONS_TOTAL.labels(reason='outside_root').inc()
        raise AccessDeniedError()
    return resolved


def validate_path(root: Path, relative: PurePosixPath) -> Path:
    """Join a sanitized relative path to ``root`` and validate the result.

    The join is a flat component append; interpretation of anything the
    OS still considers special is left to canonicalization.
    """
    candidate = root.joinpath(*relative.parts) if relative != CURRENT_DIR else root
    return canonicalize_within(root, candidate, requested=relative.as_posix())


def relative_from_root(root: Path, validated: Path) -> PurePosixPath:
    """Root-relative form of a validated path."""
    rel = validated.relative_to(root)
    return PurePosixPath(*rel.parts) if rel.parts else CURRENT_DIR
