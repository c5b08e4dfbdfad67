"""Browse and preview operations for dirshare API."""
from pathlib import Path

import aiofiles
from starlette.concurrency import run_in_threadpool
from starlette.responses import Response

from ...config import APIConfig
from ...errors import (
    InternalFileError,
    NotAFilePathError,
    NotPreviewableError,
    PathNotFoundError,
    PreviewTooLargeError,
)
from ...listing import format_size, list_directory
from ...paths import (
    display_path,
    is_image,
    is_previewable,
    relative_from_root,
    relative_to_string,
    sanitize_path,
    validate_path,
)
from ...transfer import guess_mime_type, open_transfer, streaming_response
from ....observability import get_logger

logger = get_logger(__name__)


class FileService:
    """Service class for browse and preview.

    Every method runs the client's path through sanitize_path and
    validate_path before touching the filesystem. Blocking filesystem
    calls are pushed to the thread pool.
    """

    def __init__(self, config: APIConfig):
        self.config = config

    async def resolve(self, path: str) -> Path:
        """Sanitize and validate a client path; returns the canonical path."""
        relative = sanitize_path(path)
        return await run_in_threadpool(validate_path, self.config.root_dir, relative)

    async def browse(self, path: str = '.') -> dict:
        """List a directory.

        Args:
            path: Directory path relative to the root (may be percent-encoded)

        Returns:
            dict with the encoded path, display path, root flag and entries
        """
        root = self.config.root_dir
        directory = await self.resolve(path)
        entries = await run_in_threadpool(list_directory, root, directory)
        relative = relative_from_root(root, directory)
        return {
            'path': relative_to_string(relative),
            'display_path': display_path(relative),
            'is_root': directory == root,
            'entries': [e.to_dict() for e in entries],
        }

    async def preview(self, path: str) -> dict | Response:
        """Preview an allowlisted file.

        Images are streamed inline; text files are returned as a JSON
        document with their (UTF-8, replacement-decoded) content.
        """
        target = await self.resolve(path)
        if not await run_in_threadpool(target.is_file):
            raise NotAFilePathError()
        if not is_previewable(target.name):
            raise NotPreviewableError()

        if is_image(target.name):
            transfer = await open_transfer(
                target, chunk_size=self.config.chunk_size, inline=True,
            )
            return streaming_response(transfer)

        limit = self.config.preview_max_bytes
        try:
            async with aiofiles.open(target, 'rb') as f:
                data = await f.read(limit + 1)
        except FileNotFoundError:
            raise PathNotFoundError()
        except OSError as e:
            logger.error('preview_read_failed', name=target.name, error=str(e))
            raise InternalFileError('Could not read file for preview.')
        if len(data) > limit:
            raise PreviewTooLargeError()

        relative = relative_from_root(self.config.root_dir, target)
        return {
            'path': relative_to_string(relative),
            'display_path': display_path(relative),
            'name': target.name,
            'mime_type': guess_mime_type(target.name),
            'size': format_size(len(data)),
            'size_bytes': len(data),
            'content': data.decode('utf-8', errors='replace'),
        }
