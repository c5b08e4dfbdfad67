"""Bounded-memory file streaming.

``open_transfer`` opens a validated file and captures its size from the
open handle. The returned ``FileTransfer`` carries the response
metadata and yields the file in fixed-size chunks; the whole file is
never held in memory.

Opening happens before any response bytes are produced, so a file that
vanished between validation and open still maps to a clean error
status instead of a truncated body.
"""
from __future__ import annotations

import mimetypes
import os
import stat
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import quote

import aiofiles
from starlette.background import BackgroundTask
from starlette.responses import StreamingResponse

from ..observability import get_logger
from ..observability.metrics import BYTES_SENT_TOTAL
from .config import DEFAULT_CHUNK_SIZE
from .errors import InternalFileError, NotAFilePathError, PathNotFoundError

logger = get_logger(__name__)

DEFAULT_MIME_TYPE = 'application/octet-stream'


def guess_mime_type(name: str) -> str:
    """Content type from the file extension, octet-stream when unknown."""
    mime_type, _ = mimetypes.guess_type(name, strict=False)
    return mime_type or DEFAULT_MIME_TYPE


def content_disposition(filename: str, *, inline: bool = False) -> str:
    """Build a Content-Disposition value carrying ``filename``.

    The plain ``filename`` parameter is always quoted. Names that are not
    printable ASCII also get an RFC 5987 ``filename*`` parameter, with a
    best-effort ASCII fallback in ``filename``.
    """
    disposition = 'inline' if inline else 'attachment'
    escaped = filename.replace('\\', '\\\\').replace('"', '\\"')
    if escaped.isascii() and escaped.isprintable():
        return f'{disposition}; filename="{escaped}"'
    fallback = escaped.encode('ascii', 'replace').decode('ascii')
    fallback = ''.join(c if c.isprintable() else '_' for c in fallback)
    return (
        f'{disposition}; filename="{fallback}"; '
        f"filename*=UTF-8''{quote(filename, safe='')}"
    )


@dataclass(frozen=True)
class FileTransfer:
    """An open file ready to stream, plus its response metadata.

    ``size`` is read from the open handle, so it is the file's size at
    open time.
    """
    filename: str
    size: int
    mime_type: str
    inline: bool = False
    chunk_size: int = DEFAULT_CHUNK_SIZE
    handle: Any = field(default=None, repr=False, compare=False)

    @property
    def disposition(self) -> str:
        return content_disposition(self.filename, inline=self.inline)

    def headers(self) -> dict[str, str]:
        return {
            'Content-Type': self.mime_type,
            'Content-Length': str(self.size),
            'Content-Disposition': self.disposition,
        }

    async def chunks(self) -> AsyncIterator[bytes]:
        """Yield the file in ``chunk_size`` pieces, then close it.

        Stops at ``size`` so the body always matches Content-Length,
        even if the file grows while streaming.
        """
        remaining = self.size
        try:
            while remaining > 0:
                chunk = await self.handle.read(min(self.chunk_size, remaining))
                if not chunk:
                    break
                remaining -= len(chunk)
                BYTES_SENT_TOTAL.inc(len(chunk))
                yield chunk
        finally:
            await self.aclose()
        if remaining:
            logger.warning('transfer_truncated', name=self.filename, missing_bytes=remaining)

    async def aclose(self) -> None:
        """Close the underlying handle; safe to call more than once."""
        if self.handle is not None and not self.handle.closed:
            await self.handle.close()


async def open_transfer(
    path: Path,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    inline: bool = False,
) -> FileTransfer:
    """Open a validated file for streaming.

    Raises:
        PathNotFoundError: File vanished after validation.
        NotAFilePathError: Path is no longer a regular file.
        InternalFileError: Any other open or stat failure.
    """
    try:
        handle = await aiofiles.open(path, 'rb')
    except FileNotFoundError:
        logger.warning('transfer_open_failed', reason='not_found', name=path.name)
        raise PathNotFoundError()
    except IsADirectoryError:
        raise NotAFilePathError()
    except OSError as e:
        logger.error('transfer_open_failed', reason='os_error', name=path.name, error=str(e))
        raise InternalFileError('Could not read file for download.')

    try:
        st = os.fstat(handle.fileno())
    except OSError as e:
        await handle.close()
        logger.error('transfer_stat_failed', name=path.name, error=str(e))
        raise InternalFileError('Could not read file information for download.')
    if not stat.S_ISREG(st.st_mode):
        await handle.close()
        raise NotAFilePathError()

    transfer = FileTransfer(
        filename=path.name,
        size=st.st_size,
        mime_type=guess_mime_type(path.name),
        inline=inline,
        chunk_size=chunk_size,
        handle=handle,
    )
    logger.info('transfer_started', name=transfer.filename, size=transfer.size)
    return transfer


def streaming_response(transfer: FileTransfer) -> StreamingResponse:
    """Wrap an open transfer in a StreamingResponse.

    The background task closes the handle if the body iterator is never
    started (e.g. the client disconnects first).
    """
    return StreamingResponse(
        transfer.chunks(),
        status_code=200,
        headers=transfer.headers(),
        background=BackgroundTask(transfer.aclose),
    )
