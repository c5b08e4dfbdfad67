"""Share-link operations for dirshare API."""
from starlette.concurrency import run_in_threadpool
from starlette.responses import StreamingResponse
from structlog.contextvars import bound_contextvars

from ...config import APIConfig
from ...errors import InternalFileError, NotAFilePathError, PathNotFoundError
from ...listing import format_modified, format_size
from ...paths import sanitize_path, validate_path
from ...shares import ShareRegistry
from ...transfer import guess_mime_type, open_transfer, streaming_response
from ....observability import get_logger

logger = get_logger(__name__)


class ShareService:
    """Service class for share creation and redemption.

    The registry is injected so tests and the app factory control its
    lifetime; there is no module-level token map.
    """

    def __init__(self, config: APIConfig, registry: ShareRegistry):
        self.config = config
        self.registry = registry

    def _base_url(self, request_base_url: str) -> str:
        return self.config.public_base_url or request_base_url.rstrip('/')

    async def create(self, path: str, request_base_url: str) -> dict:
        """Create a share link for a file.

        Args:
            path: File path relative to the root
            request_base_url: Scheme and host the request arrived on

        Returns:
            dict with token, landing URL and direct download URL

        Raises:
            NotAFilePathError: If path is a directory or special file
        """
        relative = sanitize_path(path)
        target = await run_in_threadpool(validate_path, self.config.root_dir, relative)
        if not await run_in_threadpool(target.is_file):
            logger.info('share_rejected_not_file', requested=relative.as_posix())
            raise NotAFilePathError('Sharing is only supported for files.')

        token = self.registry.create(target)
        base = self._base_url(request_base_url)
        return {
            'token': token,
            'name': target.name,
            'url': f'{base}/share/{token}',
            'download_url': f'{base}/direct-download/{token}',
        }

    async def landing(self, token: str, request_base_url: str) -> dict:
        """Describe a shared file without sending its bytes."""
        with bound_contextvars(share_token=token):
            target = await run_in_threadpool(self.registry.resolve, token)
            try:
                st = await run_in_threadpool(target.stat)
            except FileNotFoundError:
                raise PathNotFoundError('Shared file not found.')
            except OSError as e:
                logger.error('share_stat_failed', error=str(e))
                raise InternalFileError('Could not read file information.')

        base = self._base_url(request_base_url)
        return {
            'token': token,
            'name': target.name,
            'size': format_size(st.st_size),
            'size_bytes': st.st_size,
            'modified': format_modified(st.st_mtime),
            'mime_type': guess_mime_type(target.name),
            'download_url': f'{base}/direct-download/{token}',
        }

    async def download(self, token: str) -> StreamingResponse:
        """Stream a shared file as an attachment."""
        with bound_contextvars(share_token=token):
            target = await run_in_threadpool(self.registry.resolve, token)
            transfer = await open_transfer(target, chunk_size=self.config.chunk_size)
        return streaming_response(transfer)
