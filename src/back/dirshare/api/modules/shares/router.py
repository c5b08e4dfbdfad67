"""Share-link routes for dirshare API."""
from urllib.parse import parse_qs

from fastapi import APIRouter, Query, Request
from pydantic import ValidationError

from ...config import APIConfig
from ...errors import BadRequestError
from ...shares import ShareRegistry
from .schemas import ShareRequest
from .service import ShareService


async def _path_from_body(request: Request) -> str | None:
    """Read ``path`` from a urlencoded form or a JSON body."""
    body = await request.body()
    if not body:
        return None

    content_type = request.headers.get('content-type', '')
    if 'application/x-www-form-urlencoded' in content_type:
        fields = parse_qs(body.decode('latin-1'), keep_blank_values=True)
        values = fields.get('path')
        return values[0] if values else None

    try:
        return ShareRequest.model_validate_json(body).path
    except ValidationError:
        raise BadRequestError('Request body must contain a path.')


def create_share_router(config: APIConfig, registry: ShareRegistry) -> APIRouter:
    """Create share-link router.

    Args:
        config: API configuration
        registry: Share registry owned by the application

    Returns:
        Configured APIRouter with share create, landing and download
        endpoints
    """
    router = APIRouter(tags=['shares'])
    service = ShareService(config, registry)

    @router.post('/api/share')
    async def create_share(
        request: Request,
        path: str | None = Query(None, description='File relative to the root'),
    ):
        """Create a share link.

        ``path`` may come from the query string, a form field or a JSON
        body (``{"path": "..."}``).
        """
        target = path or await _path_from_body(request)
        if not target:
            raise BadRequestError('A path is required.')
        return await service.create(target, str(request.base_url))

    @router.get('/share/{token}')
    async def share_landing(request: Request, token: str):
        """Metadata for a shared file."""
        return await service.landing(token, str(request.base_url))

    @router.get('/direct-download/{token}')
    async def direct_download(token: str):
        """Stream a shared file."""
        return await service.download(token)

    return router
