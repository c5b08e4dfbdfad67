"""Browse and preview routes for dirshare API."""
from fastapi import APIRouter, Query

from ...config import APIConfig
from .service import FileService


def create_file_router(config: APIConfig) -> APIRouter:
    """Create file browsing router.

    Args:
        config: API configuration (root directory, limits)

    Returns:
        Configured APIRouter with browse and preview endpoints
    """
    router = APIRouter(tags=['files'])
    service = FileService(config)

    @router.get('/browse')
    async def browse(path: str = Query('.', description='Directory relative to the root')):
        """List directory contents, directories first."""
        return await service.browse(path)

    @router.get('/preview')
    async def preview(path: str = Query(..., description='File relative to the root')):
        """Preview a text or image file from the allowlist."""
        return await service.preview(path)

    return router
