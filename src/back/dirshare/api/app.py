"""Application factory for dirshare API."""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from .. import __version__
from ..observability import get_logger, metrics_text
from ..observability.middleware import (
    AccessMiddleware,
    RequestIdMiddleware,
)
from .config import APIConfig
from .errors import FileShareError
from .modules.files import create_file_router
from .modules.shares import create_share_router
from .shares import ShareRegistry

logger = get_logger(__name__)


async def _file_share_error_handler(request: Request, exc: FileShareError) -> JSONResponse:
    # Messages are generic by construction; never add paths here.
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


def create_app(
    config: APIConfig | None = None,
    registry: ShareRegistry | None = None,
) -> FastAPI:
    """Create a pre-wired FastAPI application.

    All dependencies are injectable for testing.

    Args:
        config: API configuration. Defaults to APIConfig.from_env().
        registry: Share registry. Defaults to a fresh in-memory registry
            bound to the configured root.

    Returns:
        Configured FastAPI application with all routes mounted.

    Raises:
        ValueError: If the root directory does not resolve to a directory.

    Example:
        app = create_app(APIConfig(root_dir=Path('/srv/files')))
    """
    if config is None:
        config = APIConfig.from_env()

    # Fail fast on a bad root before accepting traffic.
    try:
        config.validate_startup()
    except ValueError as e:
        logger.error('config_validation_failed', error=str(e))
        raise

    if registry is None:
        registry = ShareRegistry(config.root_dir)

    app = FastAPI(
        title='dirshare',
        description='Browse, preview and share a directory over HTTP',
        version=__version__,
    )
    app.state.config = config
    app.state.share_registry = registry

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=['GET', 'POST'],
        allow_headers=['*'],
    )
    # Last added runs first: the request id is bound before access logging.
    app.add_middleware(AccessMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(FileShareError, _file_share_error_handler)

    app.include_router(create_file_router(config), prefix='/api')
    app.include_router(create_share_router(config, registry))

    @app.get('/health')
    async def health():
        """Basic health check for readiness/liveness probes."""
        return {'status': 'ok', 'service': 'dirshare'}

    @app.get('/metrics', include_in_schema=False)
    async def metrics():
        """Prometheus exposition endpoint."""
        body, content_type = metrics_text()
        return Response(content=body, media_type=content_type)

    logger.info('app_created', root=str(config.root_dir))
    return app
