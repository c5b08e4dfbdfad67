"""FastAPI routers and core operations for dirshare.

Example:
    # Simple usage with create_app()
    from dirshare.api import create_app, APIConfig
    from pathlib import Path
    app = create_app(APIConfig(root_dir=Path('/srv/files')))

    # Compose routers manually
    from fastapi import FastAPI
    from dirshare.api import APIConfig, ShareRegistry, create_file_router, create_share_router
    config = APIConfig(root_dir=Path('/srv/files'))
    config.validate_startup()
    registry = ShareRegistry(config.root_dir)
    app = FastAPI()
    app.include_router(create_file_router(config), prefix='/api')
    app.include_router(create_share_router(config, registry))
"""

# Configuration
from .config import APIConfig

# Core operations
from .paths import sanitize_path, validate_path, is_previewable
from .listing import DirectoryEntry, list_directory
from .shares import ShareRegistry
from .transfer import FileTransfer, open_transfer

# Router factories
from .modules.files import create_file_router
from .modules.shares import create_share_router

# App factory
from .app import create_app

__all__ = [
    # Configuration
    'APIConfig',
    # Core operations
    'sanitize_path',
    'validate_path',
    'is_previewable',
    'DirectoryEntry',
    'list_directory',
    'ShareRegistry',
    'FileTransfer',
    'open_transfer',
    # Router factories
    'create_file_router',
    'create_share_router',
    # App factory
    'create_app',
]
