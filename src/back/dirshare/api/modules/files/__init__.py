"""Files module for dirshare API.

Provides directory browsing and in-line preview of allowlisted files.
"""
from .router import create_file_router
from .service import FileService

__all__ = [
    'create_file_router',
    'FileService',
]
