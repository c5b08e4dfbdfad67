"""Shares module for dirshare API.

Mints share links for files and redeems them (landing metadata and
direct download).
"""
from .router import create_share_router
from .schemas import ShareRequest
from .service import ShareService

__all__ = [
    'create_share_router',
    'ShareRequest',
    'ShareService',
]
