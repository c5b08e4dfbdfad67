"""Pydantic schemas for share operations."""
from pydantic import BaseModel


class ShareRequest(BaseModel):
    """Request body for share creation."""
    path: str
