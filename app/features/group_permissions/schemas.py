"""
Pydantic schemas for group permission endpoints.
"""
from datetime import datetime
from typing import Dict, List
from pydantic import BaseModel, Field, ConfigDict


class PermissionCheckResponse(BaseModel):
    """Result of a permission check for the current account."""
    group_id: str
    permission: str
    allowed: bool


class CustomPermissionsResponse(BaseModel):
    """Custom permission overrides of a group, keyed by group role id."""
    group_id: str
    permissions: Dict[str, List[str]] = Field(default_factory=dict)


class GroupPermissionResponse(BaseModel):
    """Stored override record."""
    id: str
    group_id: str
    permissions: Dict[str, List[str]]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
