"""
app/schemas/usergroups.py

Pydantic models for the admin usergroups endpoints.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, Optional


class CreateUsergroupRequest(BaseModel):
    short_name: str = Field(..., description="Unique group name")
    parent_group: Optional[str] = Field(default=None, description="Parent group id")
    settings: Dict[str, Any] = Field(default_factory=dict, description="Setting values by name")


class UpdateUsergroupRequest(BaseModel):
    """Omitted fields are left unchanged."""

    short_name: Optional[str] = None
    parent_group: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None
