# civic_hierarchy/schemas/content.py
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from beanie import PydanticObjectId

from civic_hierarchy.models.content import ContentTarget, ContentType


class ContentCreate(BaseModel):
    title: str
    body: Optional[str] = None
    published: bool = True
    # omitted: the creator's own bound node (or global for unscoped admins)
    target_node_ids: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("title")
    @classmethod
    def _title(cls, value):
        value = (value or "").strip()
        if not value:
            raise ValueError("Title is required")
        return value


class ContentUpdate(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None
    published: Optional[bool] = None
    target_node_ids: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = None


class ContentPublic(BaseModel):
    id: PydanticObjectId = Field(alias="_id")
    content_type: ContentType
    title: str
    body: Optional[str] = None
    published: bool
    targets: List[ContentTarget] = Field(default_factory=list)
    created_by: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)
