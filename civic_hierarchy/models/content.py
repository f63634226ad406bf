# civic_hierarchy/models/content.py
from enum import Enum
from datetime import datetime
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field
from beanie import Document
from pymongo import ASCENDING, IndexModel

from civic_hierarchy.models.hierarchy import HierarchyKind, NodeLevel


class ContentType(str, Enum):
    BULLETIN = "bulletin"
    SURVEY = "survey"
    VOTING_ITEM = "voting_item"
    REPORT = "report"
    SUBSCRIPTION_PLAN = "subscription_plan"


class ContentTarget(BaseModel):
    """Targeting reference: restricts visibility to `node_id` and its descendants."""

    kind: HierarchyKind
    level: NodeLevel
    node_id: str


# --- Content Model ---
class Content(Document):
    """Any targetable content item. No targets means globally visible."""

    content_type: ContentType
    title: str
    body: Optional[str] = None
    published: bool = True
    targets: List[ContentTarget] = Field(default_factory=list)
    created_by: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "contents"
        indexes = [
            IndexModel([("content_type", ASCENDING), ("published", ASCENDING)]),
            IndexModel([("targets.kind", ASCENDING), ("targets.node_id", ASCENDING)]),
        ]
