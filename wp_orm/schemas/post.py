from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..db.post_models import Post


class PostRead(BaseModel):
    """Serialized post as exposed to JSON consumers.

    Built from ``Post.to_dict()``; raw column names and their public aliases
    are both present, matching the flat projection.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    ID: Optional[int] = None
    post_type: Optional[str] = None
    post_status: Optional[str] = None

    title: Optional[str] = None
    slug: Optional[str] = None
    content: Optional[str] = None
    excerpt: Optional[str] = None
    type: Optional[str] = None
    mime_type: Optional[str] = None
    url: Optional[str] = None
    author_id: Optional[int] = None
    parent_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    status: Optional[str] = None

    image: Optional[str] = None
    terms: Dict[str, Dict[str, str]] = Field(default_factory=dict)
    main_category: str = "Uncategorized"
    keywords: List[str] = Field(default_factory=list)
    keywords_str: str = ""

    @classmethod
    def from_post(cls, post: Post) -> "PostRead":
        return cls.model_validate(post.to_dict())

    def to_row(self) -> Dict[str, Any]:
        """JSON-ready dict, usable as a raw row for ``PostResolver``."""
        return self.model_dump(mode="json")
