from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel


class PostRecord(BaseModel):
    id: str
    title: str
    slug: str
    content: str
    featured_image: Optional[str] = None
    featured_image_asset_id: Optional[str] = None
    tags: List[str] = []
    category_id: Optional[str] = None
    author_id: str
    likes: int = 0
    is_public: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        frozen = True
