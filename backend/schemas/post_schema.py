from datetime import datetime
from typing import List, Optional

from db.models.post import PostRecord
from schemas.user_schema import CamelModel


class Post(CamelModel):
    id: str
    title: str
    slug: str
    content: str
    featured_image: Optional[str] = None
    tags: List[str] = []
    category: Optional[str] = None
    author: str
    likes: int = 0
    is_public: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: PostRecord) -> "Post":
        return cls(
            id=record.id,
            title=record.title,
            slug=record.slug,
            content=record.content,
            featured_image=record.featured_image,
            tags=list(record.tags),
            category=record.category_id,
            author=record.author_id,
            likes=record.likes,
            is_public=record.is_public,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class EditPost(CamelModel):
    content: Optional[str] = None
    title: Optional[str] = None
    category: Optional[str] = None
