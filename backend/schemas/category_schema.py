from typing import Optional

from db.models.category import CategoryRecord
from schemas.user_schema import CamelModel


class CategoryCreate(CamelModel):
    category_name: Optional[str] = None


class Category(CamelModel):
    id: str
    name: str
    slug: str

    @classmethod
    def from_record(cls, record: CategoryRecord) -> "Category":
        return cls(id=record.id, name=record.name, slug=record.slug)
