from typing import List, Optional
import logging

from core.errors import DuplicateCategory, NotFound, ValidationError
from db.models.category import CategoryRecord
from utils.slug import normalize_category_name, slugify

logger = logging.getLogger(__name__)


class CategoryService:
    def __init__(self, categories):
        self.categories = categories

    async def create_category(self, name: Optional[str]) -> CategoryRecord:
        normalized = normalize_category_name(name or "")
        if not normalized:
            raise ValidationError("Category name is required")
        slug = slugify(normalized)
        if not slug:
            raise ValidationError("Category name must contain letters or digits")
        if await self.categories.find_by_name(normalized):
            raise DuplicateCategory()
        # Distinct names can share a slug ("C" and "C++")
        if await self.categories.find_by_slug(slug):
            raise DuplicateCategory(f"A category with the slug '{slug}' already exists")
        category = await self.categories.insert(normalized, slug)
        logger.info(f"Created category {category.name} ({category.id})")
        return category

    async def list_categories(self) -> List[CategoryRecord]:
        categories = await self.categories.list_all()
        if not categories:
            raise NotFound("No categories found")
        return categories
