from datetime import datetime, timezone
from typing import List, Optional
import logging
from pymongo.errors import DuplicateKeyError
from core.errors import DuplicateCategory
from db.models.category import CategoryRecord
from db.mongodb import to_object_id

logger = logging.getLogger(__name__)


def category_from_document(doc: dict) -> CategoryRecord:
    return CategoryRecord(
        id=str(doc["_id"]),
        name=doc.get("name", ""),
        slug=doc.get("slug", ""),
        created_at=doc.get("created_at"),
        updated_at=doc.get("updated_at"),
    )


class MongoCategoryRepository:
    def __init__(self, collection):
        self.collection = collection

    async def find_by_id(self, category_id: str) -> Optional[CategoryRecord]:
        oid = to_object_id(category_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        return category_from_document(doc) if doc else None

    async def find_by_name(self, name: str) -> Optional[CategoryRecord]:
        doc = await self.collection.find_one({"name": name})
        return category_from_document(doc) if doc else None

    async def find_by_slug(self, slug: str) -> Optional[CategoryRecord]:
        doc = await self.collection.find_one({"slug": slug})
        return category_from_document(doc) if doc else None

    async def list_all(self) -> List[CategoryRecord]:
        docs = await self.collection.find({}).sort("name", 1).to_list(length=None)
        return [category_from_document(d) for d in docs]

    async def insert(self, name: str, slug: str) -> CategoryRecord:
        now = datetime.now(timezone.utc)
        doc = {"name": name, "slug": slug, "created_at": now, "updated_at": now}
        try:
            result = await self.collection.insert_one(doc)
        except DuplicateKeyError as e:
            logger.info(f"Duplicate category on insert: {e}")
            raise DuplicateCategory()
        doc["_id"] = result.inserted_id
        return category_from_document(doc)
