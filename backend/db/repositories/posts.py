from datetime import datetime, timezone
from typing import List, Optional
import logging
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError
from core.errors import DuplicatePost
from db.models.post import PostRecord
from db.mongodb import to_object_id

logger = logging.getLogger(__name__)
def post_from_document(doc: dict) -> PostRecord:
    return PostRecord(
        id=str(doc["_id"]),
        title=doc.get("title", ""),
        slug=doc.get("slug", ""),
        content=doc.get("content", ""),
        featured_image=doc.get("featured_image"),
        featured_image_asset_id=doc.get("featured_image_asset_id"),
        tags=list(doc.get("tags") or []),
        category_id=str(doc["category_id"]) if doc.get("category_id") else None,
        author_id=str(doc.get("author_id", "")),
        likes=int(doc.get("likes", 0)),
        is_public=bool(doc.get("is_public", True)),
        created_at=doc.get("created_at"),
        updated_at=doc.get("updated_at"),
    )


def _to_document(fields: dict) -> dict:
    doc = dict(fields)
    # References are stored as ObjectIds so they can be joined on
    for key in ("author_id", "category_id"):
        if key in doc and doc[key] is not None:
            doc[key] = to_object_id(doc[key])
    return doc


class MongoPostRepository:
    def __init__(self, collection):
        self.collection = collection

    async def find_by_id(self, post_id: str) -> Optional[PostRecord]:
        oid = to_object_id(post_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        return post_from_document(doc) if doc else None

    async def slug_exists(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        query = {"slug": slug}
        if exclude_id:
            query["_id"] = {"$ne": to_object_id(exclude_id)}
        return await self.collection.count_documents(query, limit=1) > 0

    async def list_public(self, author_id: Optional[str] = None, category_id: Optional[str] = None,
                          skip: int = 0, limit: int = 20) -> List[PostRecord]:
        query = {"is_public": True}
        for key, value in (("author_id", author_id), ("category_id", category_id)):
            if not value:
                continue
            oid = to_object_id(value)
            if oid is None:
                # Nothing can reference an id that does not parse
                return []
            query[key] = oid
        cursor = self.collection.find(query).sort("created_at", DESCENDING).skip(skip).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [post_from_document(d) for d in docs]

    async def insert(self, fields: dict) -> PostRecord:
        now = datetime.now(timezone.utc)
        doc = _to_document(fields)
        doc.setdefault("likes", 0)
        doc.setdefault("is_public", True)
        doc["created_at"] = now
        doc["updated_at"] = now
        try:
            result = await self.collection.insert_one(doc)
        except DuplicateKeyError as e:
            logger.info(f"Duplicate post slug on insert: {e}")
            raise DuplicatePost()
        doc["_id"] = result.inserted_id
        return post_from_document(doc)

    async def update(self, post_id: str, fields: dict) -> Optional[PostRecord]:
        oid = to_object_id(post_id)
        if oid is None:
            return None
        changes = _to_document(fields)
        changes["updated_at"] = datetime.now(timezone.utc)
        try:
            doc = await self.collection.find_one_and_update(
                {"_id": oid},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as e:
            logger.info(f"Duplicate post slug on update: {e}")
            raise DuplicatePost()
        return post_from_document(doc) if doc else None

    async def delete(self, post_id: str) -> bool:
        oid = to_object_id(post_id)
        if oid is None:
            return False
        result = await self.collection.delete_one({"_id": oid})
        return result.deleted_count == 1
