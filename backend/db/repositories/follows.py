from datetime import datetime, timezone
from typing import List
from db.models.follow import FollowRecord
from db.mongodb import to_object_id


def follow_from_document(doc: dict) -> FollowRecord:
    return FollowRecord(
        follower_id=str(doc["follower_id"]),
        following_id=str(doc["following_id"]),
        created_at=doc.get("created_at"),
    )


class MongoFollowRepository:
    """Follow edges in the "follows" collection, one document per (follower, following) pair."""

    def __init__(self, collection):
        self.collection = collection

    async def add(self, follower_id: str, following_id: str) -> None:
        edge = {"follower_id": to_object_id(follower_id), "following_id": to_object_id(following_id)}
        await self.collection.update_one(
            edge,
            {"$setOnInsert": {"created_at": datetime.now(timezone.utc)}},
            upsert=True,
        )

    async def remove(self, follower_id: str, following_id: str) -> None:
        await self.collection.delete_one(
            {"follower_id": to_object_id(follower_id), "following_id": to_object_id(following_id)}
        )

    async def exists(self, follower_id: str, following_id: str) -> bool:
        query = {"follower_id": to_object_id(follower_id), "following_id": to_object_id(following_id)}
        return await self.collection.count_documents(query, limit=1) > 0

    async def count_followers(self, user_id: str) -> int:
        return await self.collection.count_documents({"following_id": to_object_id(user_id)})

    async def count_followings(self, user_id: str) -> int:
        return await self.collection.count_documents({"follower_id": to_object_id(user_id)})

    async def follower_ids(self, user_id: str) -> List[str]:
        docs = await self.collection.find({"following_id": to_object_id(user_id)}).to_list(length=None)
        return [follow_from_document(d).follower_id for d in docs]

    async def following_ids(self, user_id: str) -> List[str]:
        docs = await self.collection.find({"follower_id": to_object_id(user_id)}).to_list(length=None)
        return [follow_from_document(d).following_id for d in docs]

    async def remove_all_for(self, user_id: str) -> int:
        oid = to_object_id(user_id)
        result = await self.collection.delete_many({"$or": [{"follower_id": oid}, {"following_id": oid}]})
        return result.deleted_count
