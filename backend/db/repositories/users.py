from datetime import date, datetime, timezone
from typing import Iterable, List, Optional
import logging
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from core.errors import DuplicateUser
from db.models.user import UserRecord
from db.mongodb import to_object_id

logger = logging.getLogger(__name__)


def normalize_identity(value: Optional[str]) -> str:
    """Usernames and emails are stored trimmed and lower-cased."""
    return (value or "").strip().lower()


def _to_document(fields: dict) -> dict:
    doc = dict(fields)
    dob = doc.get("date_of_birth")
    # BSON has no date type
    if isinstance(dob, date) and not isinstance(dob, datetime):
        doc["date_of_birth"] = datetime(dob.year, dob.month, dob.day, tzinfo=timezone.utc)
    return doc


def user_from_document(doc: dict) -> UserRecord:
    dob = doc.get("date_of_birth")
    if isinstance(dob, datetime):
        dob = dob.date()
    return UserRecord(
        id=str(doc["_id"]),
        first_name=doc.get("first_name", ""),
        last_name=doc.get("last_name", ""),
        username=doc.get("username", ""),
        email=doc.get("email", ""),
        password_hash=doc.get("password_hash", ""),
        date_of_birth=dob,
        profile_picture_url=doc.get("profile_picture_url"),
        profile_picture_asset_id=doc.get("profile_picture_asset_id"),
        is_active=bool(doc.get("is_active", False)),
        refresh_token=doc.get("refresh_token"),
        created_at=doc.get("created_at"),
        updated_at=doc.get("updated_at"),
    )


class MongoUserRepository:
    """Credential store backed by the "users" collection."""

    def __init__(self, collection):
        self.collection = collection

    async def find_by_id(self, user_id: str) -> Optional[UserRecord]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        return user_from_document(doc) if doc else None

    async def find_by_username(self, username: str) -> Optional[UserRecord]:
        doc = await self.collection.find_one({"username": normalize_identity(username)})
        return user_from_document(doc) if doc else None

    async def find_by_identifier(self, identifier: str) -> Optional[UserRecord]:
        """Match either username or email."""
        value = normalize_identity(identifier)
        if not value:
            return None
        doc = await self.collection.find_one({"$or": [{"username": value}, {"email": value}]})
        return user_from_document(doc) if doc else None

    async def find_conflict(self, username: Optional[str] = None, email: Optional[str] = None,
                            exclude_id: Optional[str] = None) -> Optional[UserRecord]:
        clauses = []
        if username:
            clauses.append({"username": normalize_identity(username)})
        if email:
            clauses.append({"email": normalize_identity(email)})
        if not clauses:
            return None
        query = {"$or": clauses}
        if exclude_id:
            query["_id"] = {"$ne": to_object_id(exclude_id)}
        doc = await self.collection.find_one(query)
        return user_from_document(doc) if doc else None

    async def find_many(self, user_ids: Iterable[str]) -> List[UserRecord]:
        oids = [oid for oid in (to_object_id(u) for u in user_ids) if oid is not None]
        if not oids:
            return []
        docs = await self.collection.find({"_id": {"$in": oids}}).sort("username", 1).to_list(length=len(oids))
        return [user_from_document(d) for d in docs]

    async def insert(self, fields: dict) -> UserRecord:
        now = datetime.now(timezone.utc)
        doc = _to_document(fields)
        doc.setdefault("is_active", False)
        doc.setdefault("refresh_token", None)
        doc["created_at"] = now
        doc["updated_at"] = now
        try:
            result = await self.collection.insert_one(doc)
        except DuplicateKeyError as e:
            logger.info(f"Duplicate user on insert: {e}")
            raise DuplicateUser()
        doc["_id"] = result.inserted_id
        return user_from_document(doc)

    async def update(self, user_id: str, fields: dict) -> Optional[UserRecord]:
        oid = to_object_id(user_id)
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
            logger.info(f"Duplicate user on update: {e}")
            raise DuplicateUser()
        return user_from_document(doc) if doc else None

    async def swap_refresh_token(self, user_id: str, expected: str, new_token: str) -> bool:
        """Replace the stored refresh token only if it still equals `expected`."""
        oid = to_object_id(user_id)
        if oid is None:
            return False
        result = await self.collection.update_one(
            {"_id": oid, "refresh_token": expected},
            {"$set": {"refresh_token": new_token, "updated_at": datetime.now(timezone.utc)}},
        )
        return result.modified_count == 1

    async def delete(self, user_id: str) -> bool:
        oid = to_object_id(user_id)
        if oid is None:
            return False
        result = await self.collection.delete_one({"_id": oid})
        return result.deleted_count == 1
