import logging
import asyncio
from typing import Optional
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
import certifi
from core.config import settings

logger = logging.getLogger(__name__)

_mongo_client: Optional[AsyncIOMotorClient] = None
_mongo_db: Optional[AsyncIOMotorDatabase] = None

def get_mongo_db() -> Optional[AsyncIOMotorDatabase]:
    global _mongo_client, _mongo_db
    if _mongo_db is not None:
        return _mongo_db
    if not settings.MONGO_URI:
        logger.warning("MONGO_URI is not set")
        return None
    client_kwargs = {
        "serverSelectionTimeoutMS": 30000,
        "connectTimeoutMS": 20000,
        "socketTimeoutMS": 20000,
        "tz_aware": True,
    }
    # Atlas and other TLS endpoints: pass the CA bundle explicitly to avoid local OpenSSL issues
    if "mongodb.net" in settings.MONGO_URI or settings.MONGO_URI.startswith("mongodb+srv://"):
        client_kwargs.update({
            "tls": True,
            "tlsCAFile": certifi.where(),
            "retryWrites": True,
        })
    if settings.MONGO_URI.startswith("mongodb+srv://"):
        client_kwargs["directConnection"] = False
    _mongo_client = AsyncIOMotorClient(settings.MONGO_URI, **client_kwargs)
    _mongo_db = _mongo_client[settings.MONGO_DB]
    return _mongo_db

def close_mongo_client() -> None:
    global _mongo_client, _mongo_db
    if _mongo_client is not None:
        _mongo_client.close()
    _mongo_client = None
    _mongo_db = None

def to_object_id(value) -> Optional[ObjectId]:
    """Parse a hex id; None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None

async def init_mongo_indexes():
    db = get_mongo_db()
    if db is None:
        return
    # Retry ping and index creation to allow primary election / networking delays
    for attempt in range(1, 6):
        try:
            await db.command({"ping": 1})
            # Users
            await db.users.create_index("username", unique=True, name="u_username")
            await db.users.create_index("email", unique=True, name="u_email")
            # Categories
            await db.categories.create_index("name", unique=True, name="u_category_name")
            await db.categories.create_index("slug", unique=True, name="u_category_slug")
            # Posts
            await db.posts.create_index("slug", unique=True, name="u_post_slug")
            await db.posts.create_index([("author_id", 1), ("created_at", -1)], name="i_author_created")
            await db.posts.create_index([("is_public", 1), ("created_at", -1)], name="i_public_created")
            # Follow graph
            await db.follows.create_index([("follower_id", 1), ("following_id", 1)], unique=True, name="u_follower_following")
            await db.follows.create_index("following_id", name="i_following")
            return
        except Exception as e:
            wait_s = min(2 ** attempt, 15)
            logger.warning(f"Mongo not ready (attempt {attempt}): {e}; retrying in {wait_s}s")
            await asyncio.sleep(wait_s)
    logger.error("Mongo index initialization failed after retries")
