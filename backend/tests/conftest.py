"""
Pytest configuration and fixtures for the backend tests.

Mongo and Cloudinary are replaced by in-memory fakes wired in through
app.dependency_overrides, so the suite needs neither service.
"""
import os
import tempfile
from datetime import datetime, timedelta, timezone
from itertools import count
from pathlib import Path
from typing import Optional

# Settings are read at import time; configure the environment first
_TMP = tempfile.mkdtemp(prefix="blogsphere-tests-")
os.environ["ACCESS_TOKEN_SECRET"] = "test-access-secret"
os.environ["REFRESH_TOKEN_SECRET"] = "test-refresh-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_DIR"] = os.path.join(_TMP, "logs")
os.environ["UPLOAD_TEMP_DIR"] = os.path.join(_TMP, "uploads")
os.environ.pop("MONGO_URI", None)

import pytest
from bson import ObjectId
from faker import Faker
from fastapi.testclient import TestClient

from main import app
from api.dependencies import (
    get_category_repository,
    get_follow_repository,
    get_post_repository,
    get_user_repository,
)
from core.errors import DuplicateCategory, DuplicatePost, DuplicateUser, MediaUploadError
from core.security import TokenConfig, TokenIssuer
from core.config import settings
from db.models.category import CategoryRecord
from db.models.post import PostRecord
from db.models.user import UserRecord
from db.repositories.users import normalize_identity
from services.media_service import MediaAsset, get_media_store

# Initialize Faker for test data generation
fake = Faker()

PASSWORD = "secret123"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64

_clock = count()


def _now() -> datetime:
    # Strictly increasing so "newest first" ordering is deterministic
    return datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=next(_clock))


class FakeUserRepository:
    def __init__(self):
        self.records = {}

    async def find_by_id(self, user_id: str) -> Optional[UserRecord]:
        return self.records.get(user_id)

    async def find_by_username(self, username: str) -> Optional[UserRecord]:
        value = normalize_identity(username)
        return next((u for u in self.records.values() if u.username == value), None)

    async def find_by_identifier(self, identifier: str) -> Optional[UserRecord]:
        value = normalize_identity(identifier)
        if not value:
            return None
        return next((u for u in self.records.values() if value in (u.username, u.email)), None)

    async def find_conflict(self, username=None, email=None, exclude_id=None) -> Optional[UserRecord]:
        for user in self.records.values():
            if user.id == exclude_id:
                continue
            if username and user.username == normalize_identity(username):
                return user
            if email and user.email == normalize_identity(email):
                return user
        return None

    async def find_many(self, user_ids):
        found = [self.records[i] for i in user_ids if i in self.records]
        return sorted(found, key=lambda u: u.username)

    async def insert(self, fields: dict) -> UserRecord:
        if await self.find_conflict(username=fields.get("username"), email=fields.get("email")):
            raise DuplicateUser()
        now = _now()
        user = UserRecord(id=str(ObjectId()), created_at=now, updated_at=now, **fields)
        self.records[user.id] = user
        return user

    async def update(self, user_id: str, fields: dict) -> Optional[UserRecord]:
        user = self.records.get(user_id)
        if user is None:
            return None
        updated = user.model_copy(update={**fields, "updated_at": _now()})
        self.records[user_id] = updated
        return updated

    async def swap_refresh_token(self, user_id: str, expected: str, new_token: str) -> bool:
        user = self.records.get(user_id)
        if user is None or user.refresh_token != expected:
            return False
        self.records[user_id] = user.model_copy(update={"refresh_token": new_token})
        return True

    async def delete(self, user_id: str) -> bool:
        return self.records.pop(user_id, None) is not None


class FakeCategoryRepository:
    def __init__(self):
        self.records = {}

    async def find_by_id(self, category_id: str) -> Optional[CategoryRecord]:
        return self.records.get(category_id)

    async def find_by_name(self, name: str) -> Optional[CategoryRecord]:
        return next((c for c in self.records.values() if c.name == name), None)

    async def find_by_slug(self, slug: str) -> Optional[CategoryRecord]:
        return next((c for c in self.records.values() if c.slug == slug), None)

    async def list_all(self):
        return sorted(self.records.values(), key=lambda c: c.name)

    async def insert(self, name: str, slug: str) -> CategoryRecord:
        if any(c.name == name or c.slug == slug for c in self.records.values()):
            raise DuplicateCategory()
        now = _now()
        category = CategoryRecord(id=str(ObjectId()), name=name, slug=slug, created_at=now, updated_at=now)
        self.records[category.id] = category
        return category


class FakePostRepository:
    def __init__(self):
        self.records = {}

    async def find_by_id(self, post_id: str) -> Optional[PostRecord]:
        return self.records.get(post_id)

    async def slug_exists(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        return any(p.slug == slug and p.id != exclude_id for p in self.records.values())

    async def list_public(self, author_id=None, category_id=None, skip=0, limit=20):
        posts = [
            p for p in self.records.values()
            if p.is_public
            and (author_id is None or p.author_id == author_id)
            and (category_id is None or p.category_id == category_id)
        ]
        posts.sort(key=lambda p: p.created_at, reverse=True)
        return posts[skip:skip + limit]

    async def insert(self, fields: dict) -> PostRecord:
        if await self.slug_exists(fields["slug"]):
            raise DuplicatePost()
        now = _now()
        post = PostRecord(id=str(ObjectId()), created_at=now, updated_at=now, **fields)
        self.records[post.id] = post
        return post

    async def update(self, post_id: str, fields: dict) -> Optional[PostRecord]:
        post = self.records.get(post_id)
        if post is None:
            return None
        if "slug" in fields and await self.slug_exists(fields["slug"], exclude_id=post_id):
            raise DuplicatePost()
        updated = post.model_copy(update={**fields, "updated_at": _now()})
        self.records[post_id] = updated
        return updated

    async def delete(self, post_id: str) -> bool:
        return self.records.pop(post_id, None) is not None


class FakeFollowRepository:
    def __init__(self):
        self.edges = []

    async def add(self, follower_id: str, following_id: str) -> None:
        if (follower_id, following_id) not in self.edges:
            self.edges.append((follower_id, following_id))

    async def remove(self, follower_id: str, following_id: str) -> None:
        if (follower_id, following_id) in self.edges:
            self.edges.remove((follower_id, following_id))

    async def exists(self, follower_id: str, following_id: str) -> bool:
        return (follower_id, following_id) in self.edges

    async def count_followers(self, user_id: str) -> int:
        return len(await self.follower_ids(user_id))

    async def count_followings(self, user_id: str) -> int:
        return len(await self.following_ids(user_id))

    async def follower_ids(self, user_id: str):
        return [a for a, b in self.edges if b == user_id]

    async def following_ids(self, user_id: str):
        return [b for a, b in self.edges if a == user_id]

    async def remove_all_for(self, user_id: str) -> int:
        before = len(self.edges)
        self.edges = [(a, b) for a, b in self.edges if user_id not in (a, b)]
        return before - len(self.edges)


class FakeMediaStore:
    def __init__(self):
        self.uploaded = []
        self.deleted = []
        self.fail_uploads = False

    async def upload(self, path: Path) -> MediaAsset:
        if self.fail_uploads:
            raise MediaUploadError()
        asset_id = f"blogsphere/{ObjectId()}"
        self.uploaded.append(asset_id)
        return MediaAsset(url=f"https://media.example.com/{asset_id}.png", asset_id=asset_id)

    async def delete(self, asset_id: Optional[str]) -> bool:
        if not asset_id:
            return False
        self.deleted.append(asset_id)
        return True


@pytest.fixture
def users_repo() -> FakeUserRepository:
    return FakeUserRepository()


@pytest.fixture
def categories_repo() -> FakeCategoryRepository:
    return FakeCategoryRepository()


@pytest.fixture
def posts_repo() -> FakePostRepository:
    return FakePostRepository()


@pytest.fixture
def follows_repo() -> FakeFollowRepository:
    return FakeFollowRepository()


@pytest.fixture
def media() -> FakeMediaStore:
    return FakeMediaStore()


@pytest.fixture
def token_config() -> TokenConfig:
    return TokenConfig.from_settings(settings)


@pytest.fixture
def issuer(token_config) -> TokenIssuer:
    return TokenIssuer(token_config)


@pytest.fixture
def staged_image(tmp_path) -> Path:
    """A file standing in for an already staged upload."""
    path = tmp_path / "avatar.png"
    path.write_bytes(PNG_BYTES)
    return path


@pytest.fixture
def client(users_repo, categories_repo, posts_repo, follows_repo, media):
    """Create a test client with repository and media overrides."""
    app.dependency_overrides[get_user_repository] = lambda: users_repo
    app.dependency_overrides[get_category_repository] = lambda: categories_repo
    app.dependency_overrides[get_post_repository] = lambda: posts_repo
    app.dependency_overrides[get_follow_repository] = lambda: follows_repo
    app.dependency_overrides[get_media_store] = lambda: media

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def registration_form(**overrides) -> dict:
    form = {
        "firstName": fake.first_name(),
        "lastName": fake.last_name(),
        "username": f"{fake.user_name()}{fake.random_int(100, 999)}".lower(),
        "email": fake.unique.email().lower(),
        "password": PASSWORD,
        "dateOfBirth": "1990-05-17",
    }
    form.update(overrides)
    return form


def register(client: TestClient, with_image: bool = True, **overrides):
    files = {"profilePicture": ("avatar.png", PNG_BYTES, "image/png")} if with_image else None
    return client.post("/api/v1/users/register", data=registration_form(**overrides), files=files)


def login(client: TestClient, identifier: str, password: str = PASSWORD):
    response = client.post("/api/v1/users/login", json={"identifier": identifier, "password": password})
    # Session cookies are Secure and the test client speaks plain http; tokens travel explicitly
    client.cookies.clear()
    return response


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def signed_in(client):
    """Register and log in a fresh user; returns the user plus tokens and headers."""
    def _signed_in(**overrides) -> dict:
        registered = register(client, **overrides)
        assert registered.status_code == 201, registered.text
        user = registered.json()["data"]
        data = login(client, user["username"]).json()["data"]
        return {
            "user": data["user"],
            "access_token": data["accessToken"],
            "refresh_token": data["refreshToken"],
            "headers": bearer(data["accessToken"]),
        }
    return _signed_in
