from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer

from core.config import settings
from core.errors import AppError, Internal, Unauthenticated
from core.security import ACCESS, TokenIssuer, get_token_issuer
from db.models.user import UserRecord
from db.mongodb import get_mongo_db
from db.repositories.categories import MongoCategoryRepository
from db.repositories.follows import MongoFollowRepository
from db.repositories.posts import MongoPostRepository
from db.repositories.users import MongoUserRepository
from services.category_service import CategoryService
from services.follow_service import FollowService
from services.media_service import get_media_store
from services.post_service import PostService
from services.session_service import SessionManager
from services.user_service import UserService
from utils.logging_config import bind_user
from utils.responses import ACCESS_COOKIE
import logging

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/users/login", auto_error=False)


def _database():
    mdb = get_mongo_db()
    if mdb is None:
        raise Internal("Database not available")
    return mdb


def get_user_repository() -> MongoUserRepository:
    return MongoUserRepository(_database().users)


def get_post_repository() -> MongoPostRepository:
    return MongoPostRepository(_database().posts)


def get_category_repository() -> MongoCategoryRepository:
    return MongoCategoryRepository(_database().categories)


def get_follow_repository() -> MongoFollowRepository:
    return MongoFollowRepository(_database().follows)


def get_session_manager(
    users=Depends(get_user_repository),
    issuer: TokenIssuer = Depends(get_token_issuer),
    media=Depends(get_media_store),
) -> SessionManager:
    return SessionManager(users, issuer, media)


def get_user_service(
    users=Depends(get_user_repository),
    follows=Depends(get_follow_repository),
    media=Depends(get_media_store),
) -> UserService:
    return UserService(users, follows, media)


def get_follow_service(users=Depends(get_user_repository), follows=Depends(get_follow_repository)) -> FollowService:
    return FollowService(users, follows)


def get_category_service(categories=Depends(get_category_repository)) -> CategoryService:
    return CategoryService(categories)


def get_post_service(
    posts=Depends(get_post_repository),
    categories=Depends(get_category_repository),
    users=Depends(get_user_repository),
    media=Depends(get_media_store),
) -> PostService:
    return PostService(posts, categories, users, media)


def _presented_token(request: Request, bearer: Optional[str]) -> Optional[str]:
    # Cookie wins over the Authorization header
    return request.cookies.get(ACCESS_COOKIE) or bearer


async def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    users=Depends(get_user_repository),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> UserRecord:
    """Resolve the caller from a valid access token, or fail with 401."""
    presented = _presented_token(request, token)
    if not presented:
        raise Unauthenticated("Unauthorized request")
    try:
        claims = issuer.verify(presented, ACCESS)
    except AppError as e:
        logger.info(f"Rejected access token: {e.message}")
        raise Unauthenticated("Invalid access token")

    user = await users.find_by_id(claims["sub"])
    if user is None:
        raise Unauthenticated("Invalid access token")
    request.state.user = user
    bind_user(user.id)
    return user


async def get_optional_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    users=Depends(get_user_repository),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> Optional[UserRecord]:
    """Like get_current_user, but anonymous callers get None instead of a 401."""
    if not _presented_token(request, token):
        return None
    try:
        return await get_current_user(request, token, users, issuer)
    except Unauthenticated:
        return None
