from pathlib import Path
from typing import Optional
import logging

from core.errors import DuplicateUser, MissingAsset, NotFound, ValidationError
from db.models.user import UserRecord
from db.repositories.users import normalize_identity
from schemas.user_schema import PublicProfile, UpdateAccountDetails
from services.media_service import upload_staged_file
from services.session_service import normalize_email
from utils.timing import timeit

logger = logging.getLogger(__name__)


class UserService:
    """Profile management for an authenticated user."""

    def __init__(self, users, follows, media=None):
        self.users = users
        self.follows = follows
        self.media = media

    async def _require(self, user_id: str) -> UserRecord:
        user = await self.users.find_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    async def get_user(self, user_id: str) -> UserRecord:
        return await self._require(user_id)

    async def update_account_details(self, user_id: str, details: UpdateAccountDetails) -> UserRecord:
        changes = {}
        if details.first_name and details.first_name.strip():
            changes["first_name"] = details.first_name.strip()
        if details.last_name and details.last_name.strip():
            changes["last_name"] = details.last_name.strip()
        if details.username and details.username.strip():
            username = normalize_identity(details.username)
            if await self.users.find_conflict(username=username, exclude_id=user_id):
                raise DuplicateUser("Username is already taken")
            changes["username"] = username
        if not changes:
            raise ValidationError("No fields to update")
        user = await self.users.update(user_id, changes)
        if user is None:
            raise NotFound("User not found")
        return user

    async def update_email(self, user_id: str, email: Optional[str]) -> UserRecord:
        if not email or not email.strip():
            raise ValidationError("Email is required")
        normalized = normalize_email(email)
        if await self.users.find_conflict(email=normalized, exclude_id=user_id):
            raise DuplicateUser("Email is already registered")
        user = await self.users.update(user_id, {"email": normalized})
        if user is None:
            raise NotFound("User not found")
        return user

    @timeit("update_profile_picture")
    async def update_profile_picture(self, user_id: str, image_path: Optional[Path]) -> UserRecord:
        """Delete the old image, then upload the new one.

        If the upload fails after the delete, the user is left without an image.
        """
        if image_path is None:
            raise MissingAsset("No profile image found in request")
        user = await self._require(user_id)
        if user.profile_picture_asset_id:
            await self.media.delete(user.profile_picture_asset_id)
        asset = await upload_staged_file(self.media, image_path)
        updated = await self.users.update(user_id, {
            "profile_picture_url": asset.url,
            "profile_picture_asset_id": asset.asset_id,
        })
        if updated is None:
            raise NotFound("User not found")
        return updated

    @timeit("delete_account")
    async def delete_account(self, user_id: str) -> None:
        user = await self._require(user_id)
        if user.profile_picture_asset_id:
            await self.media.delete(user.profile_picture_asset_id)
        removed_edges = await self.follows.remove_all_for(user_id)
        await self.users.delete(user_id)
        logger.info(f"Deleted user {user.username} ({user_id}); removed {removed_edges} follow edges")

    async def get_public_profile(self, username: str, viewer_id: Optional[str] = None) -> PublicProfile:
        if not username or not username.strip():
            raise ValidationError("Username is missing")
        user = await self.users.find_by_username(username)
        if user is None:
            raise NotFound("User details don't exist")
        is_following = False
        if viewer_id and viewer_id != user.id:
            is_following = await self.follows.exists(viewer_id, user.id)
        return PublicProfile(
            id=user.id,
            username=user.username,
            first_name=user.first_name,
            last_name=user.last_name,
            profile_picture=user.profile_picture_url,
            followers_count=await self.follows.count_followers(user.id),
            followings_count=await self.follows.count_followings(user.id),
            is_following=is_following,
        )
