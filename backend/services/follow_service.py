from typing import List
import logging

from core.errors import NotFound, ValidationError
from db.models.user import UserRecord

logger = logging.getLogger(__name__)


class FollowService:
    def __init__(self, users, follows):
        self.users = users
        self.follows = follows

    async def _target(self, username: str) -> UserRecord:
        user = await self.users.find_by_username(username)
        if user is None:
            raise NotFound("User not found")
        return user

    async def follow(self, viewer_id: str, username: str) -> UserRecord:
        target = await self._target(username)
        if target.id == viewer_id:
            raise ValidationError("You cannot follow yourself")
        await self.follows.add(viewer_id, target.id)
        logger.info(f"{viewer_id} follows {target.id}")
        return target

    async def unfollow(self, viewer_id: str, username: str) -> UserRecord:
        target = await self._target(username)
        await self.follows.remove(viewer_id, target.id)
        return target

    async def list_followers(self, username: str) -> List[UserRecord]:
        target = await self._target(username)
        return await self.users.find_many(await self.follows.follower_ids(target.id))

    async def list_followings(self, username: str) -> List[UserRecord]:
        target = await self._target(username)
        return await self.users.find_many(await self.follows.following_ids(target.id))
