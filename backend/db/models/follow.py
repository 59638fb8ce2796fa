from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class FollowRecord(BaseModel):
    """Directed edge: follower_id follows following_id."""
    follower_id: str
    following_id: str
    created_at: Optional[datetime] = None

    class Config:
        frozen = True
