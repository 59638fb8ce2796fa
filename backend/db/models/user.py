from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel


class UserRecord(BaseModel):
    """Stored shape of a user document (collection "users").

    Pure data: hashing, token issuance and password checks live in services.
    """
    id: str
    first_name: str
    last_name: str
    username: str
    email: str
    password_hash: str
    date_of_birth: Optional[date] = None
    profile_picture_url: Optional[str] = None
    profile_picture_asset_id: Optional[str] = None
    is_active: bool = False
    refresh_token: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        frozen = True
