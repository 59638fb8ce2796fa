from datetime import date, datetime
from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import Optional

from db.models.user import UserRecord


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


class RegistrationProfile(CamelModel):
    """Registration fields as submitted; blanks are rejected by the session manager."""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    date_of_birth: Optional[str] = None


class User(CamelModel):
    """Public view of a user: never carries the password hash or refresh token."""
    id: str
    first_name: str
    last_name: str
    username: str
    email: str
    date_of_birth: Optional[date] = None
    profile_picture: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: UserRecord) -> "User":
        return cls(
            id=record.id,
            first_name=record.first_name,
            last_name=record.last_name,
            username=record.username,
            email=record.email,
            date_of_birth=record.date_of_birth,
            profile_picture=record.profile_picture_url,
            is_active=record.is_active,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class UserSummary(CamelModel):
    id: str
    username: str
    first_name: str
    last_name: str
    profile_picture: Optional[str] = None

    @classmethod
    def from_record(cls, record: UserRecord) -> "UserSummary":
        return cls(
            id=record.id,
            username=record.username,
            first_name=record.first_name,
            last_name=record.last_name,
            profile_picture=record.profile_picture_url,
        )


class PublicProfile(UserSummary):
    followers_count: int = 0
    followings_count: int = 0
    is_following: bool = False


class LoginRequest(CamelModel):
    identifier: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None

    def resolved_identifier(self) -> str:
        return (self.identifier or self.username or self.email or "").strip()


class RefreshRequest(CamelModel):
    refresh_token: Optional[str] = None


class Token(CamelModel):
    access_token: str
    refresh_token: str


class ChangePasswordRequest(CamelModel):
    old_password: Optional[str] = None
    new_password: Optional[str] = None


class UpdateAccountDetails(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None


class UpdateEmail(CamelModel):
    email: Optional[str] = None
