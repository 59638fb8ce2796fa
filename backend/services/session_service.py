"""
Session lifecycle: register, login, refresh (rotation), logout, change password.

Per user: Anonymous -> Authenticated (login) -> Anonymous (token expiry), with
explicit revocation on logout and account deletion. At most one refresh token
is live per user; login and refresh overwrite it, which invalidates the
previous one. Passwords are hashed here, explicitly, before every write that
changes them.
"""
from datetime import date
from pathlib import Path
from typing import Optional
import hmac
import logging

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from core.errors import (
    DuplicateUser,
    InvalidCredentials,
    InvalidToken,
    MissingAsset,
    NotFound,
    TokenMismatch,
    ValidationError,
)
from core.security import REFRESH, TokenIdentity, TokenIssuer, get_password_hash, pwd_context, verify_password
from db.models.user import UserRecord
from db.repositories.users import normalize_identity
from schemas.user_schema import RegistrationProfile
from services.media_service import upload_staged_file
from utils.timing import timeit

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


class IssuedTokens(BaseModel):
    access_token: str
    refresh_token: str
    user: UserRecord


def identity_of(user: UserRecord) -> TokenIdentity:
    return TokenIdentity(id=user.id, username=user.username, email=user.email)


def normalize_email(email: str) -> str:
    """Validate syntax and return the lower-cased address."""
    try:
        result = validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email address: {e}")
    return normalize_identity(result.normalized)


def check_password_strength(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


async def hash_password(password: str) -> str:
    # bcrypt is CPU bound; keep it off the event loop
    return await run_in_threadpool(get_password_hash, password)


async def check_password(password: str, password_hash: str) -> bool:
    return await run_in_threadpool(verify_password, password, password_hash)


class SessionManager:
    def __init__(self, users, issuer: TokenIssuer, media=None):
        self.users = users
        self.issuer = issuer
        self.media = media

    def _issue(self, user: UserRecord) -> tuple:
        identity = identity_of(user)
        return self.issuer.issue_access_token(identity), self.issuer.issue_refresh_token(identity)

    @timeit("register")
    async def register(self, profile: RegistrationProfile, image_path: Optional[Path]) -> UserRecord:
        """Create an account. The profile image must have been staged already."""
        fields = {
            "first_name": (profile.first_name or "").strip(),
            "last_name": (profile.last_name or "").strip(),
            "username": normalize_identity(profile.username),
            "email": (profile.email or "").strip(),
            "password": profile.password or "",
            "date_of_birth": (profile.date_of_birth or "").strip(),
        }
        if any(not str(v).strip() for v in fields.values()):
            raise ValidationError("All fields are required")
        try:
            dob = date.fromisoformat(fields["date_of_birth"])
        except ValueError:
            raise ValidationError("dateOfBirth must be a date in YYYY-MM-DD format")
        email = normalize_email(fields["email"])
        check_password_strength(fields["password"])

        if await self.users.find_conflict(username=fields["username"], email=email):
            raise DuplicateUser()

        if image_path is None:
            raise MissingAsset("Profile image is required")
        asset = await upload_staged_file(self.media, image_path)

        password_hash = await hash_password(fields["password"])
        user = await self.users.insert({
            "first_name": fields["first_name"],
            "last_name": fields["last_name"],
            "username": fields["username"],
            "email": email,
            "password_hash": password_hash,
            "date_of_birth": dob,
            "profile_picture_url": asset.url,
            "profile_picture_asset_id": asset.asset_id,
            "is_active": False,
            "refresh_token": None,
        })
        logger.info(f"Registered user {user.username} ({user.id})")
        return user

    @timeit("login")
    async def login(self, identifier: str, password: str) -> IssuedTokens:
        if not (identifier or "").strip() or not password:
            raise ValidationError("Username or email and password are required")
        user = await self.users.find_by_identifier(identifier)
        if user is None:
            # Burn comparable time so response latency does not reveal unknown identifiers
            await run_in_threadpool(pwd_context.dummy_verify)
            raise InvalidCredentials()
        if not await check_password(password, user.password_hash):
            raise InvalidCredentials()

        access_token, refresh_token = self._issue(user)
        updated = await self.users.update(user.id, {"refresh_token": refresh_token, "is_active": True})
        if updated is None:
            # Deleted between lookup and update
            raise InvalidCredentials()
        logger.info(f"User {user.username} logged in")
        return IssuedTokens(access_token=access_token, refresh_token=refresh_token, user=updated)

    @timeit("refresh")
    async def refresh(self, incoming: Optional[str]) -> IssuedTokens:
        """One-time-use rotation: the presented refresh token is consumed."""
        claims = self.issuer.verify(incoming, REFRESH)
        user = await self.users.find_by_id(claims["sub"])
        if user is None:
            raise InvalidToken("Invalid refresh token")
        if not user.refresh_token or not hmac.compare_digest(user.refresh_token, incoming):
            logger.warning(f"Refresh token mismatch for user {user.id}")
            raise TokenMismatch()

        access_token, refresh_token = self._issue(user)
        # Compare-and-set: a concurrent refresh with the same token loses here
        if not await self.users.swap_refresh_token(user.id, incoming, refresh_token):
            logger.warning(f"Refresh token for user {user.id} was rotated concurrently")
            raise TokenMismatch()
        return IssuedTokens(access_token=access_token, refresh_token=refresh_token, user=user)

    async def logout(self, user_id: str) -> Optional[UserRecord]:
        """Revoke the stored refresh token. Safe to call repeatedly."""
        user = await self.users.update(user_id, {"refresh_token": None, "is_active": False})
        if user is not None:
            logger.info(f"User {user.username} logged out")
        return user

    @timeit("change_password")
    async def change_password(self, user_id: str, old_password: Optional[str], new_password: Optional[str]) -> None:
        """Replace the password hash. Outstanding refresh tokens stay valid."""
        if not old_password or not new_password:
            raise ValidationError("Both old and new passwords are required")
        check_password_strength(new_password)
        user = await self.users.find_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        if not await check_password(old_password, user.password_hash):
            raise InvalidCredentials("Old password is incorrect")
        await self.users.update(user_id, {"password_hash": await hash_password(new_password)})
        logger.info(f"Password changed for user {user.username}")
