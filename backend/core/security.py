from datetime import datetime, timedelta, timezone
from typing import Optional
import uuid
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from core.config import settings, Settings
from core.errors import ConfigurationError, Internal, InvalidToken
import logging

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    if not plain_password or not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Unrecognized or corrupted hash
        return False

def get_password_hash(password: str) -> str:
    """Generate password hash"""
    return pwd_context.hash(password)

def generate_jti() -> str:
    return uuid.uuid4().hex


class TokenConfig(BaseModel):
    """Signing secrets and lifetimes for both token kinds."""
    access_secret: str
    refresh_secret: str
    algorithm: str = "HS256"
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=7)

    class Config:
        frozen = True

    @classmethod
    def from_settings(cls, cfg: Settings) -> "TokenConfig":
        return cls(
            access_secret=cfg.ACCESS_TOKEN_SECRET,
            refresh_secret=cfg.REFRESH_TOKEN_SECRET,
            algorithm=cfg.ALGORITHM,
            access_ttl=timedelta(minutes=cfg.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_ttl=timedelta(days=cfg.REFRESH_TOKEN_EXPIRE_DAYS),
        )


class TokenIdentity(BaseModel):
    id: str
    username: str
    email: str


class TokenIssuer:
    """Mints and verifies access/refresh JWTs.

    Verification is purely cryptographic (signature, expiry, token kind);
    comparing a refresh token against the stored value is the session
    manager's job.
    """

    def __init__(self, config: TokenConfig):
        if not config.access_secret or not config.refresh_secret:
            raise ConfigurationError("Token signing secrets are not configured")
        self.config = config

    @property
    def access_max_age(self) -> int:
        return int(self.config.access_ttl.total_seconds())

    @property
    def refresh_max_age(self) -> int:
        return int(self.config.refresh_ttl.total_seconds())

    def _secret(self, kind: str) -> str:
        if kind == ACCESS:
            return self.config.access_secret
        if kind == REFRESH:
            return self.config.refresh_secret
        raise ValueError(f"Unknown token kind: {kind}")

    def _encode(self, claims: dict, kind: str, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        to_encode = dict(claims)
        to_encode.update({
            "type": kind,
            "jti": generate_jti(),
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
        })
        try:
            return jwt.encode(to_encode, self._secret(kind), algorithm=self.config.algorithm)
        except JWTError as e:
            logger.error(f"JWT encode failed for {kind} token: {e}")
            raise Internal("Something went wrong while generating the tokens") from e

    def issue_access_token(self, identity: TokenIdentity) -> str:
        """Create JWT access token"""
        return self._encode(
            {"sub": identity.id, "username": identity.username, "email": identity.email},
            ACCESS,
            self.config.access_ttl,
        )

    def issue_refresh_token(self, identity: TokenIdentity) -> str:
        """Create JWT refresh token; carries the user id only"""
        return self._encode({"sub": identity.id}, REFRESH, self.config.refresh_ttl)

    def verify(self, token: Optional[str], kind: str = ACCESS) -> dict:
        """Verify and decode a JWT of the given kind, raising InvalidToken on any failure"""
        if not token:
            raise InvalidToken("Token is missing")
        try:
            payload = jwt.decode(token, self._secret(kind), algorithms=[self.config.algorithm])
        except ExpiredSignatureError:
            raise InvalidToken("Token has expired")
        except JWTError as e:
            logger.warning(f"JWT decode failed: {e}")
            raise InvalidToken("Invalid token")
        if payload.get("type") != kind or not payload.get("sub"):
            raise InvalidToken("Invalid token")
        return payload


_token_issuer: Optional[TokenIssuer] = None

def get_token_issuer() -> TokenIssuer:
    """Process-wide issuer, built once from settings on first use."""
    global _token_issuer
    if _token_issuer is None:
        _token_issuer = TokenIssuer(TokenConfig.from_settings(settings))
    return _token_issuer
