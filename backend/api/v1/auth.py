from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from api.dependencies import get_current_user, get_session_manager
from core.errors import Unauthenticated
from db.models.user import UserRecord
from schemas.user_schema import ChangePasswordRequest, LoginRequest, RefreshRequest, RegistrationProfile, Token, User
from services.session_service import IssuedTokens, SessionManager
from utils.responses import REFRESH_COOKIE, auth_json, envelope, no_store_json
from utils.uploads import discard, stage_upload

router = APIRouter()


def _session_response(message: str, data, issued: IssuedTokens, manager: SessionManager):
    issuer = manager.issuer
    return auth_json(
        envelope(message, data),
        tokens=(issued.access_token, issued.refresh_token),
        max_ages=(issuer.access_max_age, issuer.refresh_max_age),
    )


@router.post("/register", status_code=201)
async def register(
    first_name: Optional[str] = Form(None, alias="firstName"),
    last_name: Optional[str] = Form(None, alias="lastName"),
    username: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    date_of_birth: Optional[str] = Form(None, alias="dateOfBirth"),
    profile_picture: Optional[UploadFile] = File(None, alias="profilePicture"),
    manager: SessionManager = Depends(get_session_manager),
):
    profile = RegistrationProfile(
        first_name=first_name,
        last_name=last_name,
        username=username,
        email=email,
        password=password,
        date_of_birth=date_of_birth,
    )
    image_path = await stage_upload(profile_picture)
    try:
        user = await manager.register(profile, image_path)
    finally:
        # Validation may fail before the upload consumes the staged file
        discard(image_path)
    return no_store_json(envelope("User registered successfully", User.from_record(user)), status_code=201)


@router.post("/login")
async def login(payload: LoginRequest, manager: SessionManager = Depends(get_session_manager)):
    issued = await manager.login(payload.resolved_identifier(), payload.password)
    data = {
        "user": User.from_record(issued.user),
        "accessToken": issued.access_token,
        "refreshToken": issued.refresh_token,
    }
    return _session_response("User logged in successfully", data, issued, manager)


async def _refresh(presented: Optional[str], manager: SessionManager):
    if not presented:
        raise Unauthenticated("Unauthorized request")
    issued = await manager.refresh(presented)
    token = Token(access_token=issued.access_token, refresh_token=issued.refresh_token)
    return _session_response("Access token refreshed", token, issued, manager)


@router.get("/refresh-access-token")
async def refresh_access_token_from_cookie(request: Request, manager: SessionManager = Depends(get_session_manager)):
    return await _refresh(request.cookies.get(REFRESH_COOKIE), manager)


@router.post("/refresh-access-token")
async def refresh_access_token(
    request: Request,
    payload: Optional[RefreshRequest] = None,
    manager: SessionManager = Depends(get_session_manager),
):
    presented = request.cookies.get(REFRESH_COOKIE) or (payload.refresh_token if payload else None)
    return await _refresh(presented, manager)


@router.post("/logout")
async def logout(
    current_user: UserRecord = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
):
    user = await manager.logout(current_user.id) or current_user
    return auth_json(envelope("User logged out successfully", {"user": User.from_record(user)}), clear=True)


@router.post("/change-current-password")
async def change_current_password(
    payload: ChangePasswordRequest,
    current_user: UserRecord = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
):
    await manager.change_password(current_user.id, payload.old_password, payload.new_password)
    return no_store_json(envelope("Password changed successfully", {}))
