from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile

from api.dependencies import get_current_user, get_follow_service, get_user_service
from db.models.user import UserRecord
from schemas.user_schema import UpdateAccountDetails, UpdateEmail, User, UserSummary
from services.follow_service import FollowService
from services.user_service import UserService
from utils.responses import auth_json, envelope, no_store_json
from utils.uploads import discard, stage_upload

router = APIRouter()


@router.get("/current-user")
async def current_user(current_user: UserRecord = Depends(get_current_user)):
    return no_store_json(envelope("Current user fetched successfully", User.from_record(current_user)))


@router.post("/update-account-details")
async def update_account_details(
    payload: UpdateAccountDetails,
    current_user: UserRecord = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    user = await service.update_account_details(current_user.id, payload)
    return no_store_json(envelope("Account details updated successfully", User.from_record(user)))


@router.post("/update-email")
async def update_email(
    payload: UpdateEmail,
    current_user: UserRecord = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    user = await service.update_email(current_user.id, payload.email)
    return no_store_json(envelope("Email updated successfully", User.from_record(user)))


@router.post("/profile-picture")
async def update_profile_picture(
    profile_picture: Optional[UploadFile] = File(None, alias="profilePicture"),
    current_user: UserRecord = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    image_path = await stage_upload(profile_picture)
    try:
        user = await service.update_profile_picture(current_user.id, image_path)
    finally:
        discard(image_path)
    return no_store_json(envelope("Profile picture updated successfully", User.from_record(user)))


@router.delete("/delete-user")
async def delete_user(
    current_user: UserRecord = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    await service.delete_account(current_user.id)
    return auth_json(envelope("User deleted successfully", {}), clear=True)


@router.get("/{username}/profile")
async def public_profile(
    username: str,
    current_user: UserRecord = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    profile = await service.get_public_profile(username, viewer_id=current_user.id)
    return envelope("User profile fetched successfully", profile)


@router.post("/{username}/follow")
async def follow(
    username: str,
    current_user: UserRecord = Depends(get_current_user),
    service: FollowService = Depends(get_follow_service),
):
    target = await service.follow(current_user.id, username)
    return envelope(f"You are now following {target.username}", UserSummary.from_record(target))


@router.delete("/{username}/follow")
async def unfollow(
    username: str,
    current_user: UserRecord = Depends(get_current_user),
    service: FollowService = Depends(get_follow_service),
):
    target = await service.unfollow(current_user.id, username)
    return envelope(f"You unfollowed {target.username}", UserSummary.from_record(target))


@router.get("/{username}/followers")
async def followers(
    username: str,
    current_user: UserRecord = Depends(get_current_user),
    service: FollowService = Depends(get_follow_service),
):
    users = await service.list_followers(username)
    return envelope("Followers fetched successfully", [UserSummary.from_record(u) for u in users])


@router.get("/{username}/followings")
async def followings(
    username: str,
    current_user: UserRecord = Depends(get_current_user),
    service: FollowService = Depends(get_follow_service),
):
    users = await service.list_followings(username)
    return envelope("Followings fetched successfully", [UserSummary.from_record(u) for u in users])
