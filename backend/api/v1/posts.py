from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from api.dependencies import get_current_user, get_optional_user, get_post_service
from db.models.user import UserRecord
from schemas.post_schema import EditPost, Post
from services.post_service import PostService
from utils.responses import envelope, no_store_json
from utils.uploads import discard, stage_upload

router = APIRouter()


@router.post("/create", status_code=201)
async def create_post(
    title: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    featured_image: Optional[UploadFile] = File(None, alias="featuredImage"),
    current_user: UserRecord = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
):
    image_path = await stage_upload(featured_image)
    try:
        post = await service.create_post(
            current_user.id, title, content, category_id=category, tags=tags, image_path=image_path
        )
    finally:
        discard(image_path)
    return no_store_json(envelope("Post created successfully", Post.from_record(post)), status_code=201)


@router.put("/edit/{post_id}")
async def edit_post(
    post_id: str,
    payload: EditPost,
    current_user: UserRecord = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
):
    post = await service.edit_post(
        current_user.id, post_id, payload.content, title=payload.title, category_id=payload.category
    )
    return envelope("Post updated successfully", Post.from_record(post))


@router.patch("/toggle/{post_id}")
async def toggle_post_visibility(
    post_id: str,
    current_user: UserRecord = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
):
    post = await service.toggle_visibility(current_user.id, post_id)
    state = "public" if post.is_public else "private"
    return envelope(f"Post is now {state}", Post.from_record(post))


@router.delete("/delete/{post_id}")
async def delete_post(
    post_id: str,
    current_user: UserRecord = Depends(get_current_user),
    service: PostService = Depends(get_post_service),
):
    await service.delete_post(current_user.id, post_id)
    return envelope("Post deleted successfully", {})


@router.get("/{post_id}")
async def get_post(
    post_id: str,
    viewer: Optional[UserRecord] = Depends(get_optional_user),
    service: PostService = Depends(get_post_service),
):
    post = await service.get_post(post_id, viewer_id=viewer.id if viewer else None)
    return envelope("Post fetched successfully", Post.from_record(post))


@router.get("")
async def list_posts(
    author: Optional[str] = None,
    category: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1),
    service: PostService = Depends(get_post_service),
):
    posts = await service.list_posts(author=author, category_id=category, skip=skip, limit=limit)
    return envelope("Posts fetched successfully", [Post.from_record(p) for p in posts])
