from pathlib import Path
from typing import List, Optional
import logging
import secrets

from core.errors import DuplicatePost, Forbidden, NotFound, ValidationError
from db.models.post import PostRecord
from services.media_service import upload_staged_file
from utils.slug import slugify
from utils.timing import timeit

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def parse_tags(raw: Optional[str]) -> List[str]:
    """'python, fastapi,,Python ' -> ['python', 'fastapi']"""
    seen = []
    for part in (raw or "").split(","):
        tag = part.strip().lower()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class PostService:
    def __init__(self, posts, categories, users, media=None):
        self.posts = posts
        self.categories = categories
        self.users = users
        self.media = media

    async def _unique_slug(self, title: str, exclude_id: Optional[str] = None) -> str:
        base = slugify(title)
        if not base:
            raise ValidationError("Title must contain letters or digits")
        slug = base
        while await self.posts.slug_exists(slug, exclude_id=exclude_id):
            slug = f"{base}-{secrets.token_hex(3)}"
        return slug

    async def _write_with_slug_retry(self, write, fields: dict) -> Optional[PostRecord]:
        """Run write(fields); if another post took the slug since the check, retry once with a suffix."""
        try:
            return await write(fields)
        except DuplicatePost:
            if "slug" not in fields:
                raise
            logger.info(f"Slug {fields['slug']} was taken concurrently; retrying")
            fields["slug"] = f"{slugify(fields['title'])}-{secrets.token_hex(3)}"
            return await write(fields)

    async def _owned(self, author_id: str, post_id: str) -> PostRecord:
        post = await self.posts.find_by_id(post_id)
        if post is None:
            raise NotFound("Post not found")
        if post.author_id != author_id:
            raise Forbidden("You are not authorized to modify this post")
        return post

    @timeit("create_post")
    async def create_post(self, author_id: str, title: Optional[str], content: Optional[str],
                          category_id: Optional[str] = None, tags: Optional[str] = None,
                          image_path: Optional[Path] = None) -> PostRecord:
        title = (title or "").strip()
        content = (content or "").strip()
        if not title or not content:
            raise ValidationError("Title and content are required")

        category = None
        if category_id and category_id.strip():
            category = await self.categories.find_by_id(category_id.strip())
            if category is None:
                raise NotFound("Category not found")

        slug = await self._unique_slug(title)
        fields = {
            "title": title,
            "slug": slug,
            "content": content,
            "tags": parse_tags(tags),
            "category_id": category.id if category else None,
            "author_id": author_id,
            "is_public": True,
        }
        if image_path is not None:
            asset = await upload_staged_file(self.media, image_path)
            fields["featured_image"] = asset.url
            fields["featured_image_asset_id"] = asset.asset_id

        try:
            post = await self._write_with_slug_retry(self.posts.insert, fields)
        except DuplicatePost:
            if fields.get("featured_image_asset_id"):
                await self.media.delete(fields["featured_image_asset_id"])
            raise
        logger.info(f"Post {post.id} created by {author_id}")
        return post

    async def edit_post(self, author_id: str, post_id: str, content: Optional[str],
                        title: Optional[str] = None, category_id: Optional[str] = None) -> PostRecord:
        post = await self._owned(author_id, post_id)
        content = (content or "").strip()
        if not content:
            raise ValidationError("Post content is required")
        changes = {"content": content}
        if category_id and category_id.strip():
            category = await self.categories.find_by_id(category_id.strip())
            if category is None:
                raise ValidationError("Invalid category")
            changes["category_id"] = category.id
        if title and title.strip() and title.strip() != post.title:
            changes["title"] = title.strip()
            changes["slug"] = await self._unique_slug(changes["title"], exclude_id=post.id)
        updated = await self._write_with_slug_retry(lambda f: self.posts.update(post.id, f), changes)
        if updated is None:
            raise NotFound("Post not found")
        return updated

    async def toggle_visibility(self, author_id: str, post_id: str) -> PostRecord:
        post = await self._owned(author_id, post_id)
        updated = await self.posts.update(post.id, {"is_public": not post.is_public})
        if updated is None:
            raise NotFound("Post not found")
        return updated

    async def delete_post(self, author_id: str, post_id: str) -> None:
        post = await self._owned(author_id, post_id)
        if post.featured_image_asset_id:
            await self.media.delete(post.featured_image_asset_id)
        await self.posts.delete(post.id)
        logger.info(f"Post {post.id} deleted by {author_id}")

    async def get_post(self, post_id: str, viewer_id: Optional[str] = None) -> PostRecord:
        post = await self.posts.find_by_id(post_id)
        # Private posts are invisible to everyone but their author
        if post is None or (not post.is_public and post.author_id != viewer_id):
            raise NotFound("Post not found")
        return post

    async def list_posts(self, author: Optional[str] = None, category_id: Optional[str] = None,
                         skip: int = 0, limit: int = 20) -> List[PostRecord]:
        skip = max(int(skip), 0)
        limit = min(max(int(limit), 1), MAX_PAGE_SIZE)
        author_id = None
        if author:
            user = await self.users.find_by_username(author)
            if user is None:
                raise NotFound("Author not found")
            author_id = user.id
        if category_id:
            category = await self.categories.find_by_id(category_id)
            if category is None:
                raise NotFound("Category not found")
            category_id = category.id
        return await self.posts.list_public(author_id=author_id, category_id=category_id, skip=skip, limit=limit)
