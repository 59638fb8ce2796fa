"""
API tests for posts: creation, ownership rules, visibility and listing.
"""
import pytest

from conftest import PNG_BYTES

POSTS = "/api/v1/posts"


def create_post(client, session, **form):
    data = {"title": "Hello World", "content": "First post body"}
    data.update(form)
    return client.post(f"{POSTS}/create", data=data, headers=session["headers"])


@pytest.fixture
def category(client, signed_in):
    session = signed_in()
    response = client.post("/api/v1/categories/create", json={"categoryName": "Tech"}, headers=session["headers"])
    return response.json()["data"]


@pytest.mark.api
class TestCreatePost:
    def test_create_post(self, client, signed_in, category):
        session = signed_in()
        response = create_post(client, session, category=category["id"], tags="Python, fastapi,,python")

        assert response.status_code == 201
        post = response.json()["data"]
        assert post["slug"] == "hello-world"
        assert post["author"] == session["user"]["id"]
        assert post["category"] == category["id"]
        assert post["tags"] == ["python", "fastapi"]
        assert post["isPublic"] is True
        assert post["featuredImage"] is None

    def test_create_with_image(self, client, signed_in, media):
        session = signed_in()
        response = client.post(
            f"{POSTS}/create",
            data={"title": "Pictures", "content": "With an image"},
            files={"featuredImage": ("cover.png", PNG_BYTES, "image/png")},
            headers=session["headers"],
        )

        assert response.status_code == 201
        assert response.json()["data"]["featuredImage"].startswith("https://")
        assert len(media.uploaded) == 2

    def test_same_title_gets_distinct_slug(self, client, signed_in):
        session = signed_in()
        first = create_post(client, session).json()["data"]
        second = create_post(client, session).json()["data"]

        assert first["slug"] == "hello-world"
        assert second["slug"].startswith("hello-world-")
        assert second["slug"] != first["slug"]

    def test_missing_content(self, client, signed_in):
        session = signed_in()
        response = create_post(client, session, content="")

        assert response.status_code == 400
        assert response.json()["detail"] == "Title and content are required"

    def test_unknown_category(self, client, signed_in):
        session = signed_in()
        response = create_post(client, session, category="65f0c0ffee0000000000abcd")
        assert response.status_code == 404

    def test_requires_auth(self, client):
        response = client.post(f"{POSTS}/create", data={"title": "x", "content": "y"})
        assert response.status_code == 401


@pytest.mark.api
class TestPostOwnership:
    def test_edit_post(self, client, signed_in, category):
        session = signed_in()
        post = create_post(client, session).json()["data"]

        response = client.put(
            f"{POSTS}/edit/{post['id']}",
            json={"content": "Edited body", "title": "New Title", "category": category["id"]},
            headers=session["headers"],
        )

        assert response.status_code == 200
        edited = response.json()["data"]
        assert edited["content"] == "Edited body"
        assert edited["slug"] == "new-title"
        assert edited["category"] == category["id"]

    def test_edit_invalid_category(self, client, signed_in):
        session = signed_in()
        post = create_post(client, session).json()["data"]
        response = client.put(
            f"{POSTS}/edit/{post['id']}",
            json={"content": "Edited", "category": "65f0c0ffee0000000000abcd"},
            headers=session["headers"],
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid category"

    def test_only_author_can_modify(self, client, signed_in):
        author = signed_in()
        intruder = signed_in()
        post = create_post(client, author).json()["data"]

        edit = client.put(f"{POSTS}/edit/{post['id']}", json={"content": "Mine now"}, headers=intruder["headers"])
        toggle = client.patch(f"{POSTS}/toggle/{post['id']}", headers=intruder["headers"])
        delete = client.delete(f"{POSTS}/delete/{post['id']}", headers=intruder["headers"])

        for response in (edit, toggle, delete):
            assert response.status_code == 403
            assert response.json()["error"] == "FORBIDDEN"

    def test_toggle_hides_post_from_others(self, client, signed_in):
        author = signed_in()
        reader = signed_in()
        post = create_post(client, author).json()["data"]

        toggled = client.patch(f"{POSTS}/toggle/{post['id']}", headers=author["headers"])
        assert toggled.json()["data"]["isPublic"] is False

        assert client.get(f"{POSTS}/{post['id']}", headers=reader["headers"]).status_code == 404
        assert client.get(f"{POSTS}/{post['id']}").status_code == 404
        assert client.get(f"{POSTS}/{post['id']}", headers=author["headers"]).status_code == 200

    def test_delete_post_removes_image(self, client, signed_in, media, posts_repo):
        session = signed_in()
        created = client.post(
            f"{POSTS}/create",
            data={"title": "Doomed", "content": "Soon gone"},
            files={"featuredImage": ("cover.png", PNG_BYTES, "image/png")},
            headers=session["headers"],
        )
        post = created.json()["data"]
        asset_id = posts_repo.records[post["id"]].featured_image_asset_id

        response = client.delete(f"{POSTS}/delete/{post['id']}", headers=session["headers"])

        assert response.status_code == 200
        assert media.deleted == [asset_id]
        assert post["id"] not in posts_repo.records
        assert client.get(f"{POSTS}/{post['id']}").status_code == 404

    def test_unknown_post(self, client, signed_in):
        session = signed_in()
        response = client.patch(f"{POSTS}/toggle/not-an-id", headers=session["headers"])
        assert response.status_code == 404


@pytest.mark.api
class TestListPosts:
    def test_lists_public_posts_newest_first(self, client, signed_in):
        session = signed_in()
        first = create_post(client, session, title="First").json()["data"]
        second = create_post(client, session, title="Second").json()["data"]
        hidden = create_post(client, session, title="Hidden").json()["data"]
        client.patch(f"{POSTS}/toggle/{hidden['id']}", headers=session["headers"])

        response = client.get(POSTS)

        assert response.status_code == 200
        assert [p["id"] for p in response.json()["data"]] == [second["id"], first["id"]]

    def test_filter_by_author_and_paginate(self, client, signed_in):
        alice = signed_in()
        bob = signed_in()
        for i in range(3):
            create_post(client, alice, title=f"Alice {i}")
        create_post(client, bob, title="Bob")

        by_alice = client.get(POSTS, params={"author": alice["user"]["username"]}).json()["data"]
        assert len(by_alice) == 3
        assert {p["author"] for p in by_alice} == {alice["user"]["id"]}

        page = client.get(POSTS, params={"skip": 1, "limit": 2}).json()["data"]
        assert len(page) == 2

    def test_unknown_author(self, client):
        assert client.get(POSTS, params={"author": "ghost"}).status_code == 404

    def test_oversized_limit_is_capped_not_rejected(self, client, signed_in):
        session = signed_in()
        for i in range(3):
            create_post(client, session, title=f"Post {i}")

        response = client.get(POSTS, params={"limit": 1000})

        assert response.status_code == 200
        assert len(response.json()["data"]) == 3

    def test_filter_by_category(self, client, signed_in, category):
        session = signed_in()
        tagged = create_post(client, session, title="Tagged", category=category["id"]).json()["data"]
        create_post(client, session, title="Loose")

        listed = client.get(POSTS, params={"category": category["id"]}).json()["data"]

        assert [p["id"] for p in listed] == [tagged["id"]]

    @pytest.mark.parametrize("category_id", ["not-an-id", "65f0c0ffee0000000000ffff"])
    def test_unknown_category_filter(self, client, signed_in, category_id):
        session = signed_in()
        create_post(client, session, title="Uncategorized")

        response = client.get(POSTS, params={"category": category_id})

        assert response.status_code == 404
        assert response.json()["detail"] == "Category not found"
