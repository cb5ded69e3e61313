from newsdesk.models.article_models import ArticleComment
from newsdesk.models.user_models import User

from conftest import auth_headers


def test_user_listing_is_admin_only(client, make_user):
    author = make_user("alice")
    assert client.get("/api/users").status_code == 401
    assert client.get("/api/users", headers=auth_headers(author)).status_code == 403


def test_admin_lists_users_with_stats(client, make_user, make_article):
    admin = make_user("root", role="admin")
    alice = make_user("alice")
    make_user("reader", role="user")
    make_article(alice)
    make_article(alice, title="Pending", status="draft")

    resp = client.get("/api/users", params={"role": "author"}, headers=auth_headers(admin))

    assert resp.status_code == 200
    body = resp.json()
    assert [u["username"] for u in body["users"]] == ["alice"]
    assert body["users"][0]["stats"] == {"totalArticles": 2, "publishedArticles": 1}
    assert body["pagination"]["totalUsers"] == 1

    found = client.get("/api/users", params={"search": "READ"}, headers=auth_headers(admin)).json()
    assert [u["username"] for u in found["users"]] == ["reader"]


def test_get_user_self_or_admin(client, make_user, make_article):
    alice = make_user("alice")
    bob = make_user("bobby")
    admin = make_user("root", role="admin")
    make_article(alice)

    own = client.get(f"/api/users/{alice.id}", headers=auth_headers(alice))
    assert own.status_code == 200
    assert own.json()["user"]["stats"]["publishedArticles"] == 1
    assert len(own.json()["user"]["recentArticles"]) == 1

    assert client.get(f"/api/users/{alice.id}", headers=auth_headers(bob)).status_code == 403
    assert client.get(f"/api/users/{alice.id}", headers=auth_headers(admin)).status_code == 200
    assert client.get("/api/users/9999", headers=auth_headers(admin)).status_code == 404


def test_public_profile_by_username(client, make_user, make_article):
    alice = make_user("alice")
    make_article(alice)
    make_article(alice, title="Draft", status="draft")

    resp = client.get("/api/users/username/alice")

    assert resp.status_code == 200
    body = resp.json()
    assert body["username"] == "alice"
    assert body["stats"] == {"totalArticles": 1}
    assert "email" not in body

    assert client.get("/api/users/username/ghost").status_code == 404


def test_authors_directory(client, make_user, make_article):
    alice = make_user("alice")
    make_user("root", role="admin")
    make_user("reader", role="user")
    make_user("gone", is_active=False)
    make_article(alice)

    body = client.get("/api/users/authors").json()

    assert sorted(a["username"] for a in body["authors"]) == ["alice", "root"]
    counts = {a["username"]: a["articleCount"] for a in body["authors"]}
    assert counts["alice"] == 1
    assert body["pagination"]["totalAuthors"] == 2


def test_dashboard_stats(client, make_user, make_article):
    alice = make_user("alice")
    admin = make_user("root", role="admin")
    make_article(alice)
    make_article(alice, title="Pending", status="draft")

    mine = client.get("/api/users/dashboard/stats", headers=auth_headers(alice)).json()["stats"]
    assert mine["articles"] == {"total": 2, "published": 1, "drafts": 1}
    assert mine["totalViews"] == 0

    site = client.get("/api/users/dashboard/stats", headers=auth_headers(admin)).json()["stats"]
    assert site["users"] == {"total": 2, "authors": 1, "admins": 1}
    assert site["articles"]["total"] == 2
    assert len(site["recentArticles"]) == 2


def test_admin_updates_role_and_status(client, db, make_user):
    admin = make_user("root", role="admin")
    alice = make_user("alice")

    resp = client.put(
        f"/api/users/{alice.id}",
        json={"role": "admin", "isActive": False},
        headers=auth_headers(admin),
    )

    assert resp.status_code == 200
    assert resp.json()["user"]["role"] == "admin"
    assert resp.json()["user"]["isActive"] is False

    # deactivated accounts lose access immediately
    assert client.get("/api/auth/me", headers=auth_headers(alice)).status_code == 401


def test_admin_update_rules(client, make_user):
    admin = make_user("root", role="admin")
    alice = make_user("alice")

    resp = client.put(f"/api/users/{admin.id}", json={"isActive": False}, headers=auth_headers(admin))
    assert resp.status_code == 400
    assert resp.json()["detail"] == "You cannot deactivate your own account"

    assert client.put(f"/api/users/{alice.id}", json={"role": "editor"}, headers=auth_headers(admin)).status_code == 400
    assert client.put("/api/users/9999", json={"role": "user"}, headers=auth_headers(admin)).status_code == 404
    assert client.put(f"/api/users/{alice.id}", json={"role": "user"}, headers=auth_headers(alice)).status_code == 403


def test_delete_user_blocked_while_they_own_articles(client, make_user, make_article):
    admin = make_user("root", role="admin")
    alice = make_user("alice")
    make_article(alice)
    make_article(alice, title="Second")

    resp = client.delete(f"/api/users/{alice.id}", headers=auth_headers(admin))

    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail["articleCount"] == 2
    assert "2 articles" in detail["message"]


def test_delete_user_removes_their_comments_and_likes(client, db, make_user, make_article):
    admin = make_user("root", role="admin")
    alice = make_user("alice")
    reader = make_user("reader", role="user")
    article = make_article(alice)
    reader_id = reader.id
    client.post(f"/api/articles/{article.id}/comments", json={"comment": "First!"}, headers=auth_headers(reader))
    client.post(f"/api/articles/{article.id}/like", headers=auth_headers(reader))

    resp = client.delete(f"/api/users/{reader.id}", headers=auth_headers(admin))

    assert resp.status_code == 200
    db.expire_all()
    assert db.get(User, reader_id) is None
    assert db.query(ArticleComment).count() == 0
    detail = client.get(f"/api/articles/{article.slug}").json()
    assert detail["likeCount"] == 0
    assert detail["commentCount"] == 0


def test_admin_cannot_delete_self(client, make_user):
    admin = make_user("root", role="admin")
    resp = client.delete(f"/api/users/{admin.id}", headers=auth_headers(admin))
    assert resp.status_code == 400
    assert resp.json()["detail"] == "You cannot delete your own account"


def test_promoted_reader_passes_author_routes(client, make_user):
    admin = make_user("root", role="admin")
    reader = make_user("reader", role="user")
    payload = {
        "title": "First byline",
        "content": "<p>Reporting from the harbour.</p>",
        "category": "local",
        "featuredImage": "https://x/y.jpg",
    }

    assert client.post("/api/articles", json=payload, headers=auth_headers(reader)).status_code == 403

    client.put(f"/api/users/{reader.id}", json={"role": "author"}, headers=auth_headers(admin))

    assert client.post("/api/articles", json=payload, headers=auth_headers(reader)).status_code == 201
