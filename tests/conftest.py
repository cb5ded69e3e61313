import os

# Settings must be in place before any newsdesk module is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["APP_ENV"] = "test"
os.environ["JWT_SECRET_KEY"] = "pytest-secret"
os.environ["VERIFY_EMAIL_EXISTENCE"] = "false"
os.environ["ABSTRACT_API_KEY"] = ""
os.environ["CLOUDINARY_CLOUD_NAME"] = ""

from datetime import datetime, timedelta

import cloudinary.uploader
import pytest
from fastapi.testclient import TestClient

from newsdesk.db.engine import Base, engine, SessionLocal
from newsdesk.main import app
from newsdesk.models.article_models import Article
from newsdesk.models.user_models import User
from newsdesk.services.article_fields import (
    apply_content_change,
    make_unique_slug,
    normalize_tags,
    stamp_published_at,
)
from newsdesk.services.auth_utils import create_access_token, hash_password

DEFAULT_PASSWORD = "Secret123"
DEFAULT_IMAGE = "https://res.cloudinary.com/demo/image/upload/v1712/news-site/articles/cover.jpg"


class FakeImageHost:
    """Stands in for the Cloudinary uploader calls made by image_host."""

    def __init__(self):
        self.uploaded = []
        self.destroyed = []
        self.destroy_result = "ok"
        self.fail_upload = False

    def upload(self, source, **options):
        if self.fail_upload:
            raise RuntimeError("upload rejected")
        self.uploaded.append((source, options))
        n = len(self.uploaded)
        folder = options.get("folder")
        return {
            "secure_url": f"https://res.cloudinary.com/demo/image/upload/v1/{folder}/img{n}.jpg",
            "public_id": f"{folder}/img{n}",
            "width": 1200,
            "height": 630,
            "format": "jpg",
        }

    def destroy(self, public_id, **options):
        self.destroyed.append(public_id)
        return {"result": self.destroy_result}


@pytest.fixture(autouse=True)
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def image_host(monkeypatch):
    fake = FakeImageHost()
    monkeypatch.setattr(cloudinary.uploader, "upload", fake.upload)
    monkeypatch.setattr(cloudinary.uploader, "destroy", fake.destroy)
    return fake


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_user(db):
    def _make(username="alice", role="author", password=DEFAULT_PASSWORD, is_active=True, email=None):
        user = User(
            username=username,
            email=email or f"{username}@newsroom.io",
            hashed_password=hash_password(password),
            first_name=username.capitalize(),
            last_name="Writer",
            role=role,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_article(db):
    def _make(
        author,
        title="Council approves budget",
        status="published",
        category="politics",
        content="<p>The council met on Monday and approved the budget.</p>",
        tags=(),
        featured=False,
        published_at=None,
        image=DEFAULT_IMAGE,
    ):
        article = Article(
            title=title,
            slug=make_unique_slug(db, title),
            featured_image=image,
            category=category,
            author_id=author.id,
            status=status,
            featured=featured,
            views=0,
        )
        article.set_tags(normalize_tags(tags))
        apply_content_change(article, content, None)
        if published_at is not None:
            article.published_at = published_at
        else:
            stamp_published_at(article)
        db.add(article)
        db.commit()
        db.refresh(article)
        return article

    return _make


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def days_ago(days: int) -> datetime:
    return datetime.utcnow() - timedelta(days=days)
