from fastapi import FastAPI, Depends, HTTPException, Request, Query, File, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from typing import Optional, List, Dict, Any, Literal
from datetime import datetime
import logging
import os
import re
import time

from jose import JWTError

from newsdesk.config import (
    APP_ENV,
    IS_PRODUCTION,
    LOG_LEVEL,
    CLIENT_URL,
    VERIFY_EMAIL_EXISTENCE,
    CLOUDINARY_CLOUD_NAME,
)
from newsdesk.db.engine import Base, engine, SessionLocal
from newsdesk.models.user_models import User, ROLE_AUTHOR, ROLE_ADMIN
from newsdesk.models.article_models import (
    Article,
    ArticleComment,
    ARTICLE_CATEGORIES,
    STATUS_DRAFT,
    STATUS_PUBLISHED,
)
from newsdesk.services.auth_utils import (
    hash_password,
    verify_password,
    create_access_token,
    user_id_from_token,
)
from newsdesk.services.access import (
    ANONYMOUS,
    AuthContext,
    Visibility,
    article_visibility,
    can_interact,
    can_modify_article,
    counts_as_view,
)
from newsdesk.services.article_query import (
    ArticleListParams,
    DEFAULT_SORT_FIELD,
    build_article_query,
    pagination_info,
)
from newsdesk.services.article_fields import (
    apply_content_change,
    make_unique_slug,
    normalize_tags,
    stamp_published_at,
)
from newsdesk.services.email_verification import (
    validate_email_locally,
    verify_email_exists,
)
from newsdesk.services import image_host

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("newsdesk")

app = FastAPI(title="Newsdesk API", version="1.0.0")

# auto_error=False so public routes can treat a missing token as anonymous
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

#  CORS setup
_allowed_origins = [CLIENT_URL] if CLIENT_URL else []
if not IS_PRODUCTION:
    _allowed_origins += [f"http://localhost:{port}" for port in (3000, 5173, 5174, 5175, 5176)]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_origin_regex=r"https://.*\.trycloudflare\.com",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- DB Session Dependency ---
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# --- Create tables on startup ---
@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)

    if CLOUDINARY_CLOUD_NAME:
        if not image_host.validate_connection() and not IS_PRODUCTION:
            logger.warning("Cloudinary configuration invalid; image uploads will fail")
    else:
        logger.warning("Cloudinary not configured; image uploads will fail")

    logger.info("Newsdesk API started (env=%s)", APP_ENV)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(
        "%s %s -> %s (%.1f ms)",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


# ----- Error handlers -----

def _error_detail(exc: Exception, fallback: str) -> str:
    """Exception text in development, a generic message everywhere else."""
    return str(exc) if APP_ENV == "development" else fallback


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        message = err.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        value = err.get("input")
        if not isinstance(value, (str, int, float, bool, type(None))):
            value = None
        errors.append({"field": ".".join(loc), "message": message, "value": value})
    return JSONResponse(
        status_code=400,
        content={"message": "Validation failed", "errors": errors},
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "message": "Something went wrong!",
            "error": _error_detail(exc, "Internal server error"),
        },
    )


# --- Pydantic models ---

USERNAME_PATTERN = r"^[a-zA-Z0-9_-]+$"
IMAGE_URL_REGEX = re.compile(r"^https?://.+\.(jpg|jpeg|png|gif|webp)$", re.IGNORECASE)
FEATURED_IMAGE_REGEX = re.compile(r"^https?://.+")


class CamelModel(BaseModel):
    """camelCase on the wire; snake_case also accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _check_category(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().lower()
    if value not in ARTICLE_CATEGORIES:
        raise ValueError("Invalid category")
    return value


class AuthorOut(CamelModel):
    id: int
    username: str
    first_name: str
    last_name: str
    full_name: str
    avatar: Optional[str] = None
    bio: Optional[str] = None


class CommentOut(CamelModel):
    id: int
    user: AuthorOut
    comment: str
    created_at: Optional[datetime] = None


class ArticleOut(CamelModel):
    id: int
    title: str
    slug: str
    content: str
    excerpt: Optional[str] = None
    featured_image: str
    category: str
    tags: List[str] = []
    author: AuthorOut
    status: str
    published_at: Optional[datetime] = None
    views: int = 0
    read_time: int = 1
    featured: bool = False
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    likes: List[int] = []
    like_count: int = 0
    comment_count: int = 0
    comments: List[CommentOut] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ArticleEnvelope(CamelModel):
    message: str
    article: ArticleOut


class ArticleListResponse(CamelModel):
    articles: List[ArticleOut]
    pagination: Dict[str, Any]


class ArticleCreateRequest(CamelModel):
    title: str = Field(..., max_length=200)
    content: str
    excerpt: Optional[str] = Field(None, max_length=300)
    featured_image: str = Field("", validate_default=True)
    category: str
    tags: List[str] = []
    status: Literal["draft", "published", "archived"] = STATUS_DRAFT
    featured: bool = False
    seo_title: Optional[str] = Field(None, max_length=60)
    seo_description: Optional[str] = Field(None, max_length=160)

    @field_validator("title")
    @classmethod
    def title_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v

    @field_validator("content")
    @classmethod
    def content_required(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Content is required")
        return v

    @field_validator("featured_image")
    @classmethod
    def featured_image_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Featured image is required")
        if not FEATURED_IMAGE_REGEX.match(v):
            raise ValueError("Featured image must be a valid URL")
        return v

    @field_validator("category")
    @classmethod
    def category_allowed(cls, v: str) -> str:
        return _check_category(v)


class ArticleUpdateRequest(CamelModel):
    title: Optional[str] = Field(None, max_length=200)
    content: Optional[str] = None
    excerpt: Optional[str] = Field(None, max_length=300)
    featured_image: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    status: Optional[Literal["draft", "published", "archived"]] = None
    featured: Optional[bool] = None
    seo_title: Optional[str] = Field(None, max_length=60)
    seo_description: Optional[str] = Field(None, max_length=160)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Title is required")
        return v.strip() if v is not None else None

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Content is required")
        return v

    @field_validator("featured_image")
    @classmethod
    def featured_image_url(cls, v: Optional[str]) -> Optional[str]:
        # Empty means "keep the current image"
        v = (v or "").strip()
        if v and not FEATURED_IMAGE_REGEX.match(v):
            raise ValueError("Featured image must be a valid URL")
        return v or None

    @field_validator("category")
    @classmethod
    def category_allowed(cls, v: Optional[str]) -> Optional[str]:
        return _check_category(v)


class CommentRequest(CamelModel):
    comment: str = Field(..., max_length=1000)

    @field_validator("comment")
    @classmethod
    def comment_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Comment is required")
        return v


class UserOut(CamelModel):
    id: int
    username: str
    email: str
    first_name: str
    last_name: str
    full_name: str
    role: str
    bio: Optional[str] = None
    avatar: Optional[str] = None
    is_active: bool = True
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AuthResponse(CamelModel):
    message: str
    token: str
    user: UserOut


class RegisterRequest(CamelModel):
    username: str = Field(..., min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    email: EmailStr
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    bio: Optional[str] = Field(None, max_length=500)
    # Admin accounts are only ever granted by another admin
    role: Optional[Literal["user", "author"]] = None

    @field_validator("email")
    @classmethod
    def email_acceptable(cls, v: str) -> str:
        v = v.lower()
        check = validate_email_locally(v)
        if not check["isValid"]:
            raise ValueError(check["message"])
        return v

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        if not (re.search(r"[a-z]", v) and re.search(r"[A-Z]", v) and re.search(r"\d", v)):
            raise ValueError(
                "Password must contain at least one lowercase letter, one uppercase letter, and one number"
            )
        return v


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdateRequest(CamelModel):
    username: Optional[str] = Field(None, min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)
    bio: Optional[str] = Field(None, max_length=500)
    avatar: Optional[str] = None


class UserUpdateRequest(CamelModel):
    role: Optional[Literal["user", "author", "admin"]] = None
    is_active: Optional[bool] = None
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)
    bio: Optional[str] = Field(None, max_length=500)


class UploadFromUrlRequest(CamelModel):
    image_url: str
    folder: Optional[str] = None


# ----- Auth helpers (dependencies) -----


def _user_from_token(token: str, db: Session) -> User:
    """
    Decodes the JWT and loads the user it was issued to.
    Raises 401 for anything that doesn't resolve to an active account.
    """
    try:
        user_id = user_id_from_token(token)
    except JWTError:
        raise HTTPException(status_code=401, detail="Access denied. Invalid token.")

    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Access denied. Invalid token.")

    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account is deactivated")

    return user


def get_auth_context(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> AuthContext:
    """Optional authentication: bad or missing tokens mean anonymous."""
    if not token:
        return ANONYMOUS
    try:
        return AuthContext(user=_user_from_token(token, db))
    except HTTPException as e:
        logger.debug("Optional auth fell back to anonymous: %s", e.detail)
        return ANONYMOUS


def require_auth(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> AuthContext:
    if not token:
        raise HTTPException(status_code=401, detail="Access denied. No token provided.")
    return AuthContext(user=_user_from_token(token, db))


def require_author(auth: AuthContext = Depends(require_auth)) -> AuthContext:
    if not auth.is_author_or_admin:
        raise HTTPException(status_code=403, detail="Access denied. Author or Admin role required.")
    return auth


def require_admin(auth: AuthContext = Depends(require_auth)) -> AuthContext:
    if not auth.is_admin:
        raise HTTPException(status_code=403, detail="Access denied. Admin role required.")
    return auth


# ----- Response builders -----


def _author_out(user: User) -> AuthorOut:
    return AuthorOut(
        id=user.id,
        username=user.username,
        first_name=user.first_name,
        last_name=user.last_name,
        full_name=user.full_name,
        avatar=user.avatar,
        bio=user.bio,
    )


def _comment_out(c: ArticleComment) -> CommentOut:
    return CommentOut(
        id=c.id,
        user=_author_out(c.user),
        comment=c.comment,
        created_at=c.created_at,
    )


def _article_out(a: Article, include_comments: bool = False) -> ArticleOut:
    return ArticleOut(
        id=a.id,
        title=a.title,
        slug=a.slug,
        content=a.content,
        excerpt=a.excerpt,
        featured_image=a.featured_image,
        category=a.category,
        tags=a.tag_names,
        author=_author_out(a.author),
        status=a.status,
        published_at=a.published_at,
        views=a.views or 0,
        read_time=a.read_time or 1,
        featured=bool(a.featured),
        seo_title=a.seo_title,
        seo_description=a.seo_description,
        likes=[u.id for u in a.likes],
        like_count=len(a.likes),
        comment_count=len(a.comments),
        comments=[_comment_out(c) for c in a.comments] if include_comments else [],
        created_at=a.created_at,
        updated_at=a.updated_at,
    )


def _user_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        username=user.username,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        full_name=user.full_name,
        role=user.role,
        bio=user.bio,
        avatar=user.avatar,
        is_active=bool(user.is_active),
        last_login=user.last_login,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _get_article_or_404(db: Session, article_id: int) -> Article:
    article = db.get(Article, article_id)
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    return article


def _article_counts(db: Session, user_id: int) -> Dict[str, int]:
    rows = (
        db.query(Article.status, func.count(Article.id))
        .filter(Article.author_id == user_id)
        .group_by(Article.status)
        .all()
    )
    by_status = {status: count for status, count in rows}
    return {
        "totalArticles": sum(by_status.values()),
        "publishedArticles": by_status.get(STATUS_PUBLISHED, 0),
        "draftArticles": by_status.get(STATUS_DRAFT, 0),
    }


def _recent_articles(db: Session, user_id: Optional[int] = None, limit: int = 10) -> List[Dict[str, Any]]:
    q = db.query(Article)
    if user_id is not None:
        q = q.filter(Article.author_id == user_id)
    rows = q.order_by(Article.created_at.desc(), Article.id.desc()).limit(limit).all()
    return [
        {
            "id": a.id,
            "title": a.title,
            "slug": a.slug,
            "status": a.status,
            "views": a.views,
            "author": _author_out(a.author).model_dump(by_alias=True),
            "createdAt": a.created_at,
            "publishedAt": a.published_at,
        }
        for a in rows
    ]


# --- Endpoints ---

@app.get("/api/health")
def health():
    return {"status": "ok", "message": "Server is running successfully!"}


@app.get("/api/categories")
def list_categories(db: Session = Depends(get_db)):
    counts = dict(
        db.query(Article.category, func.count(Article.id))
        .filter(Article.status == STATUS_PUBLISHED)
        .group_by(Article.category)
        .all()
    )
    categories = [
        {
            "name": name,
            "slug": slug,
            "description": description,
            "articleCount": counts.get(slug, 0),
        }
        for slug, (name, description) in ARTICLE_CATEGORIES.items()
    ]
    return {"success": True, "categories": categories}


# ----- Auth endpoints -----

@app.post("/api/auth/register", response_model=AuthResponse, status_code=201)
async def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    """
    Self-registration. New accounts are authors unless they ask to be
    plain users.

    In production (or with VERIFY_EMAIL_EXISTENCE=true) the address is also
    checked against the deliverability APIs. Those checks never block a
    signup when the APIs themselves fail.
    """
    email = payload.email.lower()
    existing = (
        db.query(User)
        .filter(or_(User.email == email, User.username == payload.username))
        .first()
    )
    if existing:
        raise HTTPException(status_code=400, detail="User already exists with this email or username")

    if IS_PRODUCTION or VERIFY_EMAIL_EXISTENCE:
        try:
            result = await verify_email_exists(email)
        except Exception as e:
            logger.error("Email verification error for %s: %s", email, e)
            result = {"success": False}

        if result.get("success") and not result.get("deliverable"):
            raise HTTPException(status_code=400, detail="This email appears to be invalid or not deliverable")
        if result.get("success") and result.get("isDisposable"):
            raise HTTPException(status_code=400, detail="Disposable emails are not allowed")

    user = User(
        username=payload.username,
        email=email,
        hashed_password=hash_password(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        bio=payload.bio,
        role=payload.role or ROLE_AUTHOR,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s (role=%s)", user.username, user.role)

    return AuthResponse(
        message="User registered successfully",
        token=create_access_token(user.id),
        user=_user_out(user),
    )


@app.post("/api/auth/login", response_model=AuthResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email.lower()).one_or_none()
    if not user or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account is deactivated")

    user.last_login = datetime.utcnow()
    db.commit()
    db.refresh(user)

    return AuthResponse(
        message="Login successful",
        token=create_access_token(user.id),
        user=_user_out(user),
    )


@app.get("/api/auth/me")
def get_me(auth: AuthContext = Depends(require_auth)):
    return {"user": _user_out(auth.user)}


@app.put("/api/auth/profile")
def update_profile(
    payload: ProfileUpdateRequest,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    user = auth.user

    if payload.username and payload.username != user.username:
        taken = (
            db.query(User.id)
            .filter(User.username == payload.username, User.id != user.id)
            .first()
        )
        if taken:
            raise HTTPException(status_code=400, detail="Username is already taken")
        user.username = payload.username

    if payload.first_name:
        user.first_name = payload.first_name
    if payload.last_name:
        user.last_name = payload.last_name
    if payload.bio is not None:
        user.bio = payload.bio
    if payload.avatar is not None:
        user.avatar = payload.avatar or None

    db.commit()
    db.refresh(user)
    return {"message": "Profile updated successfully", "user": _user_out(user)}


@app.get("/api/auth/verify")
def verify_token(auth: AuthContext = Depends(require_auth)):
    user = auth.user
    return {
        "message": "Token is valid",
        "user": {"id": user.id, "username": user.username, "email": user.email, "role": user.role},
    }


# ----- Article endpoints -----

@app.get("/api/articles", response_model=ArticleListResponse)
def list_articles(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[str] = None,
    author: Optional[str] = None,
    status: Optional[Literal["draft", "published", "archived"]] = None,
    search: Optional[str] = None,
    tags: Optional[str] = None,
    featured: Optional[bool] = None,
    sort_by: str = Query(DEFAULT_SORT_FIELD, alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    params = ArticleListParams(
        page=page,
        limit=limit,
        category=category,
        author=author,
        status=status,
        search=search,
        tags=tags,
        featured=featured,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    query = build_article_query(params, auth)

    total = query.apply(db.query(Article)).count()
    articles = query.page(db.query(Article)).all()

    logger.debug(
        "Article listing: status=%s total=%d requester=%s",
        query.status,
        total,
        auth.user_id,
    )

    return ArticleListResponse(
        articles=[_article_out(a) for a in articles],
        pagination=pagination_info(total, page, limit),
    )


@app.get("/api/articles/author/{author_id}", response_model=ArticleListResponse)
def list_articles_by_author(
    author_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Public author page: published articles only, newest first."""
    base = db.query(Article).filter(
        Article.author_id == author_id,
        Article.status == STATUS_PUBLISHED,
    )
    total = base.count()
    articles = (
        base.order_by(Article.published_at.desc(), Article.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return ArticleListResponse(
        articles=[_article_out(a) for a in articles],
        pagination=pagination_info(total, page, limit),
    )


def _serve_article(article: Optional[Article], auth: AuthContext, db: Session) -> ArticleOut:
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")

    visibility = article_visibility(auth, article)
    if visibility == Visibility.AUTH_REQUIRED:
        raise HTTPException(status_code=401, detail="Authentication required to access draft articles")
    if visibility == Visibility.FORBIDDEN:
        raise HTTPException(status_code=403, detail="Access denied - you can only view your own draft articles")

    if counts_as_view(auth, article):
        # Increment in SQL; updated_at is left untouched
        db.query(Article).filter(Article.id == article.id).update(
            {Article.views: Article.views + 1, Article.updated_at: Article.updated_at},
            synchronize_session=False,
        )
        db.commit()
        db.refresh(article)

    return _article_out(article, include_comments=True)


@app.get("/api/articles/id/{article_id}", response_model=ArticleOut)
def get_article_by_id(
    article_id: int,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return _serve_article(db.get(Article, article_id), auth, db)


@app.get("/api/articles/{slug}", response_model=ArticleOut)
def get_article_by_slug(
    slug: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    article = db.query(Article).filter(Article.slug == slug).one_or_none()
    return _serve_article(article, auth, db)


@app.post("/api/articles", response_model=ArticleEnvelope, status_code=201)
def create_article(
    payload: ArticleCreateRequest,
    auth: AuthContext = Depends(require_author),
    db: Session = Depends(get_db),
):
    article = Article(
        title=payload.title,
        slug=make_unique_slug(db, payload.title),
        featured_image=payload.featured_image,
        category=payload.category,
        author_id=auth.user_id,
        status=payload.status,
        featured=payload.featured,
        seo_title=payload.seo_title,
        seo_description=payload.seo_description,
        views=0,
    )
    article.set_tags(normalize_tags(payload.tags))
    apply_content_change(article, payload.content, payload.excerpt)
    stamp_published_at(article)

    db.add(article)
    db.commit()
    db.refresh(article)
    logger.info("Article %s created by user %s (%s)", article.id, auth.user_id, article.status)

    return ArticleEnvelope(message="Article created successfully", article=_article_out(article))


@app.put("/api/articles/{article_id}", response_model=ArticleEnvelope)
def update_article(
    article_id: int,
    payload: ArticleUpdateRequest,
    auth: AuthContext = Depends(require_author),
    db: Session = Depends(get_db),
):
    article = _get_article_or_404(db, article_id)
    if not can_modify_article(auth, article):
        raise HTTPException(status_code=403, detail="Access denied. You can only edit your own articles.")

    data = payload.model_dump(exclude_unset=True)
    previous_image = article.featured_image

    for field in ("title", "category", "status", "featured", "seo_title", "seo_description"):
        if data.get(field) is not None or (field.startswith("seo_") and field in data):
            setattr(article, field, data[field])

    if data.get("featured_image"):
        article.featured_image = data["featured_image"]

    if data.get("tags") is not None:
        article.set_tags(normalize_tags(data["tags"]))

    new_content = data.get("content")
    if new_content is not None and new_content != article.content:
        apply_content_change(article, new_content, data.get("excerpt"))
    elif "excerpt" in data:
        article.excerpt = data["excerpt"]

    stamp_published_at(article)

    db.commit()
    db.refresh(article)

    if previous_image != article.featured_image:
        image_host.delete_image_quietly(previous_image)

    return ArticleEnvelope(message="Article updated successfully", article=_article_out(article))


@app.delete("/api/articles/{article_id}")
def delete_article(
    article_id: int,
    auth: AuthContext = Depends(require_author),
    db: Session = Depends(get_db),
):
    article = _get_article_or_404(db, article_id)
    if not can_modify_article(auth, article):
        raise HTTPException(status_code=403, detail="Access denied. You can only delete your own articles.")

    featured_image = article.featured_image
    db.delete(article)
    db.commit()
    logger.info("Article %s deleted by user %s", article_id, auth.user_id)

    image_host.delete_image_quietly(featured_image)
    return {"message": "Article deleted successfully"}


@app.post("/api/articles/{article_id}/comments", status_code=201)
def add_comment(
    article_id: int,
    payload: CommentRequest,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    article = _get_article_or_404(db, article_id)
    if not can_interact(article):
        raise HTTPException(status_code=403, detail="Cannot comment on unpublished articles")

    comment = ArticleComment(
        article_id=article.id,
        user_id=auth.user_id,
        comment=payload.comment,
        created_at=datetime.utcnow(),
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)

    return {"message": "Comment added successfully", "comment": _comment_out(comment)}


@app.post("/api/articles/{article_id}/like")
def toggle_like(
    article_id: int,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    article = _get_article_or_404(db, article_id)
    if not can_interact(article):
        raise HTTPException(status_code=403, detail="Cannot like unpublished articles")

    user = auth.user
    already_liked = user in article.likes
    if already_liked:
        article.likes.remove(user)
    else:
        article.likes.append(user)
    db.commit()

    return {
        "message": "Article unliked" if already_liked else "Article liked",
        "likeCount": len(article.likes),
        "isLiked": not already_liked,
    }


# ----- User endpoints -----

USER_SORT_FIELDS = {
    "createdAt": User.created_at,
    "username": User.username,
    "email": User.email,
    "lastLogin": User.last_login,
    "role": User.role,
}


@app.get("/api/users/authors")
def list_authors(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    db: Session = Depends(get_db),
):
    base = db.query(User).filter(
        User.role.in_([ROLE_AUTHOR, ROLE_ADMIN]),
        User.is_active == True,
    )
    total = base.count()
    authors = (
        base.order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    results = []
    for author in authors:
        published = (
            db.query(func.count(Article.id))
            .filter(Article.author_id == author.id, Article.status == STATUS_PUBLISHED)
            .scalar()
        )
        item = _author_out(author).model_dump(by_alias=True)
        item.update({"role": author.role, "createdAt": author.created_at, "articleCount": published})
        results.append(item)

    return {"authors": results, "pagination": pagination_info(total, page, limit, "totalAuthors")}


@app.get("/api/users/dashboard/stats")
def dashboard_stats(
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    if auth.is_admin:
        role_counts = dict(db.query(User.role, func.count(User.id)).group_by(User.role).all())
        status_counts = dict(
            db.query(Article.status, func.count(Article.id)).group_by(Article.status).all()
        )
        stats = {
            "users": {
                "total": sum(role_counts.values()),
                "authors": role_counts.get(ROLE_AUTHOR, 0),
                "admins": role_counts.get(ROLE_ADMIN, 0),
            },
            "articles": {
                "total": sum(status_counts.values()),
                "published": status_counts.get(STATUS_PUBLISHED, 0),
                "drafts": status_counts.get(STATUS_DRAFT, 0),
            },
            "recentArticles": _recent_articles(db),
        }
    else:
        counts = _article_counts(db, auth.user_id)
        total_views = (
            db.query(func.coalesce(func.sum(Article.views), 0))
            .filter(Article.author_id == auth.user_id)
            .scalar()
        )
        stats = {
            "articles": {
                "total": counts["totalArticles"],
                "published": counts["publishedArticles"],
                "drafts": counts["draftArticles"],
            },
            "totalViews": int(total_views or 0),
            "recentArticles": _recent_articles(db, auth.user_id),
        }

    return {"stats": stats}


@app.get("/api/users/username/{username}")
def get_user_by_username(username: str, db: Session = Depends(get_db)):
    """Public profile; no email or account flags."""
    user = db.query(User).filter(User.username == username).one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    published = (
        db.query(func.count(Article.id))
        .filter(Article.author_id == user.id, Article.status == STATUS_PUBLISHED)
        .scalar()
    )
    profile = _author_out(user).model_dump(by_alias=True)
    profile.update({
        "role": user.role,
        "createdAt": user.created_at,
        "stats": {"totalArticles": published},
    })
    return profile


@app.get("/api/users")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    role: Optional[Literal["user", "author", "admin"]] = None,
    search: Optional[str] = None,
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    q = db.query(User)
    if role:
        q = q.filter(User.role == role)
    if search:
        q = q.filter(
            or_(
                User.username.icontains(search, autoescape=True),
                User.email.icontains(search, autoescape=True),
                User.first_name.icontains(search, autoescape=True),
                User.last_name.icontains(search, autoescape=True),
            )
        )

    total = q.count()
    column = USER_SORT_FIELDS.get(sort_by, User.created_at)
    order = column.asc() if sort_order == "asc" else column.desc()
    users = q.order_by(order, User.id.desc()).offset((page - 1) * limit).limit(limit).all()

    results = []
    for user in users:
        item = _user_out(user).model_dump(by_alias=True)
        counts = _article_counts(db, user.id)
        item["stats"] = {
            "totalArticles": counts["totalArticles"],
            "publishedArticles": counts["publishedArticles"],
        }
        results.append(item)

    return {"users": results, "pagination": pagination_info(total, page, limit, "totalUsers")}


@app.get("/api/users/{user_id}")
def get_user(
    user_id: int,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    if auth.user_id != user_id and not auth.is_admin:
        raise HTTPException(status_code=403, detail="Access denied. You can only view your own profile.")

    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    item = _user_out(user).model_dump(by_alias=True)
    item["stats"] = _article_counts(db, user.id)
    item["recentArticles"] = _recent_articles(db, user.id, limit=5)
    return {"user": item}


@app.put("/api/users/{user_id}")
def update_user(
    user_id: int,
    payload: UserUpdateRequest,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if auth.user_id == user_id and payload.is_active is False:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")

    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(user, field, value)

    db.commit()
    db.refresh(user)
    logger.info("User %s updated by admin %s (role=%s, active=%s)", user.id, auth.user_id, user.role, user.is_active)
    return {"message": "User updated successfully", "user": _user_out(user)}


@app.delete("/api/users/{user_id}")
def delete_user(
    user_id: int,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if auth.user_id == user_id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")

    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    article_count = (
        db.query(func.count(Article.id)).filter(Article.author_id == user_id).scalar()
    )
    if article_count > 0:
        raise HTTPException(
            status_code=400,
            detail={
                "message": (
                    f"Cannot delete user. They have {article_count} articles. "
                    "Please transfer or delete their articles first."
                ),
                "articleCount": article_count,
            },
        )

    # Comments and likes by this user go with the account
    db.delete(user)
    db.commit()
    logger.info("User %s deleted by admin %s", user_id, auth.user_id)
    return {"message": "User deleted successfully"}


# ----- Image upload endpoints -----

def _check_image_file(image: UploadFile) -> None:
    if not image_host.is_allowed_image(image.filename, image.content_type):
        raise HTTPException(status_code=400, detail="Only image files are allowed (jpeg, jpg, png, gif, webp)")

    image.file.seek(0, os.SEEK_END)
    size = image.file.tell()
    image.file.seek(0)
    if size > image_host.MAX_IMAGE_BYTES:
        raise HTTPException(status_code=400, detail="Image exceeds the 10MB size limit")


@app.post("/api/upload/image")
def upload_image(
    image: UploadFile = File(...),
    auth: AuthContext = Depends(require_author),
):
    _check_image_file(image)
    try:
        result = image_host.upload_image(image.file)
    except Exception as e:
        logger.error("Cloudinary upload error: %s", e)
        raise HTTPException(status_code=500, detail=_error_detail(e, "Upload failed"))

    return {"message": "Image uploaded successfully", **result}


@app.post("/api/upload/images")
def upload_images(
    images: List[UploadFile] = File(...),
    auth: AuthContext = Depends(require_author),
):
    if len(images) > 10:
        raise HTTPException(status_code=400, detail="At most 10 images can be uploaded at once")
    for image in images:
        _check_image_file(image)

    uploaded = []
    for image in images:
        try:
            result = image_host.upload_image(image.file)
        except Exception as e:
            logger.error("Error uploading file %s: %s", image.filename, e)
            continue
        uploaded.append({**result, "originalName": image.filename})

    if not uploaded:
        raise HTTPException(status_code=500, detail="Failed to upload any images")

    return {
        "message": f"Successfully uploaded {len(uploaded)} out of {len(images)} images",
        "images": uploaded,
    }


@app.post("/api/upload/from-url")
def upload_from_url(
    payload: UploadFromUrlRequest,
    auth: AuthContext = Depends(require_author),
):
    if not IMAGE_URL_REGEX.match(payload.image_url):
        raise HTTPException(
            status_code=400,
            detail="Invalid image URL. Must be a direct link to an image file.",
        )
    try:
        result = image_host.upload_image(payload.image_url, folder=payload.folder)
    except Exception as e:
        logger.error("Cloudinary URL upload error: %s", e)
        raise HTTPException(status_code=500, detail=_error_detail(e, "Upload failed"))

    return {"message": "Image uploaded successfully from URL", **result, "originalUrl": payload.image_url}


@app.delete("/api/upload/image/{public_id:path}")
def delete_uploaded_image(
    public_id: str,
    auth: AuthContext = Depends(require_author),
):
    try:
        result = image_host.destroy_image(public_id)
    except Exception as e:
        logger.error("Cloudinary delete error: %s", e)
        raise HTTPException(status_code=500, detail=_error_detail(e, "Delete failed"))

    if result == "ok":
        return {"message": "Image deleted successfully", "publicId": public_id}
    if result == "not found":
        raise HTTPException(status_code=404, detail="Image not found")
    raise HTTPException(status_code=400, detail=f"Failed to delete image ({result})")


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
