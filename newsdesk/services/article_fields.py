# newsdesk/services/article_fields.py

import math
import re
import time
import uuid
from datetime import datetime
from typing import Iterable, List, Optional

from bs4 import BeautifulSoup
from sqlalchemy.orm import Session

from newsdesk.models.article_models import Article, STATUS_PUBLISHED

WORDS_PER_MINUTE = 200
EXCERPT_LENGTH = 200


def slugify_title(title: str) -> str:
    """
    "Hello, World!" -> "hello-world"
    """
    slug = re.sub(r"[^\w ]+", "", title.lower(), flags=re.ASCII)
    return re.sub(r" +", "-", slug)


def make_unique_slug(db: Session, title: str, now_ms: Optional[int] = None) -> str:
    """
    Slug for a NEW article: the title slug plus the creation timestamp.
    Example: "Hello World" -> "hello-world-1718000000000"

    Two articles created within the same millisecond get an extra short
    random suffix so the slug stays unique.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    base = slugify_title(title)
    slug = f"{base}-{now_ms}" if base else str(now_ms)

    while db.query(Article.id).filter(Article.slug == slug).first() is not None:
        slug = f"{base}-{now_ms}-{uuid.uuid4().hex[:6]}" if base else f"{now_ms}-{uuid.uuid4().hex[:6]}"
    return slug


def strip_html(content: str) -> str:
    if not content:
        return ""
    return BeautifulSoup(content, "lxml").get_text()


def generate_excerpt(content: str) -> str:
    return strip_html(content)[:EXCERPT_LENGTH] + "..."


def compute_read_time(content: str) -> int:
    """Minutes at 200 words per minute, never less than 1."""
    word_count = len((content or "").split())
    return max(1, math.ceil(word_count / WORDS_PER_MINUTE))


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """Trim, lowercase and de-duplicate tags, keeping first-seen order."""
    seen: List[str] = []
    for tag in tags or []:
        name = (tag or "").strip().lower()
        if name and name not in seen:
            seen.append(name)
    return seen


def apply_content_change(article: Article, content: str, excerpt: Optional[str]) -> None:
    """
    Set new content and keep read_time / excerpt in step with it.

    An excerpt that was auto-derived from the previous content is re-derived;
    one written by hand is left alone unless a new one is supplied.
    """
    previous = article.content
    was_auto = (
        previous is None
        or not article.excerpt
        or article.excerpt == generate_excerpt(previous)
    )

    article.content = content
    article.read_time = compute_read_time(content)

    if excerpt:
        article.excerpt = excerpt
    elif was_auto:
        article.excerpt = generate_excerpt(content)


def stamp_published_at(article: Article) -> None:
    """published_at is set the first time an article goes live, then never again."""
    if article.status == STATUS_PUBLISHED and article.published_at is None:
        article.published_at = datetime.utcnow()
