# newsdesk/services/article_query.py

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import false, or_
from sqlalchemy.orm import Query

from newsdesk.models.article_models import Article, ArticleTag
from newsdesk.services.access import AuthContext, resolve_list_status

# Public sort keys -> columns
SORTABLE_FIELDS = {
    "publishedAt": Article.published_at,
    "createdAt": Article.created_at,
    "updatedAt": Article.updated_at,
    "views": Article.views,
    "title": Article.title,
    "readTime": Article.read_time,
}
DEFAULT_SORT_FIELD = "publishedAt"


@dataclass
class ArticleListParams:
    page: int = 1
    limit: int = 10
    category: Optional[str] = None
    author: Optional[str] = None
    status: Optional[str] = None
    search: Optional[str] = None
    tags: Optional[str] = None
    featured: Optional[bool] = None
    sort_by: str = DEFAULT_SORT_FIELD
    sort_order: str = "desc"


@dataclass
class ArticleQuery:
    """Filter terms, sort and window for one page of articles."""

    conditions: List[Any] = field(default_factory=list)
    order_by: Any = None
    skip: int = 0
    limit: int = 10
    status: Optional[str] = None

    def apply(self, query: Query) -> Query:
        """Filter only; use for counting."""
        if self.conditions:
            query = query.filter(*self.conditions)
        return query

    def page(self, query: Query) -> Query:
        return self.apply(query).order_by(self.order_by, Article.id.desc()).offset(self.skip).limit(self.limit)


def split_tags(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [t.strip().lower() for t in raw.split(",") if t.strip()]


def build_article_query(params: ArticleListParams, auth: AuthContext) -> ArticleQuery:
    """
    Translate listing parameters into an ArticleQuery.
    The status term is decided by resolve_list_status, never taken raw.
    """
    conditions: List[Any] = []

    status = resolve_list_status(auth, params.author, params.status)
    if status is not None:
        conditions.append(Article.status == status)

    if params.category:
        conditions.append(Article.category == params.category.lower())

    if params.author:
        try:
            conditions.append(Article.author_id == int(params.author))
        except ValueError:
            # Unknown author id format matches nothing
            conditions.append(false())

    if params.featured is not None:
        conditions.append(Article.featured == params.featured)

    tag_list = split_tags(params.tags)
    if tag_list:
        conditions.append(Article.tags.any(ArticleTag.name.in_(tag_list)))

    if params.search:
        term = params.search
        conditions.append(
            or_(
                Article.title.icontains(term, autoescape=True),
                Article.content.icontains(term, autoescape=True),
                Article.tags.any(ArticleTag.name.icontains(term, autoescape=True)),
            )
        )

    column = SORTABLE_FIELDS.get(params.sort_by, SORTABLE_FIELDS[DEFAULT_SORT_FIELD])
    order_by = column.asc() if params.sort_order == "asc" else column.desc()

    return ArticleQuery(
        conditions=conditions,
        order_by=order_by,
        skip=(params.page - 1) * params.limit,
        limit=params.limit,
        status=status,
    )


def pagination_info(total: int, page: int, limit: int, total_key: str = "totalArticles") -> Dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "currentPage": page,
        "totalPages": total_pages,
        total_key: total,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
        "limit": limit,
    }
