# newsdesk/services/access.py

"""
Who may see and change articles.

Every check takes an explicit AuthContext built once per request by the
authentication dependencies in main.py.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from newsdesk.models.article_models import Article, STATUS_PUBLISHED
from newsdesk.models.user_models import User, ROLE_ADMIN, ROLE_AUTHOR


@dataclass(frozen=True)
class AuthContext:
    """The requester: an active user, or nobody."""

    user: Optional[User] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def user_id(self) -> Optional[int]:
        return self.user.id if self.user is not None else None

    @property
    def role(self) -> Optional[str]:
        return self.user.role if self.user is not None else None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_author_or_admin(self) -> bool:
        return self.role in (ROLE_AUTHOR, ROLE_ADMIN)

    def owns(self, article: Article) -> bool:
        return self.user is not None and article.author_id == self.user.id


ANONYMOUS = AuthContext()


class Visibility(str, Enum):
    VISIBLE = "visible"
    AUTH_REQUIRED = "auth_required"
    FORBIDDEN = "forbidden"


def article_visibility(auth: AuthContext, article: Article) -> Visibility:
    """
    Published articles are public. Drafts and archived articles need a
    logged-in requester who is either the owner or an admin.
    """
    if article.status == STATUS_PUBLISHED:
        return Visibility.VISIBLE
    if not auth.is_authenticated:
        return Visibility.AUTH_REQUIRED
    if auth.is_admin or auth.owns(article):
        return Visibility.VISIBLE
    return Visibility.FORBIDDEN


def counts_as_view(auth: AuthContext, article: Article) -> bool:
    # Only published articles count, and owners re-reading their own don't
    return article.status == STATUS_PUBLISHED and not auth.owns(article)


def can_modify_article(auth: AuthContext, article: Article) -> bool:
    return auth.is_admin or auth.owns(article)


def can_interact(article: Article) -> bool:
    """Comments and likes are only accepted on published articles."""
    return article.status == STATUS_PUBLISHED


def resolve_list_status(
    auth: AuthContext,
    author: Optional[str],
    status: Optional[str],
) -> Optional[str]:
    """
    Status filter for the article listing. None means "any status".

    - anonymous requesters, and plain users not asking for their own
      articles, only ever see published articles
    - a requester filtering by their own id sees everything they wrote
    - authors/admins get the status they asked for, published by default
    """
    requesting_own = (
        auth.is_authenticated
        and author is not None
        and author == str(auth.user_id)
    )

    if not auth.is_authenticated or (not requesting_own and not auth.is_author_or_admin):
        return STATUS_PUBLISHED
    if requesting_own:
        return None
    return status or STATUS_PUBLISHED
