# newsdesk/models/article_models.py

from datetime import datetime
from typing import Iterable, List

from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from newsdesk.db.engine import Base

STATUS_DRAFT = "draft"
STATUS_PUBLISHED = "published"
STATUS_ARCHIVED = "archived"
ARTICLE_STATUSES = (STATUS_DRAFT, STATUS_PUBLISHED, STATUS_ARCHIVED)

# Fixed set of categories; slug -> (display name, description)
ARTICLE_CATEGORIES = {
    "politics": ("Politics", "Political news and analysis"),
    "business": ("Business", "Business and financial news"),
    "technology": ("Technology", "Latest tech news and innovations"),
    "sports": ("Sports", "Sports news and updates"),
    "entertainment": ("Entertainment", "Entertainment and celebrity news"),
    "health": ("Health", "Health and wellness news"),
    "science": ("Science", "Scientific discoveries and research"),
    "world": ("World", "International news and events"),
    "local": ("Local", "News from around the community"),
    "opinion": ("Opinion", "Columns, editorials and commentary"),
}


article_likes = Table(
    "article_likes",
    Base.metadata,
    Column("article_id", Integer, ForeignKey("articles.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Article(Base):
    """
    A news article.

    Lifecycle:
      - created as draft or published by an author/admin
      - edited by its owner or any admin
      - published_at is stamped the first time the article is published
    """
    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, index=True)

    # Public slug, e.g. "hello-world-1718000000000"
    slug = Column(String, unique=True, index=True, nullable=False)

    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    excerpt = Column(String(300), nullable=True)
    featured_image = Column(String, nullable=False)
    category = Column(String, nullable=False, index=True)

    # Owner; never reassigned
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    status = Column(String, nullable=False, default=STATUS_DRAFT, index=True)
    published_at = Column(DateTime, nullable=True, index=True)

    views = Column(Integer, nullable=False, default=0)
    read_time = Column(Integer, nullable=False, default=1)  # minutes
    featured = Column(Boolean, default=False)

    seo_title = Column(String(60), nullable=True)
    seo_description = Column(String(160), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    author = relationship("User", back_populates="articles")
    tags = relationship(
        "ArticleTag",
        back_populates="article",
        cascade="all, delete-orphan",
        order_by="ArticleTag.id",
    )
    comments = relationship(
        "ArticleComment",
        back_populates="article",
        cascade="all, delete-orphan",
        order_by="ArticleComment.created_at",
    )
    likes = relationship(
        "User",
        secondary=article_likes,
        back_populates="liked_articles",
    )

    @property
    def tag_names(self) -> List[str]:
        return [t.name for t in self.tags]

    def set_tags(self, names: Iterable[str]) -> None:
        """Replace the tag rows with `names` (already normalised)."""
        self.tags = [ArticleTag(name=name) for name in names]


class ArticleTag(Base):
    __tablename__ = "article_tags"

    id = Column(Integer, primary_key=True, index=True)
    article_id = Column(
        Integer,
        ForeignKey("articles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String, nullable=False, index=True)

    article = relationship("Article", back_populates="tags")

    __table_args__ = (
        UniqueConstraint("article_id", "name", name="uq_article_tag"),
    )


class ArticleComment(Base):
    __tablename__ = "article_comments"

    id = Column(Integer, primary_key=True, index=True)
    article_id = Column(
        Integer,
        ForeignKey("articles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    comment = Column(String(1000), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    article = relationship("Article", back_populates="comments")
    user = relationship("User", back_populates="comments")
