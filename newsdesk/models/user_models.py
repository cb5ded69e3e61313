# newsdesk/models/user_models.py

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text
from sqlalchemy.orm import relationship
from datetime import datetime

from newsdesk.db.engine import Base

ROLE_USER = "user"
ROLE_AUTHOR = "author"
ROLE_ADMIN = "admin"
USER_ROLES = (ROLE_USER, ROLE_AUTHOR, ROLE_ADMIN)


class User(Base):
    """
    A reader, author or admin account.

    Role is a flat tag checked per operation, not an inheritance hierarchy.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(30), unique=True, index=True, nullable=False)
    # Always stored lowercase so lookups are case-insensitive
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)

    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    bio = Column(Text, nullable=True)
    avatar = Column(String, nullable=True)

    role = Column(String, nullable=False, default=ROLE_AUTHOR)
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    articles = relationship("Article", back_populates="author")

    # Removed together with the user account
    comments = relationship(
        "ArticleComment",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    liked_articles = relationship(
        "Article",
        secondary="article_likes",
        back_populates="likes",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
