"""
SQLAlchemy models for the WordPress tables surrounding posts.

Mirrors the stock WordPress schema: metadata, terms and their taxonomies,
the term relationship join table, comments and users. The posts table itself
lives in ``post_models``.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import relationship

from .base import Base, table_name

# SQLite only auto-increments INTEGER PRIMARY KEY columns
BigIntId = BigInteger().with_variant(Integer, "sqlite")


# =============================================================================
# Join Tables
# =============================================================================

# Post <-> Taxonomy
term_relationships = Table(
    table_name("term_relationships"),
    Base.metadata,
    Column(
        "object_id",
        BigIntId,
        ForeignKey(f"{table_name('posts')}.ID"),
        primary_key=True,
    ),
    Column(
        "term_taxonomy_id",
        BigIntId,
        ForeignKey(f"{table_name('term_taxonomy')}.term_taxonomy_id"),
        primary_key=True,
    ),
    Column("term_order", Integer, nullable=False, default=0),
)


# =============================================================================
# Metadata
# =============================================================================


@dataclass(frozen=True)
class FieldLookup:
    """Outcome of a field lookup that may legitimately miss.

    ``found`` tells a missing key apart from a key stored with an empty or
    null value.
    """

    found: bool
    value: Any = None

    def __bool__(self) -> bool:
        return self.found

    def or_default(self, default: Any = None) -> Any:
        return self.value if self.found else default


NOT_FOUND = FieldLookup(found=False)


class PostMeta(Base):
    """SQLAlchemy model for post metadata rows."""

    __tablename__ = table_name("postmeta")

    meta_id = Column(BigIntId, primary_key=True)
    post_id = Column(
        BigIntId,
        ForeignKey(f"{table_name('posts')}.ID"),
        nullable=False,
        default=0,
        index=True,
    )
    meta_key = Column(String(255), nullable=True, index=True)
    meta_value = Column(Text, nullable=True)

    post = relationship("Post", back_populates="meta")

    def __repr__(self) -> str:
        return f"<PostMeta post_id={self.post_id} {self.meta_key}={self.meta_value!r}>"

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "meta_id": self.meta_id,
            "post_id": self.post_id,
            "meta_key": self.meta_key,
            "meta_value": self.meta_value,
        }


class MetaCollection(list):
    """List of ``PostMeta`` rows with key-based access.

    Several rows may share a key; keyed reads return the first one in load
    order, ``get_all`` returns every value.
    """

    def lookup(self, key: str) -> FieldLookup:
        for meta in self:
            if meta.meta_key == key:
                return FieldLookup(found=True, value=meta.meta_value)
        return NOT_FOUND

    def get(self, key: str, default: Any = None) -> Any:
        return self.lookup(key).or_default(default)

    def get_all(self, key: str) -> List[Any]:
        return [meta.meta_value for meta in self if meta.meta_key == key]

    def find(self, key: str) -> Optional[PostMeta]:
        """Return the first row stored under ``key``."""
        for meta in self:
            if meta.meta_key == key:
                return meta
        return None

    def keys(self) -> List[str]:
        seen: Dict[str, None] = {}
        for meta in self:
            seen.setdefault(meta.meta_key, None)
        return list(seen)

    def as_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for meta in self:
            result.setdefault(meta.meta_key, meta.meta_value)
        return result

    def __contains__(self, item: object) -> bool:
        if isinstance(item, str):
            return self.lookup(item).found
        return super().__contains__(item)


# =============================================================================
# Terms and Taxonomies
# =============================================================================


class Term(Base):
    """SQLAlchemy model for terms (the label shared by every taxonomy use)."""

    __tablename__ = table_name("terms")

    term_id = Column(BigIntId, primary_key=True)
    name = Column(String(200), nullable=False, default="")
    slug = Column(String(200), nullable=False, default="", index=True)
    term_group = Column(BigInteger, nullable=False, default=0)

    taxonomies = relationship("Taxonomy", back_populates="term")

    def __repr__(self) -> str:
        return f"<Term {self.slug!r}>"

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "term_id": self.term_id,
            "name": self.name,
            "slug": self.slug,
            "term_group": self.term_group,
        }


class Taxonomy(Base):
    """SQLAlchemy model for term taxonomies.

    A row places a term inside one taxonomy (``category``, ``post_tag``,
    ``post_format`` or a custom one); posts link to these rows.
    """

    __tablename__ = table_name("term_taxonomy")

    term_taxonomy_id = Column(BigIntId, primary_key=True)
    term_id = Column(
        BigIntId,
        ForeignKey(f"{table_name('terms')}.term_id"),
        nullable=False,
        default=0,
    )
    taxonomy = Column(String(32), nullable=False, default="", index=True)
    description = Column(Text, nullable=False, default="")
    parent = Column(BigInteger, nullable=False, default=0)
    count = Column(BigInteger, nullable=False, default=0)

    term = relationship("Term", back_populates="taxonomies", lazy="joined")
    posts = relationship(
        "Post",
        secondary=term_relationships,
        back_populates="taxonomies",
    )

    __table_args__ = (Index("term_id_taxonomy", "term_id", "taxonomy", unique=True),)

    def __repr__(self) -> str:
        slug = self.term.slug if self.term is not None else None
        return f"<Taxonomy {self.taxonomy}:{slug}>"


# =============================================================================
# Comments and Users
# =============================================================================


class Comment(Base):
    """SQLAlchemy model for comments."""

    __tablename__ = table_name("comments")

    comment_ID = Column(BigIntId, primary_key=True)
    comment_post_ID = Column(
        BigIntId,
        ForeignKey(f"{table_name('posts')}.ID"),
        nullable=False,
        default=0,
        index=True,
    )
    comment_author = Column(Text, nullable=False, default="")
    comment_author_email = Column(String(100), nullable=False, default="")
    comment_author_url = Column(String(200), nullable=False, default="")
    comment_author_IP = Column(String(100), nullable=False, default="")
    comment_date = Column(DateTime, nullable=True)
    comment_date_gmt = Column(DateTime, nullable=True)
    comment_content = Column(Text, nullable=False, default="")
    comment_karma = Column(Integer, nullable=False, default=0)
    comment_approved = Column(String(20), nullable=False, default="1", index=True)
    comment_agent = Column(String(255), nullable=False, default="")
    comment_type = Column(String(20), nullable=False, default="comment")
    comment_parent = Column(BigInteger, nullable=False, default=0, index=True)
    user_id = Column(BigInteger, nullable=False, default=0)

    post = relationship("Post", back_populates="comments")
    parent = relationship(
        "Comment",
        primaryjoin="foreign(Comment.comment_parent) == remote(Comment.comment_ID)",
        viewonly=True,
    )
    replies = relationship(
        "Comment",
        primaryjoin="Comment.comment_ID == remote(foreign(Comment.comment_parent))",
        order_by="Comment.comment_date",
        viewonly=True,
    )

    def is_approved(self) -> bool:
        return self.comment_approved == "1"

    def is_reply(self) -> bool:
        return bool(self.comment_parent)

    def has_replies(self) -> bool:
        return len(self.replies) > 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "comment_ID": self.comment_ID,
            "comment_post_ID": self.comment_post_ID,
            "comment_author": self.comment_author,
            "comment_author_email": self.comment_author_email,
            "comment_author_url": self.comment_author_url,
            "comment_date": self.comment_date.isoformat() if self.comment_date else None,
            "comment_content": self.comment_content,
            "comment_approved": self.comment_approved,
            "comment_type": self.comment_type,
            "comment_parent": self.comment_parent,
            "user_id": self.user_id,
        }


class User(Base):
    """SQLAlchemy model for users (post authors)."""

    __tablename__ = table_name("users")

    ID = Column(BigIntId, primary_key=True)
    user_login = Column(String(60), nullable=False, default="", index=True)
    user_pass = Column(String(255), nullable=False, default="")
    user_nicename = Column(String(50), nullable=False, default="", index=True)
    user_email = Column(String(100), nullable=False, default="", index=True)
    user_url = Column(String(100), nullable=False, default="")
    user_registered = Column(DateTime, nullable=True)
    user_activation_key = Column(String(255), nullable=False, default="")
    user_status = Column(Integer, nullable=False, default=0)
    display_name = Column(String(250), nullable=False, default="")

    posts = relationship(
        "Post",
        primaryjoin="User.ID == foreign(Post.post_author)",
        viewonly=True,
    )

    def __repr__(self) -> str:
        return f"<User {self.user_login!r}>"

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary. The password hash is never included."""
        return {
            "ID": self.ID,
            "user_login": self.user_login,
            "user_nicename": self.user_nicename,
            "user_email": self.user_email,
            "user_url": self.user_url,
            "user_registered": (
                self.user_registered.isoformat() if self.user_registered else None
            ),
            "user_status": self.user_status,
            "display_name": self.display_name,
        }
