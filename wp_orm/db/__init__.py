"""
Database package for wp-orm.
"""

from .base import Base, get_db, get_engine, get_session_local, init_database
from .models import (
    NOT_FOUND,
    Comment,
    FieldLookup,
    MetaCollection,
    PostMeta,
    Taxonomy,
    Term,
    User,
    term_relationships,
)
from .post_models import Attachment, Page, Post, ThumbnailMeta
from .registry import PostResolver, PostTypeRegistry
from .services import PostPage, PostQuery, PostService

__all__ = [
    "Base",
    "get_db",
    "get_engine",
    "get_session_local",
    "init_database",
    "NOT_FOUND",
    "Attachment",
    "Comment",
    "FieldLookup",
    "MetaCollection",
    "Page",
    "Post",
    "PostMeta",
    "PostPage",
    "PostQuery",
    "PostResolver",
    "PostService",
    "PostTypeRegistry",
    "Taxonomy",
    "Term",
    "ThumbnailMeta",
    "User",
    "term_relationships",
]
