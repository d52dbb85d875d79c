"""
wp-orm

SQLAlchemy models for WordPress databases: posts resolved to their own
classes by post type, with metadata, terms, comments and authors attached.
"""

import importlib.metadata

__version__ = importlib.metadata.version("wp-orm")

from .db import (
    Attachment,
    Comment,
    FieldLookup,
    Page,
    Post,
    PostMeta,
    PostResolver,
    PostService,
    PostTypeRegistry,
    Taxonomy,
    Term,
    User,
)
from .exceptions import PostTypeError, ShortcodeError, WPORMError
from .shortcodes import Shortcode, ShortcodeRegistry

__all__ = [
    "Attachment",
    "Comment",
    "FieldLookup",
    "Page",
    "Post",
    "PostMeta",
    "PostResolver",
    "PostService",
    "PostTypeError",
    "PostTypeRegistry",
    "Shortcode",
    "ShortcodeError",
    "ShortcodeRegistry",
    "Taxonomy",
    "Term",
    "User",
    "WPORMError",
]
