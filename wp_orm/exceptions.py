"""
Exceptions raised by wp-orm.

Errors coming from the database layer are not wrapped: anything SQLAlchemy
raises reaches the caller unchanged.
"""


class WPORMError(Exception):
    """Base class for wp-orm errors."""


class PostTypeError(WPORMError, TypeError):
    """A class registered for a post type is not a Post model."""


class ShortcodeError(WPORMError, ValueError):
    """A shortcode handler was registered under an unusable name."""
