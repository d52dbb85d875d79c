"""
SQLAlchemy models for the WordPress posts table.

``Post`` is the generic model. Concrete post types (``Page``, ``Attachment``
or project-specific ones) subclass it on the same table and declare the
``post_type`` value they stand for in ``__post_type__``. Which class a row
becomes is decided by ``PostResolver`` (see ``registry``), not by SQLAlchemy
polymorphic loading.
"""

import inspect
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    event,
    select,
)
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import object_session, relationship, synonym, with_parent

from ..shortcodes import ShortcodeHandler, ShortcodeRegistry
from .base import Base, table_name
from .models import (
    BigIntId,
    FieldLookup,
    MetaCollection,
    NOT_FOUND,
    PostMeta,
    Taxonomy,
    term_relationships,
)

UNCATEGORIZED = "Uncategorized"
THUMBNAIL_META_KEY = "_thumbnail_id"
POST_FORMAT_PREFIX = "post-format-"


def _isoformat(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _taxonomy_order() -> List[Any]:
    return [term_relationships.c.term_order, Taxonomy.term_taxonomy_id]


def _shortcodes_version(post: Any) -> Tuple[int, int]:
    return id(post.shortcodes), post.shortcodes.version


class derived:
    """Read-only attribute computed on first access and cached per instance.

    Values live in the instance's ``_derived_cache`` map until
    ``clear_derived`` drops them (on refresh, expiry, or a change to an
    attribute they are computed from). When ``stamp`` is given, a cached
    value is also recomputed once ``stamp(instance)`` returns something
    different from what it returned when the value was computed.
    """

    def __init__(
        self,
        func: Optional[Callable[[Any], Any]] = None,
        *,
        stamp: Optional[Callable[[Any], Any]] = None,
    ):
        self.func = func
        self.stamp = stamp
        self.name = func.__name__ if func is not None else None
        self.__doc__ = func.__doc__ if func is not None else None

    def __call__(self, func: Callable[[Any], Any]) -> "derived":
        # @derived(stamp=...) form
        return type(self)(func, stamp=self.stamp)

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: Any, owner: type) -> Any:
        if instance is None:
            return self
        cache = instance.__dict__.setdefault("_derived_cache", {})
        stamp = self.stamp(instance) if self.stamp is not None else None
        entry = cache.get(self.name)
        if entry is None or entry[0] != stamp:
            entry = cache[self.name] = (stamp, self.func(instance))
        return entry[1]

    def __set__(self, instance: Any, value: Any) -> None:
        raise AttributeError(f"{self.name!r} is read-only")


class ThumbnailMeta:
    """The ``_thumbnail_id`` metadata row of a post.

    Its value is the ID of the attachment post holding the featured image.
    """

    meta_key = THUMBNAIL_META_KEY

    def __init__(self, meta: PostMeta, post: "Post"):
        self.meta = meta
        self.post = post

    @property
    def attachment_id(self) -> Optional[int]:
        try:
            return int(self.meta.meta_value)
        except (TypeError, ValueError):
            return None

    @property
    def attachment(self) -> Optional["Post"]:
        attachment_id = self.attachment_id
        session = object_session(self.post)
        if attachment_id is None or session is None:
            return None
        return session.get(Post, attachment_id)

    @property
    def url(self) -> Optional[str]:
        attachment = self.attachment
        return attachment.guid if attachment is not None else None

    def __repr__(self) -> str:
        return f"<ThumbnailMeta post_id={self.meta.post_id} attachment_id={self.attachment_id}>"


class Post(Base):
    """SQLAlchemy model for WordPress posts of any type."""

    __tablename__ = table_name("posts")

    # post_type value a subclass stands for; None on the generic model
    __post_type__ = None

    # Public name -> column
    aliases = {
        "title": "post_title",
        "content": "post_content",
        "excerpt": "post_excerpt",
        "slug": "post_name",
        "type": "post_type",
        "mime_type": "post_mime_type",
        "url": "guid",
        "author_id": "post_author",
        "parent_id": "post_parent",
        "created_at": "post_date",
        "updated_at": "post_modified",
        "status": "post_status",
    }

    # Computed fields added to to_dict() next to the columns
    appends = (
        "title",
        "slug",
        "content",
        "type",
        "mime_type",
        "url",
        "author_id",
        "parent_id",
        "created_at",
        "updated_at",
        "excerpt",
        "status",
        "image",
        "terms",
        "main_category",
        "keywords",
        "keywords_str",
    )

    # Shared by every post model unless a subclass assigns its own
    shortcodes = ShortcodeRegistry()

    # Object identity
    ID = Column(BigIntId, primary_key=True)

    # Authorship and hierarchy
    post_author = Column(BigInteger, nullable=False, default=0, index=True)
    post_parent = Column(BigInteger, nullable=False, default=0, index=True)

    # Content
    post_title = Column(Text, nullable=False, default="")
    post_content = Column(Text, nullable=False, default="")
    post_excerpt = Column(Text, nullable=False, default="")
    post_content_filtered = Column(Text, nullable=False, default="")
    post_name = Column(String(200), nullable=False, default="", index=True)
    guid = Column(String(255), nullable=False, default="")

    # Type and state
    post_type = Column(String(20), nullable=False, default="post")
    post_mime_type = Column(String(100), nullable=False, default="")
    post_status = Column(String(20), nullable=False, default="publish")
    post_password = Column(String(255), nullable=False, default="")
    comment_status = Column(String(20), nullable=False, default="open")
    ping_status = Column(String(20), nullable=False, default="open")
    to_ping = Column(Text, nullable=False, default="")
    pinged = Column(Text, nullable=False, default="")
    menu_order = Column(Integer, nullable=False, default=0)
    comment_count = Column(BigInteger, nullable=False, default=0)

    # Timestamps (site time and GMT)
    post_date = Column(DateTime, nullable=True)
    post_date_gmt = Column(DateTime, nullable=True)
    post_modified = Column(DateTime, nullable=True)
    post_modified_gmt = Column(DateTime, nullable=True)

    # Aliases
    title = synonym("post_title")
    slug = synonym("post_name")
    type = synonym("post_type")
    mime_type = synonym("post_mime_type")
    url = synonym("guid")
    author_id = synonym("post_author")
    parent_id = synonym("post_parent")
    created_at = synonym("post_date")
    updated_at = synonym("post_modified")
    status = synonym("post_status")

    # Relationships
    meta = relationship(
        "PostMeta",
        back_populates="post",
        collection_class=MetaCollection,
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    taxonomies = relationship(
        "Taxonomy",
        secondary=term_relationships,
        back_populates="posts",
        order_by=_taxonomy_order,
    )
    comments = relationship(
        "Comment",
        back_populates="post",
        order_by="Comment.comment_date",
    )
    author = relationship(
        "User",
        primaryjoin="foreign(Post.post_author) == User.ID",
        viewonly=True,
    )
    parent = relationship(
        "Post",
        primaryjoin="foreign(Post.post_parent) == remote(Post.ID)",
        viewonly=True,
    )
    attachments = relationship(
        "Post",
        primaryjoin=(
            "and_(Post.ID == remote(foreign(Post.post_parent)), "
            "remote(Post.post_type) == 'attachment')"
        ),
        viewonly=True,
    )
    revisions = relationship(
        "Post",
        primaryjoin=(
            "and_(Post.ID == remote(foreign(Post.post_parent)), "
            "remote(Post.post_type) == 'revision')"
        ),
        viewonly=True,
    )

    __table_args__ = (
        Index("type_status_date", "post_type", "post_status", "post_date", "ID"),
    )

    def __init__(self, **kwargs: Any):
        if self.__post_type__ and "post_type" not in kwargs and "type" not in kwargs:
            kwargs["post_type"] = self.__post_type__
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} ID={self.ID} type={self.post_type!r} slug={self.post_name!r}>"

    # -------------------------------------------------------------------------
    # Shortcodes
    # -------------------------------------------------------------------------

    @classmethod
    def add_shortcode(cls, name: str, handler: ShortcodeHandler) -> None:
        cls.shortcodes.register(name, handler)

    @classmethod
    def remove_shortcode(cls, name: str) -> None:
        cls.shortcodes.remove(name)

    def strip_shortcodes(self, text: Optional[str]) -> Optional[str]:
        return self.shortcodes.process(text)

    # -------------------------------------------------------------------------
    # Derived fields
    # -------------------------------------------------------------------------

    def clear_derived(self, *names: str) -> None:
        """Forget cached derived values, all of them when no name is given."""
        cache = self.__dict__.get("_derived_cache")
        if not cache:
            return
        if not names:
            cache.clear()
            return
        for name in names:
            cache.pop(name, None)

    @derived(stamp=_shortcodes_version)
    def content(self) -> Optional[str]:
        return self.strip_shortcodes(self.post_content)

    @derived(stamp=_shortcodes_version)
    def excerpt(self) -> Optional[str]:
        return self.strip_shortcodes(self.post_excerpt)

    @property
    def thumbnail(self) -> Optional[ThumbnailMeta]:
        meta = self.meta.find(THUMBNAIL_META_KEY)
        if meta is None:
            return None
        return ThumbnailMeta(meta, self)

    @derived
    def image(self) -> Optional[str]:
        """Featured image URL, from the attachment named by ``_thumbnail_id``."""
        thumbnail = self.thumbnail
        if thumbnail is not None:
            attachment = thumbnail.attachment
            if attachment is not None:
                return attachment.guid
        return None

    @derived
    def terms(self) -> Dict[str, Dict[str, str]]:
        """Term names keyed by taxonomy, then by term slug.

        ``post_tag`` is exposed as ``tag``.
        """
        terms: Dict[str, Dict[str, str]] = {}
        for taxonomy in self.taxonomies:
            if taxonomy.term is None:
                continue
            name = "tag" if taxonomy.taxonomy == "post_tag" else taxonomy.taxonomy
            terms.setdefault(name, {})[taxonomy.term.slug] = taxonomy.term.name
        return terms

    @derived
    def main_category(self) -> str:
        """First term of the first taxonomy found."""
        if self.terms:
            first = next(iter(self.terms.values()))
            if first:
                return next(iter(first.values()))
        return UNCATEGORIZED

    @derived
    def keywords(self) -> List[str]:
        return [name for group in self.terms.values() for name in group.values()]

    @derived
    def keywords_str(self) -> str:
        return ",".join(self.keywords)

    def has_term(self, taxonomy: str, term: str) -> bool:
        """Whether the post carries ``term`` (a slug) in ``taxonomy``."""
        return term in self.terms.get(taxonomy, {})

    def get_format(self) -> Union[str, bool]:
        """Post format slug without the ``post-format-`` prefix, or False."""
        taxonomy = self._first_taxonomy("post_format")
        if taxonomy is not None and taxonomy.term is not None:
            return taxonomy.term.slug.replace(POST_FORMAT_PREFIX, "")
        return False

    def _first_taxonomy(self, name: str) -> Optional[Taxonomy]:
        session = object_session(self)
        if session is not None and sa_inspect(self).has_identity:
            stmt = (
                select(Taxonomy)
                .where(with_parent(self, Post.taxonomies))
                .where(Taxonomy.taxonomy == name)
                .order_by(*_taxonomy_order())
                .limit(1)
            )
            return session.scalars(stmt).first()
        for taxonomy in self.taxonomies:
            if taxonomy.taxonomy == name:
                return taxonomy
        return None

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------

    def get_meta(self, key: str, default: Any = None) -> Any:
        return self.meta.get(key, default)

    def save_meta(self, key: str, value: Any) -> PostMeta:
        """Set ``key`` on the first matching metadata row, or add a row.

        The change is pending until the caller's session commits.
        """
        meta = self.meta.find(key)
        if meta is None:
            meta = PostMeta(meta_key=key, meta_value=value)
            self.meta.append(meta)
        else:
            meta.meta_value = value
        if key == THUMBNAIL_META_KEY:
            self.clear_derived("image")
        return meta

    @classmethod
    def _is_declared(cls, name: str) -> bool:
        if name.startswith("_"):
            return False
        attr = inspect.getattr_static(cls, name, None)
        if attr is None:
            return False
        return not (
            inspect.isfunction(attr) or isinstance(attr, (classmethod, staticmethod))
        )

    def lookup_meta(self, name: str) -> FieldLookup:
        state = sa_inspect(self)
        if "meta" in state.unloaded and state.session is None and state.has_identity:
            # Detached without metadata loaded; nothing to look in
            return NOT_FOUND
        return self.meta.lookup(name)

    def lookup(self, name: str) -> FieldLookup:
        """Two-stage field lookup: declared attributes first, then metadata.

        Returns ``FieldLookup(found=False)`` when neither has ``name``.
        """
        if self._is_declared(name):
            return FieldLookup(found=True, value=getattr(self, name))
        if name.startswith("_"):
            return NOT_FOUND
        return self.lookup_meta(name)

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal attribute lookup fails
        if name.startswith("_") or "_sa_instance_state" not in self.__dict__:
            raise AttributeError(name)
        result = self.lookup_meta(name)
        if result.found:
            return result.value
        raise AttributeError(
            f"{type(self).__name__!r} object has no attribute or meta key {name!r}"
        )

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Flat projection: every column plus the appended computed fields."""
        result: Dict[str, Any] = {}
        for attr in sa_inspect(type(self)).column_attrs:
            result[attr.key] = _isoformat(getattr(self, attr.key))
        for name in self.appends:
            result[name] = _isoformat(getattr(self, name))
        return result


class Page(Post):
    """Pages (``post_type = 'page'``)."""

    __post_type__ = "page"

    @property
    def template(self) -> Optional[str]:
        return self.get_meta("_wp_page_template")


class Attachment(Post):
    """Media library items (``post_type = 'attachment'``)."""

    __post_type__ = "attachment"

    appends = Post.appends + ("caption", "description", "alt")

    @property
    def caption(self) -> Optional[str]:
        return self.post_excerpt

    @property
    def description(self) -> Optional[str]:
        return self.post_content

    @property
    def alt(self) -> Optional[str]:
        return self.get_meta("_wp_attachment_image_alt")


# =============================================================================
# Events
# =============================================================================

# Attribute -> derived fields computed from it
_DERIVED_SOURCES = {
    "post_content": ("content",),
    "post_excerpt": ("excerpt",),
    "taxonomies": ("terms", "main_category", "keywords", "keywords_str"),
    "meta": ("image",),
}


def _invalidator(names):
    def listener(target, *args):
        target.clear_derived(*names)

    return listener


for _attribute, _names in _DERIVED_SOURCES.items():
    _events = ("append", "remove") if _attribute in ("taxonomies", "meta") else ("set",)
    for _event in _events:
        event.listen(
            getattr(Post, _attribute), _event, _invalidator(_names), propagate=True
        )


@event.listens_for(Post, "refresh", propagate=True)
def _clear_derived_on_refresh(target, context, attrs):
    target.clear_derived()


@event.listens_for(Post, "expire", propagate=True)
def _clear_derived_on_expire(target, attrs):
    target.clear_derived()


@event.listens_for(Post, "before_insert", propagate=True)
def _stamp_created(mapper, connection, target):
    now = _utcnow()
    if target.post_date is None:
        target.post_date = now
    if target.post_date_gmt is None:
        target.post_date_gmt = target.post_date
    if target.post_modified is None:
        target.post_modified = target.post_date
    if target.post_modified_gmt is None:
        target.post_modified_gmt = target.post_modified


@event.listens_for(Post, "before_update", propagate=True)
def _stamp_modified(mapper, connection, target):
    now = _utcnow()
    target.post_modified = now
    target.post_modified_gmt = now
