"""
Database services for wp-orm.

Queries run against the posts table with SQLAlchemy Core; every row that
comes back is turned into a model by ``PostResolver`` so registered post
types come back as their own classes.
"""

from dataclasses import dataclass, field
from math import ceil
from typing import Dict, Iterable, List, Optional, Type, Union

import structlog
from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from .models import MetaCollection, PostMeta, Taxonomy, Term, term_relationships
from .post_models import Post
from .registry import PostResolver, PostTypeRegistry

logger = structlog.get_logger(__name__)


@dataclass
class PostPage:
    """One page of query results."""

    items: List[Post] = field(default_factory=list)
    total: int = 0
    per_page: int = 10
    page: int = 1

    @property
    def pages(self) -> int:
        return ceil(self.total / self.per_page) if self.per_page else 0

    @property
    def has_more(self) -> bool:
        return self.page < self.pages


class PostQuery:
    """Chainable post query.

    Each scope narrows the statement and returns the query itself; ``all``,
    ``first``, ``count`` and ``paginate`` execute it.
    """

    def __init__(self, db: Session, resolver: PostResolver, model: Type[Post] = Post):
        self.db = db
        self.resolver = resolver
        self.model = model
        self.table = Post.__table__
        self.stmt: Select = select(self.table)
        if model.__post_type__:
            self.stmt = self.stmt.where(self.table.c.post_type == model.__post_type__)

    def where(self, *criteria) -> "PostQuery":
        self.stmt = self.stmt.where(*criteria)
        return self

    def id(self, post_id: int) -> "PostQuery":
        return self.where(self.table.c.ID == post_id)

    def type(self, post_type: str) -> "PostQuery":
        return self.where(self.table.c.post_type == post_type)

    def type_in(self, *post_types: str) -> "PostQuery":
        return self.where(self.table.c.post_type.in_(post_types))

    def status(self, post_status: str) -> "PostQuery":
        return self.where(self.table.c.post_status == post_status)

    def published(self) -> "PostQuery":
        return self.status("publish")

    def slug(self, slug: str) -> "PostQuery":
        return self.where(self.table.c.post_name == slug)

    def parent(self, post_id: int) -> "PostQuery":
        return self.where(self.table.c.post_parent == post_id)

    def taxonomy(self, taxonomy: str, terms: Union[str, Iterable[str]]) -> "PostQuery":
        """Posts having any of ``terms`` (slugs) in ``taxonomy``."""
        slugs = [terms] if isinstance(terms, str) else list(terms)
        matching = (
            select(term_relationships.c.object_id)
            .join(
                Taxonomy,
                Taxonomy.term_taxonomy_id == term_relationships.c.term_taxonomy_id,
            )
            .join(Term, Term.term_id == Taxonomy.term_id)
            .where(Taxonomy.taxonomy == taxonomy, Term.slug.in_(slugs))
        )
        return self.where(self.table.c.ID.in_(matching))

    def has_meta(self, key: str, value: Optional[str] = None) -> "PostQuery":
        criteria = [PostMeta.meta_key == key]
        if value is not None:
            criteria.append(PostMeta.meta_value == value)
        matching = select(PostMeta.post_id).where(and_(*criteria))
        return self.where(self.table.c.ID.in_(matching))

    def search(self, term: Optional[str]) -> "PostQuery":
        """Posts whose title, excerpt or content contains any word of ``term``."""
        words = [word for word in (term or "").split() if word]
        if not words:
            return self
        columns = (
            self.table.c.post_title,
            self.table.c.post_excerpt,
            self.table.c.post_content,
        )
        return self.where(
            or_(*(column.like(f"%{word}%") for word in words for column in columns))
        )

    def newest(self) -> "PostQuery":
        self.stmt = self.stmt.order_by(self.table.c.post_date.desc(), self.table.c.ID.desc())
        return self

    def oldest(self) -> "PostQuery":
        self.stmt = self.stmt.order_by(self.table.c.post_date.asc(), self.table.c.ID.asc())
        return self

    def limit(self, limit: int) -> "PostQuery":
        self.stmt = self.stmt.limit(limit)
        return self

    def offset(self, offset: int) -> "PostQuery":
        self.stmt = self.stmt.offset(offset)
        return self

    def all(self) -> List[Post]:
        logger.debug("Executing post query", model=self.model.__name__)
        rows = self.db.execute(self.stmt).mappings().all()
        return self._with_meta(self.resolver.resolve_all(rows))

    def first(self) -> Optional[Post]:
        row = self.db.execute(self.stmt.limit(1)).mappings().first()
        if row is None:
            return None
        return self._with_meta([self.resolver.resolve(row)])[0]

    def count(self) -> int:
        counted = select(func.count()).select_from(
            self.stmt.order_by(None).limit(None).offset(None).subquery()
        )
        return self.db.execute(counted).scalar_one()

    def paginate(self, per_page: int = 10, page: int = 1) -> PostPage:
        page = max(page, 1)
        total = self.count()
        items = self.resolver.resolve_all(
            self.db.execute(
                self.stmt.limit(per_page).offset((page - 1) * per_page)
            ).mappings().all()
        )
        return PostPage(items=self._with_meta(items), total=total, per_page=per_page, page=page)

    def _with_meta(self, posts: List[Post]) -> List[Post]:
        """Load the metadata of every post that has none loaded, in one query."""
        pending = {
            post.ID: post
            for post in posts
            if post.ID is not None and "meta" in sa_inspect(post).unloaded
        }
        if not pending:
            return posts

        grouped: Dict[int, List[PostMeta]] = {post_id: [] for post_id in pending}
        rows = self.db.scalars(
            select(PostMeta)
            .where(PostMeta.post_id.in_(list(pending)))
            .order_by(PostMeta.meta_id)
        )
        for meta in rows:
            grouped[meta.post_id].append(meta)
        for post_id, post in pending.items():
            set_committed_value(post, "meta", MetaCollection(grouped[post_id]))
        return posts


class PostService:
    """Service for reading posts from the database."""

    def __init__(
        self,
        db: Session,
        registry: Optional[PostTypeRegistry] = None,
        model: Type[Post] = Post,
    ):
        self.db = db
        self.registry = registry if registry is not None else PostTypeRegistry()
        self.model = model
        self.resolver = PostResolver(db, self.registry, default=model)

    def query(self, model: Optional[Type[Post]] = None) -> PostQuery:
        """Start a query; ``model`` narrows it to that class's post type."""
        model = model or self.model
        resolver = self.resolver
        if model is not self.model:
            resolver = PostResolver(self.db, self.registry, default=model)
        return PostQuery(self.db, resolver, model)

    def get(self, post_id: int) -> Optional[Post]:
        """Get a post by ID."""
        return self.query().id(post_id).first()

    def get_by_slug(self, slug: str, post_type: Optional[str] = None) -> Optional[Post]:
        query = self.query().slug(slug)
        if post_type:
            query = query.type(post_type)
        return query.first()

    def get_posts(
        self,
        post_type: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Post]:
        """Get posts with optional filtering, newest first."""
        query = self.query()

        if post_type:
            query = query.type(post_type)
        if status:
            query = query.status(status)

        return query.newest().offset(offset).limit(limit).all()

    def children(self, post: Post, post_type: Optional[str] = None) -> List[Post]:
        """Posts whose parent is ``post``, oldest first."""
        query = self.query(Post).parent(post.ID)
        if post_type:
            query = query.type(post_type)
        return query.oldest().all()
