"""
Post type registry and row resolution.

A ``PostTypeRegistry`` maps ``post_type`` values to ``Post`` subclasses. A
``PostResolver`` turns raw rows from the posts table into instances of the
registered class, or of its default class when nothing is registered for
the row's type.

Usage:
    registry = PostTypeRegistry()
    registry.register("page", Page)
    resolver = PostResolver(db, registry)
    post = resolver.resolve({"ID": 2, "post_type": "page", ...})  # -> Page
"""

import threading
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Type

import structlog
from sqlalchemy import DateTime
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session, make_transient_to_detached
from sqlalchemy.orm.attributes import set_committed_value

from ..exceptions import PostTypeError
from .post_models import Post

logger = structlog.get_logger(__name__)


class PostTypeRegistry:
    """Thread-safe map of ``post_type`` values to ``Post`` subclasses."""

    def __init__(self, types: Optional[Mapping] = None):
        self._lock = threading.Lock()
        self._types: Dict[str, Type[Post]] = {}
        for name, model in (types or {}).items():
            self.register(name, model)

    @classmethod
    def from_models(cls, *models: Type[Post]) -> "PostTypeRegistry":
        """Build a registry keyed by each model's ``__post_type__``."""
        registry = cls()
        for model in models:
            registry.register_model(model)
        return registry

    def register(self, name: str, model: Type[Post]) -> None:
        """Use ``model`` for rows whose ``post_type`` is ``name``.

        Registering an already known name replaces the previous class.
        """
        if not isinstance(model, type) or not issubclass(model, Post):
            raise PostTypeError(
                f"Post type {name!r} must map to a Post subclass, got {model!r}"
            )
        with self._lock:
            previous = self._types.get(name)
            self._types[name] = model
        logger.debug(
            "Post type registered",
            post_type=name,
            model=model.__name__,
            replaced=previous.__name__ if previous else None,
        )

    def register_model(self, model: Type[Post]) -> None:
        name = getattr(model, "__post_type__", None)
        if not name:
            raise PostTypeError(f"{model!r} does not declare __post_type__")
        self.register(name, model)

    def unregister(self, name: str) -> None:
        with self._lock:
            self._types.pop(name, None)

    def clear(self) -> None:
        """Forget every registered post type."""
        with self._lock:
            self._types.clear()
        logger.debug("Post types cleared")

    def get(self, name: Optional[str], default: Optional[Type[Post]] = None) -> Optional[Type[Post]]:
        if name is None:
            return default
        with self._lock:
            return self._types.get(name, default)

    def items(self) -> List[Tuple[str, Type[Post]]]:
        with self._lock:
            return list(self._types.items())

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._types

    def __len__(self) -> int:
        with self._lock:
            return len(self._types)

    def __iter__(self) -> Iterator[str]:
        return iter([name for name, _ in self.items()])


def _row_mapping(row: Any) -> Mapping:
    """Accept plain mappings, SQLAlchemy ``Row`` objects and attribute bags."""
    if isinstance(row, Mapping):
        return row
    mapping = getattr(row, "_mapping", None)
    if mapping is not None:
        return mapping
    return vars(row)


def _parse_datetime(value: str) -> Optional[datetime]:
    """ISO 8601 text back to a datetime; WordPress zero dates become None."""
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


class PostResolver:
    """Builds post instances from raw rows.

    Instances are bulk-loaded: column values are written as already
    committed state without running ``__init__`` or attribute events, the
    instance gets the identity of its primary key and joins ``db`` as a
    persistent object. Relationships load lazily through that session.
    ``DateTime`` columns given as ISO 8601 strings, as ``Post.to_dict``
    produces them, are parsed back into datetimes.
    """

    def __init__(
        self,
        db: Session,
        registry: Optional[PostTypeRegistry] = None,
        default: Type[Post] = Post,
    ):
        self.db = db
        self.registry = registry if registry is not None else PostTypeRegistry()
        self.default = default

    def resolve_class(self, row: Any) -> Type[Post]:
        """Return the class a row should be loaded as."""
        post_type = _row_mapping(row).get("post_type")
        model = self.registry.get(post_type)
        if model is None:
            logger.debug(
                "No class registered for post type",
                post_type=post_type,
                model=self.default.__name__,
            )
            return self.default
        return model

    def resolve(self, row: Any) -> Post:
        """Instantiate the class registered for the row's ``post_type``."""
        values = _row_mapping(row)
        model = self.resolve_class(values)
        mapper = sa_inspect(model)

        instance = mapper.class_manager.new_instance()
        for attr in mapper.column_attrs:
            column = attr.columns[0].key
            if column in values:
                value = values[column]
                if isinstance(value, str) and isinstance(attr.columns[0].type, DateTime):
                    value = _parse_datetime(value)
                set_committed_value(instance, attr.key, value)

        primary_key = mapper.primary_key_from_instance(instance)
        if any(value is None for value in primary_key):
            logger.debug("Row has no primary key; returning transient post", model=model.__name__)
            return instance

        identity = mapper.identity_key_from_primary_key(primary_key)
        existing = self.db.identity_map.get(identity)
        if existing is not None:
            if type(existing) is model:
                return existing
            logger.debug(
                "Replacing post in session with resolved class",
                post_id=primary_key[0],
                previous=type(existing).__name__,
                model=model.__name__,
            )
            self.db.expunge(existing)

        make_transient_to_detached(instance)
        self.db.add(instance)
        return instance

    def resolve_all(self, rows: Iterable[Any]) -> List[Post]:
        return [self.resolve(row) for row in rows]
