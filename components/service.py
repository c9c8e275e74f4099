"""
components/service.py -- Generic repository and component service.

Pattern: Repository + Data Mapper, generalized. Instead of one hand-written
store method per query, a single Repository[T] is parameterized with a
SQLAlchemy Core table and two mappers:

  row_mapper    row -> domain dataclass
  value_mapper  domain dataclass -> column values for INSERT/UPDATE

ComponentService[T] sits on top and adds the uniform read_all / read / save /
delete contract plus opt-in caching. Concrete services (TaskStatusService,
TaskService, UserService) only declare their repository, cache bucket and
default ordering.

Caching:
  read_all(options, cached=True) looks in the service's cache bucket first,
  keyed by the serialized FindOptions. On a miss it queries the store and
  writes the result back. save() and delete() drop the whole bucket, so a
  cached list never outlives a write made through the service. TTL and
  eviction belong to cache/store.py.

Security: all filters are bound parameters; column names come from the
table definition, never from raw input (unknown names raise ValueError).
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Generic, Optional, TypeVar

from sqlalchemy import Table, select
from sqlalchemy.engine import Connection, Engine

if TYPE_CHECKING:
    from cache.store import CacheStore

logger = logging.getLogger("aionic.components")

T = TypeVar("T")

# Attaches a named relation to already-loaded entities, in place.
RelationLoader = Callable[[Connection, list], None]


@dataclass
class FindOptions:
    """Query options for Repository.find() and ComponentService reads.

    where     -- column == value filters, AND-combined
    order     -- column -> "ASC" | "DESC", applied in insertion order
    relations -- names of relations to load onto the results
    skip/take -- offset/limit
    """

    where: dict[str, Any] = field(default_factory=dict)
    order: dict[str, str] = field(default_factory=dict)
    relations: list[str] = field(default_factory=list)
    skip: Optional[int] = None
    take: Optional[int] = None

    def cache_key(self) -> str:
        return json.dumps(asdict(self), sort_keys=True, default=str)


class Repository(Generic[T]):
    """Table-backed persistence for one entity type.

    Entities must expose a mutable `id` attribute; `id is None` means the
    entity has not been written yet.
    """

    def __init__(
        self,
        engine: Engine,
        table: Table,
        row_mapper: Callable[[Any], T],
        value_mapper: Callable[[T], dict],
        relations: Optional[dict[str, RelationLoader]] = None,
    ) -> None:
        self.engine = engine
        self.table = table
        self._row_mapper = row_mapper
        self._value_mapper = value_mapper
        self._relations = relations or {}

    def _column(self, name: str):
        try:
            return self.table.c[name]
        except KeyError:
            raise ValueError(f"Unknown column {name!r} on {self.table.name}") from None

    def _build_query(self, options: FindOptions):
        query = select(self.table)
        for name, value in options.where.items():
            query = query.where(self._column(name) == value)
        for name, direction in options.order.items():
            column = self._column(name)
            query = query.order_by(column.desc() if direction.upper() == "DESC" else column.asc())
        if options.skip is not None:
            query = query.offset(options.skip)
        if options.take is not None:
            query = query.limit(options.take)
        return query

    def find(self, options: FindOptions) -> list[T]:
        unknown = set(options.relations) - set(self._relations)
        if unknown:
            raise ValueError(f"Unknown relations for {self.table.name}: {sorted(unknown)!r}")
        with self.engine.connect() as conn:
            rows = conn.execute(self._build_query(options)).fetchall()
            entities = [self._row_mapper(r) for r in rows]
            if entities:
                for name in options.relations:
                    self._relations[name](conn, entities)
        return entities

    def find_one(self, options: FindOptions) -> Optional[T]:
        limited = FindOptions(
            where=options.where,
            order=options.order,
            relations=options.relations,
            skip=options.skip,
            take=1,
        )
        found = self.find(limited)
        return found[0] if found else None

    def save(self, entity: T) -> T:
        """Insert the entity when it has no id, otherwise update it in place.

        Raises sqlalchemy.exc.IntegrityError on constraint violations (e.g. a
        duplicate unique column). Callers translate that into a 409.
        """
        values = self._value_mapper(entity)
        with self.engine.connect() as conn:
            if entity.id is None:
                result = conn.execute(self.table.insert().values(**values))
                entity.id = result.inserted_primary_key[0]
            else:
                conn.execute(self.table.update().where(self.table.c.id == entity.id).values(**values))
            conn.commit()
        return entity

    def remove(self, entity: T) -> T:
        with self.engine.connect() as conn:
            conn.execute(self.table.delete().where(self.table.c.id == entity.id))
            conn.commit()
        return entity


class ComponentService(Generic[T]):
    """Uniform data access over one entity type with opt-in caching.

    Subclasses set:
      model             -- the dataclass, used to rebuild cached entities
      cache_name        -- cache bucket; None disables caching for the service
      default_order     -- applied when FindOptions.order is empty
      default_relations -- applied when FindOptions.relations is empty
      invalidates       -- other buckets whose entries embed this entity
    """

    model: type
    cache_name: Optional[str] = None
    default_order: dict[str, str] = {}
    default_relations: list[str] = []
    invalidates: tuple[str, ...] = ()

    def __init__(self, repo: Repository[T], cache: Optional[CacheStore] = None) -> None:
        self.repo = repo
        self.cache = cache

    def _with_defaults(self, options: Optional[FindOptions]) -> FindOptions:
        options = options or FindOptions()
        return FindOptions(
            where=dict(options.where),
            order=dict(options.order or self.default_order),
            relations=list(options.relations or self.default_relations),
            skip=options.skip,
            take=options.take,
        )

    def read_all(self, options: Optional[FindOptions] = None, cached: bool = False) -> list[T]:
        """Return every entity matching options, optionally via the cache."""
        options = self._with_defaults(options)
        if not cached or self.cache is None or self.cache_name is None:
            return self.repo.find(options)

        key = options.cache_key()
        hit = self.cache.get(self.cache_name, key)
        if hit is not None:
            logger.debug("Cache hit %s:%s", self.cache_name, key)
            return [self.from_cache(item) for item in hit]

        entities = self.repo.find(options)
        self.cache.set(self.cache_name, key, [self.to_cache(e) for e in entities])
        return entities

    def read(self, options: FindOptions) -> Optional[T]:
        """Return the first entity matching options, or None."""
        return self.repo.find_one(self._with_defaults(options))

    def save(self, entity: T) -> T:
        saved = self.repo.save(entity)
        self._invalidate()
        return saved

    def delete(self, entity: T) -> T:
        deleted = self.repo.remove(entity)
        self._invalidate()
        return deleted

    def to_cache(self, entity: T) -> dict:
        """Return the dict form of entity written to the cache."""
        return asdict(entity)

    def from_cache(self, data: dict) -> T:
        """Rebuild an entity from its cached dict form."""
        return self.model(**data)

    def _invalidate(self) -> None:
        if self.cache is None:
            return
        buckets = ((self.cache_name,) if self.cache_name else ()) + self.invalidates
        for bucket in buckets:
            self.cache.delete_bucket(bucket)
