from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import inspect
from sqlalchemy.ext.associationproxy import AssociationProxyExtensionType
from sqlalchemy.orm import aliased

from ..exceptions import UnresolvablePathError
from .enum_utils import get_model_enum_cls


class PathKind(Enum):
    COLUMN = 'column'
    TO_ONE = 'to_one'
    TO_MANY = 'to_many'
    ELEMENT_COLLECTION = 'element_collection'


@dataclass(frozen=True)
class ResolvedPath:
    """Metadata of one dotted field path on an entity.

    ``to_one`` is the chain of many-to-one relationship names walked from the
    root. ``owner`` is the mapped class at the end of that chain. For
    collection paths ``collection`` names the to-many relationship on the
    owner and ``attribute`` the column of its element class ``target``.
    """

    path: str
    kind: PathKind
    to_one: Tuple[str, ...] = ()
    owner: Any = None
    attribute: Optional[str] = None
    collection: Optional[str] = None
    target: Any = None
    python_type: Optional[type] = None
    # Path ends on a relationship; criteria compare related entities by identity
    entity_valued: bool = False

    @property
    def is_collection(self) -> bool:
        return self.kind in (PathKind.TO_MANY, PathKind.ELEMENT_COLLECTION)

    @property
    def collection_key(self) -> Tuple[str, ...]:
        """Identifies the fetched collection a postponed filter or sort acts on."""
        return self.to_one + ((self.collection,) if self.collection else ())

    @property
    def nullable(self) -> bool:
        """Whether the store value can be NULL: outer joins and empty collections always can."""
        if self.to_one or self.is_collection:
            return True
        return _column_nullable(self.owner, self.attribute)

    def read(self, entity: Any) -> Any:
        """Read the value of a non-collection path from a loaded entity."""
        obj = entity
        for name in self.to_one:
            obj = getattr(obj, name, None)
            if obj is None:
                return None
        if self.attribute is None:
            return obj
        return getattr(obj, self.attribute, None)

    def read_collection(self, entity: Any) -> List[Any]:
        """Return the loaded elements of a collection path (empty when unreachable)."""
        obj = entity
        for name in self.to_one:
            obj = getattr(obj, name, None)
            if obj is None:
                return []
        return list(getattr(obj, self.collection, None) or [])

    def element_value(self, element: Any) -> Any:
        return getattr(element, self.attribute, None)


def _python_type(model_cls: Any, key: str) -> Optional[type]:
    enum_cls = get_model_enum_cls(model_cls, key)
    if enum_cls is not None:
        return enum_cls
    mapper = inspect(model_cls)
    prop = mapper.column_attrs.get(key)
    if prop is None or not prop.columns:
        return None
    try:
        return prop.columns[0].type.python_type
    except NotImplementedError:
        return None


def _column_nullable(model_cls: Any, key: Optional[str]) -> bool:
    prop = inspect(model_cls).column_attrs.get(key) if key else None
    if prop is None or not prop.columns:
        return True
    return any(getattr(col, 'nullable', True) for col in prop.columns)


def _primary_key_name(mapper: Any) -> str:
    pk_col = mapper.primary_key[0]
    return mapper.get_property_by_column(pk_col).key


class PathResolver:
    """Resolves dotted criteria/ordering paths against an entity's mapper."""

    def __init__(self, entity: Any, id_field: str = 'id'):
        self.entity = entity
        self.mapper = inspect(entity)
        self.id_field = id_field
        self._cache: Dict[str, ResolvedPath] = {}

    def resolve(self, path: str) -> ResolvedPath:
        cached = self._cache.get(path)
        if cached is None:
            cached = self._resolve(path)
            self._cache[path] = cached
        return cached

    def _resolve(self, path: str) -> ResolvedPath:
        if not path or not isinstance(path, str):
            raise UnresolvablePathError(self.entity, str(path))
        segments = path.split('.')
        mapper = self.mapper
        to_one: List[str] = []
        for i, seg in enumerate(segments):
            last = i == len(segments) - 1
            cls = mapper.class_
            if seg in mapper.column_attrs:
                if not last:
                    raise UnresolvablePathError(self.entity, path, seg)
                return ResolvedPath(
                    path=path,
                    kind=PathKind.TO_ONE if to_one else PathKind.COLUMN,
                    to_one=tuple(to_one),
                    owner=cls,
                    attribute=seg,
                    python_type=_python_type(cls, seg),
                )
            if seg in mapper.relationships:
                rel = mapper.relationships[seg]
                if rel.uselist:
                    return self._collection_path(path, tuple(to_one), cls, seg, rel.mapper, segments[i + 1:])
                to_one.append(seg)
                mapper = rel.mapper
                if last:
                    return ResolvedPath(
                        path=path,
                        kind=PathKind.TO_ONE,
                        to_one=tuple(to_one),
                        owner=mapper.class_,
                        attribute=_primary_key_name(mapper),
                        python_type=None,
                        entity_valued=True,
                    )
                continue
            descriptor = mapper.all_orm_descriptors.get(seg)
            if descriptor is not None and descriptor.extension_type is AssociationProxyExtensionType.ASSOCIATION_PROXY:
                if not last:
                    raise UnresolvablePathError(self.entity, path, seg)
                return self._element_collection_path(path, tuple(to_one), cls, seg)
            if seg == self.id_field and last:
                pk = _primary_key_name(mapper)
                return ResolvedPath(
                    path=path,
                    kind=PathKind.TO_ONE if to_one else PathKind.COLUMN,
                    to_one=tuple(to_one),
                    owner=cls,
                    attribute=pk,
                    python_type=_python_type(cls, pk),
                )
            raise UnresolvablePathError(self.entity, path, seg)
        raise UnresolvablePathError(self.entity, path)  # pragma: no cover - loop always returns

    def _collection_path(self, path: str, to_one: Tuple[str, ...], owner: Any, name: str, target_mapper: Any, rest: List[str]) -> ResolvedPath:
        target = target_mapper.class_
        if not rest:
            return ResolvedPath(
                path=path,
                kind=PathKind.TO_MANY,
                to_one=to_one,
                owner=owner,
                attribute=_primary_key_name(target_mapper),
                collection=name,
                target=target,
                entity_valued=True,
            )
        if len(rest) == 1 and rest[0] in target_mapper.column_attrs:
            return ResolvedPath(
                path=path,
                kind=PathKind.TO_MANY,
                to_one=to_one,
                owner=owner,
                attribute=rest[0],
                collection=name,
                target=target,
                python_type=_python_type(target, rest[0]),
            )
        # Paths through a collection into further associations are not supported
        raise UnresolvablePathError(self.entity, path, rest[0])

    def _element_collection_path(self, path: str, to_one: Tuple[str, ...], owner: Any, name: str) -> ResolvedPath:
        proxy = getattr(owner, name)
        rel_name = proxy.target_collection
        value_attr = proxy.value_attr
        rel = inspect(owner).relationships.get(rel_name)
        if rel is None or not rel.uselist:
            raise UnresolvablePathError(self.entity, path, name)
        target = rel.mapper.class_
        if value_attr not in rel.mapper.column_attrs:
            raise UnresolvablePathError(self.entity, path, value_attr)
        return ResolvedPath(
            path=path,
            kind=PathKind.ELEMENT_COLLECTION,
            to_one=to_one,
            owner=owner,
            attribute=value_attr,
            collection=rel_name,
            target=target,
            python_type=_python_type(target, value_attr),
        )


@dataclass
class JoinContext:
    """Per-statement registry of aliased outer joins for to-one paths."""

    entity: Any
    aliases: Dict[Tuple[str, ...], Any] = field(default_factory=dict)
    # (parent, relationship name, alias) in creation order
    joins: List[Tuple[Any, str, Any]] = field(default_factory=list)

    def owner(self, to_one: Tuple[str, ...]) -> Any:
        current = self.entity
        for i in range(len(to_one)):
            prefix = to_one[: i + 1]
            alias = self.aliases.get(prefix)
            if alias is None:
                rel = inspect(current).mapper.relationships[to_one[i]]
                alias = aliased(rel.mapper.class_)
                self.aliases[prefix] = alias
                self.joins.append((current, to_one[i], alias))
            current = alias
        return current

    def column(self, resolved: ResolvedPath) -> Any:
        """Store expression of a non-collection path."""
        return getattr(self.owner(resolved.to_one), resolved.attribute)

    def apply(self, stmt: Any) -> Any:
        for parent, rel_name, alias in self.joins:
            stmt = stmt.outerjoin(getattr(parent, rel_name).of_type(alias))
        return stmt
