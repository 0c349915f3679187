from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import inspect
from sqlalchemy.orm import joinedload, selectinload
from sqlalchemy.orm.attributes import set_committed_value

from ..exceptions import InvalidArgumentError, UnresolvablePathError
from .criteria import Criterion
from .paths import JoinContext, PathResolver, ResolvedPath

logger = logging.getLogger(__name__)


def identity_key(entity: Any) -> Any:
    state = inspect(entity, raiseerr=False)
    ident = getattr(state, 'identity', None)
    if ident is not None:
        return (type(entity), ident)
    return id(entity)


def deduplicate(rows: Iterable[Any], key: Callable[[Any], Any] = identity_key) -> List[Any]:
    """Collapse fan-out rows to distinct entities, keeping first-seen order."""
    seen = set()
    out = []
    for row in rows:
        k = key(row)
        if k in seen:
            continue
        seen.add(k)
        out.append(row)
    return out


def normalize_result_order(items: Sequence[Any], reversed: bool) -> List[Any]:
    """Hand a reversed-cursor fetch back in the caller's forward order."""
    out = list(items)
    if reversed:
        out.reverse()
    return out


def reorder_by_ids(items: Iterable[Any], ids: Sequence[Any], key: Callable[[Any], Any]) -> List[Any]:
    by_id = {key(item): item for item in items}
    return [by_id[i] for i in ids if i in by_id]


def _collection_owners(entity: Any, to_one: Tuple[str, ...]) -> Optional[Any]:
    obj = entity
    for name in to_one:
        obj = getattr(obj, name, None)
        if obj is None:
            return None
    return obj


def apply_postponed_filters(entities: Iterable[Any], postponed: Mapping[Tuple[str, ...], List[Criterion]]) -> None:
    """Filter each fetched collection in memory by the criteria targeting it.

    The filtered list is stored as the committed (loaded) state, so the
    session does not see it as a pending change.
    """
    for key, criteria in postponed.items():
        if not criteria:
            continue
        to_one, collection = key[:-1], key[-1]
        for entity in entities:
            owner = _collection_owners(entity, to_one)
            if owner is None:
                continue
            elements = list(getattr(owner, collection) or [])
            kept = [el for el in elements if all(c.applies(c.path.element_value(el)) for c in criteria)]
            if len(kept) != len(elements):
                set_committed_value(owner, collection, kept)


def _sort_key(value: Any) -> Tuple[int, Any]:
    return (1, None) if value is None else (0, value)


def sort_collections(entities: Iterable[Any], keys: Sequence[Tuple[ResolvedPath, bool]]) -> None:
    """Sort each fetched collection by the ordering keys targeting its elements.

    Keys are applied as a composite sort in declared order. Elements without
    a value go last in either direction, so the first element is always the
    MIN or MAX a parent is ordered by (SQL aggregates skip NULLs too).
    """
    grouped: Dict[Tuple[str, ...], List[Tuple[ResolvedPath, bool]]] = {}
    for resolved, ascending in keys:
        if resolved.is_collection:
            grouped.setdefault(resolved.collection_key, []).append((resolved, ascending))
    if not grouped:
        return
    entities = list(entities)
    for key, ckeys in grouped.items():
        to_one, collection = key[:-1], key[-1]
        for entity in entities:
            owner = _collection_owners(entity, to_one)
            if owner is None:
                continue
            elements = list(getattr(owner, collection) or [])
            # Successive stable sorts, least significant key first
            for resolved, ascending in reversed(ckeys):
                present = [el for el in elements if resolved.element_value(el) is not None]
                missing = [el for el in elements if resolved.element_value(el) is None]
                present.sort(key=lambda el: resolved.element_value(el), reverse=not ascending)
                elements = present + missing
            set_committed_value(owner, collection, elements)


def loader_options(entity: Any, fetch: Iterable[str], collection_loading: str = 'selectin') -> List[Any]:
    """Eager-loading options for dotted relationship paths.

    To-one hops use ``joinedload``; collections use ``selectinload`` or
    ``joinedload`` depending on ``collection_loading``.
    """
    options = []
    for path in fetch:
        mapper = inspect(entity)
        current_cls = entity
        option = None
        for seg in path.split('.'):
            rel = mapper.relationships.get(seg)
            if rel is None:
                descriptor = mapper.all_orm_descriptors.get(seg)
                target_collection = getattr(getattr(current_cls, seg, None), 'target_collection', None) if descriptor is not None else None
                rel = mapper.relationships.get(target_collection) if target_collection else None
                if rel is None:
                    raise UnresolvablePathError(entity, path, seg)
            attr = getattr(current_cls, rel.key)
            if rel.uselist and collection_loading == 'selectin':
                loader = selectinload
            else:
                loader = joinedload
            option = loader(attr) if option is None else getattr(option, loader.__name__)(attr)
            mapper = rel.mapper
            current_cls = mapper.class_
        if option is not None:
            options.append(option)
    return options


def fetch_collections(fetch: Iterable[str], resolved_paths: Iterable[ResolvedPath]) -> List[str]:
    """Requested fetches plus every collection a filter or sort has to see loaded."""
    out = list(dict.fromkeys(fetch))
    for resolved in resolved_paths:
        if resolved.is_collection:
            dotted = '.'.join(resolved.collection_key)
            if dotted not in out:
                out.append(dotted)
    return out


class ProjectionContext:
    """Passed to callable projection mappings; resolves paths to joined columns."""

    def __init__(self, entity: Any, resolver: PathResolver, joins: JoinContext):
        self.entity = entity
        self.resolver = resolver
        self.joins = joins

    def column(self, path: str) -> Any:
        resolved = self.resolver.resolve(path)
        if resolved.is_collection:
            raise InvalidArgumentError(f"Collection path '{path}' cannot be projected as a column")
        return self.joins.column(resolved)


class Projection:
    """Maps selected store expressions position-for-position onto a result type."""

    def __init__(self, result_type: Callable[..., Any], mapping: Mapping[str, Any]):
        if not mapping:
            raise InvalidArgumentError('A projection needs a non-empty mapping')
        self.result_type = result_type
        self.mapping = dict(mapping)

    def columns(self, ctx: ProjectionContext) -> List[Any]:
        cols = []
        for name, spec in self.mapping.items():
            if isinstance(spec, str):
                expr = ctx.column(spec)
            elif callable(spec) and not hasattr(spec, '__clause_element__') and not hasattr(spec, 'compile'):
                expr = spec(ctx)
            else:
                expr = spec
            cols.append(expr.label(name) if hasattr(expr, 'label') else expr)
        return cols

    def build(self, row: Sequence[Any]) -> Any:
        return self.result_type(*row)


class Materializer:
    """Post-fetch work: dedup, postponed filtering, collection sorting and projection."""

    def __init__(self, postponed: Mapping[Tuple[str, ...], List[Criterion]], collection_keys: Sequence[Tuple[ResolvedPath, bool]]):
        self.postponed = postponed
        self.collection_keys = list(collection_keys)

    def entities(self, rows: Iterable[Any], reversed: bool) -> List[Any]:
        items = deduplicate(rows)
        apply_postponed_filters(items, self.postponed)
        sort_collections(items, self.collection_keys)
        items = normalize_result_order(items, reversed)
        logger.debug(f"Materialized {len(items)} entities")
        return items

    def projected(self, rows: Iterable[Sequence[Any]], projection: Projection, reversed: bool) -> List[Any]:
        items = [projection.build(row) for row in rows]
        return normalize_result_order(items, reversed)
