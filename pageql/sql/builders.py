from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import and_, case, false, func, inspect, or_, select
from sqlalchemy.sql.util import ClauseAdapter

from ..adapters import BaseAdapter
from ..core.criteria import ALL, ANY, NULL, Criterion, normalize_criteria, postponed_filters
from ..core.paths import JoinContext, PathResolver, ResolvedPath
from ..exceptions import InvalidArgumentError
from ..page import Page

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderKey:
    path: ResolvedPath
    ascending: bool


@dataclass
class PagePlan:
    """Everything translated from a Page before any statement is executed."""

    required: List[Criterion]
    optional: List[Criterion]
    keys: List[OrderKey]
    # collection key -> required criteria evaluated again on the fetched collection
    postponed: Dict[Tuple[str, ...], List[Criterion]] = field(default_factory=dict)

    @property
    def collection_keys(self) -> List[OrderKey]:
        return [k for k in self.keys if k.path.is_collection]


# ---------------------------------------------------------------------------
# Criteria -> predicates
# ---------------------------------------------------------------------------

def _collection_relationship(ctx: JoinContext, resolved: ResolvedPath) -> Any:
    return getattr(ctx.owner(resolved.to_one), resolved.collection)


def _element_column(resolved: ResolvedPath) -> Any:
    return getattr(resolved.target, resolved.attribute)


def build_criterion(criterion: Criterion, ctx: JoinContext, adapter: BaseAdapter) -> Any:
    """Store predicate of one normalized criterion.

    Collection paths become EXISTS subqueries so the owning rows are never
    multiplied by the join.
    """
    resolved = criterion.path
    if resolved.is_collection:
        rel = _collection_relationship(ctx, resolved)
        col = _element_column(resolved)
        if criterion.mode == NULL:
            return ~rel.any()
        if criterion.mode == ALL:
            return and_(*[rel.any(c.build(col, adapter)) for c in criterion.constraints])
        if criterion.mode == ANY:
            return rel.any(or_(*[c.build(col, adapter) for c in criterion.constraints]))
        return rel.any(criterion.constraints[0].build(col, adapter))
    expr = ctx.column(resolved)
    if criterion.mode == NULL:
        return expr == None  # noqa: E711
    if criterion.mode == ANY:
        return or_(*[c.build(expr, adapter) for c in criterion.constraints])
    return criterion.constraints[0].build(expr, adapter)


def build_restrictions(plan: PagePlan, ctx: JoinContext, adapter: BaseAdapter) -> Optional[Any]:
    """AND of the required criteria combined with the OR of the optional criteria."""
    parts = [build_criterion(c, ctx, adapter) for c in plan.required]
    if plan.optional:
        parts.append(or_(*[build_criterion(c, ctx, adapter) for c in plan.optional]))
    if not parts:
        return None
    return and_(*parts) if len(parts) > 1 else parts[0]


# ---------------------------------------------------------------------------
# Ordering and keyset
# ---------------------------------------------------------------------------

def order_expression(key: OrderKey, ctx: JoinContext, plan: PagePlan, adapter: BaseAdapter) -> Any:
    """Store expression a key sorts by.

    A collection key is represented by the first element the in-memory sort
    would produce: MIN of the filtered elements when ascending, MAX otherwise.
    An empty collection gives NULL, which sorts as the greatest value.
    """
    resolved = key.path
    if not resolved.is_collection:
        return ctx.column(resolved)
    owner = ctx.owner(resolved.to_one)
    rel = inspect(owner).mapper.relationships[resolved.collection]
    join_cond = rel.primaryjoin if rel.secondary is None else and_(rel.primaryjoin, rel.secondaryjoin)
    if owner is not ctx.entity:
        join_cond = ClauseAdapter(inspect(owner).selectable).traverse(join_cond)
    agg = func.min if key.ascending else func.max
    sub = select(agg(_element_column(resolved))).where(join_cond)
    for c in plan.postponed.get(resolved.collection_key, []):
        sub = sub.where(_element_filter(c, adapter))
    return sub.correlate(owner).scalar_subquery()


def _element_filter(criterion: Criterion, adapter: BaseAdapter) -> Any:
    col = _element_column(criterion.path)
    return or_(*[c.build(col, adapter) for c in criterion.constraints])


def _unpack(key: Sequence[Any]) -> Tuple[Any, bool, bool]:
    # (expr, ascending) or (expr, ascending, nullable); unknown nullability is assumed
    expr, asc = key[0], key[1]
    return expr, asc, key[2] if len(key) > 2 else True


def build_order_by(exprs: Sequence[Tuple[Any, ...]], reversed: bool) -> List[Any]:
    """ORDER BY terms; each key runs in ``ascending XOR reversed`` direction.

    NULL sorts as the greatest value on every dialect: a nullable key is
    preceded by a ``CASE WHEN key IS NULL`` flag running in the same
    direction, so NULLs come last ascending and first descending.
    """
    terms = []
    for key in exprs:
        expr, asc, nullable = _unpack(key)
        forward = asc != reversed
        if nullable:
            flag = case((expr.is_(None), 1), else_=0)
            terms.append(flag.asc() if forward else flag.desc())
        terms.append(expr.asc() if forward else expr.desc())
    return terms


def _strictly_after(expr: Any, value: Any, forward: bool, nullable: bool) -> Optional[Any]:
    if value is None:
        # NULL is the greatest value: only non-NULLs follow it going down
        return expr.is_not(None) if not forward else None
    if forward:
        return or_(expr > value, expr.is_(None)) if nullable else expr > value
    return expr < value


def build_keyset_predicate(exprs: Sequence[Tuple[Any, ...]], cursor_values: Sequence[Any], reversed: bool) -> Any:
    """Lexicographic "strictly after the cursor in traversal order" predicate.

    ``OR over i of (AND over j<i of kj == cj) AND after(ki, ci)``, where
    ``after`` follows the NULL placement of :func:`build_order_by`. A NULL
    cursor value matches with IS NULL in the equality prefix.
    """
    if len(exprs) != len(cursor_values):
        raise InvalidArgumentError('Cursor values do not match the ordering keys')
    terms = []
    prefix: List[Any] = []
    for key, value in zip(exprs, cursor_values):
        expr, asc, nullable = _unpack(key)
        strict = _strictly_after(expr, value, asc != reversed, nullable)
        if strict is not None:
            terms.append(and_(*prefix, strict) if prefix else strict)
        prefix.append(expr.is_(None) if value is None else expr == value)
    if not terms:
        return false()
    return or_(*terms)


def cursor_values(entity: Any, keys: Sequence[OrderKey], postponed: Mapping[Tuple[str, ...], List[Criterion]]) -> List[Any]:
    """Ordering-key tuple of the cursor entity, read from its loaded attributes.

    A collection key without any filtered value reads as None, like the
    MIN/MAX subquery over an empty collection.
    """
    values = []
    for key in keys:
        resolved = key.path
        if not resolved.is_collection:
            values.append(resolved.read(entity))
            continue
        filters = postponed.get(resolved.collection_key, [])
        elements = [
            el for el in resolved.read_collection(entity)
            if all(c.applies(c.path.element_value(el)) for c in filters)
        ]
        present = [v for v in (resolved.element_value(el) for el in elements) if v is not None]
        if not present:
            values.append(None)
        else:
            values.append(min(present) if key.ascending else max(present))
    return values


# ---------------------------------------------------------------------------
# Translator
# ---------------------------------------------------------------------------

class QueryTranslator:
    """Turns a Page into data and count statements for one entity."""

    def __init__(self, entity: Any, adapter: BaseAdapter, resolver: Optional[PathResolver] = None, soft_delete: Optional[Callable[[Any], Any]] = None):
        self.entity = entity
        self.adapter = adapter
        self.resolver = resolver or PathResolver(entity)
        self.soft_delete = soft_delete
        self.mapper = inspect(entity)

    @property
    def primary_key(self) -> Any:
        return getattr(self.entity, self.mapper.get_property_by_column(self.mapper.primary_key[0]).key)

    def plan(self, page: Page) -> PagePlan:
        required = normalize_criteria(self.resolver, page.required_criteria)
        optional = normalize_criteria(self.resolver, page.optional_criteria)
        keys = [OrderKey(self.resolver.resolve(f), bool(asc)) for f, asc in page.ordering.items()]
        pk_name = self.mapper.get_property_by_column(self.mapper.primary_key[0]).key
        if not any(not k.path.to_one and not k.path.is_collection and k.path.attribute == pk_name for k in keys):
            # Unique tie-break so offset and keyset pages never overlap
            keys.append(OrderKey(self.resolver.resolve(pk_name), keys[-1].ascending if keys else True))
        return PagePlan(required=required, optional=optional, keys=keys, postponed=postponed_filters(required))

    def _where(self, plan: PagePlan, ctx: JoinContext) -> List[Any]:
        clauses = []
        restriction = build_restrictions(plan, ctx, self.adapter)
        if restriction is not None:
            clauses.append(restriction)
        if self.soft_delete is not None:
            clauses.append(self.soft_delete(self.entity))
        return clauses

    def data_statement(self, page: Page, plan: PagePlan, columns: Optional[Sequence[Any]] = None, ctx: Optional[JoinContext] = None) -> Any:
        """SELECT of the page rows: the entity itself, or ``columns`` built on ``ctx``."""
        ctx = ctx or JoinContext(self.entity)
        clauses = self._where(plan, ctx)
        ordered = [(order_expression(k, ctx, plan, self.adapter), k.ascending, k.path.nullable) for k in plan.keys]
        reversed_ = page.reversed
        if page.is_keyset:
            values = cursor_values(page.last, plan.keys, plan.postponed)
            clauses.append(build_keyset_predicate(ordered, values, reversed_))
        stmt = select(*columns) if columns is not None else select(self.entity)
        stmt = ctx.apply(stmt)
        if clauses:
            stmt = stmt.where(*clauses)
        stmt = stmt.order_by(*build_order_by(ordered, reversed_))
        if not page.is_keyset and page.offset > 0:
            stmt = stmt.offset(page.offset)
        if page.limit != Page.MAX:
            stmt = stmt.limit(page.limit)
        logger.debug(f"Page statement for {self.entity.__name__}: {stmt}")
        return stmt

    def id_statement(self, page: Page, plan: PagePlan) -> Any:
        return self.data_statement(page, plan, columns=[self.primary_key])

    def count_statement(self, plan: PagePlan) -> Any:
        """COUNT over the same restrictions, without ordering, range, cursor or fetches."""
        ctx = JoinContext(self.entity)
        clauses = self._where(plan, ctx)
        stmt = ctx.apply(select(func.count(self.primary_key)).select_from(self.entity))
        if clauses:
            stmt = stmt.where(*clauses)
        logger.debug(f"Count statement for {self.entity.__name__}: {stmt}")
        return stmt
