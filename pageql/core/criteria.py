"""Normalization of loosely typed criteria map values into constraints.

A criteria map value may be a literal, a ``Constraint``, ``None``, a mapped
entity or an iterable of those. Everything is turned into a ``Criterion``
before any SQL is built, so the builders only deal with the closed set of
constraint variants.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Tuple

from sqlalchemy import inspect

from ..constraints import Bool, Constraint, Enumerated, Equals, IgnoreCase, Not, Numeric
from ..exceptions import InvalidArgumentError, UnsupportedCriteriaError
from ..page import identity_of
from .enum_utils import is_enum_type
from .paths import PathResolver, ResolvedPath

logger = logging.getLogger(__name__)

# Matching modes of a criterion
SINGLE = 'single'
ANY = 'any'
ALL = 'all'
NULL = 'null'


@dataclass(frozen=True)
class Criterion:
    """One normalized criteria entry.

    ``SINGLE`` holds one constraint, ``ANY`` matches when one of several
    constraints matches, ``ALL`` requires each constraint to be matched by some
    element of a collection and ``NULL`` matches missing values (or empty
    collections).
    """

    path: ResolvedPath
    mode: str
    constraints: Tuple[Constraint, ...] = ()

    def applies(self, candidate: Any) -> bool:
        """In-memory test of a single value (one collection element for collection paths)."""
        if self.mode == NULL:
            return candidate is None
        if self.mode == SINGLE:
            return self.constraints[0].applies(candidate)
        # For ALL every listed value must appear in the collection, so an element may match any of them
        return any(c.applies(candidate) for c in self.constraints)

    @property
    def postponed(self) -> bool:
        """Whether the fetched collection must be filtered in memory after loading."""
        return self.path.is_collection and self.mode != NULL


def _is_entity(value: Any) -> bool:
    if isinstance(value, type):
        return False
    state = inspect(value, raiseerr=False)
    return state is not None and hasattr(state, 'mapper') and hasattr(state, 'identity')


def _is_iterable(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def _parse_temporal(ptype: type, value: str) -> Any:
    text = value.strip()
    if ptype is datetime and text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return ptype.fromisoformat(text)  # type: ignore[attr-defined]
    except ValueError:
        raise InvalidArgumentError(value) from None


def typed_constraint(resolved: ResolvedPath, value: Any) -> Constraint:
    """Turn one literal into the constraint matching the target attribute's type.

    Raises ``InvalidArgumentError`` when the literal cannot be parsed into that
    type and ``UnsupportedCriteriaError`` for values no constraint can hold.
    """
    if isinstance(value, Constraint):
        if isinstance(value, Not) and value.value is not None and not isinstance(value.value, Constraint):
            return Not(typed_constraint(resolved, value.value))
        return value
    if resolved.entity_valued or _is_entity(value):
        return Equals(identity_of(value) if _is_entity(value) else value)
    ptype = resolved.python_type
    if is_enum_type(ptype):
        return Enumerated.parse(value, ptype)
    if Bool.is_bool_type(ptype):
        return Bool.parse(value)
    if Numeric.is_numeric_type(ptype):
        return Numeric.parse(value, ptype)
    if ptype in (datetime, date, time) and isinstance(value, str):
        return Equals(_parse_temporal(ptype, value))
    if ptype is str:
        if isinstance(value, Enum):
            return IgnoreCase(value.name)
        return IgnoreCase(str(value))
    if isinstance(value, (str, int, float, Decimal, date, datetime, time, Enum, bytes)) or ptype is not None:
        return Equals(value)
    raise UnsupportedCriteriaError(f"Cannot build a predicate for {resolved.path} = {value!r} ({type(value).__name__})")


def normalize_value(resolved: ResolvedPath, value: Any) -> Criterion:
    if value is None:
        return Criterion(resolved, NULL)
    if _is_iterable(value):
        items = [typed_constraint(resolved, v) for v in value if v is not None]
        if not items:
            return Criterion(resolved, NULL)
        return Criterion(resolved, ALL if resolved.is_collection else ANY, tuple(items))
    return Criterion(resolved, SINGLE, (typed_constraint(resolved, value),))


def normalize_criteria(resolver: PathResolver, criteria: Mapping[str, Any]) -> List[Criterion]:
    """Normalize a whole criteria map, skipping entries whose value cannot be parsed."""
    out: List[Criterion] = []
    for path, value in criteria.items():
        resolved = resolver.resolve(path)
        try:
            out.append(normalize_value(resolved, value))
        except InvalidArgumentError as e:
            logger.warning(
                f"Cannot parse predicate for {resolver.entity.__name__}.{path}"
                f"({getattr(resolved.python_type, '__name__', resolved.python_type)}) = "
                f"{value!r}({type(value).__name__}), skipping! ({e})"
            )
    return out


def postponed_filters(criteria: List[Criterion]) -> Dict[Tuple[str, ...], List[Criterion]]:
    """Group collection criteria by the collection they filter in memory."""
    grouped: Dict[Tuple[str, ...], List[Criterion]] = {}
    for c in criteria:
        if c.postponed:
            grouped.setdefault(c.path.collection_key, []).append(c)
    return grouped

