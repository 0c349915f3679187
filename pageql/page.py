from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import inspect

from .exceptions import InvalidArgumentError, InvalidStateError

MAX_LIMIT = 2 ** 31 - 1
ID = 'id'


def _validate(name: str, value: Optional[int], minimum: int, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"Argument '{name}' must be an int, got {type(value).__name__}")
    if value < minimum:
        raise InvalidArgumentError(f"Argument '{name}' may not be less than {minimum}")
    return value


def identity_of(entity: Any) -> Any:
    """Identity of a cursor entity: its mapped identity, else its ``id``."""
    if entity is None:
        return None
    state = inspect(entity, raiseerr=False)
    ident = getattr(state, 'identity', None)
    if ident is not None:
        return ident[0] if len(ident) == 1 else tuple(ident)
    return getattr(entity, ID, entity)


def _criteria_key(criteria: Mapping[str, Any]) -> frozenset:
    items = []
    for k, v in criteria.items():
        try:
            hash(v)
            items.append((k, v))
        except TypeError:
            # Lists and sets are hashed by their contents
            items.append((k, tuple(v) if not isinstance(v, (set, frozenset)) else frozenset(v)))
    return frozenset(items)


class Page:
    """Immutable description of one page of entities.

    ``ordering`` maps a field path to ``ascending``; insertion order is the
    tie-break order. ``required_criteria`` must all match, at least one of a
    non-empty ``optional_criteria`` must match. With a ``last`` entity the
    page is keyset based and ``offset`` is not used.
    """

    __slots__ = ('_offset', '_limit', '_last', '_reversed', '_ordering', '_required', '_optional')

    MAX = MAX_LIMIT
    ALL: 'Page'
    ONE: 'Page'

    def __init__(
        self,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
        last: Any = None,
        reversed: Optional[bool] = None,
        ordering: Optional[Mapping[str, bool]] = None,
        required_criteria: Optional[Mapping[str, Any]] = None,
        optional_criteria: Optional[Mapping[str, Any]] = None,
    ):
        object.__setattr__(self, '_offset', _validate('offset', offset, 0, 0))
        object.__setattr__(self, '_limit', _validate('limit', limit, 1, MAX_LIMIT))
        object.__setattr__(self, '_last', last)
        object.__setattr__(self, '_reversed', last is not None and reversed is True)
        ordering = dict(ordering) if ordering else {ID: False}
        object.__setattr__(self, '_ordering', MappingProxyType(ordering))
        object.__setattr__(self, '_required', MappingProxyType(dict(required_criteria or {})))
        object.__setattr__(self, '_optional', MappingProxyType(dict(optional_criteria or {})))

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError('Page is immutable')

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def last(self) -> Any:
        return self._last

    @property
    def last_id(self) -> Any:
        return identity_of(self._last)

    @property
    def reversed(self) -> bool:
        return self._reversed

    @property
    def ordering(self) -> Mapping[str, bool]:
        return self._ordering

    @property
    def required_criteria(self) -> Mapping[str, Any]:
        return self._required

    @property
    def optional_criteria(self) -> Mapping[str, Any]:
        return self._optional

    @property
    def is_keyset(self) -> bool:
        return self._last is not None

    def without_range(self) -> 'Page':
        """Copy with ordering and criteria kept but no offset, limit or cursor."""
        return Page(None, None, None, None, self._ordering, self._required, self._optional)

    @staticmethod
    def with_() -> 'PageBuilder':
        return PageBuilder()

    @staticmethod
    def of(offset: int, limit: int) -> 'Page':
        return Page.with_().range(offset, limit).build()

    def _key(self) -> tuple:
        return (
            self._offset,
            self._limit,
            self.last_id,
            self._reversed,
            tuple(self._ordering.items()),
            _criteria_key(self._required),
            _criteria_key(self._optional),
        )

    def __eq__(self, other: Any) -> bool:
        if other is self:
            return True
        if not isinstance(other, Page):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(('Page',) + self._key())

    def __str__(self) -> str:
        def _sorted(m: Mapping[str, Any]) -> str:
            return '{' + ', '.join(f"{k}={m[k]}" for k in sorted(m)) + '}'

        ordering = '{' + ', '.join(f"{k}={v}" for k, v in self._ordering.items()) + '}'
        return (
            f"Page[{self._offset},{self._limit},{self.last_id},{self._reversed},"
            f"{ordering},{_sorted(self._required)},{_sorted(self._optional)}]"
        )

    __repr__ = __str__


class PageBuilder:
    """Builder returned by ``Page.with_()``."""

    def __init__(self) -> None:
        self._offset: Optional[int] = None
        self._limit: Optional[int] = None
        self._last: Any = None
        self._reversed: Optional[bool] = None
        self._range_set = False
        self._ordering: Dict[str, bool] = {}
        self._required: Optional[Mapping[str, Any]] = None
        self._optional: Optional[Mapping[str, Any]] = None

    def range(self, offset: Any = None, limit: Optional[int] = None, reversed: bool = False, *, last: Any = None) -> 'PageBuilder':
        """Set ``range(offset, limit)`` or ``range(last_entity, limit, reversed)``.

        The cursor form is picked when the first argument is not an int or when
        ``last=`` is given.
        """
        if self._range_set:
            raise InvalidStateError('Offset and limit are already set')
        if last is None and offset is not None and (isinstance(offset, bool) or not isinstance(offset, int)):
            last, offset = offset, None
        self._offset = offset
        self._limit = limit
        self._last = last
        self._reversed = reversed if last is not None else None
        self._range_set = True
        return self

    def order_by(self, field: str, ascending: bool = True) -> 'PageBuilder':
        self._ordering[field] = ascending
        return self

    def all_match(self, criteria: Mapping[str, Any]) -> 'PageBuilder':
        if self._required is not None:
            raise InvalidStateError('Required criteria is already set')
        self._required = criteria
        return self

    def any_match(self, criteria: Mapping[str, Any]) -> 'PageBuilder':
        if self._optional is not None:
            raise InvalidStateError('Optional criteria is already set')
        self._optional = criteria
        return self

    def build(self) -> Page:
        return Page(self._offset, self._limit, self._last, self._reversed, self._ordering, self._required, self._optional)


Page.ALL = Page.of(0, MAX_LIMIT)
Page.ONE = Page.of(0, 1)
