"""Typed criteria values usable in ``Page`` criteria maps.

Each constraint knows how to turn itself into a SQLAlchemy predicate for a
given column expression (``build``) and how to evaluate the same condition
against a plain Python value (``applies``). The second form is used for
collections that are filtered after they have been fetched.

The set of variants is closed:

- ``Equals``      implicit for bare literals
- ``Like``        case-insensitive starts-with / ends-with / contains
- ``IgnoreCase``  case-insensitive equality
- ``Order``       <, <=, >, >=
- ``Between``     closed range
- ``Bool``        truthy / falsy
- ``Numeric``     number parsed into the column's numeric type
- ``Enumerated``  enum member parsed by name
- ``Not``         negation of a literal or another constraint
"""
from __future__ import annotations

import numbers
import operator
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from sqlalchemy import and_, func, not_, or_
from sqlalchemy.sql import sqltypes

from .adapters import BaseAdapter
from .exceptions import InvalidArgumentError

_DEFAULT_ADAPTER = BaseAdapter()


def as_text(value: Any) -> str:
    """String form used by in-memory text matching (enum names, lowercase booleans)."""
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def _column_type(expr: Any) -> Any:
    return getattr(expr, 'type', None)


def _is_text_column(expr: Any) -> bool:
    ctype = _column_type(expr)
    return isinstance(ctype, sqltypes.String) and not isinstance(ctype, sqltypes.Enum)


def _is_numeric_column(expr: Any) -> bool:
    return isinstance(_column_type(expr), (sqltypes.Integer, sqltypes.Numeric))


def _is_boolean_column(expr: Any) -> bool:
    return isinstance(_column_type(expr), sqltypes.Boolean)


class Constraint:
    """Base of all criteria variants. Instances are immutable."""

    __slots__ = ('_value',)

    # Only Not may wrap another constraint or None
    nestable = False

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if cls.__module__ != __name__:
            raise TypeError(f"{cls.__name__}: constraint variants cannot be extended outside {__name__}")

    def __init__(self, value: Any):
        if isinstance(value, Constraint) and (not self.nestable or type(value) is type(self)):
            raise InvalidArgumentError(f"You cannot nest {value} in {type(self).__name__}")
        if value is None and not self.nestable:
            raise InvalidArgumentError(f"{type(self).__name__} value may not be None")
        object.__setattr__(self, '_value', value)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    @property
    def value(self) -> Any:
        return self._value

    def build(self, expr: Any, adapter: Optional[BaseAdapter] = None) -> Any:
        raise NotImplementedError

    def applies(self, candidate: Any) -> bool:
        raise NotImplementedError

    @staticmethod
    def unwrap(value: Any) -> Any:
        while isinstance(value, Constraint):
            value = value.value
        return value

    def _key(self) -> Tuple[Any, ...]:
        return (self._value,)

    def __eq__(self, other: Any) -> bool:
        if other is self:
            return True
        return type(other) is type(self) and other._key() == self._key()

    def __ne__(self, other: Any) -> bool:
        return not self.__eq__(other)

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._key()))

    def __str__(self) -> str:
        return f"{type(self).__name__.upper()}({self._value})"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"


class Equals(Constraint):
    __slots__ = ()

    @classmethod
    def value_of(cls, value: Any) -> 'Equals':
        return cls(value)

    def build(self, expr: Any, adapter: Optional[BaseAdapter] = None) -> Any:
        return expr == self._value

    def applies(self, candidate: Any) -> bool:
        return candidate is not None and candidate == self._value


class Like(Constraint):
    __slots__ = ('_anchor',)

    class Anchor(Enum):
        STARTS_WITH = 'starts_with'
        ENDS_WITH = 'ends_with'
        CONTAINS = 'contains'

    def __init__(self, anchor: 'Like.Anchor', value: Any):
        super().__init__(value)
        if not isinstance(value, str):
            raise InvalidArgumentError(f"Like value must be a string, got {type(value).__name__}")
        object.__setattr__(self, '_anchor', Like.Anchor(anchor))

    @classmethod
    def starts_with(cls, value: str) -> 'Like':
        return cls(Like.Anchor.STARTS_WITH, value)

    @classmethod
    def ends_with(cls, value: str) -> 'Like':
        return cls(Like.Anchor.ENDS_WITH, value)

    @classmethod
    def contains(cls, value: str) -> 'Like':
        return cls(Like.Anchor.CONTAINS, value)

    @property
    def anchor(self) -> 'Like.Anchor':
        return self._anchor

    def pattern(self, adapter: Optional[BaseAdapter] = None) -> str:
        """LIKE pattern with the value's own wildcard characters escaped."""
        adapter = adapter or _DEFAULT_ADAPTER
        escaped = adapter.escape_like(self._value)
        head = '' if self._anchor is Like.Anchor.STARTS_WITH else '%'
        tail = '' if self._anchor is Like.Anchor.ENDS_WITH else '%'
        return f"{head}{escaped}{tail}"

    def build(self, expr: Any, adapter: Optional[BaseAdapter] = None) -> Any:
        adapter = adapter or _DEFAULT_ADAPTER
        if _is_boolean_column(expr):
            return Bool(Bool.is_truthy(self._value)).build(expr, adapter)
        numeric = _is_numeric_column(expr)
        text = expr if _is_text_column(expr) else adapter.as_text(expr)
        return adapter.like(text, self.pattern(adapter), case_insensitive=not numeric)

    def applies(self, candidate: Any) -> bool:
        if candidate is None:
            return False
        if isinstance(candidate, bool):
            return Bool(Bool.is_truthy(self._value)).applies(candidate)
        needle = self._value.lower()
        hay = as_text(candidate).lower()
        if self._anchor is Like.Anchor.STARTS_WITH:
            return hay.startswith(needle)
        if self._anchor is Like.Anchor.ENDS_WITH:
            return hay.endswith(needle)
        return needle in hay

    def _key(self) -> Tuple[Any, ...]:
        return (self._value, self._anchor)

    def __str__(self) -> str:
        head = '' if self._anchor is Like.Anchor.STARTS_WITH else '%'
        tail = '' if self._anchor is Like.Anchor.ENDS_WITH else '%'
        return f"LIKE {head}{self._value}{tail}"

    def __repr__(self) -> str:
        return f"Like.{self._anchor.value}({self._value!r})"


class IgnoreCase(Constraint):
    __slots__ = ()

    @classmethod
    def value_of(cls, value: str) -> 'IgnoreCase':
        return cls(value)

    def __init__(self, value: Any):
        super().__init__(value)
        if not isinstance(value, str):
            raise InvalidArgumentError(f"IgnoreCase value must be a string, got {type(value).__name__}")

    def build(self, expr: Any, adapter: Optional[BaseAdapter] = None) -> Any:
        adapter = adapter or _DEFAULT_ADAPTER
        text = expr if _is_text_column(expr) else adapter.as_text(expr)
        return func.lower(text) == self._value.lower()

    def applies(self, candidate: Any) -> bool:
        return candidate is not None and as_text(candidate).lower() == self._value.lower()


class Order(Constraint):
    __slots__ = ('_op',)

    # name -> (symbol, store comparator, in-memory comparator)
    OPERATORS: Dict[str, Tuple[str, Callable[[Any, Any], Any], Callable[[Any, Any], bool]]] = {
        'lt': ('<', lambda col, v: col < v, operator.lt),
        'lte': ('<=', lambda col, v: col <= v, operator.le),
        'gt': ('>', lambda col, v: col > v, operator.gt),
        'gte': ('>=', lambda col, v: col >= v, operator.ge),
    }

    def __init__(self, op: str, value: Any):
        if op not in self.OPERATORS:
            raise InvalidArgumentError(f"Unknown order operator: {op!r}")
        super().__init__(value)
        object.__setattr__(self, '_op', op)

    @classmethod
    def less_than(cls, value: Any) -> 'Order':
        return cls('lt', value)

    @classmethod
    def less_than_or_equal_to(cls, value: Any) -> 'Order':
        return cls('lte', value)

    @classmethod
    def greater_than(cls, value: Any) -> 'Order':
        return cls('gt', value)

    @classmethod
    def greater_than_or_equal_to(cls, value: Any) -> 'Order':
        return cls('gte', value)

    @property
    def op(self) -> str:
        return self._op

    def build(self, expr: Any, adapter: Optional[BaseAdapter] = None) -> Any:
        return self.OPERATORS[self._op][1](expr, self._value)

    def applies(self, candidate: Any) -> bool:
        if candidate is None:
            return False
        try:
            return bool(self.OPERATORS[self._op][2](candidate, self._value))
        except TypeError:
            return False

    def _key(self) -> Tuple[Any, ...]:
        return (self._value, self._op)

    def __str__(self) -> str:
        return f"{self.OPERATORS[self._op][0]} {self._value}"

    def __repr__(self) -> str:
        return f"Order({self._op!r}, {self._value!r})"


class Between(Constraint):
    __slots__ = ()

    def __init__(self, value: Tuple[Any, Any]):
        if value is not None:
            try:
                low, high = value
            except (TypeError, ValueError):
                raise InvalidArgumentError(f"Between expects a (min, max) pair, got {value!r}") from None
            if low is None or high is None:
                raise InvalidArgumentError("Between bounds may not be None")
            try:
                inverted = low > high
            except TypeError:
                raise InvalidArgumentError(f"Between bounds are not comparable: {low!r}, {high!r}") from None
            if inverted:
                raise InvalidArgumentError(f"Between min {low!r} is greater than max {high!r}")
            value = (low, high)
        super().__init__(value)

    @classmethod
    def range(cls, low: Any, high: Any) -> 'Between':
        return cls((low, high))

    @property
    def min(self) -> Any:
        return self._value[0]

    @property
    def max(self) -> Any:
        return self._value[1]

    def build(self, expr: Any, adapter: Optional[BaseAdapter] = None) -> Any:
        return expr.between(self.min, self.max)

    def applies(self, candidate: Any) -> bool:
        if candidate is None:
            return False
        try:
            return bool(self.min <= candidate <= self.max)
        except TypeError:
            return False

    def __str__(self) -> str:
        return f"BETWEEN {self.min} AND {self.max}"

    def __repr__(self) -> str:
        return f"Between.range({self.min!r}, {self.max!r})"


class Bool(Constraint):
    __slots__ = ()

    def __init__(self, value: Any):
        super().__init__(value)
        if not isinstance(value, bool):
            raise InvalidArgumentError(f"Bool value must be a bool, got {type(value).__name__}")

    @classmethod
    def value_of(cls, value: bool) -> 'Bool':
        return cls(value)

    @classmethod
    def parse(cls, value: Any) -> 'Bool':
        return cls(cls.is_truthy(value))

    @staticmethod
    def is_truthy(value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, numbers.Number):
            try:
                return bool(value > 0)  # type: ignore[operator]
            except TypeError:
                return False
        if isinstance(value, str):
            text = value.strip().lower()
            if text == 'true':
                return True
            try:
                return Decimal(text) > 0
            except InvalidOperation:
                return False
        return False

    @staticmethod
    def is_bool_type(python_type: Any) -> bool:
        return python_type is bool

    def build(self, expr: Any, adapter: Optional[BaseAdapter] = None) -> Any:
        adapter = adapter or _DEFAULT_ADAPTER
        if self._value:
            return adapter.is_true(expr)
        # NULL counts as falsy, same as applies(None)
        return or_(adapter.is_false(expr), expr == None)  # noqa: E711

    def applies(self, candidate: Any) -> bool:
        return self.is_truthy(candidate) == self._value


class Numeric(Constraint):
    __slots__ = ()

    def __init__(self, value: Any):
        super().__init__(value)
        if not self.is_numeric_type(type(value)):
            raise InvalidArgumentError(f"Numeric value must be a number, got {type(value).__name__}")

    @classmethod
    def value_of(cls, value: Any) -> 'Numeric':
        return cls(value)

    @classmethod
    def parse(cls, value: Any, target_type: Optional[type] = None) -> 'Numeric':
        return cls(cls._parse_number(value, target_type))

    @staticmethod
    def is_numeric_type(python_type: Any) -> bool:
        return isinstance(python_type, type) and issubclass(python_type, numbers.Number) and not issubclass(python_type, bool)

    @staticmethod
    def _parse_number(value: Any, target_type: Optional[type]) -> Any:
        if value is None:
            raise InvalidArgumentError("Numeric value may not be None")
        if isinstance(value, numbers.Number) and not isinstance(value, bool):
            return value
        text = as_text(value).strip()
        try:
            if target_type is not None and issubclass(target_type, Decimal):
                return Decimal(text)
            if target_type is not None and issubclass(target_type, float):
                return float(text)
            if target_type is None or issubclass(target_type, int):
                return int(text)
            return target_type(text)
        except (ValueError, TypeError, InvalidOperation):
            raise InvalidArgumentError(text) from None

    def build(self, expr: Any, adapter: Optional[BaseAdapter] = None) -> Any:
        return expr == self._value

    def applies(self, candidate: Any) -> bool:
        if candidate is None:
            return False
        try:
            return self._parse_number(candidate, type(self._value)) == self._value
        except InvalidArgumentError:
            return False


class Enumerated(Constraint):
    __slots__ = ()

    def __init__(self, value: Any):
        super().__init__(value)
        if not isinstance(value, Enum):
            raise InvalidArgumentError(f"Enumerated value must be an enum member, got {type(value).__name__}")

    @classmethod
    def value_of(cls, value: Enum) -> 'Enumerated':
        return cls(value)

    @classmethod
    def parse(cls, value: Any, enum_cls: Optional[type] = None) -> 'Enumerated':
        return cls(cls._parse_enum(value, enum_cls))

    @staticmethod
    def _parse_enum(value: Any, enum_cls: Optional[type]) -> Enum:
        if isinstance(value, Enum):
            return value
        if value is not None and isinstance(enum_cls, type) and issubclass(enum_cls, Enum):
            wanted = str(value).strip().lower()
            for member in enum_cls:
                if member.name.lower() == wanted:
                    return member
        raise InvalidArgumentError(str(value))

    def build(self, expr: Any, adapter: Optional[BaseAdapter] = None) -> Any:
        return expr == self._value

    def applies(self, candidate: Any) -> bool:
        if candidate is None:
            return False
        try:
            return self._parse_enum(candidate, type(self._value)) == self._value
        except InvalidArgumentError:
            return False


class Not(Constraint):
    __slots__ = ()

    nestable = True

    @classmethod
    def value_of(cls, value: Any) -> 'Not':
        return cls(value)

    def build(self, expr: Any, adapter: Optional[BaseAdapter] = None) -> Any:
        inner = self._value
        if inner is None:
            return expr != None  # noqa: E711
        if isinstance(inner, Constraint):
            negated = not_(inner.build(expr, adapter))
            # Keep NULL rows on the same side as the in-memory check
            if inner.applies(None):
                return and_(negated, expr != None)  # noqa: E711
            return or_(negated, expr == None)  # noqa: E711
        return or_(expr != inner, expr == None)  # noqa: E711

    def applies(self, candidate: Any) -> bool:
        inner = self._value
        if isinstance(inner, Constraint):
            return not inner.applies(candidate)
        return candidate != inner


VARIANTS = (Equals, Like, IgnoreCase, Order, Between, Bool, Numeric, Enumerated, Not)

__all__ = [
    'Constraint',
    'Equals',
    'Like',
    'IgnoreCase',
    'Order',
    'Between',
    'Bool',
    'Numeric',
    'Enumerated',
    'Not',
    'VARIANTS',
    'as_text',
]
