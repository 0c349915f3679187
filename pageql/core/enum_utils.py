from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import inspect
from sqlalchemy.sql.sqltypes import Enum as SAEnumType

# Cache for model enum classes to avoid repeated mapper introspection
# Key: (model_cls_id, attribute_key), Value: enum_cls or sentinel
_ENUM_CLASS_CACHE: Dict[Tuple[int, str], Any] = {}
_CACHE_MISS_SENTINEL = object()


def _column_for(model_cls: Any, key: str) -> Any:
    mapper = inspect(model_cls, raiseerr=False)
    if mapper is None:
        return None
    prop = mapper.column_attrs.get(key) if hasattr(mapper, 'column_attrs') else None
    if prop is None or not prop.columns:
        return None
    return prop.columns[0]


def get_model_enum_cls(model_cls: Any, key: str) -> Optional[type]:
    """Return the Python Enum class mapped by a model attribute of SAEnum type."""
    if model_cls is None or not key:
        return None
    cache_key = (id(model_cls), key)
    if cache_key in _ENUM_CLASS_CACHE:
        cached = _ENUM_CLASS_CACHE[cache_key]
        return None if cached is _CACHE_MISS_SENTINEL else cached
    col = _column_for(model_cls, key)
    sa_t = getattr(col, 'type', None)
    enum_cls = getattr(sa_t, 'enum_class', None) if isinstance(sa_t, SAEnumType) else None
    _ENUM_CLASS_CACHE[cache_key] = enum_cls if enum_cls is not None else _CACHE_MISS_SENTINEL
    return enum_cls


def is_enum_type(python_type: Any) -> bool:
    return isinstance(python_type, type) and issubclass(python_type, Enum)