from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional

from .exceptions import InvalidArgumentError

COLLECTION_LOADERS = ('selectin', 'joined')


@dataclass(frozen=True)
class PageQLConfig:
    # How fetched collections are loaded in the hydration pass
    collection_loading: str = 'selectin'
    # Ordering field used when a page names 'id' but the entity has no such attribute
    default_ordering_field: str = 'id'
    # Force an adapter instead of detecting it from the session's dialect
    dialect: Optional[str] = None

    def __post_init__(self) -> None:
        if self.collection_loading not in COLLECTION_LOADERS:
            raise InvalidArgumentError(
                f"collection_loading must be one of {COLLECTION_LOADERS}, got {self.collection_loading!r}"
            )

    @classmethod
    def from_env(cls, prefix: str = 'PAGEQL_') -> 'PageQLConfig':
        base = cls()
        return replace(
            base,
            collection_loading=os.getenv(f'{prefix}COLLECTION_LOADING', base.collection_loading).strip().lower(),
            default_ordering_field=os.getenv(f'{prefix}DEFAULT_ORDERING_FIELD', base.default_ordering_field),
            dialect=os.getenv(f'{prefix}DIALECT') or base.dialect,
        )
