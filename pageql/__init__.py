"""pageql: pagination and dynamic filtering over SQLAlchemy mapped entities.

Exposes:
- Page, PageBuilder (page descriptor and its builder)
- Constraint variants: Equals, Like, IgnoreCase, Order, Between, Bool, Numeric, Enumerated, Not
- PageService / AsyncPageService (execute a Page against an entity)
- PartialResultList (results plus offset and estimated total)
- PageQLConfig and the error types
"""
from __future__ import annotations

from .aio import AsyncPageService
from .config import PageQLConfig
from .constraints import Between, Bool, Constraint, Enumerated, Equals, IgnoreCase, Like, Not, Numeric, Order
from .exceptions import (
    InvalidArgumentError,
    InvalidStateError,
    PageQLError,
    UnresolvablePathError,
    UnsupportedCriteriaError,
)
from .page import Page, PageBuilder
from .results import PartialResultList
from .service import PageService

__all__ = [
    'Page',
    'PageBuilder',
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
    'PageService',
    'AsyncPageService',
    'PartialResultList',
    'PageQLConfig',
    'PageQLError',
    'InvalidArgumentError',
    'InvalidStateError',
    'UnresolvablePathError',
    'UnsupportedCriteriaError',
]
