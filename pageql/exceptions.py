from __future__ import annotations


class PageQLError(Exception):
    """Base class for all pageql errors."""


class InvalidArgumentError(PageQLError, ValueError):
    """Raised when a page, constraint or criteria value is malformed."""


class InvalidStateError(PageQLError, RuntimeError):
    """Raised when a builder step is repeated."""


class UnresolvablePathError(InvalidArgumentError):
    """Raised when a criteria or ordering field path does not exist on the entity."""

    def __init__(self, entity: object, path: str, segment: str | None = None):
        self.entity = entity
        self.path = path
        self.segment = segment
        name = getattr(entity, '__name__', entity)
        where = f" (unknown segment '{segment}')" if segment and segment != path else ''
        super().__init__(f"Field path '{path}' cannot be resolved on {name}{where}")


class UnsupportedCriteriaError(PageQLError, TypeError):
    """Raised when a criteria value cannot be turned into a predicate."""
