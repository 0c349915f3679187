from __future__ import annotations

from typing import Any

from sqlalchemy import Text, cast

from .base import BaseAdapter


class PostgresAdapter(BaseAdapter):
    name = 'postgres'

    def as_text(self, expr: Any) -> Any:
        return cast(expr, Text)

    def like(self, expr: Any, pattern: str, case_insensitive: bool = True) -> Any:
        if case_insensitive:
            return expr.ilike(pattern, escape=self.like_escape_char)
        return expr.like(pattern, escape=self.like_escape_char)
