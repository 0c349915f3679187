from __future__ import annotations

from typing import Any

from sqlalchemy import Unicode, cast

from .base import BaseAdapter


class MSSQLAdapter(BaseAdapter):
    name = 'mssql'
    # T-SQL LIKE also treats bracket expressions as wildcards
    like_special_chars = ('%', '_', '[')

    def as_text(self, expr: Any) -> Any:
        return cast(expr, Unicode(4000))
