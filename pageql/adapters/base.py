from __future__ import annotations

from typing import Any

from sqlalchemy import String, cast, false, func, true


class BaseAdapter:
    name = 'base'
    like_escape_char = '\\'
    # Characters with wildcard meaning inside a LIKE pattern for this dialect
    like_special_chars = ('%', '_')

    def escape_like(self, value: str) -> str:
        esc = self.like_escape_char
        out = value.replace(esc, esc + esc)
        for ch in self.like_special_chars:
            out = out.replace(ch, esc + ch)
        return out

    def as_text(self, expr: Any) -> Any:
        return cast(expr, String)

    def like(self, expr: Any, pattern: str, case_insensitive: bool = True) -> Any:
        if case_insensitive:
            return func.lower(expr).like(pattern.lower(), escape=self.like_escape_char)
        return expr.like(pattern, escape=self.like_escape_char)

    def is_true(self, expr: Any) -> Any:
        return expr == true()

    def is_false(self, expr: Any) -> Any:
        return expr == false()
