from __future__ import annotations

import logging

from .base import BaseAdapter
from .sqlite import SQLiteAdapter
from .postgres import PostgresAdapter
from .mssql import MSSQLAdapter

logger = logging.getLogger(__name__)


def get_adapter(dialect_name: str | None) -> BaseAdapter:
    dn = (dialect_name or '').lower()
    if dn.startswith('postgres'):
        adapter: BaseAdapter = PostgresAdapter()
    elif dn.startswith('mssql') or 'pyodbc' in dn:
        adapter = MSSQLAdapter()
    elif dn.startswith('sqlite'):
        adapter = SQLiteAdapter()
    else:
        adapter = BaseAdapter()
    logger.debug(f"Using {adapter.name} adapter for dialect '{dialect_name}'")
    return adapter


__all__ = [
    'BaseAdapter',
    'SQLiteAdapter',
    'PostgresAdapter',
    'MSSQLAdapter',
    'get_adapter',
]
