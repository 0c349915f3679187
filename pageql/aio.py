from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .config import PageQLConfig
from .page import Page
from .results import PartialResultList
from .service import PageService


class AsyncPageService:
    """Coroutine front of ``PageService`` for ``AsyncSession`` users.

    Each call runs the synchronous implementation inside
    ``AsyncSession.run_sync``, so a page is still one sequential unit of work
    on the session's connection.
    """

    def __init__(
        self,
        entity: Any,
        config: Optional[PageQLConfig] = None,
        soft_delete: Optional[Callable[[Any], Any]] = None,
    ):
        self.sync = PageService(entity, config=config, soft_delete=soft_delete)

    @property
    def entity(self) -> Any:
        return self.sync.entity

    async def get_page(
        self,
        session: AsyncSession,
        page: Page,
        count: bool = True,
        fetch: Iterable[str] = (),
        result_type: Optional[Callable[..., Any]] = None,
        mapping: Optional[Mapping[str, Any]] = None,
    ) -> PartialResultList:
        fetch = tuple(fetch)
        return await session.run_sync(
            lambda s: self.sync.get_page(s, page, count=count, fetch=fetch, result_type=result_type, mapping=mapping)
        )

    async def count(self, session: AsyncSession, page: Page) -> int:
        return await session.run_sync(lambda s: self.sync.count(s, page))
