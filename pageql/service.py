from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from .adapters import BaseAdapter, get_adapter
from .config import PageQLConfig
from .core.hydration import (
    Materializer,
    Projection,
    ProjectionContext,
    fetch_collections,
    loader_options,
    reorder_by_ids,
)
from .core.paths import JoinContext, PathResolver
from .exceptions import InvalidArgumentError
from .page import Page
from .results import PartialResultList
from .sql.builders import PagePlan, QueryTranslator

logger = logging.getLogger(__name__)

# Keeps IN lists of the hydration pass under common bind-parameter limits
HYDRATION_CHUNK_SIZE = 500


class PageService:
    """Executes Pages against one mapped entity class.

    One call runs the data statement and, when asked, the count statement on
    the caller's session. Store errors are not caught.
    """

    def __init__(
        self,
        entity: Any,
        config: Optional[PageQLConfig] = None,
        soft_delete: Optional[Callable[[Any], Any]] = None,
    ):
        self.entity = entity
        self.config = config or PageQLConfig()
        self.soft_delete = soft_delete
        self.resolver = PathResolver(entity, id_field=self.config.default_ordering_field)

    def adapter_for(self, session: Session) -> BaseAdapter:
        dialect = self.config.dialect
        if dialect is None:
            bind = session.get_bind()
            dialect = bind.dialect.name
        return get_adapter(dialect)

    def translator(self, session: Session) -> QueryTranslator:
        return QueryTranslator(self.entity, self.adapter_for(session), self.resolver, self.soft_delete)

    def get_page(
        self,
        session: Session,
        page: Page,
        count: bool = True,
        fetch: Iterable[str] = (),
        result_type: Optional[Callable[..., Any]] = None,
        mapping: Optional[Mapping[str, Any]] = None,
    ) -> PartialResultList:
        """Return one page of entities (or ``result_type`` projections) with count metadata.

        ``fetch`` lists relationship paths to load eagerly. When ``result_type``
        is given, ``mapping`` orders the field name -> path / expression /
        callable(ProjectionContext) pairs passed positionally to it.
        """
        translator = self.translator(session)
        plan = translator.plan(page)
        if result_type is not None or mapping is not None:
            if result_type is None or mapping is None:
                raise InvalidArgumentError('result_type and mapping must be given together')
            items = self._projected(session, translator, plan, page, Projection(result_type, mapping))
        else:
            items = self._entities(session, translator, plan, page, fetch)
        total = self._count(session, translator, plan) if count else -1
        logger.debug(f"{self.entity.__name__} page {page}: {len(items)} rows, estimated total {total}")
        return PartialResultList(items, page.offset, total)

    def count(self, session: Session, page: Page) -> int:
        translator = self.translator(session)
        return self._count(session, translator, translator.plan(page))

    def _count(self, session: Session, translator: QueryTranslator, plan: PagePlan) -> int:
        return int(session.execute(translator.count_statement(plan)).scalar_one())

    def _entities(self, session: Session, translator: QueryTranslator, plan: PagePlan, page: Page, fetch: Iterable[str]) -> List[Any]:
        paths = [c.path for c in plan.required] + [k.path for k in plan.keys]
        fetches = fetch_collections(fetch, paths)
        options = loader_options(self.entity, fetches, self.config.collection_loading)
        materializer = Materializer(plan.postponed, [(k.path, k.ascending) for k in plan.collection_keys])
        joined_collections = self.config.collection_loading == 'joined' and any(
            self._fetches_collection(f) for f in fetches
        )
        if not joined_collections:
            # No statement joins a collection, so LIMIT already counts distinct entities
            stmt = translator.data_statement(page, plan).options(*options)
            if fetches:
                stmt = stmt.execution_options(populate_existing=True)
            rows = session.execute(stmt).unique().scalars().all()
            return materializer.entities(rows, page.reversed)
        ids = list(session.execute(translator.id_statement(page, plan)).scalars().all())
        rows = self._hydrate(session, translator, ids, options)
        return materializer.entities(reorder_by_ids(rows, ids, translator_key(translator)), page.reversed)

    def _hydrate(self, session: Session, translator: QueryTranslator, ids: Sequence[Any], options: Sequence[Any]) -> List[Any]:
        pk = translator.primary_key
        rows: List[Any] = []
        for start in range(0, len(ids), HYDRATION_CHUNK_SIZE):
            chunk = ids[start:start + HYDRATION_CHUNK_SIZE]
            stmt = select(self.entity).where(pk.in_(chunk)).options(*options).execution_options(populate_existing=True)
            rows.extend(session.execute(stmt).unique().scalars().all())
        return rows

    def _projected(self, session: Session, translator: QueryTranslator, plan: PagePlan, page: Page, projection: Projection) -> List[Any]:
        ctx = JoinContext(self.entity)
        columns = projection.columns(ProjectionContext(self.entity, self.resolver, ctx))
        stmt = translator.data_statement(page, plan, columns=columns, ctx=ctx)
        rows = session.execute(stmt).all()
        return Materializer(plan.postponed, []).projected(rows, projection, page.reversed)

    def _fetches_collection(self, dotted: str) -> bool:
        mapper = self.resolver.mapper
        for seg in dotted.split('.'):
            rel = mapper.relationships.get(seg)
            if rel is None:
                # association proxies always sit over a collection
                return True
            if rel.uselist:
                return True
            mapper = rel.mapper
        return False


def translator_key(translator: QueryTranslator) -> Callable[[Any], Any]:
    pk_name = translator.primary_key.key

    def _key(entity: Any) -> Any:
        return getattr(entity, pk_name)

    return _key
