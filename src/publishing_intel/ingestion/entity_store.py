"""Get-or-create for universities and journals, keyed on their natural names."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from publishing_intel.db.models import Journal, University
from publishing_intel.ingestion.synthesizer import derive_keywords
from publishing_intel.ingestion.university_identity import country_for

logger = logging.getLogger(__name__)


class KeyedLocks:
    """One ``asyncio.Lock`` per key, so get-or-create for the same name never interleaves.

    A key's lock is dropped once nobody holds or waits on it, so the map
    only ever contains names that are in flight.
    """

    def __init__(self) -> None:
        self._locks: dict[Any, asyncio.Lock] = {}
        self._users: dict[Any, int] = {}

    @asynccontextmanager
    async def hold(self, key: Any) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class EntityStore:
    """Resolves natural keys to row ids within one session.

    Lookups are exact-match. A miss inserts inside a SAVEPOINT; if a unique
    constraint fires (another writer got there first) the row is re-selected,
    so the result is the same regardless of interleaving.
    """

    def __init__(self, session: AsyncSession, locks: KeyedLocks | None = None) -> None:
        self.session = session
        self.locks = locks or KeyedLocks()
        self.universities_created = 0
        self.journals_created = 0

    async def _find_id(self, column, value: str) -> int | None:
        result = await self.session.execute(select(column.class_.id).where(column == value))
        return result.scalar_one_or_none()

    async def _get_or_create(self, column, key: str, build) -> tuple[int, bool]:
        async with self.locks.hold((column.class_.__tablename__, key)):
            existing = await self._find_id(column, key)
            if existing is not None:
                return existing, False
            entity = build()
            try:
                async with self.session.begin_nested():
                    self.session.add(entity)
                    await self.session.flush()
            except IntegrityError:
                logger.info("Concurrent insert for %s=%r — re-reading", column.key, key)
                existing = await self._find_id(column, key)
                if existing is None:
                    raise
                return existing, False
            return entity.id, True

    async def get_or_create_university(self, name: str) -> int:
        university_id, created = await self._get_or_create(
            University.name,
            name,
            lambda: University(name=name, country=country_for(name), type="Public"),
        )
        if created:
            self.universities_created += 1
            logger.info("Created university %s (id=%d)", name, university_id)
        return university_id

    async def get_or_create_journal(
        self,
        title: str,
        publisher: str = "Unknown",
        subject_area: str = "General",
        issn: str | None = None,
        source: str | None = None,
    ) -> int:
        def _build() -> Journal:
            return Journal(
                title=title,
                issn=issn or None,
                publisher=publisher or "Unknown",
                subject_area=subject_area or "General",
                keywords=derive_keywords(title, subject_area),
                description=f"Journal from {source} subscription data" if source else "Journal from subscription data",
            )

        journal_id, created = await self._get_or_create(Journal.title, title, _build)
        if created:
            self.journals_created += 1
        return journal_id
