"""Ingestion pipeline — export spreadsheets → universities, journals, activity.

Per file:
  1. identify the university from the filename
  2. parse the workbook and pick the sheet
  3. reject a sheet with no rows or no title column before touching the store
  4. in ONE transaction: get-or-create the university, delete its existing
     subscriptions and browsing history, then process rows in order
  5. each row runs in its own SAVEPOINT so a bad row is rolled back alone

A file that fails rolls back entirely (its previous data survives) and the
batch moves on to the next file.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import Settings
from publishing_intel.db.connection import Database
from publishing_intel.db.models import BrowsingHistoryEvent, Journal, Subscription, University
from publishing_intel.errors import IngestionError, MissingColumnsError
from publishing_intel.ingestion.column_resolver import has_title_column, resolve_fields
from publishing_intel.ingestion.entity_store import EntityStore, KeyedLocks
from publishing_intel.ingestion.normalizers import parse_boolean, parse_currency, parse_text
from publishing_intel.ingestion.synthesizer import TelemetrySynthesizer, record_activity
from publishing_intel.ingestion.university_identity import identify_university
from publishing_intel.ingestion.workbook_reader import read_workbook, select_sheet

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class FileResult:
    """Outcome of ingesting one spreadsheet."""

    filename: str
    status: str = "pending"  # "ingested" | "failed"
    university: str | None = None
    sheet: str | None = None
    rows_total: int = 0
    rows_processed: int = 0
    rows_skipped: int = 0
    rows_failed: int = 0
    subscriptions: int = 0
    browsing_events: int = 0
    journals_created: int = 0
    error: str | None = None


@dataclass
class IngestionReport:
    """Outcome of a pipeline run."""

    status: str = "completed"  # "completed" | "skipped"
    reason: str | None = None
    files: list[FileResult] = field(default_factory=list)

    @property
    def files_ingested(self) -> int:
        return sum(1 for f in self.files if f.status == "ingested")

    @property
    def files_failed(self) -> int:
        return sum(1 for f in self.files if f.status == "failed")

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "reason": self.reason,
            "files_ingested": self.files_ingested,
            "files_failed": self.files_failed,
            "files": [asdict(f) for f in self.files],
        }


@dataclass
class _RowOutcome:
    subscriptions: int = 0
    events: int = 0


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class IngestionPipeline:
    """Discovers export files and loads them into the store."""

    def __init__(
        self,
        database: Database,
        settings: Settings,
        synthesizer: TelemetrySynthesizer | None = None,
    ) -> None:
        self.database = database
        self.settings = settings
        self.synthesizer = synthesizer or TelemetrySynthesizer(
            start_date=date.fromisoformat(settings.subscription_start_date),
            end_date=date.fromisoformat(settings.subscription_end_date),
        )
        self.locks = KeyedLocks()

    @property
    def data_directory(self) -> Path:
        return Path(self.settings.data_directory)

    def is_spreadsheet(self, path: Path) -> bool:
        extensions = {e.lower() for e in self.settings.spreadsheet_extensions}
        # "~$" files are Excel lock files, not workbooks
        return path.suffix.lower() in extensions and not path.name.startswith("~$")

    def discover_files(self) -> list[Path]:
        directory = self.data_directory
        if not directory.is_dir():
            logger.warning("Data directory %s not found", directory)
            return []
        files = sorted(p for p in directory.iterdir() if p.is_file() and self.is_spreadsheet(p))
        logger.info("Found %d spreadsheet(s) in %s", len(files), directory)
        return files

    async def has_data(self) -> bool:
        async with self.database.session() as session:
            count = await session.scalar(select(func.count()).select_from(University))
        return bool(count)

    async def run(self, force: bool = False) -> IngestionReport:
        """Ingest every discovered file, unless universities already exist.

        The guard is all-or-nothing: a partially loaded store is never
        topped up. Use ``force`` (or ``reset_and_reprocess``) to redo it.
        """
        if not force and await self.has_data():
            logger.info("Data already loaded — skipping ingestion")
            return IngestionReport(status="skipped", reason="data already loaded")

        report = IngestionReport()
        for path in self.discover_files():
            report.files.append(await self.ingest_file(path))

        logger.info(
            "Ingestion finished: %d file(s) ingested, %d failed",
            report.files_ingested,
            report.files_failed,
        )
        return report

    async def reset_and_reprocess(self) -> IngestionReport:
        """Empty all four collections, then run a full ingestion."""
        async with self.database.session() as session:
            async with session.begin():
                await clear_all(session)
        logger.info("All collections cleared — reprocessing data folder")
        return await self.run(force=True)

    async def ingest_file(self, path: Path) -> FileResult:
        """Ingest a single export file. Never raises; failures land in the result."""
        result = FileResult(filename=path.name)
        logger.info("Processing %s", path.name)
        try:
            result.university = identify_university(path.name, self.settings.require_known_university)
            workbook = read_workbook(path)
            result.sheet = select_sheet(
                workbook.sheet_names,
                self.settings.sheet_selection,
                self.settings.sheet_name_patterns,
            )
            rows = workbook.rows(result.sheet)
            result.rows_total = len(rows)
            logger.info("%s → %s, sheet %r, %d row(s)", path.name, result.university, result.sheet, len(rows))
            if not rows:
                raise MissingColumnsError(f"Sheet {result.sheet!r} has no rows")
            if not any(has_title_column(list(row.keys())) for row in rows):
                raise MissingColumnsError(f"No journal title column in sheet {result.sheet!r}")

            async with self.database.session() as session:
                async with session.begin():
                    await self._load_rows(session, result, rows)
        except IngestionError as exc:
            result.status = "failed"
            result.error = str(exc)
            logger.error("Skipping %s: %s", path.name, exc)
            return result
        except Exception as exc:
            result.status = "failed"
            result.error = str(exc)
            logger.exception("Failed to ingest %s", path.name)
            return result

        result.status = "ingested"
        logger.info(
            "%s ingested: %d processed, %d skipped, %d failed, %d subscription(s), %d event(s)",
            path.name,
            result.rows_processed,
            result.rows_skipped,
            result.rows_failed,
            result.subscriptions,
            result.browsing_events,
        )
        return result

    async def _load_rows(self, session: AsyncSession, result: FileResult, rows: list[dict]) -> None:
        store = EntityStore(session, self.locks)
        university_id = await store.get_or_create_university(result.university)

        await session.execute(delete(Subscription).where(Subscription.university_id == university_id))
        await session.execute(delete(BrowsingHistoryEvent).where(BrowsingHistoryEvent.university_id == university_id))

        for index, row in enumerate(rows):
            journals_before = store.journals_created
            try:
                async with session.begin_nested():
                    outcome = await self._process_row(store, university_id, result.university, row)
            except Exception:
                store.journals_created = journals_before
                result.rows_failed += 1
                logger.exception("Row %d of %s failed — skipped", index, result.filename)
                continue
            if outcome is None:
                result.rows_skipped += 1
                logger.debug("Row %d of %s: no journal title — skipped", index, result.filename)
                continue
            result.rows_processed += 1
            result.subscriptions += outcome.subscriptions
            result.browsing_events += outcome.events

        result.journals_created = store.journals_created

    async def _process_row(
        self,
        store: EntityStore,
        university_id: int,
        university_name: str,
        row: dict[str, Any],
    ) -> _RowOutcome | None:
        fields = resolve_fields(row)
        title = parse_text(fields["journal_title"])
        if not title:
            return None

        is_subscribed = parse_boolean(fields["subscribed"])
        publisher = parse_text(fields["publisher"], "Unknown")
        subject = parse_text(fields["subject_area"], "General")
        issn = parse_text(fields["issn"]) or None
        cost = parse_currency(
            fields["cost"],
            (self.settings.cost_fallback_min, self.settings.cost_fallback_max),
            self.synthesizer.rng,
        )

        journal_id = await store.get_or_create_journal(
            title, publisher, subject, issn=issn, source=university_name
        )
        plan = self.synthesizer.plan(university_id, journal_id, is_subscribed, cost.amount, cost.synthetic)
        subscriptions, events = await record_activity(store.session, plan)
        return _RowOutcome(subscriptions=subscriptions, events=events)


async def clear_all(session: AsyncSession) -> None:
    """Delete every row of the four collections, children first."""
    await session.execute(delete(BrowsingHistoryEvent))
    await session.execute(delete(Subscription))
    await session.execute(delete(Journal))
    await session.execute(delete(University))
