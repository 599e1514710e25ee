"""Tests for ingestion/pipeline.py — end-to-end ingestion against in-memory SQLite."""

import random

import openpyxl
import pytest
from pydantic import ValidationError
from sqlalchemy import func, select

from config.settings import Settings
from publishing_intel.db.connection import Database
from publishing_intel.db.models import BrowsingHistoryEvent, Journal, Subscription, University
from publishing_intel.ingestion.pipeline import IngestionPipeline
from publishing_intel.ingestion.synthesizer import TelemetrySynthesizer

AALBORG = "Export_Aalborg_University_20240101_000000.xlsx"
MAHIDOL = "Export_Mahidol_University_20240101_000000.xlsx"


def _write_workbook(path, rows, sheet="Sheet1", extra_sheets=None):
    wb = openpyxl.Workbook()
    wb.remove(wb.active)
    for name, extra_rows in (extra_sheets or {}).items():
        ws = wb.create_sheet(name)
        for row in extra_rows:
            ws.append(row)
    ws = wb.create_sheet(sheet)
    for row in rows:
        ws.append(row)
    wb.save(path)
    return path


async def _pipeline(tmp_path, synthesizer=None, **overrides):
    database = Database("sqlite+aiosqlite://")
    await database.create_tables()
    settings = Settings(data_directory=str(tmp_path), **overrides)
    synthesizer = synthesizer or TelemetrySynthesizer(rng=random.Random(0))
    return IngestionPipeline(database, settings, synthesizer=synthesizer)


async def _count(database, model, *where):
    async with database.session() as session:
        return await session.scalar(select(func.count()).select_from(model).where(*where))


async def _subscriptions(database):
    async with database.session() as session:
        result = await session.execute(
            select(University.name, Journal.title, Subscription.annual_cost, Subscription.cost_is_synthetic)
            .join(University, Subscription.university_id == University.id)
            .join(Journal, Subscription.journal_id == Journal.id)
            .order_by(University.name, Journal.title)
        )
        return [tuple(r) for r in result]


async def _events_for(database, title):
    async with database.session() as session:
        return await session.scalar(
            select(func.count())
            .select_from(BrowsingHistoryEvent)
            .join(Journal, BrowsingHistoryEvent.journal_id == Journal.id)
            .where(Journal.title == title)
        )


# ---------------------------------------------------------------------------
# End-to-end
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_aalborg_export_end_to_end(tmp_path):
    _write_workbook(
        tmp_path / AALBORG,
        [["Journal", "current_year", "cost"], ["Nature", "1", 5000], ["Unknown Weekly", "0", None]],
    )
    pipeline = await _pipeline(tmp_path)
    report = await pipeline.run()
    db = pipeline.database

    assert report.status == "completed"
    assert report.files_ingested == 1
    result = report.files[0]
    assert result.university == "Aalborg University"
    assert result.rows_processed == 2
    assert result.subscriptions == 1
    assert result.journals_created == 2

    async with db.session() as session:
        uni = (await session.execute(select(University))).scalar_one()
        titles = set((await session.execute(select(Journal.title))).scalars())
    assert uni.name == "Aalborg University"
    assert uni.country == "Denmark"
    assert titles == {"Nature", "Unknown Weekly"}

    assert await _subscriptions(db) == [("Aalborg University", "Nature", 5000.0, False)]
    assert await _count(db, Subscription, Subscription.status == "active") == 1

    nature_events = await _events_for(db, "Nature")
    weekly_events = await _events_for(db, "Unknown Weekly")
    assert 5 <= nature_events <= 14
    assert 10 <= weekly_events <= 25
    assert result.browsing_events == nature_events + weekly_events
    await db.dispose()


@pytest.mark.asyncio
async def test_row_without_title_is_skipped(tmp_path):
    _write_workbook(
        tmp_path / AALBORG,
        [["Journal", "current_year"], ["Nature", "1"], [None, "1"], ["   ", "yes"]],
    )
    pipeline = await _pipeline(tmp_path)
    result = await pipeline.ingest_file(tmp_path / AALBORG)

    assert result.status == "ingested"
    assert result.rows_processed == 1
    assert result.rows_skipped == 2
    assert await _count(pipeline.database, Journal) == 1
    assert await _count(pipeline.database, Subscription) == 1
    assert await _count(pipeline.database, BrowsingHistoryEvent) == result.browsing_events
    assert await _events_for(pipeline.database, "Nature") == result.browsing_events
    await pipeline.database.dispose()


@pytest.mark.asyncio
async def test_same_journal_across_files_is_one_row(tmp_path):
    _write_workbook(tmp_path / AALBORG, [["Journal Title", "Subscribed"], ["Nature", "yes"], ["Nature", "yes"]])
    _write_workbook(tmp_path / MAHIDOL, [["Journal Title", "Subscribed"], ["Nature", "1"]])
    pipeline = await _pipeline(tmp_path)
    report = await pipeline.run()
    db = pipeline.database

    assert report.files_ingested == 2
    assert await _count(db, Journal) == 1
    subs = await _subscriptions(db)
    assert [(u, t) for u, t, _, _ in subs] == [("Aalborg University", "Nature"), ("Mahidol University", "Nature")]
    await db.dispose()


@pytest.mark.asyncio
async def test_reingest_replaces_previous_state(tmp_path):
    path = tmp_path / AALBORG
    _write_workbook(path, [["Journal", "current_year"], ["Nature", "1"], ["Science", "1"]])
    pipeline = await _pipeline(tmp_path)
    await pipeline.ingest_file(path)
    db = pipeline.database
    assert len(await _subscriptions(db)) == 2

    _write_workbook(path, [["Journal", "current_year"], ["Nature", "0"], ["Science", "1"]])
    second = await pipeline.ingest_file(path)

    assert [t for _, t, _, _ in await _subscriptions(db)] == ["Science"]
    assert await _count(db, BrowsingHistoryEvent) == second.browsing_events
    assert await _count(db, University) == 1
    await db.dispose()


@pytest.mark.asyncio
async def test_missing_cost_uses_flagged_fallback(tmp_path):
    _write_workbook(
        tmp_path / AALBORG,
        [["Journal", "Active", "Price"], ["A", "1", None], ["B", "1", "n/a"], ["C", "1", 0], ["D", "1", "$1,250"]],
    )
    pipeline = await _pipeline(tmp_path)
    await pipeline.run()

    subs = {t: (cost, synthetic) for _, t, cost, synthetic in await _subscriptions(pipeline.database)}
    assert subs["D"] == (1250.0, False)
    for title in "ABC":
        cost, synthetic = subs[title]
        assert synthetic is True
        assert 15000 <= cost <= 65000
    await pipeline.database.dispose()


@pytest.mark.asyncio
async def test_configured_fallback_range(tmp_path):
    _write_workbook(tmp_path / AALBORG, [["Journal", "Active"], ["A", "1"], ["B", "1"]])
    pipeline = await _pipeline(tmp_path, cost_fallback_min=100.0, cost_fallback_max=110.0)
    await pipeline.run()
    for _, _, cost, _ in await _subscriptions(pipeline.database):
        assert 100 <= cost <= 110
    await pipeline.database.dispose()


def test_fallback_range_without_whole_amount_is_rejected(tmp_path):
    with pytest.raises(ValidationError, match="contains no whole amount"):
        Settings(data_directory=str(tmp_path), cost_fallback_min=100.2, cost_fallback_max=100.8)


@pytest.mark.asyncio
async def test_inactive_column_does_not_take_subscription_flag(tmp_path):
    _write_workbook(
        tmp_path / AALBORG,
        [["Journal", "Inactive Since", "current_year", "cost"], ["Nature", "2019", "1", 5000]],
    )
    pipeline = await _pipeline(tmp_path)
    result = await pipeline.ingest_file(tmp_path / AALBORG)

    assert result.subscriptions == 1
    assert await _subscriptions(pipeline.database) == [("Aalborg University", "Nature", 5000.0, False)]
    await pipeline.database.dispose()

# ---------------------------------------------------------------------------
# Run guard and reprocess
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_run_skips_when_data_present(tmp_path):
    _write_workbook(tmp_path / AALBORG, [["Journal", "current_year"], ["Nature", "1"]])
    pipeline = await _pipeline(tmp_path)
    first = await pipeline.run()
    second = await pipeline.run()

    assert first.status == "completed"
    assert second.status == "skipped"
    assert second.files == []
    assert second.to_dict()["reason"] == "data already loaded"
    await pipeline.database.dispose()


@pytest.mark.asyncio
async def test_force_run_ignores_guard(tmp_path):
    _write_workbook(tmp_path / AALBORG, [["Journal", "current_year"], ["Nature", "1"]])
    pipeline = await _pipeline(tmp_path)
    await pipeline.run()
    again = await pipeline.run(force=True)
    assert again.status == "completed"
    assert await _count(pipeline.database, Subscription) == 1
    await pipeline.database.dispose()


@pytest.mark.asyncio
async def test_reset_and_reprocess_matches_fresh_run(tmp_path):
    _write_workbook(
        tmp_path / AALBORG, [["Journal", "current_year", "cost"], ["Nature", "1", 1000], ["Science", "0", None]]
    )
    _write_workbook(tmp_path / MAHIDOL, [["Journal", "current_year", "cost"], ["Nature", "0", None], ["Cell", "1", 2000]])
    pipeline = await _pipeline(tmp_path)
    await pipeline.run()
    db = pipeline.database
    before = (await _count(db, University), await _count(db, Journal), await _subscriptions(db))

    # an entity no file mentions must disappear on reprocess
    async with db.session() as session:
        async with session.begin():
            session.add(University(name="Stale University"))

    report = await pipeline.reset_and_reprocess()
    after = (await _count(db, University), await _count(db, Journal), await _subscriptions(db))

    assert report.status == "completed"
    assert report.files_ingested == 2
    assert after == before
    for title in ("Nature", "Science", "Cell"):
        assert await _events_for(db, title) > 0
    await db.dispose()


# ---------------------------------------------------------------------------
# Failure containment
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_unreadable_file_does_not_stop_batch(tmp_path):
    (tmp_path / MAHIDOL).write_bytes(b"not a workbook")
    _write_workbook(tmp_path / AALBORG, [["Journal", "current_year"], ["Nature", "1"]])
    pipeline = await _pipeline(tmp_path)
    report = await pipeline.run()

    by_name = {f.filename: f for f in report.files}
    assert by_name[MAHIDOL].status == "failed"
    assert "Cannot read workbook" in by_name[MAHIDOL].error
    assert by_name[AALBORG].status == "ingested"
    assert report.files_failed == 1
    assert await _count(pipeline.database, University) == 1
    await pipeline.database.dispose()


@pytest.mark.asyncio
async def test_unidentified_file_is_skipped(tmp_path):
    _write_workbook(tmp_path / "notes.xlsx", [["Journal", "current_year"], ["Nature", "1"]])
    pipeline = await _pipeline(tmp_path)
    result = await pipeline.ingest_file(tmp_path / "notes.xlsx")
    assert result.status == "failed"
    assert result.university is None
    assert await _count(pipeline.database, Journal) == 0
    await pipeline.database.dispose()


@pytest.mark.asyncio
async def test_strict_identity_rejects_unknown_university(tmp_path):
    name = "Export_University_of_Oslo_20240101_000000.xlsx"
    _write_workbook(tmp_path / name, [["Journal", "current_year"], ["Nature", "1"]])
    pipeline = await _pipeline(tmp_path, require_known_university=True)
    result = await pipeline.ingest_file(tmp_path / name)
    assert result.status == "failed"
    assert "not a known university" in result.error
    await pipeline.database.dispose()


@pytest.mark.asyncio
async def test_missing_title_column_rolls_back_file(tmp_path):
    path = tmp_path / AALBORG
    _write_workbook(path, [["Journal", "current_year"], ["Nature", "1"]])
    pipeline = await _pipeline(tmp_path)
    await pipeline.ingest_file(path)
    db = pipeline.database
    events_before = await _count(db, BrowsingHistoryEvent)

    _write_workbook(path, [["Cost", "current_year"], [100, "1"]])
    result = await pipeline.ingest_file(path)

    assert result.status == "failed"
    assert "No journal title column" in result.error
    # previous data for the university survives
    assert len(await _subscriptions(db)) == 1
    assert await _count(db, BrowsingHistoryEvent) == events_before
    await db.dispose()


@pytest.mark.asyncio
async def test_header_only_reexport_keeps_previous_data(tmp_path):
    path = tmp_path / AALBORG
    _write_workbook(path, [["Journal", "current_year"], ["Nature", "1"], ["Science", "yes"]])
    pipeline = await _pipeline(tmp_path)
    await pipeline.ingest_file(path)
    db = pipeline.database
    events_before = await _count(db, BrowsingHistoryEvent)

    _write_workbook(path, [["Journal", "current_year"]])
    result = await pipeline.ingest_file(path)

    assert result.status == "failed"
    assert "has no rows" in result.error
    assert result.rows_total == 0
    assert len(await _subscriptions(db)) == 2
    assert await _count(db, BrowsingHistoryEvent) == events_before
    await db.dispose()


@pytest.mark.asyncio
async def test_empty_sheet_creates_nothing(tmp_path):
    _write_workbook(tmp_path / MAHIDOL, [])
    pipeline = await _pipeline(tmp_path)
    report = await pipeline.run()

    assert report.files_failed == 1
    assert await _count(pipeline.database, University) == 0
    await pipeline.database.dispose()


class _FailingSecondRow(TelemetrySynthesizer):
    def __init__(self):
        super().__init__(rng=random.Random(0))
        self.calls = 0

    def plan(self, *args, **kwargs):
        self.calls += 1
        if self.calls == 2:
            raise RuntimeError("synthetic failure")
        return super().plan(*args, **kwargs)


@pytest.mark.asyncio
async def test_row_failure_is_isolated(tmp_path):
    _write_workbook(
        tmp_path / AALBORG,
        [["Journal", "current_year"], ["Nature", "1"], ["Science", "1"], ["Cell", "1"]],
    )
    pipeline = await _pipeline(tmp_path, synthesizer=_FailingSecondRow())
    result = await pipeline.ingest_file(tmp_path / AALBORG)
    db = pipeline.database

    assert result.status == "ingested"
    assert result.rows_processed == 2
    assert result.rows_failed == 1
    assert result.journals_created == 2
    async with db.session() as session:
        titles = set((await session.execute(select(Journal.title))).scalars())
    assert titles == {"Nature", "Cell"}
    assert [t for _, t, _, _ in await _subscriptions(db)] == ["Cell", "Nature"]
    await db.dispose()


# ---------------------------------------------------------------------------
# Discovery and sheet choice
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_discover_files_filters_and_sorts(tmp_path):
    _write_workbook(tmp_path / MAHIDOL, [["Journal"], ["A"]])
    _write_workbook(tmp_path / AALBORG, [["Journal"], ["A"]])
    (tmp_path / "~$Export_Aalborg_University_20240101_000000.xlsx").write_bytes(b"lock")
    (tmp_path / "readme.txt").write_text("hi")
    (tmp_path / "sub.xlsx").mkdir()
    pipeline = await _pipeline(tmp_path)

    assert [p.name for p in pipeline.discover_files()] == [AALBORG, MAHIDOL]
    await pipeline.database.dispose()


@pytest.mark.asyncio
async def test_missing_data_directory(tmp_path):
    pipeline = await _pipeline(tmp_path / "absent")
    report = await pipeline.run()
    assert report.status == "completed"
    assert report.files == []
    await pipeline.database.dispose()


@pytest.mark.asyncio
async def test_pattern_sheet_is_chosen(tmp_path):
    _write_workbook(
        tmp_path / AALBORG,
        [["Journal", "current_year"], ["Nature", "1"]],
        sheet="Journal Subscriptions",
        extra_sheets={"Summary": [["Journal", "current_year"], ["Wrong Sheet", "1"]]},
    )
    pipeline = await _pipeline(tmp_path)
    result = await pipeline.ingest_file(tmp_path / AALBORG)
    assert result.sheet == "Journal Subscriptions"
    assert [t for _, t, _, _ in await _subscriptions(pipeline.database)] == ["Nature"]
    await pipeline.database.dispose()


@pytest.mark.asyncio
async def test_first_sheet_strategy(tmp_path):
    _write_workbook(
        tmp_path / AALBORG,
        [["Journal", "current_year"], ["Nature", "1"]],
        sheet="Journal Subscriptions",
        extra_sheets={"Summary": [["Journal", "current_year"], ["Front Sheet", "1"]]},
    )
    pipeline = await _pipeline(tmp_path, sheet_selection="first")
    result = await pipeline.ingest_file(tmp_path / AALBORG)
    assert result.sheet == "Summary"
    assert [t for _, t, _, _ in await _subscriptions(pipeline.database)] == ["Front Sheet"]
    await pipeline.database.dispose()
