"""Aggregate read queries over the four collections.

Every function takes an ``AsyncSession`` and returns plain dicts so the
report builders and API routes never touch ORM objects.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy import Select, and_, case, func, literal_column, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from publishing_intel.db.models import BrowsingHistoryEvent, Journal, Subscription, University

logger = logging.getLogger(__name__)

COLLECTIONS = {
    "universities": University,
    "journals": Journal,
    "subscriptions": Subscription,
    "browsing_history": BrowsingHistoryEvent,
}

STRATEGY_TERMS = ["business", "strategy", "ai", "intelligence"]


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    return value


def _rows(result) -> list[dict[str, Any]]:
    return [{k: _plain(v) for k, v in row._mapping.items()} for row in result]


def _filter_university(stmt: Select, university_filter: str | None) -> Select:
    if university_filter and university_filter.lower() != "all":
        stmt = stmt.where(University.name.ilike(f"%{university_filter}%"))
    return stmt


# ---------------------------------------------------------------------------
# Collection-level reads
# ---------------------------------------------------------------------------


async def table_counts(session: AsyncSession) -> dict[str, int]:
    counts = {}
    for name, model in COLLECTIONS.items():
        counts[name] = int(await session.scalar(select(func.count()).select_from(model)) or 0)
    return counts


async def list_universities(session: AsyncSession) -> list[dict[str, Any]]:
    result = await session.execute(
        select(University.id, University.name, University.country, University.type, University.created_at)
        .order_by(University.name)
    )
    return _rows(result)


async def dashboard_summary(session: AsyncSession) -> dict[str, Any]:
    result = await session.execute(
        select(
            func.count(func.distinct(Subscription.id)).label("total_subscriptions"),
            func.count(func.distinct(Subscription.university_id)).label("total_universities"),
            func.count(func.distinct(Subscription.journal_id)).label("total_journals"),
            func.sum(Subscription.annual_cost).label("total_cost"),
            func.sum(case((Subscription.cost_is_synthetic.is_(True), 1), else_=0)).label("synthetic_costs"),
        ).where(Subscription.status == "active")
    )
    row = {k: _plain(v) for k, v in result.one()._mapping.items()}
    return {
        "totalSubscriptions": row["total_subscriptions"] or 0,
        "totalUniversities": row["total_universities"] or 0,
        "totalJournals": row["total_journals"] or 0,
        "revenuePotential": row["total_cost"] or 0,
        "syntheticCostSubscriptions": row["synthetic_costs"] or 0,
    }


async def list_subscriptions(session: AsyncSession, limit: int = 50) -> list[dict[str, Any]]:
    result = await session.execute(
        select(
            Subscription.id,
            Subscription.university_id,
            Subscription.journal_id,
            Subscription.subscription_type,
            Subscription.start_date,
            Subscription.end_date,
            Subscription.annual_cost,
            Subscription.cost_is_synthetic,
            Subscription.usage_count,
            Subscription.status,
            University.name.label("university_name"),
            University.country,
            Journal.title.label("journal_title"),
            Journal.publisher,
            Journal.subject_area,
        )
        .join(University, Subscription.university_id == University.id)
        .join(Journal, Subscription.journal_id == Journal.id)
        .where(Subscription.status == "active")
        .order_by(Subscription.annual_cost.desc())
        .limit(limit)
    )
    return _rows(result)


async def overview_counts(session: AsyncSession) -> dict[str, int]:
    return {
        "universities": int(await session.scalar(select(func.count()).select_from(University)) or 0),
        "journals": int(await session.scalar(select(func.count()).select_from(Journal)) or 0),
        "subscriptions": int(
            await session.scalar(select(func.count()).select_from(Subscription).where(Subscription.status == "active"))
            or 0
        ),
    }


# ---------------------------------------------------------------------------
# Report inputs
# ---------------------------------------------------------------------------


async def subscription_rows(
    session: AsyncSession, university_filter: str | None = "all", limit: int = 10
) -> list[dict[str, Any]]:
    stmt = (
        select(
            University.name.label("university"),
            Journal.title.label("journal"),
            Journal.subject_area,
            Subscription.annual_cost,
            Subscription.cost_is_synthetic,
        )
        .join(University, Subscription.university_id == University.id)
        .join(Journal, Subscription.journal_id == Journal.id)
        .where(Subscription.status == "active")
    )
    stmt = _filter_university(stmt, university_filter)
    result = await session.execute(stmt.order_by(Subscription.annual_cost.desc()).limit(limit))
    return _rows(result)


async def university_rows(session: AsyncSession) -> list[dict[str, Any]]:
    result = await session.execute(
        select(
            University.name,
            University.country,
            func.count(Subscription.id).label("subscription_count"),
            func.coalesce(func.sum(Subscription.annual_cost), 0).label("total_cost"),
        )
        .outerjoin(
            Subscription,
            and_(Subscription.university_id == University.id, Subscription.status == "active"),
        )
        .group_by(University.id, University.name, University.country)
        .order_by(func.count(Subscription.id).desc(), University.name)
    )
    return _rows(result)


def _subscribed_journals():
    return select(Subscription.journal_id).where(Subscription.status == "active")


async def browsing_rows(session: AsyncSession, limit: int = 10) -> list[dict[str, Any]]:
    """Journals ranked by browsing sessions, flagged by whether anyone subscribes."""
    subscribed = _subscribed_journals()
    result = await session.execute(
        select(
            Journal.title,
            func.count(BrowsingHistoryEvent.id).label("browse_sessions"),
            func.sum(BrowsingHistoryEvent.requested_trial).label("trial_requests"),
            case((Journal.id.in_(subscribed), 1), else_=0).label("is_subscribed"),
        )
        .join(BrowsingHistoryEvent, BrowsingHistoryEvent.journal_id == Journal.id)
        .group_by(Journal.id, Journal.title)
        .order_by(func.count(BrowsingHistoryEvent.id).desc(), Journal.title)
        .limit(limit)
    )
    return _rows(result)


def _activity_subquery():
    return (
        select(
            BrowsingHistoryEvent.university_id.label("university_id"),
            BrowsingHistoryEvent.journal_id.label("journal_id"),
            func.count(BrowsingHistoryEvent.id).label("browsing_sessions"),
            func.sum(BrowsingHistoryEvent.view_count).label("total_views"),
            func.avg(BrowsingHistoryEvent.session_duration).label("avg_session_duration"),
            func.sum(BrowsingHistoryEvent.pages_viewed).label("total_pages"),
            func.sum(BrowsingHistoryEvent.downloaded_samples).label("total_downloads"),
            func.sum(BrowsingHistoryEvent.requested_trial).label("trial_requests"),
            func.count(func.distinct(BrowsingHistoryEvent.view_date)).label("active_days"),
            func.min(BrowsingHistoryEvent.view_date).label("first_interaction"),
            func.max(BrowsingHistoryEvent.view_date).label("last_interaction"),
        )
        .group_by(BrowsingHistoryEvent.university_id, BrowsingHistoryEvent.journal_id)
        .subquery()
    )


async def journal_activity_rows(
    session: AsyncSession, university_filter: str | None = "all"
) -> list[dict[str, Any]]:
    """One row per browsed (university, journal) pair with its engagement totals."""
    activity = _activity_subquery()
    stmt = (
        select(
            Journal.title,
            Journal.subject_area,
            Journal.publisher,
            Journal.keywords,
            University.name.label("university"),
            University.country,
            Subscription.annual_cost,
            Subscription.cost_is_synthetic,
            case((Subscription.id.is_not(None), 1), else_=0).label("is_subscribed"),
            activity.c.browsing_sessions,
            activity.c.total_views,
            activity.c.avg_session_duration,
            activity.c.total_pages,
            activity.c.total_downloads,
            activity.c.trial_requests,
            activity.c.active_days,
            activity.c.first_interaction,
            activity.c.last_interaction,
        )
        .select_from(activity)
        .join(Journal, Journal.id == activity.c.journal_id)
        .join(University, University.id == activity.c.university_id)
        .outerjoin(
            Subscription,
            and_(
                Subscription.university_id == activity.c.university_id,
                Subscription.journal_id == activity.c.journal_id,
                Subscription.status == "active",
            ),
        )
    )
    stmt = _filter_university(stmt, university_filter)
    result = await session.execute(stmt.order_by(activity.c.browsing_sessions.desc(), Journal.title))
    return _rows(result)


async def strategy_journal_rows(session: AsyncSession) -> list[dict[str, Any]]:
    """Business-strategy / AI journals with their best subscription and browsing volume."""
    sessions = (
        select(BrowsingHistoryEvent.journal_id, func.count(BrowsingHistoryEvent.id).label("browsing_sessions"))
        .group_by(BrowsingHistoryEvent.journal_id)
        .subquery()
    )
    top_cost = (
        select(Subscription.journal_id, func.max(Subscription.annual_cost).label("annual_cost"))
        .where(Subscription.status == "active")
        .group_by(Subscription.journal_id)
        .subquery()
    )
    conditions = []
    for term in STRATEGY_TERMS:
        pattern = f"%{term}%"
        conditions.extend([Journal.keywords.ilike(pattern), Journal.title.ilike(pattern)])
    conditions.append(Journal.subject_area.ilike("%business%"))

    result = await session.execute(
        select(
            Journal.title,
            Journal.subject_area,
            top_cost.c.annual_cost,
            func.coalesce(sessions.c.browsing_sessions, 0).label("browsing_sessions"),
            case((top_cost.c.annual_cost.is_not(None), 1), else_=0).label("is_subscribed"),
        )
        .outerjoin(sessions, sessions.c.journal_id == Journal.id)
        .outerjoin(top_cost, top_cost.c.journal_id == Journal.id)
        .where(or_(*conditions))
        .order_by(top_cost.c.annual_cost.desc().nulls_last(), func.coalesce(sessions.c.browsing_sessions, 0).desc())
    )
    return _rows(result)


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

SEARCH_TYPES = ("journals", "universities", "subscriptions")
SEARCH_LIMIT_ALL = 50
SEARCH_LIMIT_ONE = 20


def _journal_search(pattern: str) -> Select:
    return (
        select(
            literal_column("'journal'").label("type"),
            Journal.id,
            Journal.title.label("name"),
            Journal.publisher.label("details"),
            Journal.subject_area.label("category"),
        )
        .where(or_(Journal.title.ilike(pattern), Journal.publisher.ilike(pattern), Journal.subject_area.ilike(pattern)))
        .order_by(Journal.title)
    )


def _university_search(pattern: str) -> Select:
    return (
        select(
            literal_column("'university'").label("type"),
            University.id,
            University.name,
            University.country.label("details"),
            University.type.label("category"),
        )
        .where(or_(University.name.ilike(pattern), University.country.ilike(pattern)))
        .order_by(University.name)
    )


def _subscription_search(pattern: str) -> Select:
    return (
        select(
            literal_column("'subscription'").label("type"),
            Subscription.id,
            (University.name + " - " + Journal.title).label("name"),
            Subscription.annual_cost.label("details"),
            Subscription.status.label("category"),
        )
        .join(University, Subscription.university_id == University.id)
        .join(Journal, Subscription.journal_id == Journal.id)
        .where(or_(University.name.ilike(pattern), Journal.title.ilike(pattern)))
        .order_by(University.name, Journal.title)
    )


async def search(session: AsyncSession, query: str, search_type: str = "all") -> list[dict[str, Any]]:
    """Substring search over journals, universities and subscriptions.

    ``search_type`` is ``"all"`` (up to 50 hits across every collection) or
    one of ``SEARCH_TYPES`` (up to 20 hits).

    Raises:
        ValueError: unknown ``search_type``.
    """
    builders = {
        "journals": _journal_search,
        "universities": _university_search,
        "subscriptions": _subscription_search,
    }
    if search_type == "all":
        selected, limit = list(SEARCH_TYPES), SEARCH_LIMIT_ALL
    elif search_type in builders:
        selected, limit = [search_type], SEARCH_LIMIT_ONE
    else:
        raise ValueError(f"Invalid search type: {search_type}")

    pattern = f"%{query}%"
    hits: list[dict[str, Any]] = []
    for name in selected:
        if len(hits) >= limit:
            break
        result = await session.execute(builders[name](pattern).limit(limit - len(hits)))
        hits.extend(_rows(result))

    for hit in hits:
        if hit["type"] == "subscription":
            hit["details"] = f"Cost: ${hit['details']:,.0f}"
    logger.debug("Search %r (%s): %d hit(s)", query, search_type, len(hits))
    return hits
