"""Keyword router — picks a canned report for a chat message.

Routing is plain substring matching on the lower-cased message, checked
in a fixed precedence order. The first rule that fires wins.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from publishing_intel.reporting import queries, reports

logger = logging.getLogger(__name__)

RESEARCH_TERMS = ("analysis", "statistics", "research", "data")
SALES_TERMS = ("analysis", "statistics", "revenue", "sales", "performance")
STATS_INTENT_TERMS = ("statistics", "analysis", "metrics", "performance")
SALES_INTENT_TERMS = ("revenue", "sales", "conversion", "pipeline")


def _has(text: str, terms: tuple[str, ...]) -> bool:
    return any(t in text for t in terms)


def route_message(message: str, assistant_type: str = "general") -> str:
    """Return the report key for *message*.

    Keys: research, sales, recommendations, subscriptions, universities,
    browsing, overview.
    """
    text = message.lower()

    if assistant_type == "research" and _has(text, RESEARCH_TERMS):
        return "research"
    if assistant_type == "sales" and _has(text, SALES_TERMS):
        return "sales"
    if _has(text, STATS_INTENT_TERMS):
        return "sales" if _has(text, SALES_INTENT_TERMS) else "research"
    if "recommend" in text and ("business strategy" in text or "ai" in text):
        return "recommendations"
    if "subscription" in text or "journal" in text:
        return "subscriptions"
    if "university" in text or "comparison" in text:
        return "universities"
    if "browse" in text or "gap" in text:
        return "browsing"
    return "overview"


async def build_report(
    session: AsyncSession,
    report_key: str,
    assistant_type: str = "general",
    university_filter: str | None = "all",
) -> str:
    """Run the queries behind *report_key* and render the text."""
    if report_key == "research":
        return reports.research_report(await queries.journal_activity_rows(session, university_filter), university_filter)
    if report_key == "sales":
        return reports.sales_report(await queries.journal_activity_rows(session, university_filter), university_filter)
    if report_key == "recommendations":
        return reports.strategy_report(await queries.strategy_journal_rows(session))
    if report_key == "subscriptions":
        return reports.subscription_report(await queries.subscription_rows(session, university_filter), university_filter)
    if report_key == "universities":
        return reports.university_report(await queries.university_rows(session))
    if report_key == "browsing":
        return reports.browsing_report(await queries.browsing_rows(session))
    return reports.overview_report(await queries.overview_counts(session), assistant_type)


async def generate_response(
    session: AsyncSession,
    message: str,
    assistant_type: str = "general",
    university_filter: str | None = "all",
) -> str:
    report_key = route_message(message, assistant_type)
    logger.info("Routed %s message to %s report", assistant_type, report_key)
    return await build_report(session, report_key, assistant_type, university_filter)
