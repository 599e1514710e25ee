"""Subscription and browsing-history synthesis for ingested rows.

Export files only say *whether* a university subscribes to a journal. The
dashboard also wants engagement telemetry, so a plausible batch of browsing
events is synthesized per (university, journal) pair. Every synthesized
event carries ``is_synthetic=True``.

The shape of the draws lives in ``TelemetryPolicy``. Subscribed pairs get
fewer sessions (their readers are assumed to arrive through other channels,
which this telemetry under-counts — an assumption, not a measurement) but a
higher engagement multiplier; unsubscribed pairs get more sessions and a
higher trial-request probability.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import date, timedelta

from sqlalchemy import insert
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from publishing_intel.db.models import BrowsingHistoryEvent, Subscription

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Journal keywords
# ---------------------------------------------------------------------------

# trigger substrings (matched against the lower-cased title) -> keywords appended
KEYWORD_CLUSTERS: list[tuple[tuple[str, ...], tuple[str, ...]]] = [
    (("business", "strategy"), ("business strategy", "management", "strategic planning")),
    (("ai", "artificial intelligence"), ("artificial intelligence", "machine learning", "AI strategy")),
    (("technology", "digital"), ("technology strategy", "digital transformation", "innovation")),
]


def derive_keywords(title: str, subject_area: str | None = None) -> str:
    """Comma-joined keyword string: title, subject, then any triggered clusters."""
    keywords: list[str] = []
    if title:
        keywords.append(title.lower())
    if subject_area:
        keywords.append(subject_area.lower())

    title_lower = (title or "").lower()
    for triggers, cluster in KEYWORD_CLUSTERS:
        if any(t in title_lower for t in triggers):
            keywords.extend(cluster)
    return ", ".join(keywords)


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TelemetryPolicy:
    """Bounds for every pseudo-random draw. Ranges are inclusive."""

    subscribed_sessions: tuple[int, int] = (5, 14)
    unsubscribed_sessions: tuple[int, int] = (10, 25)
    subscribed_multiplier: float = 1.5
    unsubscribed_multiplier: float = 1.0
    subscribed_trial_probability: float = 0.05
    unsubscribed_trial_probability: float = 0.25
    lookback_days: int = 365
    # (base, spread): value = base + randrange(int(spread * multiplier))
    view_count: tuple[int, int] = (1, 8)
    session_duration: tuple[int, int] = (60, 1500)
    pages_viewed: tuple[int, int] = (1, 15)
    downloaded_samples: tuple[int, int] = (0, 4)
    usage_count: tuple[int, int] = (200, 1199)

    def session_range(self, is_subscribed: bool) -> tuple[int, int]:
        return self.subscribed_sessions if is_subscribed else self.unsubscribed_sessions

    def multiplier(self, is_subscribed: bool) -> float:
        return self.subscribed_multiplier if is_subscribed else self.unsubscribed_multiplier

    def trial_probability(self, is_subscribed: bool) -> float:
        return self.subscribed_trial_probability if is_subscribed else self.unsubscribed_trial_probability


DEFAULT_POLICY = TelemetryPolicy()


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------


@dataclass
class ActivityPlan:
    """Records to write for one (university, journal) pair."""

    university_id: int
    journal_id: int
    subscription: dict | None = None
    events: list[dict] = field(default_factory=list)


class TelemetrySynthesizer:
    """Draws subscription and browsing records according to a policy.

    Pass a seeded ``random.Random`` (or subclass and override ``plan``)
    for deterministic output.
    """

    def __init__(
        self,
        policy: TelemetryPolicy = DEFAULT_POLICY,
        rng: random.Random | None = None,
        today: date | None = None,
        start_date: date = date(2024, 1, 1),
        end_date: date = date(2024, 12, 31),
    ) -> None:
        self.policy = policy
        self.rng = rng or random.Random()
        self._today = today
        self.start_date = start_date
        self.end_date = end_date

    @property
    def today(self) -> date:
        return self._today or date.today()

    def _scaled(self, bounds: tuple[int, int], multiplier: float) -> int:
        base, spread = bounds
        width = max(1, int(spread * multiplier))
        return base + self.rng.randrange(width)

    def session_count(self, is_subscribed: bool) -> int:
        low, high = self.policy.session_range(is_subscribed)
        return self.rng.randint(low, high)

    def event(self, university_id: int, journal_id: int, is_subscribed: bool) -> dict:
        m = self.policy.multiplier(is_subscribed)
        days_ago = self.rng.randrange(self.policy.lookback_days)
        return {
            "university_id": university_id,
            "journal_id": journal_id,
            "view_date": self.today - timedelta(days=days_ago),
            "view_count": self._scaled(self.policy.view_count, m),
            "session_duration": self._scaled(self.policy.session_duration, m),
            "pages_viewed": self._scaled(self.policy.pages_viewed, m),
            "downloaded_samples": self._scaled(self.policy.downloaded_samples, m),
            "requested_trial": 1 if self.rng.random() < self.policy.trial_probability(is_subscribed) else 0,
            "is_synthetic": True,
        }

    def plan(
        self,
        university_id: int,
        journal_id: int,
        is_subscribed: bool,
        cost: float,
        cost_is_synthetic: bool = False,
    ) -> ActivityPlan:
        plan = ActivityPlan(university_id=university_id, journal_id=journal_id)
        if is_subscribed:
            low, high = self.policy.usage_count
            plan.subscription = {
                "university_id": university_id,
                "journal_id": journal_id,
                "subscription_type": "institutional",
                "start_date": self.start_date,
                "end_date": self.end_date,
                "annual_cost": cost,
                "cost_is_synthetic": cost_is_synthetic,
                "usage_count": self.rng.randint(low, high),
                "status": "active",
            }
        plan.events = [
            self.event(university_id, journal_id, is_subscribed)
            for _ in range(self.session_count(is_subscribed))
        ]
        return plan


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def _dialect_insert(session: AsyncSession):
    name = session.bind.dialect.name
    if name == "postgresql":
        return postgresql.insert
    if name == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Subscription upsert not supported for dialect {name!r}")


async def upsert_subscription(session: AsyncSession, values: dict) -> None:
    """Insert a subscription, replacing cost/dates on the (university, journal, status) key."""
    stmt = _dialect_insert(session)(Subscription).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["university_id", "journal_id", "status"],
        set_={
            "subscription_type": stmt.excluded.subscription_type,
            "start_date": stmt.excluded.start_date,
            "end_date": stmt.excluded.end_date,
            "annual_cost": stmt.excluded.annual_cost,
            "cost_is_synthetic": stmt.excluded.cost_is_synthetic,
            "usage_count": stmt.excluded.usage_count,
        },
    )
    await session.execute(stmt)


async def record_activity(session: AsyncSession, plan: ActivityPlan) -> tuple[int, int]:
    """Write a plan. Returns (subscriptions written, events written)."""
    subscriptions = 0
    if plan.subscription is not None:
        await upsert_subscription(session, plan.subscription)
        subscriptions = 1
    if plan.events:
        await session.execute(insert(BrowsingHistoryEvent), plan.events)
    return subscriptions, len(plan.events)
