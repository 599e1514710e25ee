"""Tests for reporting/reports.py — plain-text report builders."""

from publishing_intel.reporting.reports import (
    EXTERNAL_RECOMMENDATIONS,
    browsing_report,
    no_data_message,
    overview_report,
    research_report,
    sales_report,
    strategy_report,
    subscription_report,
    university_report,
)


def _activity(title, university="Aalborg University", subscribed=True, sessions=10, cost=20000.0, trials=0, **extra):
    row = {
        "title": title,
        "subject_area": "Science",
        "publisher": "Springer",
        "keywords": title.lower(),
        "university": university,
        "country": "Denmark",
        "annual_cost": cost if subscribed else None,
        "cost_is_synthetic": False if subscribed else None,
        "is_subscribed": 1 if subscribed else 0,
        "browsing_sessions": sessions,
        "total_views": sessions * 3,
        "avg_session_duration": 600.0,
        "total_pages": sessions * 5,
        "total_downloads": 2,
        "trial_requests": trials,
        "active_days": sessions,
        "first_interaction": None,
        "last_interaction": None,
    }
    row.update(extra)
    return row


# ---------------------------------------------------------------------------
# No-data messages
# ---------------------------------------------------------------------------


class TestNoData:
    def test_message_names_checks_and_filter(self):
        msg = no_data_message("Subscription Analysis", "Mahidol")
        assert msg.startswith("Subscription Analysis")
        assert "No data found" in msg
        assert "/api/diagnostics" in msg
        assert '"Mahidol"' in msg

    def test_each_report_explains_empty_input(self):
        assert "No data found" in subscription_report([])
        assert "No data found" in university_report([])
        assert "No data found" in browsing_report([])
        assert "Limited data available" in research_report([], "NUS")
        assert "Filter Applied: NUS" in research_report([], "NUS")
        assert "Insufficient data" in sales_report([])

    def test_strategy_report_without_matches(self):
        text = strategy_report([])
        assert "No directly relevant" in text
        assert EXTERNAL_RECOMMENDATIONS[0] in text
        assert "HIGH PRIORITY" in text


# ---------------------------------------------------------------------------
# Populated reports
# ---------------------------------------------------------------------------


def test_subscription_report_flags_estimated_costs():
    rows = [
        {"university": "Aalborg University", "journal": "Nature", "subject_area": "Science", "annual_cost": 5000.0, "cost_is_synthetic": False},
        {"university": "Mahidol University", "journal": "Cell", "subject_area": "Biology", "annual_cost": 30000.0, "cost_is_synthetic": True},
    ]
    text = subscription_report(rows)
    assert "Active Subscriptions: 2" in text
    assert "Total Annual Cost: $35,000" in text
    assert "Estimated Costs: 1 of 2" in text
    assert "Cell - $30,000 (estimated)" in text
    assert "1. Nature - $5,000\n" in text
    assert "Universities: Aalborg University, Mahidol University" in text


def test_university_report_lists_each():
    text = university_report([
        {"name": "Aalborg University", "country": "Denmark", "subscription_count": 3, "total_cost": 45000.0},
        {"name": "University of Oslo", "country": None, "subscription_count": 0, "total_cost": 0},
    ])
    assert "1. Aalborg University (Denmark): 3 subscriptions, $45,000" in text
    assert "2. University of Oslo (Unknown): 0 subscriptions, $0" in text


def test_browsing_report_highlights_gaps():
    text = browsing_report([
        {"title": "Nature", "browse_sessions": 30, "trial_requests": 0, "is_subscribed": 1},
        {"title": "Unknown Weekly", "browse_sessions": 22, "trial_requests": 3, "is_subscribed": 0},
    ])
    assert "1. Nature - 30 sessions (Subscribed)" in text
    assert "2. Unknown Weekly - 22 sessions (Not Subscribed)" in text
    assert "• Unknown Weekly: 22 sessions, not subscribed" in text


def test_browsing_report_without_gaps():
    text = browsing_report([{"title": "Nature", "browse_sessions": 30, "trial_requests": 0, "is_subscribed": 1}])
    assert "every heavily browsed journal is subscribed" in text


def test_overview_report():
    text = overview_report({"universities": 2, "journals": 7, "subscriptions": 4}, "sales")
    assert "your sales assistant" in text
    assert "Universities: 2" in text
    assert "Active Subscriptions: 4" in text


def test_research_report_sections():
    rows = [
        _activity("Nature", sessions=12, cost=30000.0),
        _activity("Cell", sessions=2, cost=10000.0),
        _activity("Unknown Weekly", subscribed=False, sessions=20, trials=2),
    ]
    text = research_report(rows)
    assert text.startswith("RESEARCH ANALYTICS REPORT")
    assert "Journal/University Pairs Analyzed: 3" in text
    assert "Subscribed: 2 (66.7%)" in text
    assert "Subject Area Performance:" in text
    assert "Usage vs Cost correlation: 1.000" in text
    assert "Underutilized Subscriptions" in text
    assert "Unknown Weekly (Aalborg University) - 20 sessions | Not Subscribed | Trial Requests: 2" in text
    assert "synthesized" in text


def test_sales_report_sections():
    rows = [
        _activity("Nature", sessions=12, cost=30000.0),
        _activity("Unknown Weekly", subscribed=False, sessions=20, trials=2),
        _activity("Quiet Quarterly", subscribed=False, sessions=3, country="Thailand", university="Mahidol University"),
    ]
    text = sales_report(rows)
    assert text.startswith("SALES PERFORMANCE ANALYTICS")
    assert "Current Annual Revenue: $30,000" in text
    assert "Active Customers: 1" in text
    assert "Total Leads: 2" in text
    assert "Qualified Leads: 1 (50.0%)" in text
    assert "Hot Leads: 1 (50.0%)" in text
    assert "1. Awareness: 3 (100.0%)" in text
    assert "5. Purchase: 1 (33.3%)" in text
    assert "1. Denmark - Revenue: $30,000" in text
    assert "1. Unknown Weekly (Aalborg University)" in text
    assert "win probability 60%" in text
    assert "Territory focus: Denmark" in text


def test_strategy_report_priorities():
    rows = [
        {"title": "AI Review", "subject_area": "Business", "annual_cost": 20000.0, "browsing_sessions": 12, "is_subscribed": 1},
        {"title": "Strategy Today", "subject_area": "Business", "annual_cost": 15000.0, "browsing_sessions": 8, "is_subscribed": 1},
        {"title": "Digital Business", "subject_area": "Business", "annual_cost": None, "browsing_sessions": 14, "is_subscribed": 0},
    ]
    text = strategy_report(rows)
    assert "1. AI Review - $20,000" in text
    assert "• Digital Business - 14 browsing sessions" in text
    assert "MAINTAIN" in text
