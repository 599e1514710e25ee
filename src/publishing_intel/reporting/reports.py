"""Plain-text report builders.

Pure functions: rows in (from ``reporting.queries``), text out. Each report
renders an explanatory "no data" message instead of an empty body.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any

from publishing_intel.reporting.statistics import describe_field, field_correlation

# sessions per subscribed journal treated as full utilisation
_TARGET_SESSIONS = 15


def _money(value: Any) -> str:
    return f"${float(value or 0):,.0f}"


def _pct(part: float, whole: float) -> str:
    return f"{(part / whole * 100) if whole else 0:.1f}%"


def _filter_label(university_filter: str | None) -> str:
    return university_filter or "all"


def no_data_message(title: str, university_filter: str | None = "all") -> str:
    return (
        f"{title}\n\n"
        "No data found. Check:\n"
        "1. Export spreadsheets are in the data folder\n"
        "2. Database status: /api/diagnostics\n"
        f'3. University filter: "{_filter_label(university_filter)}"'
    )


# ---------------------------------------------------------------------------
# Simple summaries
# ---------------------------------------------------------------------------


def subscription_report(rows: list[dict], university_filter: str | None = "all") -> str:
    if not rows:
        return no_data_message("Subscription Analysis", university_filter)

    total_cost = sum(r["annual_cost"] or 0 for r in rows)
    universities = list(dict.fromkeys(r["university"] for r in rows))
    synthetic = sum(1 for r in rows if r.get("cost_is_synthetic"))
    top = "\n".join(
        f"{i}. {r['journal']} - {_money(r['annual_cost'])}{' (estimated)' if r.get('cost_is_synthetic') else ''}"
        for i, r in enumerate(rows[:5], 1)
    )
    lines = [
        "Subscription Analysis",
        "",
        "Overview:",
        f"• Active Subscriptions: {len(rows)}",
        f"• Universities: {len(universities)}",
        f"• Total Annual Cost: {_money(total_cost)}",
    ]
    if synthetic:
        lines.append(f"• Estimated Costs: {synthetic} of {len(rows)} (no cost in source file)")
    lines += ["", "Top Subscriptions:", top, "", f"Universities: {', '.join(universities)}"]
    return "\n".join(lines)


def university_report(rows: list[dict]) -> str:
    if not rows:
        return no_data_message("University Analysis")
    body = "\n".join(
        f"{i}. {r['name']} ({r.get('country') or 'Unknown'}): "
        f"{r['subscription_count']} subscriptions, {_money(r['total_cost'])}"
        for i, r in enumerate(rows, 1)
    )
    return f"University Analysis\n\nUniversities in Database:\n{body}"


def browsing_report(rows: list[dict]) -> str:
    if not rows:
        return no_data_message("Browsing Analysis")

    def _status(r: dict) -> str:
        return "Subscribed" if r["is_subscribed"] else "Not Subscribed"

    most = "\n".join(
        f"{i}. {r['title']} - {r['browse_sessions']} sessions ({_status(r)})" for i, r in enumerate(rows[:5], 1)
    )
    gaps = [r for r in rows if not r["is_subscribed"]]
    opportunities = "\n".join(
        f"• {r['title']}: {r['browse_sessions']} sessions, not subscribed" for r in gaps[:3]
    ) or "• None — every heavily browsed journal is subscribed"
    return f"Browsing Analysis\n\nMost Browsed Journals:\n{most}\n\nRevenue Opportunities:\n{opportunities}"


def overview_report(counts: dict[str, int], assistant_type: str = "general") -> str:
    return (
        f"Hello! I'm your {assistant_type} assistant.\n\n"
        "Current Database:\n"
        f"• Universities: {counts.get('universities', 0)}\n"
        f"• Journals: {counts.get('journals', 0)}\n"
        f"• Active Subscriptions: {counts.get('subscriptions', 0)}\n\n"
        "Try asking:\n"
        '• "Show me research statistics" or "Give me sales analysis"\n'
        '• "Analyze subscription performance"\n'
        '• "Which journals are browsed but not subscribed?"\n'
        '• "Recommend journals for Business Strategy using AI"'
    )


# ---------------------------------------------------------------------------
# Research statistics
# ---------------------------------------------------------------------------


def research_report(rows: list[dict], university_filter: str | None = "all") -> str:
    if not rows:
        return (
            "RESEARCH ANALYTICS REPORT\n\n"
            "Status: Limited data available for statistical analysis\n"
            f"Filter Applied: {_filter_label(university_filter)}\n\n"
            "Check:\n"
            "1. Export files contain journal titles and subscription flags\n"
            "2. Journal metadata includes subject areas and publishers\n"
            "3. Subscription indicators use 1/0, yes/no or true/false\n"
            "4. Filenames identify the university (Export_<Name>_<timestamp>.xlsx)"
        )

    subscribed = [r for r in rows if r["is_subscribed"]]
    unsubscribed = [r for r in rows if not r["is_subscribed"]]

    subjects: dict[str, dict[str, Any]] = defaultdict(
        lambda: {"journals": 0, "sessions": 0, "subscribed": 0, "cost": 0.0, "publishers": set()}
    )
    for r in rows:
        s = subjects[r["subject_area"] or "Other"]
        s["journals"] += 1
        s["sessions"] += r["browsing_sessions"] or 0
        s["subscribed"] += r["is_subscribed"]
        s["cost"] += r["annual_cost"] or 0
        if r.get("publisher"):
            s["publishers"].add(r["publisher"])

    engagement = describe_field(rows, "browsing_sessions")
    duration = describe_field(rows, "avg_session_duration")
    cost_usage = field_correlation(subscribed, "browsing_sessions", "annual_cost")
    countries = {r["country"] for r in rows if r.get("country")}

    lines = [
        "RESEARCH ANALYTICS REPORT",
        "",
        "Portfolio Overview:",
        f"Journal/University Pairs Analyzed: {len(rows)}",
        f"Subscribed: {len(subscribed)} ({_pct(len(subscribed), len(rows))})",
        f"Subject Areas Covered: {len(subjects)}",
        f"Countries Represented: {len(countries)}",
    ]
    if engagement:
        lines += [
            "",
            "Browsing Activity:",
            f"- Mean Sessions per Journal: {engagement.mean:.1f}",
            f"- Median Sessions: {engagement.median:.1f}",
            f"- Standard Deviation: {engagement.std_dev:.1f}",
            f"- Range (Q1-Q3): {engagement.q1:.0f} - {engagement.q3:.0f} sessions",
        ]
    if duration:
        lines += [
            "",
            "Research Depth:",
            f"- Average Session Duration: {duration.mean / 60:.1f} minutes",
            f"- Longest Average Session: {duration.max_val / 60:.1f} minutes",
        ]

    lines += ["", "Subject Area Performance:"]
    ranked = sorted(subjects.items(), key=lambda item: item[1]["sessions"], reverse=True)[:5]
    for i, (subject, s) in enumerate(ranked, 1):
        lines += [
            f"{i}. {subject}",
            f"   Journals: {s['journals']} | Subscribed: {s['subscribed']} ({_pct(s['subscribed'], s['journals'])})",
            f"   Sessions: {s['sessions']} | Annual Investment: {_money(s['cost'])}"
            f" | Publishers: {len(s['publishers'])}",
        ]

    if cost_usage is not None:
        if cost_usage > 0.3:
            verdict = "Positive correlation - higher cost journals show higher usage"
        elif cost_usage < -0.3:
            verdict = "Negative correlation - review high-cost, low-usage journals"
        else:
            verdict = "Weak correlation - usage not strongly tied to cost"
        lines += ["", "Investment Efficiency:", f"Usage vs Cost correlation: {cost_usage:.3f}", verdict]

    if subscribed:
        avg_sub = sum(r["browsing_sessions"] for r in subscribed) / len(subscribed)
        avg_unsub = (sum(r["browsing_sessions"] for r in unsubscribed) / len(unsubscribed)) if unsubscribed else 0.0
        utilisation = avg_sub / _TARGET_SESSIONS
        lines += [
            "",
            "Subscription Utilization:",
            f"Subscribed Journals: {avg_sub:.1f} avg sessions",
            f"Non-Subscribed Journals: {avg_unsub:.1f} avg sessions",
            f"Utilization Rate: {utilisation * 100:.1f}%",
        ]
        if engagement:
            under = [r for r in subscribed if r["browsing_sessions"] < engagement.mean / 2]
            if under:
                lines += [
                    "",
                    "Underutilized Subscriptions (below half the mean usage):",
                    f"Count: {len(under)} | Potential Savings: {_money(sum(r['annual_cost'] or 0 for r in under))}",
                ]

    lines += ["", "Top Journals by Activity:"]
    for i, r in enumerate(rows[:5], 1):
        detail = f"Cost: {_money(r['annual_cost'])}" if r["is_subscribed"] else f"Trial Requests: {r['trial_requests'] or 0}"
        status = "Subscribed" if r["is_subscribed"] else "Not Subscribed"
        lines.append(f"{i}. {r['title']} ({r['university']}) - {r['browsing_sessions']} sessions | {status} | {detail}")

    lines += ["", "Note: browsing activity is synthesized at ingestion; figures are descriptive only."]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Sales statistics
# ---------------------------------------------------------------------------


def _opportunity_score(row: dict) -> float:
    return (row["browsing_sessions"] or 0) * 2 + (row["trial_requests"] or 0) * 5 + (row["total_pages"] or 0) * 0.1


def sales_report(rows: list[dict], university_filter: str | None = "all") -> str:
    if not rows:
        return (
            "SALES PERFORMANCE ANALYTICS\n\n"
            "Status: Insufficient data for sales analysis\n"
            f"Filter Applied: {_filter_label(university_filter)}\n\n"
            "Check:\n"
            "1. Browsing sessions exist (run /api/reprocess after adding exports)\n"
            "2. Subscription costs are present or estimated\n"
            "3. Universities are identified from the export filenames"
        )

    customers = [r for r in rows if r["is_subscribed"]]
    leads = [r for r in rows if not r["is_subscribed"]]
    revenue = describe_field(customers, "annual_cost")
    total_revenue = sum(r["annual_cost"] or 0 for r in customers)
    avg_value = revenue.mean if revenue else 25000.0

    qualified = [r for r in leads if (r["browsing_sessions"] or 0) > 5]
    hot = [r for r in leads if (r["trial_requests"] or 0) > 0]
    pipeline_value = (len(qualified) * 0.3 + len(hot) * 0.6) * avg_value

    funnel = [
        ("Awareness", len(rows)),
        ("Interest", sum(1 for r in rows if (r["browsing_sessions"] or 0) > 2)),
        ("Consideration", sum(1 for r in rows if (r["browsing_sessions"] or 0) > 5)),
        ("Intent", sum(1 for r in rows if (r["trial_requests"] or 0) > 0)),
        ("Purchase", len(customers)),
    ]

    territories: dict[str, dict[str, Any]] = defaultdict(lambda: {"pairs": 0, "customers": 0, "revenue": 0.0})
    for r in rows:
        t = territories[r.get("country") or "Unknown"]
        t["pairs"] += 1
        if r["is_subscribed"]:
            t["customers"] += 1
            t["revenue"] += r["annual_cost"] or 0

    lines = [
        "SALES PERFORMANCE ANALYTICS",
        "",
        "Revenue Overview:",
        f"Current Annual Revenue: {_money(total_revenue)}",
        f"Active Customers: {len(customers)}",
        f"Average Customer Value: {_money(avg_value if customers else 0)}",
    ]
    if revenue:
        lines += [
            f"- Median Deal Size: {_money(revenue.median)}",
            f"- Largest Deal: {_money(revenue.max_val)}",
            f"- Revenue Range (Q1-Q3): {_money(revenue.q1)} - {_money(revenue.q3)}",
        ]
    lines += [
        "",
        "Sales Pipeline:",
        f"Total Leads: {len(leads)}",
        f"Qualified Leads: {len(qualified)} ({_pct(len(qualified), len(leads))})",
        f"Hot Leads: {len(hot)} ({_pct(len(hot), len(leads))})",
        f"Overall Conversion Rate: {_pct(len(customers), len(rows))}",
        f"Total Pipeline Value: {_money(pipeline_value)}",
        "",
        "Sales Funnel:",
    ]
    for i, (stage, count) in enumerate(funnel, 1):
        lines.append(f"{i}. {stage}: {count} ({_pct(count, funnel[0][1])})")

    lines += ["", "Territory Performance:"]
    ranked = sorted(territories.items(), key=lambda item: item[1]["revenue"], reverse=True)[:5]
    for i, (territory, t) in enumerate(ranked, 1):
        lines.append(
            f"{i}. {territory} - Revenue: {_money(t['revenue'])} | Customers: {t['customers']}"
            f" | Conversion: {_pct(t['customers'], t['pairs'])}"
        )

    top = sorted(leads, key=_opportunity_score, reverse=True)[:5]
    if top:
        lines += ["", "Top Sales Opportunities:"]
        for i, r in enumerate(top, 1):
            if r["trial_requests"]:
                win = "60%"
            elif r["browsing_sessions"] > 10:
                win = "40%"
            else:
                win = "20%"
            lines.append(
                f"{i}. {r['title']} ({r['university']}) - {r['browsing_sessions']} sessions,"
                f" {r['trial_requests'] or 0} trial requests, score {_opportunity_score(r):.1f}, win probability {win}"
            )

    lines += [
        "",
        "Recommendations:",
        f"1. Immediate: follow up the {len(hot)} hot leads with trial requests",
        f"2. Short-term: nurture {len(qualified)} qualified leads",
        f"3. Territory focus: {ranked[0][0] if ranked else 'top-performing'}",
    ]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Strategy recommendations
# ---------------------------------------------------------------------------

EXTERNAL_RECOMMENDATIONS = [
    "MIT Sloan Management Review - AI strategy insights",
    "Harvard Business Review - Digital transformation and AI leadership",
    "Strategic Management Journal - Research on AI competitive advantage",
    "Journal of Business Analytics - Data-driven strategic decision making",
    "AI & Society - Business applications and ethical considerations",
]


def strategy_report(rows: list[dict]) -> str:
    subscribed = [r for r in rows if r["is_subscribed"]]
    browsed_only = [r for r in rows if not r["is_subscribed"] and r["browsing_sessions"] > 0]

    lines = ["Business Strategy + AI Journal Recommendations", "", "From Your Current Database:"]
    if subscribed:
        lines.append("Currently Subscribed (Relevant):")
        lines += [f"{i}. {r['title']} - {_money(r['annual_cost'])}" for i, r in enumerate(subscribed[:5], 1)]
    else:
        lines.append("Currently Subscribed: No directly relevant Business Strategy + AI journals found")
    if browsed_only:
        lines += ["", "High Interest (Not Subscribed):"]
        lines += [f"• {r['title']} - {r['browsing_sessions']} browsing sessions" for r in browsed_only[:3]]

    lines += ["", "Market-Leading Journals (External):"]
    lines += [f"{i}. {name}" for i, name in enumerate(EXTERNAL_RECOMMENDATIONS, 1)]

    if len(subscribed) < 2:
        priority = "HIGH PRIORITY: expand the AI strategy journal portfolio"
    elif len(browsed_only) > 3:
        priority = "MODERATE PRIORITY: browsing interest indicates unmet demand"
    else:
        priority = "MAINTAIN: current portfolio adequate - monitor emerging publications"
    lines += ["", f"Investment Priority: {priority}"]
    return "\n".join(lines)
