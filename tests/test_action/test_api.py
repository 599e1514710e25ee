"""Tests for the FastAPI API endpoints."""

from unittest.mock import AsyncMock, patch

import openpyxl
import pytest
from fastapi.testclient import TestClient

from config.settings import settings
from publishing_intel.action.api import app

AALBORG = "Export_Aalborg_University_20240101_000000.xlsx"


def _write_export(path):
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Subscriptions"
    ws.append(["Journal", "current_year", "cost", "Publisher"])
    ws.append(["Nature", "1", 5000, "Springer"])
    ws.append(["Unknown Weekly", "0", None, "Small Press"])
    wb.save(path)


@pytest.fixture()
def configured(tmp_path, monkeypatch):
    """Point the app at an in-memory store and a data folder holding one export."""
    _write_export(tmp_path / AALBORG)
    monkeypatch.setattr(settings, "database_url", "sqlite+aiosqlite://")
    monkeypatch.setattr(settings, "data_directory", str(tmp_path))
    monkeypatch.setattr(settings, "ingest_on_startup", True)
    monkeypatch.setattr(settings, "watch_data_directory", False)
    for key in ("openai_api_key", "gemini_api_key", "anthropic_api_key"):
        monkeypatch.setattr(settings, key, "")
    return tmp_path


@pytest.fixture()
def client(configured):
    """TestClient with the lifespan running: tables created, data folder ingested."""
    with TestClient(app) as c:
        yield c


# ---------------------------------------------------------------------------
# Read routes
# ---------------------------------------------------------------------------


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["database"] == "connected"
    assert data["llm"] is False


def test_diagnostics_counts(client):
    data = client.get("/api/diagnostics").json()
    assert data["universities"] == {"count": 1}
    assert data["journals"] == {"count": 2}
    assert data["subscriptions"] == {"count": 1}
    assert data["browsing_history"]["count"] > 0


def test_universities(client):
    data = client.get("/api/universities").json()
    assert len(data) == 1
    assert data[0]["name"] == "Aalborg University"
    assert data[0]["country"] == "Denmark"


def test_dashboard(client):
    data = client.get("/api/dashboard").json()
    assert data["totalSubscriptions"] == 1
    assert data["totalUniversities"] == 1
    assert data["totalJournals"] == 1
    assert data["revenuePotential"] == 5000
    assert data["syntheticCostSubscriptions"] == 0


def test_subscriptions(client):
    data = client.get("/api/subscriptions").json()
    assert len(data) == 1
    row = data[0]
    assert row["journal_title"] == "Nature"
    assert row["university_name"] == "Aalborg University"
    assert row["publisher"] == "Springer"
    assert row["start_date"] == "2024-01-01"


def test_search(client):
    data = client.get("/api/search", params={"q": "nature"}).json()
    assert [(h["type"], h["name"]) for h in data] == [
        ("journal", "Nature"),
        ("subscription", "Aalborg University - Nature"),
    ]
    assert data[1]["details"] == "Cost: $5,000"


def test_search_by_type(client):
    data = client.get("/api/search", params={"q": "denmark", "type": "universities"}).json()
    assert [h["name"] for h in data] == ["Aalborg University"]


@pytest.mark.parametrize("params", [{}, {"q": "  "}, {"q": "nature", "type": "publishers"}])
def test_search_bad_request(client, params):
    resp = client.get("/api/search", params=params)
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


def test_chat_rejects_blank_message(client):
    resp = client.post("/api/chat/send", json={"message": "   "})
    assert resp.status_code == 400


def test_chat_local_report(client):
    resp = client.post(
        "/api/chat/send",
        json={"message": "Show subscriptions", "assistantType": "sales", "universityFilter": "Aalborg", "useLlm": False},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["response"].startswith("Subscription Analysis")
    assert "Nature - $5,000" in data["response"]
    assert data["assistantType"] == "sales"
    assert data["sessionId"].startswith("session_")
    assert data["usedLlm"] is False
    assert "timestamp" in data


def test_chat_without_llm_keys_falls_back(client):
    data = client.post("/api/chat/send", json={"message": "Show me the gaps"}).json()
    assert data["usedLlm"] is False
    assert "Browsing Analysis" in data["response"]


@patch("publishing_intel.assistant.chat.llm_gateway.complete", new_callable=AsyncMock, return_value="LLM says hi")
def test_chat_uses_llm_when_available(mock_complete, client):
    data = client.post("/api/chat/send", json={"message": "hello"}).json()
    assert data["response"] == "LLM says hi"
    assert data["usedLlm"] is True


# ---------------------------------------------------------------------------
# Reprocess
# ---------------------------------------------------------------------------


def test_reprocess_rebuilds_from_folder(client, configured):
    wb = openpyxl.Workbook()
    wb.active.append(["Journal", "current_year", "cost"])
    wb.active.append(["Cell", "1", 2000])
    wb.save(configured / "Export_Mahidol_University_20240101_000000.xlsx")

    resp = client.post("/api/reprocess")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "completed"
    assert data["files_ingested"] == 2
    assert data["files_failed"] == 0

    dashboard = client.get("/api/dashboard").json()
    assert dashboard["totalSubscriptions"] == 2
    assert dashboard["revenuePotential"] == 7000


def test_startup_ingestion_is_skipped_when_disabled(configured, monkeypatch):
    monkeypatch.setattr(settings, "ingest_on_startup", False)
    with TestClient(app) as c:
        assert c.get("/api/diagnostics").json()["universities"] == {"count": 0}


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------


def test_store_not_ready_returns_503():
    # no context manager: lifespan never runs, so no database is attached
    c = TestClient(app)
    assert c.get("/api/dashboard").status_code == 503
    assert c.post("/api/reprocess").status_code == 503
    assert c.get("/health").json()["database"] == "disconnected"


@patch("publishing_intel.action.routers.data.queries.dashboard_summary", new_callable=AsyncMock)
def test_unhandled_error_returns_json(mock_summary, configured):
    mock_summary.side_effect = RuntimeError("boom")
    with TestClient(app, raise_server_exceptions=False) as c:
        resp = c.get("/api/dashboard")
    assert resp.status_code == 500
    assert resp.json() == {"detail": "Server error: boom", "error": "boom", "status": "failed"}
