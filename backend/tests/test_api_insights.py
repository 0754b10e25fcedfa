from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.routes import insights as insights_router
from services.insights import PlaceInsights


@pytest.fixture
def service(monkeypatch):
    svc = MagicMock()
    monkeypatch.setattr(insights_router, "get_default_insights_service", lambda: svc)
    return svc


@pytest.fixture
def client(service):
    app = FastAPI()
    app.include_router(insights_router.router, prefix="/insights")
    return TestClient(app)


def test_insights_for_place(client, service):
    service.insights.return_value = PlaceInsights(
        tip="Go early.",
        summary="Highly rated for breakfast.",
        sources=[{"uri": "https://a.test", "title": "A"}],
    )

    resp = client.post("/insights", json={"name": " Ya Kun "})

    assert resp.status_code == 200
    service.insights.assert_called_once_with("Ya Kun")
    assert resp.json() == {
        "tip": "Go early.",
        "summary": "Highly rated for breakfast.",
        "sources": [{"uri": "https://a.test", "title": "A"}],
        "quotaExceeded": False,
    }


def test_quota_flag_and_blank_name(client, service):
    service.insights.return_value = PlaceInsights(tip="Tip.", quota_exceeded=True)

    body = client.post("/insights", json={"name": "Ya Kun"}).json()
    assert body["summary"] is None
    assert body["quotaExceeded"] is True

    assert client.post("/insights", json={"name": "  "}).status_code == 422
