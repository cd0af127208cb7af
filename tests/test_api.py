import pytest
from fastapi.testclient import TestClient
from jose import jwt

from retail_dashboard.core import config
from retail_dashboard.core.application import create_application
from retail_dashboard.services.dependencies import get_coordinator
from tests.factories import FakeRecordSource, make_product, make_sale, query_error

SECRET = "x" * 40


@pytest.fixture
def source():
    return FakeRecordSource(
        sales=[make_sale("s1", amount=100, status="pending"), make_sale("s2", amount=300, method="pix")],
        products=[make_product("p1", stock=0), make_product("p2", stock=2)],
    )


@pytest.fixture
def client(source, make_coordinator):
    app = create_application()
    app.dependency_overrides[get_coordinator] = lambda: make_coordinator(source)
    with TestClient(app) as c:
        yield c


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_snapshot_payload(client):
    response = client.get("/dashboard/snapshot", params={"period": "week"})
    assert response.status_code == 200
    body = response.json()

    assert body["period"] == "week"
    assert body["period_label"] == "Esta Semana"
    assert body["category"] == "all"
    assert body["last_updated"] == "15/05/2024 14:30:00"
    assert body["sales"]["month_total"] == 400.0
    assert body["sales"]["payment_methods"][0]["label"] in {"Dinheiro", "PIX"}
    assert body["products"]["out_of_stock_products"] == 1
    assert len(body["daily_sales"]) == 7
    assert body["low_stock_trend"]["estimated"] is True
    assert body["all_clear"] is False
    assert body["diagnostics"] == []

    alerts = {a["id"]: a for a in body["alerts"]}
    assert alerts["out-of-stock"]["severity"] == "critical"
    assert alerts["out-of-stock"]["action"] == {"reference": "products:lowStock", "label": "Ver Produtos"}
    assert alerts["pending-payments"]["count"] == 1


def test_snapshot_etag_revalidation(client):
    first = client.get("/dashboard/snapshot")
    etag = first.headers["ETag"]
    assert "max-age=" in first.headers["Cache-Control"]

    second = client.get("/dashboard/snapshot", headers={"If-None-Match": etag})
    assert second.status_code == 304


@pytest.mark.parametrize("params", [{"period": "decade"}, {"category": " "}])
def test_invalid_filters_are_400(client, params):
    response = client.get("/dashboard/snapshot", params=params)
    assert response.status_code == 400


def test_export_csv(client):
    response = client.get("/dashboard/export.csv", params={"period": "today"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment; filename=\"dashboard_today_" in response.headers["content-disposition"]
    assert response.text.startswith("# Dashboard - Hoje - categoria all")
    assert "# alertas" in response.text


def test_viewer_token_restricts_actions(client, monkeypatch):
    monkeypatch.setattr(config.settings, "JWT_SECRET", SECRET)
    token = jwt.encode({"sub": "u1", "permissions": ["sales"]}, SECRET, algorithm="HS256")

    response = client.get("/dashboard/snapshot", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert all(a["action"] is None for a in response.json()["alerts"])


def test_invalid_token_is_401(client, monkeypatch):
    monkeypatch.setattr(config.settings, "JWT_SECRET", SECRET)
    response = client.get("/dashboard/snapshot", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_readyz_reports_unavailable_source(client, monkeypatch):
    monkeypatch.setattr(config.settings, "RECORD_SOURCE", "rest")
    monkeypatch.setattr(config.settings, "DATA_API_URL", None)
    response = client.get("/readyz")
    assert response.status_code == 503
    assert response.json()["status"] == "not ready"


def test_each_request_gets_its_own_coordinator(monkeypatch):
    monkeypatch.setattr(config.settings, "RECORD_SOURCE", "sql")
    first, second = get_coordinator(), get_coordinator()
    assert first is not second
    assert first.generation == second.generation == 0


def test_superseded_refresh_is_503():
    class SupersededCoordinator:
        async def refresh(self, **kwargs):
            return None

    app = create_application()
    app.dependency_overrides[get_coordinator] = SupersededCoordinator
    with TestClient(app) as c:
        response = c.get("/dashboard/snapshot")
    assert response.status_code == 503


def test_unavailable_alert_inputs_are_not_all_clear(make_coordinator):
    failing = FakeRecordSource(failures={name: query_error(name) for name in ("products", "sales", "deliveries")})
    app = create_application()
    app.dependency_overrides[get_coordinator] = lambda: make_coordinator(failing)
    with TestClient(app) as c:
        body = c.get("/dashboard/snapshot").json()
    assert body["alerts"] == []
    assert body["all_clear"] is False
    assert {d["group"] for d in body["diagnostics"]} >= {"alerts", "sales", "products"}
