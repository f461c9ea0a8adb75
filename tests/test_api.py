"""
Tests des routes HTTP (santé, thèmes, configuration, analyse, métriques).

Le conteneur est reconstruit pour chaque test avec un dépôt mémoire, le moteur factice et un
service d'interprétation scripté.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tests.fakes import REFERENCE_DATE, FakeAstroEngine, FakeInterpretationService
from zwds.app.main import app
from zwds.core.container import container
from zwds.domain.errors import NetworkOrServiceFailure
from zwds.infra.llm.interpret_client import InterpretClient
from zwds.infra.repositories import InMemoryDocumentRepo

BIRTH = {
    "name": "A",
    "gender": "male",
    "calendarType": "solar",
    "year": 1990,
    "month": 1,
    "day": 1,
    "hour": 0,
    "leapMonthFix": False,
}
CONTENT = "## 1) 找命宫\n命宫坐紫微"
SMALL_QUOTA_BYTES = 10


def _rebuild(repo=None, *script) -> TestClient:
    container.build(
        repo=repo or InMemoryDocumentRepo(),
        client=FakeInterpretationService(*script),
        engine=FakeAstroEngine(),
        clock=lambda: REFERENCE_DATE,
    )
    return TestClient(app)


@pytest.fixture
def client() -> TestClient:
    return _rebuild(None, CONTENT)


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["storage"] == "custom"
    assert "X-Request-ID" in response.headers
    assert "X-Process-Time-ms" in response.headers


def test_metrics_endpoint(client: TestClient) -> None:
    client.get("/health")
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "http_requests_total" in response.text


def test_save_list_lookup_delete(client: TestClient) -> None:
    """Teste le cycle complet d'un thème enregistré."""
    created = client.post("/charts", json=BIRTH)
    assert created.status_code == 201
    chart = created.json()
    assert chart["displayName"] == "A-命盘"
    assert chart["solarDate"] == "1990-01-01T00:00:00"

    listed = client.get("/charts").json()
    assert [c["id"] for c in listed] == [chart["id"]]

    lookup = client.post("/charts/lookup", json=BIRTH)
    assert lookup.status_code == 200
    assert lookup.json()["hasInterpretation"] is False

    assert client.delete(f"/charts/{chart['id']}").status_code == 204
    assert client.delete(f"/charts/{chart['id']}").status_code == 204
    assert client.get("/charts").json() == []


def test_explicit_save_always_creates(client: TestClient) -> None:
    client.post("/charts", json=BIRTH)
    client.post("/charts", json=BIRTH)
    assert len(client.get("/charts").json()) == 2


def test_lookup_unknown_birth_is_404(client: TestClient) -> None:
    response = client.post("/charts/lookup", json={**BIRTH, "name": "B"})
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_invalid_birth_is_validation_error(client: TestClient) -> None:
    response = client.post("/charts", json={**BIRTH, "hour": 25})
    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_storage_failure_maps_to_507() -> None:
    """Teste la projection de StorageWriteFailure sur l'enveloppe d'erreur."""
    client = _rebuild(InMemoryDocumentRepo(max_bytes=SMALL_QUOTA_BYTES), CONTENT)
    response = client.post("/charts", json=BIRTH)
    assert response.status_code == 507
    body = response.json()
    assert body["code"] == "STORAGE_WRITE_FAILED"
    assert body["details"] == {"key": "zwds-saved-charts"}
    assert body["trace_id"]


def test_settings_get_and_partial_update(client: TestClient) -> None:
    """Teste la lecture des défauts et la fusion partielle (valeur invalide ignorée)."""
    assert client.get("/settings").json()["horoscopeDivide"] == "exact"

    updated = client.put("/settings", json={"hideHoroscope": True, "yearDivide": "never"})
    assert updated.status_code == 200
    assert updated.json()["hideHoroscope"] is True
    assert updated.json()["yearDivide"] == "normal"
    assert client.get("/settings").json()["hideHoroscope"] is True


def test_analysis_success_attaches_to_single_record(client: TestClient) -> None:
    """Teste l'analyse: contenu renvoyé et rattaché à un unique enregistrement."""
    response = client.post("/analysis", json={"birth": BIRTH, "extraPalaces": ["夫妻"]})
    assert response.status_code == 200
    body = response.json()
    assert body["state"] == "succeeded"
    assert body["content"] == CONTENT
    assert body["targetPalaces"] == ["命宫", "夫妻"]

    charts = client.get("/charts").json()
    assert len(charts) == 1
    assert charts[0]["id"] == body["recordId"]
    assert charts[0]["interpretation"]["content"] == CONTENT

    view = client.get(f"/analysis/{body['viewKey']}")
    assert view.json()["content"] == CONTENT
    assert client.post("/charts/lookup", json=BIRTH).json()["hasInterpretation"] is True


def test_analysis_failure_keeps_previous_result() -> None:
    client = _rebuild(None, CONTENT, NetworkOrServiceFailure("upstream down", status_code=502))
    client.post("/analysis", json={"birth": BIRTH})
    body = client.post("/analysis", json={"birth": BIRTH}).json()

    assert body["state"] == "failed"
    assert body["content"] == CONTENT
    assert body["notice"] == "AI 解读失败，请稍后重试"


def test_analysis_unknown_palace_is_422(client: TestClient) -> None:
    response = client.post("/analysis", json={"birth": BIRTH, "extraPalaces": ["不存在"]})
    assert response.status_code == 422
    assert response.json()["code"] == "UNKNOWN_PALACE"


def test_unknown_analysis_view_is_404(client: TestClient) -> None:
    assert client.get("/analysis/does-not-exist").status_code == 404


def test_analysis_without_configured_service_is_503() -> None:
    """Teste qu'un service non configuré est signalé tout de suite, sans enregistrement créé."""
    container.build(
        repo=InMemoryDocumentRepo(),
        client=InterpretClient(base_url=None),
        engine=FakeAstroEngine(),
        clock=lambda: REFERENCE_DATE,
    )
    client = TestClient(app)

    response = client.post("/analysis", json={"birth": BIRTH})
    assert response.status_code == 503
    assert response.json()["code"] == "AI_SERVICE_NOT_CONFIGURED"
    assert client.get("/charts").json() == []


def test_deleted_chart_is_no_longer_served_by_its_view(client: TestClient) -> None:
    """Teste qu'après suppression du thème, la vue n'affiche plus son interprétation."""
    body = client.post("/analysis", json={"birth": BIRTH}).json()
    assert client.delete(f"/charts/{body['recordId']}").status_code == 204

    view = client.get(f"/analysis/{body['viewKey']}").json()
    assert view["content"] is None
    assert view["recordId"] is None
