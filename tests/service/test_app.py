"""Tests for the FastAPI service mode."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from codescope.config import CodeScopeConfig
from codescope.orchestrator import ScanOrchestrator
from codescope.service import create_app
from codescope.stores import AuditStore
from tests._fixtures.fake_fetcher import FakeFetcher

FILES = {".gitignore": "node_modules/\n", "src/app.js": "eval(x);\n"}


@pytest.fixture
def gate() -> threading.Event:
    event = threading.Event()
    event.set()
    return event


@pytest.fixture
def orchestrator(tmp_path: Path, gate: threading.Event) -> Iterator[ScanOrchestrator]:
    instance = ScanOrchestrator(
        AuditStore(),
        FakeFetcher(FILES, gate=gate),
        config=CodeScopeConfig(root=tmp_path),
    )
    yield instance
    gate.set()
    instance.shutdown()


@pytest.fixture
def client(orchestrator: ScanOrchestrator) -> TestClient:
    return TestClient(create_app(lambda: orchestrator))


def _create(client: TestClient, repo_url: str = "https://github.com/acme/shop") -> dict:
    response = client.post("/audits", json={"repo_url": repo_url})
    assert response.status_code == 201
    return response.json()


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_create_and_list_audits(client: TestClient) -> None:
    created = _create(client)

    assert created["owner_name"] == "acme"
    assert created["repo_name"] == "shop"
    assert created["status"] == "pending"
    assert created["scores"] is None

    listed = client.get("/audits").json()
    assert [item["id"] for item in listed] == [created["id"]]
    assert client.get(f"/audits/{created['id']}").json()["repo_url"] == created["repo_url"]


def test_invalid_repository_url_is_rejected(client: TestClient) -> None:
    response = client.post("/audits", json={"repo_url": "not a repo"})
    assert response.status_code == 400


def test_unknown_audit_returns_404(client: TestClient) -> None:
    assert client.get("/audits/missing").status_code == 404
    assert client.get("/audits/missing/findings").status_code == 404
    assert client.get("/audits/missing/scan-status").status_code == 404
    assert client.post("/audits/missing/scan").status_code == 404


def test_scan_runs_and_status_is_observable(
    client: TestClient, orchestrator: ScanOrchestrator
) -> None:
    audit = _create(client)

    response = client.post(f"/audits/{audit['id']}/scan")
    assert response.status_code == 202
    assert response.json() == {"accepted": True, "reason": "Scan started"}
    orchestrator.wait(audit["id"], timeout=10)

    status = client.get(f"/audits/{audit['id']}/scan-status").json()
    assert status["status"] == "complete"
    assert status["scanned_at"]
    assert status["scan_log"][0]["step"] == "connect"
    assert status["scan_log"][-1]["step"] == "complete"

    detail = client.get(f"/audits/{audit['id']}").json()
    assert detail["scores"]["cicd"] == 9
    assert detail["remediation_plan"][0]["phase"] == "Stabilize"

    findings = client.get(f"/audits/{audit['id']}/findings").json()
    assert {item["title"] for item in findings} == {
        "No CI/CD Pipeline Configured",
        "Use of eval() in src/app.js",
    }
    assert all(item["auto_detected"] for item in findings)


def test_scan_in_progress_returns_409(
    client: TestClient, orchestrator: ScanOrchestrator, gate: threading.Event
) -> None:
    audit = _create(client)
    gate.clear()

    assert client.post(f"/audits/{audit['id']}/scan").status_code == 202
    assert orchestrator.fetcher.entered.wait(timeout=5)

    response = client.post(f"/audits/{audit['id']}/scan")
    assert response.status_code == 409
    assert response.json()["detail"] == "Scan already in progress"

    gate.set()
    orchestrator.wait(audit["id"], timeout=10)


def test_manual_finding_lifecycle(client: TestClient) -> None:
    audit = _create(client)

    response = client.post(
        f"/audits/{audit['id']}/findings",
        json={
            "category": "scalability",
            "severity": "medium",
            "title": "Single database instance",
            "description": "Noted during review",
        },
    )
    assert response.status_code == 201
    finding = response.json()
    assert finding["auto_detected"] is False
    assert finding["status"] == "open"
    assert finding["effort"] == "S"

    assert client.delete(f"/findings/{finding['id']}").status_code == 204
    assert client.delete(f"/findings/{finding['id']}").status_code == 404
    assert client.get(f"/audits/{audit['id']}/findings").json() == []


def test_manual_finding_validates_enums(client: TestClient) -> None:
    audit = _create(client)

    response = client.post(
        f"/audits/{audit['id']}/findings",
        json={"category": "vibes", "severity": "medium", "title": "x"},
    )
    assert response.status_code == 422


def test_create_audit_keeps_submitted_repo_url(client: TestClient) -> None:
    created = _create(client, "https://github.com/acme/shop.git")

    assert created["repo_url"] == "https://github.com/acme/shop.git"
    assert (created["owner_name"], created["repo_name"]) == ("acme", "shop")


def test_value_error_maps_to_400_with_detail(client: TestClient) -> None:
    response = client.post("/audits", json={"repo_url": "not a repo"})

    assert response.json() == {"detail": "Not a GitHub repository reference: 'not a repo'"}


def test_finding_status_can_be_updated(client: TestClient) -> None:
    audit = _create(client)
    finding = client.post(
        f"/audits/{audit['id']}/findings",
        json={"category": "security", "severity": "high", "title": "Open admin port"},
    ).json()

    response = client.patch(
        f"/findings/{finding['id']}", json={"status": "resolved", "severity": "low"}
    )
    assert response.status_code == 200
    updated = response.json()
    assert updated["status"] == "resolved"
    assert updated["severity"] == "low"
    assert updated["title"] == "Open admin port"

    listed = client.get(f"/audits/{audit['id']}/findings").json()
    assert [item["status"] for item in listed] == ["resolved"]


def test_finding_update_rejects_unknown_status_and_missing_finding(client: TestClient) -> None:
    audit = _create(client)
    finding = client.post(
        f"/audits/{audit['id']}/findings",
        json={"category": "security", "severity": "high", "title": "Open admin port"},
    ).json()

    assert client.patch(f"/findings/{finding['id']}", json={"status": "ignored"}).status_code == 422
    assert client.patch("/findings/missing", json={"status": "resolved"}).status_code == 404


def test_delete_audit_removes_its_findings(client: TestClient) -> None:
    audit = _create(client)
    client.post(
        f"/audits/{audit['id']}/findings",
        json={"category": "cicd", "severity": "low", "title": "Manual deploys"},
    )

    assert client.delete(f"/audits/{audit['id']}").status_code == 204
    assert client.get(f"/audits/{audit['id']}").status_code == 404
    assert client.get("/audits").json() == []
    assert client.delete(f"/audits/{audit['id']}").status_code == 404


def test_delete_audit_refused_while_scanning(
    client: TestClient, orchestrator: ScanOrchestrator, gate: threading.Event
) -> None:
    audit = _create(client)
    gate.clear()

    assert client.post(f"/audits/{audit['id']}/scan").status_code == 202
    assert orchestrator.fetcher.entered.wait(timeout=5)

    response = client.delete(f"/audits/{audit['id']}")
    assert response.status_code == 409
    assert client.get(f"/audits/{audit['id']}").status_code == 200

    gate.set()
    orchestrator.wait(audit["id"], timeout=10)
    assert client.delete(f"/audits/{audit['id']}").status_code == 204
