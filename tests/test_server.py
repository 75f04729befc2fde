import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine

from backend.studio_reports import server
from backend.studio_reports.repository import DocumentRepository, ReportDataUnavailable, SQLDocumentRepository

NOW = "2024-05-15T12:00:00+03:00"


class UnavailableRepository(DocumentRepository):
    def load(self, tz=None, collections=()):
        raise ReportDataUnavailable("connection refused")


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(server, "repository", None)
    return TestClient(server.app)


@pytest.fixture
def inline_body(studio_documents):
    return {"now": NOW, **studio_documents}


@pytest.fixture
def database(monkeypatch, tmp_path, studio_documents):
    repository = SQLDocumentRepository(create_engine(f"sqlite:///{tmp_path / 'server.db'}"))
    repository.create_schema()
    for collection, documents in studio_documents.items():
        for document in documents:
            repository.save_document(collection, document)
    monkeypatch.setattr(server, "repository", repository)
    return repository


class TestInlineReports:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_dashboard(self, client, inline_body):
        response = client.post("/reports/dashboard", json=inline_body)

        assert response.status_code == 200
        body = response.json()
        assert body["source"] == "inline"
        data = body["data"]
        assert data["overview"]["occupancyRate"] == 25
        assert data["finance"]["netProfit"] == 390
        assert data["members"]["totalMembers"] == 2
        assert data["packages"]["summary"] == {"expiredWithCredits": 1, "expiringSoon": 1, "recentlyExpired": 0}
        assert "maintenance" not in data

    def test_attendance(self, client, inline_body):
        data = client.post("/reports/attendance", json=inline_body).json()["data"]

        assert data["daily"]["values"] == [0, 0, 3, 0, 1, 0, 0]
        assert data["weekly"]["isPlaceholder"] is False

    def test_finance_filters(self, client, inline_body):
        body = {**inline_body, "start": "2024-05-01T00:00:00+03:00", "end": "2024-05-31T23:59:59+03:00"}

        data = client.post("/reports/finance", json=body).json()["data"]

        assert data["totalIncome"] == 500
        assert data["totalExpenses"] == 200
        assert data["netProfit"] == 300

    def test_finance_rejects_inverted_range(self, client, inline_body):
        body = {**inline_body, "start": "2024-05-31T00:00:00", "end": "2024-05-01T00:00:00"}

        assert client.post("/reports/finance", json=body).status_code == 422

    def test_trainers(self, client, inline_body):
        trainers = client.post("/reports/trainers", json=inline_body).json()["data"]["trainers"]

        assert [trainer["id"] for trainer in trainers] == ["t-ayse", "t-mehmet"]
        assert trainers[0]["monthlyLessons"] == 2

    def test_packages_export(self, client, inline_body):
        response = client.post("/reports/packages/export", json=inline_body)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "package-report-2024-05-15.csv" in response.headers["content-disposition"]
        assert "Reset credits to zero" in response.text

    def test_missing_collections_without_database(self, client):
        assert client.post("/reports/packages", json={"now": NOW}).status_code == 500

    def test_empty_collections_are_a_valid_report(self, client):
        response = client.post("/reports/finance", json={"now": NOW, "transactions": []})

        assert response.status_code == 200
        assert response.json()["data"]["transactionCount"] == 0


class TestDatabaseReports:
    def test_reads_from_repository(self, client, database):
        body = client.post("/reports/packages", json={"now": NOW}).json()

        assert body["source"] == "database"
        assert body["data"]["summary"]["expiredWithCredits"] == 1

    def test_dashboard_applies_maintenance_once(self, client, database):
        first = client.post("/reports/dashboard", json={"now": NOW}).json()["data"]
        second = client.post("/reports/dashboard", json={"now": NOW}).json()["data"]

        assert first["maintenance"]["applied"] == 1
        assert first["packages"]["summary"]["expiredWithCredits"] == 1
        assert second["maintenance"]["applied"] == 0
        assert second["packages"]["summary"]["expiredWithCredits"] == 0
        assert second["packages"]["summary"]["recentlyExpired"] == 1

    def test_maintenance_skipped_when_already_done(self, client, database):
        data = client.post("/reports/dashboard", json={"now": NOW, "maintenance_done": True}).json()["data"]

        assert data["maintenance"]["applied"] == 0

    def test_no_maintenance_flag_when_auto_maintenance_is_off(self, client, database, monkeypatch):
        monkeypatch.setattr(server, "settings", server.settings.model_copy(update={"auto_maintenance": False}))

        data = client.post("/reports/dashboard", json={"now": NOW}).json()["data"]

        assert "maintenance" not in data
        assert data["packages"]["summary"]["expiredWithCredits"] == 1

    def test_store_failure_is_503(self, client, monkeypatch):
        monkeypatch.setattr(server, "repository", UnavailableRepository())

        response = client.post("/reports/dashboard", json={"now": NOW})

        assert response.status_code == 503
        assert response.json() == {"detail": "Report data unavailable"}
