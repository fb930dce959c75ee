import pytest
from fastapi.testclient import TestClient

from agent import GENERIC_ERROR_REPLY, SeeqAgent
from backend.web.main import create_app
from config.schema import SeeqSettings
from core.classifier import ActionKind
from core.errors import CollaboratorFailure
from tests.fakes.collaborators import FakeClassifier, FakeJudge, FakePlanner, FakeRecommender, RecordingOpener


class FailingRecommender(FakeRecommender):
    async def recommend(self, text, candidates):
        raise CollaboratorFailure("recommender", "down")


@pytest.fixture
def make_client(tmp_path):
    root = tmp_path / "sandbox"
    (root / "notes").mkdir(parents=True)
    (root / "notes" / "lecture1.pdf").write_text("x")
    (root / "readme.txt").write_text("x")
    agents = []

    def _make(**kwargs):
        settings = SeeqSettings(
            sandbox={"root": str(root)},
            storage={"db_path": str(tmp_path / "seeq.db")},
            indexer={"index_on_startup": False},
        )
        kwargs.setdefault("classifier", FakeClassifier({"lecture1.pdf": ["math"]}, keywords=["math"]))
        kwargs.setdefault("relevance_judge", FakeJudge())
        kwargs.setdefault("planner", FakePlanner(ActionKind.OPEN, reply="Opened."))
        kwargs.setdefault("recommender", FakeRecommender())
        kwargs.setdefault("opener", RecordingOpener())
        agent = SeeqAgent(settings=settings, **kwargs)
        agents.append(agent)
        return TestClient(create_app(agent)), agent

    yield _make
    for agent in agents:
        agent.close()


def test_index_query_and_history(make_client):
    client, agent = make_client()
    with client:
        r = client.post("/api/index")
        assert r.status_code == 200
        assert r.json()["status"] == "done"
        assert len(r.json()["indexed"]) == 2

        r = client.post("/api/agent/query", json={"message": "open my math lecture"})
        assert r.status_code == 200
        assert r.json() == {"reply": "Opened."}

        r = client.get("/api/history")
        records = r.json()["records"]
        assert len(records) == 1
        assert records[0]["filePaths"][0].endswith("notes/lecture1.pdf")

        r = client.get("/api/operations", params={"limit": 5})
        assert [e["operation"] for e in r.json()["entries"]] == ["OPEN"]


def test_query_error_is_generic(make_client):
    client, _ = make_client(classifier=FakeClassifier(fail_keywords=True))
    with client:
        r = client.post("/api/agent/query", json={"message": "open my math lecture"})
        assert r.status_code == 200
        assert r.json() == {"reply": GENERIC_ERROR_REPLY}


def test_screen_recommendation(make_client):
    client, _ = make_client()
    with client:
        client.post("/api/index")
        r = client.post("/api/agent/screen", json={"text": "Math homework"})
        assert r.status_code == 200
        assert r.json()["filePaths"][0].endswith("notes/lecture1.pdf")


def test_screen_collaborator_failure_maps_to_502(make_client):
    client, _ = make_client(recommender=FailingRecommender())
    with client:
        client.post("/api/index")
        r = client.post("/api/agent/screen", json={"text": "Math homework"})
        assert r.status_code == 502
        assert r.json()["error"] == "CollaboratorFailure"


def test_tree_and_error_mapping(make_client):
    client, agent = make_client()
    with client:
        r = client.get("/api/files/tree")
        assert r.status_code == 200
        body = r.json()
        assert body["rootFiles"] == ["readme.txt"]
        assert body["folders"][0]["files"] == ["lecture1.pdf"]

        assert client.get("/api/files/tree", params={"path": "readme.txt"}).status_code == 400
        assert client.post("/api/files/open", json={"path": "missing.pdf"}).status_code == 404
        assert client.post("/api/files/open", json={"path": "../etc/passwd"}).status_code == 400

        r = client.post("/api/files/open", json={"path": "notes/lecture1.pdf"})
        assert r.status_code == 200
        assert agent.operations.opener.opened == [r.json()["opened"]]


def test_request_validation(make_client):
    client, _ = make_client()
    with client:
        assert client.post("/api/agent/query", json={"message": ""}).status_code == 422


def test_files_routes_reject_absolute_paths_outside_sandbox(make_client, tmp_path):
    outside = tmp_path / "host"
    outside.mkdir()
    (outside / "secret.txt").write_text("x")
    client, agent = make_client()
    with client:
        r = client.post("/api/files/open", json={"path": str(outside / "secret.txt")})
        assert r.status_code == 400
        assert r.json()["error"] == "PathEscapeError"

        r = client.get("/api/files/tree", params={"path": str(outside)})
        assert r.status_code == 400

        inside = str(agent.root / "notes" / "lecture1.pdf")
        assert client.post("/api/files/open", json={"path": inside}).status_code == 200

    assert agent.operations.opener.opened == [inside]
    assert "LIST_TREE" not in [e.operation for e in agent.operations_log()]


def test_cors_allows_local_origins_only(make_client):
    client, _ = make_client()
    with client:
        local = client.get("/api/history", headers={"Origin": "http://localhost:5173"})
        assert local.headers.get("access-control-allow-origin") == "http://localhost:5173"

        remote = client.get("/api/history", headers={"Origin": "https://evil.example"})
        assert "access-control-allow-origin" not in remote.headers


def test_main_binds_loopback_by_default(monkeypatch):
    import backend.web.main as web_main

    calls = []
    monkeypatch.delenv("SEEQ_BACKEND_HOST", raising=False)
    monkeypatch.setenv("SEEQ_BACKEND_PORT", "8123")
    monkeypatch.setattr(web_main.uvicorn, "run", lambda app, **kw: calls.append((app, kw)))

    web_main.main()

    assert calls == [("backend.web.main:app", {"host": "127.0.0.1", "port": 8123})]
