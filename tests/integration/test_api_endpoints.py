import pytest
from fastapi.testclient import TestClient

from bridge import DIRECT
from main import DEV_ENV_VAR, app, bridge

client = TestClient(app)


@pytest.fixture
def dev_mode(monkeypatch):
    monkeypatch.setenv(DEV_ENV_VAR, "1")


@pytest.fixture(autouse=True)
def close_sessions():
    yield
    bridge.close_all()


def test_api_platform():
    response = client.get("/api/platform")
    assert response.status_code == 200
    assert isinstance(response.json(), str)


def test_api_encodings():
    body = client.get("/api/encodings").json()
    assert body["default"] == "utf-8"
    values = [e["value"] for e in body["encodings"]]
    assert values[:3] == ["utf-8", "utf-16le", "utf-16be"]
    assert {"value", "label", "group"} <= set(body["encodings"][0])


def test_api_open_file_not_found():
    response = client.post(
        "/api/open_file",
        json={"file_id": "missing", "file_path": "/non/existent/path.log"},
    )
    assert response.status_code == 200
    assert response.json() is False


def test_api_read_lines_unknown_file():
    response = client.get("/api/read_lines", params={"file_id": "invalid", "line_start": 7, "count": 10})
    assert response.status_code == 200
    assert response.json() == {"messageType": "ReadResult", "lineStart": 7, "lines": []}


@pytest.mark.parametrize("params", [
    {"file_id": "x", "line_start": -1, "count": 10},
    {"file_id": "x", "line_start": 0, "count": 0},
])
def test_api_read_lines_rejects_bad_window(params):
    assert client.get("/api/read_lines", params=params).status_code == 422


def test_api_open_and_read(temp_log_file):
    response = client.post("/api/open_file", json={"file_id": "api-1", "file_path": temp_log_file, "chunk_size": 4})
    assert response.json() is True
    assert bridge.wait_for_index("api-1")

    body = client.get("/api/read_lines", params={"file_id": "api-1", "line_start": 3, "count": 5}).json()
    assert body["lines"] == ["line 4", "line 5"]

    assert client.post("/api/set_encoding", json={"file_id": "api-1", "encoding": "koi8-r"}).json() is True
    assert bridge.wait_for_index("api-1")
    assert client.post("/api/close_file", json={"file_id": "api-1"}).json() is True
    assert client.get("/api/read_lines", params={"file_id": "api-1", "line_start": 0, "count": 1}).json()["lines"] == []


def test_api_detect_encoding(make_file):
    path = make_file("テスト\n".encode("utf-8") * 50)
    body = client.post("/api/detect_encoding", json={"file_path": path}).json()
    assert body == {"encoding": "utf-8", "confidence": 1.0, "method": "statistical"}

    response = client.post("/api/detect_encoding", json={"file_path": path + ".missing"})
    assert response.status_code == 404


def test_api_ready_emits_frontend_ready():
    calls = []
    slot = lambda: calls.append(True)
    bridge.frontendReady.connect(slot, DIRECT)
    try:
        assert client.post("/api/ready").json() is True
    finally:
        bridge.frontendReady.disconnect(slot)
    assert calls == [True]


def test_local_routes_hidden_outside_dev_mode(monkeypatch):
    monkeypatch.delenv(DEV_ENV_VAR, raising=False)
    response = client.post("/local/loggen", json={"size": 1})
    assert response.status_code == 404
    assert response.text == "Not Found"
    assert client.get("/local/anything").status_code == 404


def test_loggen_streams_attachment(dev_mode):
    response = client.post("/local/loggen", json={
        "format": "apache-common", "size": 2, "sizeUnit": "KB", "seed": 5, "newline": "\r\n",
    })
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/octet-stream"
    assert response.headers["cache-control"] == "no-store"
    disposition = response.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="dummy-apache-common-')
    assert disposition.endswith('.log"')
    assert len(response.content) >= 2048
    assert response.content.endswith(b"\r\n")


@pytest.mark.parametrize("body", [
    {"size": 0},
    {"size": 1, "format": "syslog"},
    {"size": 1, "sizeUnit": "TB"},
])
def test_loggen_rejects_invalid_body(dev_mode, body):
    response = client.post("/local/loggen", json=body)
    assert response.status_code == 400
    assert response.json() == {"detail": "Invalid request"}
