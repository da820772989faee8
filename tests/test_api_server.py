import time

import pytest
from fastapi.testclient import TestClient

from api.server import APIServerConfig, _is_loopback_host, create_app
from triage.events import FILE_PROCESSING, EventBus
from triage.service import TriageService, TriageSettings
from triage.types import ClassifierReply


class FakeClassifier:
    def classify(self, image_bytes, credential, *, timeout=None):
        return ClassifierReply(new_filename="invoice.png", category="Finance", reasoning="receipt")

    def classify_subcategory(self, image_bytes, credential, parent_category, *, timeout=None):
        return "Receipts"

    def close(self):
        pass


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def service(bus):
    return TriageService(TriageSettings(debounce_s=0.0, max_file_size=16), bus, classifier=FakeClassifier())


@pytest.fixture
def client(bus, service):
    app = create_app(APIServerConfig(service=service, bus=bus, app_version="test", poll_interval=0.05))
    with TestClient(app) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/v1/health")

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["version"] == "test"
    assert body["watching"] is False
    assert body["sse_clients"] == 0


def test_start_run_publishes_events(client, bus, service, tmp_path):
    (tmp_path / "Screenshot 1.png").write_bytes(b"png")
    subscription = bus.subscribe()

    response = client.post("/v1/triage/runs", json={"folder": str(tmp_path), "api_key": "sk-key"})

    assert response.status_code == 200
    assert response.json() == {"message": f"Scanned {tmp_path}"}
    assert service.wait_idle(timeout=10)
    kinds = []
    while True:
        event = subscription.get(timeout=0.05)
        if event is None:
            break
        kinds.append(event.kind)
    assert kinds == ["scan-summary", "file-processing", "file-proposed"]


def test_start_run_errors(client, tmp_path):
    missing = client.post("/v1/triage/runs", json={"folder": str(tmp_path / "missing"), "api_key": "k"})
    blank = client.post("/v1/triage/runs", json={"folder": str(tmp_path), "api_key": " "})
    invalid = client.post("/v1/triage/runs", json={"folder": str(tmp_path)})

    assert missing.status_code == 400
    assert "error" in missing.json()
    assert blank.status_code == 400
    assert blank.json() == {"error": "API key is required"}
    assert invalid.status_code == 400
    assert invalid.json()["error"] == "invalid parameters"


def test_stop_run(client):
    response = client.delete("/v1/triage/runs")

    assert response.json() == {"message": "Stopped watching"}


def test_list_files_and_folders(client, tmp_path):
    (tmp_path / "Screenshot b.png").write_bytes(b"x" * 32)
    (tmp_path / "Screenshot a.png").write_bytes(b"x")
    (tmp_path / "Finance").mkdir()

    files = client.get("/v1/triage/files", params={"folder": str(tmp_path)}).json()
    folders = client.get("/v1/triage/folders", params={"folder": str(tmp_path)}).json()
    missing = client.get("/v1/triage/files", params={"folder": str(tmp_path / "nope")})

    assert [(item["name"], item["is_valid"]) for item in files["files"]] == [
        ("Screenshot a.png", True),
        ("Screenshot b.png", False),
    ]
    assert [item["name"] for item in folders["folders"]] == ["Finance"]
    assert missing.status_code == 404
    assert missing.json() == {"error": "Directory does not exist"}


def test_apply(client, tmp_path):
    source = tmp_path / "Screenshot 1.png"
    source.write_bytes(b"png")
    target = tmp_path / "Finance" / "invoice.png"

    ok = client.post("/v1/triage/apply", json={"original_path": str(source), "new_path": str(target)})
    gone = client.post("/v1/triage/apply", json={"original_path": str(source), "new_path": str(target)})

    assert ok.json() == {"message": "Success"}
    assert target.exists()
    assert gone.status_code == 409
    assert gone.json() == {"error": "Source file no longer exists"}


def test_subcategory(client, tmp_path):
    small = tmp_path / "Screenshot 1.png"
    small.write_bytes(b"png")
    large = tmp_path / "Screenshot 2.png"
    large.write_bytes(b"x" * 32)

    ok = client.post("/v1/triage/subcategory", json={"file_path": str(small), "parent_category": "Finance", "api_key": "k"})
    too_big = client.post(
        "/v1/triage/subcategory", json={"file_path": str(large), "parent_category": "Finance", "api_key": "k"}
    )

    assert ok.json() == {"id": "Screenshot 1.png", "subcategory": "Receipts", "proposal": None}
    assert too_big.status_code == 413
    assert too_big.json() == {"error": "File exceeds 5MB limit"}


def test_subcategory_rewrites_submitted_proposal(client, tmp_path):
    shot = tmp_path / "Screenshot 1.png"
    shot.write_bytes(b"png")
    proposal = {
        "id": shot.name,
        "original_path": str(shot),
        "original_name": shot.name,
        "proposed_name": "invoice.png",
        "proposed_category": "Finance",
        "reasoning": "receipt",
    }

    response = client.post(
        "/v1/triage/subcategory",
        json={"file_path": str(shot), "parent_category": "Finance", "api_key": "k", "proposal": proposal},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["subcategory"] == "Receipts"
    assert body["proposal"] == {**proposal, "proposed_category": "Finance/Receipts"}


def _proposal(folder, index, name, category):
    original = f"Screenshot {index}.png"
    return {
        "id": original,
        "original_path": str(folder / original),
        "original_name": original,
        "proposed_name": name,
        "proposed_category": category,
    }


def test_conflicts_and_organize(client, tmp_path):
    proposals = [
        _proposal(tmp_path, 1, "invoice.png", "Finance"),
        _proposal(tmp_path, 2, "invoice.png", "Finance"),
        _proposal(tmp_path, 3, "chat.png", "Chat"),
    ]

    conflicts = client.post("/v1/triage/conflicts", json={"proposals": proposals}).json()["conflicts"]
    organized = client.post("/v1/triage/organize", json={"proposals": proposals}).json()["proposals"]

    assert sorted(item["id"] for item in conflicts) == ["Screenshot 1.png", "Screenshot 2.png"]
    assert conflicts[0]["reasons"] == ["duplicate destination"]
    assert [item["proposed_category"] for item in organized] == ["Other", "Other", "Other"]


def test_websocket_streams_events(client, bus):
    with client.websocket_connect("/v1/triage/events") as websocket:
        deadline = time.monotonic() + 5
        while bus.subscriber_count == 0 and time.monotonic() < deadline:
            time.sleep(0.01)
        bus.publish(FILE_PROCESSING, "Screenshot 1.png")

        message = websocket.receive_json()

    assert message["kind"] == "file-processing"
    assert message["payload"] == "Screenshot 1.png"


@pytest.mark.parametrize(
    "host, expected",
    [
        ("127.0.0.1", True),
        ("127.10.0.2", True),
        ("::1", True),
        ("::ffff:127.0.0.1", True),
        ("testclient", True),
        (None, True),
        ("192.168.1.20", False),
        ("10.0.0.5", False),
    ],
)
def test_loopback_detection(host, expected):
    assert _is_loopback_host(host) is expected
