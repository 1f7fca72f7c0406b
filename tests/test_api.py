"""
Upload endpoint tests. Requests go through FastAPI's TestClient; background
persistence runs before the client call returns.
"""

import pytest
from fastapi.testclient import TestClient

from api.app import app
from core.config import settings

CORRUPT_JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 100


@pytest.fixture(scope="module")
def client():
    return TestClient(app)


def _media(*files):
    return [("media", (name, data, "image/jpeg")) for name, data in files]


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert client.get("/live").json() == {"status": "alive"}


def test_upload_without_files_is_rejected(client):
    response = client.post("/upload", data={"note": "nothing attached"})

    assert response.status_code == 400
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text == "No files were uploaded."


def test_upload_reports_timings_and_sizes(client, small_jpeg, seed_jpeg, no_saving):
    response = client.post("/upload", files=_media(("a.jpg", small_jpeg), ("b.jpg", seed_jpeg)))

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Files uploaded and processed successfully"

    timings = body["timings"]
    assert [f["fileName"] for f in timings["files"]] == ["a.jpg", "b.jpg"]
    assert timings["totalProcessingTime"] >= max(f["totalTime"] for f in timings["files"])
    for entry in timings["files"]:
        assert set(entry["qualities"]) == {"low", "medium", "original"}

    sizes = body["sizes"]
    expected_kb = (len(small_jpeg) + len(seed_jpeg)) / 1024
    assert sizes["totalOriginalSize"] == pytest.approx(expected_kb)
    for quality, total in sizes["totalProcessedSize"].items():
        per_file = sum(f["qualities"][quality]["size"] for f in sizes["files"])
        assert total == pytest.approx(per_file)
    assert sizes["totalProcessedSize"]["low"] < sizes["totalOriginalSize"]
    assert "X-Process-Time-MS" in response.headers


@pytest.mark.parametrize("payload", [CORRUPT_JPEG, bytes(range(256)) * 4])
def test_unprocessable_file_fails_whole_request(client, small_jpeg, payload, no_saving):
    response = client.post("/upload", files=_media(("ok.jpg", small_jpeg), ("bad.jpg", payload)))

    assert response.status_code == 500
    assert response.text == "Error processing file: bad.jpg"


def test_oversize_file_is_rejected(client, seed_jpeg, monkeypatch, no_saving):
    monkeypatch.setattr(settings, "max_image_size_mb", 0.001)

    response = client.post("/upload", files=_media(("big.jpg", seed_jpeg)))

    assert response.status_code == 413
    assert response.text.startswith("File too large: big.jpg. Max size:")


def test_variants_are_saved_per_quality(client, small_jpeg, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "save_outputs", True)
    monkeypatch.setattr(settings, "output_dir", str(tmp_path))

    response = client.post("/upload", files=_media(("photo.jpg", small_jpeg)))

    assert response.status_code == 200
    for quality in ("low", "medium", "original"):
        saved = tmp_path / quality / f"{quality}_photo.jpg"
        assert saved.exists()
        assert saved.read_bytes()[:3] == b"\xff\xd8\xff"


def test_metrics_endpoint_exposes_variant_counters(client, small_jpeg, no_saving):
    client.post("/upload", files=_media(("m.jpg", small_jpeg)))

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "img_variants_produced_total" in response.text
    assert 'endpoint="/upload"' in response.text
