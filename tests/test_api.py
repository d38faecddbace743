import pytest
from fastapi.testclient import TestClient

from imgstamp.main import app, progress_tracker
from tests.conftest import decode


@pytest.fixture
def client():
    return TestClient(app)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_target_sizes(client):
    sizes = client.get("/target-sizes").json()
    assert [s["id"] for s in sizes] == ["5", "5L", "6", "6L"]
    assert sizes[3] == {"id": "6L", "label": sizes[3]["label"], "width": 1800, "height": 1350, "dpi": 300}
    assert (sizes[1]["width"], sizes[1]["height"]) == (1500, 1125)


def test_scan(client, photo_dir):
    response = client.post("/scan", json={"base_dir": str(photo_dir)})
    assert response.status_code == 200
    assert [e["relative_path"] for e in response.json()] == ["broken.jpg", "landscape.jpg", "trip/portrait.png"]


def test_scan_missing_directory(client, tmp_path):
    assert client.post("/scan", json={"base_dir": str(tmp_path / "nope")}).status_code == 404


def test_metadata_and_exif_date(client, photo_dir):
    body = {"base_dir": str(photo_dir), "relative_path": "landscape.jpg"}

    meta = client.post("/metadata", json=body).json()
    assert (meta["width"], meta["height"]) == (300, 200)
    assert client.post("/exif-date", json=body).json() == {"date": None}


def test_thumbnail(client, photo_dir):
    response = client.post(
        "/thumbnail", json={"base_dir": str(photo_dir), "relative_path": "landscape.jpg", "size": 150}
    )
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/jpeg"
    assert decode(response.content).shape == (100, 150, 3)


def test_preview(client, photo_dir):
    response = client.post(
        "/preview",
        json={
            "base_dir": str(photo_dir),
            "relative_path": "landscape.jpg",
            "target_size": "6",
            "caption": {"date": "2024-05-01", "location": "Paris"},
            "max_edge": 900,
        },
    )
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/jpeg"
    assert decode(response.content).shape == (600, 900, 3)


@pytest.mark.parametrize(
    "relative_path, target_size, status",
    [
        ("missing.jpg", "6", 404),
        ("landscape.jpg", "A4", 400),
        ("broken.jpg", "6", 422),
    ],
)
def test_preview_errors(client, photo_dir, relative_path, target_size, status):
    response = client.post(
        "/preview",
        json={"base_dir": str(photo_dir), "relative_path": relative_path, "target_size": target_size},
    )
    assert response.status_code == status


def test_export_job(client, photo_dir, tmp_path):
    response = client.post(
        "/export",
        json={
            "base_dir": str(photo_dir),
            "target_size": "5",
            "output_root": str(tmp_path / "out"),
            "items": [
                {"relative_path": "landscape.jpg", "output_stem": "a", "caption": {"date": "2024-05-01"}},
                {"relative_path": "broken.jpg", "output_stem": "b"},
            ],
        },
    )
    assert response.status_code == 200
    job_id = response.json()["job_id"]
    assert response.json()["total"] == 2

    # Background tasks finish before the test client returns
    job = client.get(f"/export/{job_id}").json()
    assert job["status"] == "completed"
    assert job["current"] == 2
    assert job["result"]["exported_count"] == 1
    assert job["result"]["failed_count"] == 1
    assert (tmp_path / "out" / "stamped_5" / "a.jpg").is_file()


def test_export_unknown_target_size(client, photo_dir, tmp_path):
    response = client.post(
        "/export",
        json={"base_dir": str(photo_dir), "target_size": "A4", "output_root": str(tmp_path), "items": []},
    )
    assert response.status_code == 400


def test_export_status_unknown_job(client):
    assert client.get("/export/does-not-exist").status_code == 404


def test_progress_tracker_cleanup():
    progress_tracker.create_job("old", 1)
    progress_tracker.complete("old", result={"exported_count": 1})
    progress_tracker.jobs["old"]["timestamp"] -= 3600

    progress_tracker.cleanup_old_jobs(max_age_seconds=600)

    assert progress_tracker.get_job("old") is None
