"""Tests for API endpoints."""

from __future__ import annotations

import base64

import numpy as np
from fastapi.testclient import TestClient

from hierseg import __version__, main
from hierseg.config import Settings
from hierseg.dependencies import get_settings
from hierseg.main import app
from tests.conftest import GRAY_4X4, TWO_TONE, TWO_TONE_H, TWO_TONE_W, quadrants_array


client = TestClient(app)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _image(data: bytes = TWO_TONE, width: int = TWO_TONE_W, height: int = TWO_TONE_H, channels: int = 3) -> dict:
    return {"pixels": _b64(data), "width": width, "height": height, "channels": channels}


def _bitmap(data: dict) -> np.ndarray:
    raw = base64.b64decode(data["bitmap"])
    return np.frombuffer(raw, dtype=np.uint8).reshape(data["height"], data["width"], 4)


def _build(target: int = 4, **extra) -> dict:
    response = client.post("/api/hierarchy", json={**_image(), "target_region_count": target, **extra})
    assert response.status_code == 200
    return response.json()


def test_health():
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == __version__


def test_build_hierarchy():
    data = _build()
    assert data["width"] == TWO_TONE_W
    assert data["height"] == TWO_TONE_H
    assert data["n_leaves"] == 4
    assert data["n_nodes"] == 7
    assert data["max_level"] > 0


def test_build_is_cached():
    first = _build(target=6)
    second = _build(target=6)
    assert second["hierarchy_id"] == first["hierarchy_id"]
    assert second["cached"] is True


def test_build_parameters_change_id():
    color = _build(target=5)
    shah = _build(target=5, weight="mumford_shah")
    assert color["hierarchy_id"] != shah["hierarchy_id"]


def test_describe_hierarchy():
    built = _build()
    response = client.get(f"/api/hierarchy/{built['hierarchy_id']}")
    assert response.status_code == 200
    assert response.json()["max_level"] == built["max_level"]


def test_cut_levels():
    built = _build()
    hid = built["hierarchy_id"]

    leaves = client.post(f"/api/hierarchy/{hid}/cut", json={"level": 0}).json()
    assert leaves["n_regions"] == 4
    assert len(leaves["labels"]) == TWO_TONE_W * TWO_TONE_H

    root = client.post(f"/api/hierarchy/{hid}/cut", json={"level": built["max_level"] * 10}).json()
    assert root["n_regions"] == 1
    assert root["level"] == built["max_level"]

    clamped = client.post(f"/api/hierarchy/{hid}/cut", json={"level": -5}).json()
    assert clamped["labels"] == leaves["labels"]


def test_cut_with_control():
    hid = _build()["hierarchy_id"]
    full = client.post(f"/api/hierarchy/{hid}/cut", json={"control": 1.0}).json()
    assert full["n_regions"] == 1
    none = client.post(f"/api/hierarchy/{hid}/cut", json={"control": 0.0}).json()
    assert none["n_regions"] == 4


def test_cut_rejects_level_and_control_together():
    hid = _build()["hierarchy_id"]
    response = client.post(f"/api/hierarchy/{hid}/cut", json={"level": 1.0, "control": 0.5})
    assert response.status_code == 422


def test_render():
    built = _build()
    hid = built["hierarchy_id"]
    response = client.post(f"/api/hierarchy/{hid}/render", json={"level": 0})
    assert response.status_code == 200
    out = _bitmap(response.json())
    assert out[0, 0].tolist() == [220, 30, 30, 255]
    assert out[0, -1].tolist() == [30, 30, 220, 255]

    merged = client.post(f"/api/hierarchy/{hid}/render", json={"control": 1.0}).json()
    assert _bitmap(merged)[0, 0].tolist() == [125, 30, 125, 255]


def test_unknown_hierarchy():
    assert client.get("/api/hierarchy/doesnotexist").status_code == 404
    assert client.post("/api/hierarchy/doesnotexist/cut", json={"level": 0}).status_code == 404
    assert client.delete("/api/hierarchy/doesnotexist").status_code == 404


def test_delete_hierarchy():
    hid = _build(target=3)["hierarchy_id"]
    assert client.delete(f"/api/hierarchy/{hid}").status_code == 200
    assert client.get(f"/api/hierarchy/{hid}").status_code == 404


def test_invalid_dimensions():
    response = client.post("/api/hierarchy", json={
        **_image(GRAY_4X4[:-3], 4, 4, 3), "target_region_count": 4,
    })
    assert response.status_code == 422
    data = response.json()
    assert data["error"] == "InvalidDimensions"
    assert "expected" in data["message"]


def test_empty_input():
    response = client.post("/api/hierarchy", json={**_image(), "target_region_count": 0})
    assert response.status_code == 422
    assert response.json()["error"] == "EmptyInput"


def test_unsupported_bit_depth():
    response = client.post("/api/slic", json={
        **_image(), "bit_depth": 16, "num_superpixels": 4,
    })
    assert response.status_code == 422
    assert response.json()["error"] == "UnsupportedBitDepth"


def test_image_too_large():
    app.dependency_overrides[get_settings] = lambda: Settings(max_pixels=10)
    try:
        response = client.post("/api/slic", json={**_image(), "num_superpixels": 4})
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 413


def test_display():
    labels = [0] * 8 + [1] * 8
    response = client.post("/api/display", json={**_image(GRAY_4X4, 4, 4, 3), "labels": labels})
    assert response.status_code == 200
    out = _bitmap(response.json())
    assert np.all(out[:, :, :3] == 128)


def test_display_label_mismatch():
    response = client.post("/api/display", json={**_image(GRAY_4X4, 4, 4, 3), "labels": [0, 1]})
    assert response.status_code == 422
    assert response.json()["error"] == "InvalidDimensions"


def test_segment():
    image = quadrants_array()
    size = image.shape[0]
    response = client.post("/api/segment", json={
        **_image(image.tobytes(), size, size, 3), "target_region_count": 4,
    })
    assert response.status_code == 200
    assert np.array_equal(_bitmap(response.json())[:, :, :3], image)


def test_planar_layout():
    planar = np.frombuffer(TWO_TONE, dtype=np.uint8).reshape(TWO_TONE_H, TWO_TONE_W, 3).transpose(2, 0, 1)
    response = client.post("/api/slic", json={
        **_image(planar.tobytes()), "layout": "planar", "num_superpixels": 4,
    })
    assert response.status_code == 200
    assert _bitmap(response.json())[0, 0].tolist() == [220, 30, 30, 255]


def test_nan_level_rejected():
    hid = _build()["hierarchy_id"]
    headers = {"content-type": "application/json"}
    for path in (f"/api/hierarchy/{hid}/cut", f"/api/hierarchy/{hid}/render"):
        response = client.post(path, content=b'{"level": NaN}', headers=headers)
        assert response.status_code == 422


def test_error_body_shape():
    response = client.post("/api/hierarchy", json={**_image(), "target_region_count": 0})
    assert set(response.json()) == {"error", "message"}


def test_run_serves_app(monkeypatch):
    calls = []
    monkeypatch.setattr(main.uvicorn, "run", lambda *args, **kwargs: calls.append((args, kwargs)))
    main.run()
    assert calls[0][0] == (app,)
    assert calls[0][1]["port"] == main.settings.port
