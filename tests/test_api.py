"""Tests for qr_backdrop.api module."""

import pytest
from fastapi.testclient import TestClient
from PIL import Image
import io

from conftest import make_gradient
from qr_backdrop.api import app
from qr_backdrop.core import encode, rasterize
from qr_backdrop.scan import decode


@pytest.fixture
def client():
    """Create a test client."""
    return TestClient(app)


def _png(img):
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    buf.seek(0)
    return buf


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    def test_health_returns_ok(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestEmbedEndpoint:
    """Tests for the /embed endpoint."""

    @pytest.fixture
    def sample_image(self):
        """Create a sample image in memory."""
        return _png(make_gradient(800, 600))

    def test_embed_qr_basic(self, client, sample_image):
        response = client.post(
            "/embed",
            data={"data": "https://example.com"},
            files={"background": ("test.png", sample_image, "image/png")},
        )
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"

        img = Image.open(io.BytesIO(response.content))
        assert img.size == (800, 600)
        assert decode(img) == b"https://example.com"

    def test_embed_out_of_range_is_clamped(self, client, sample_image):
        response = client.post(
            "/embed",
            data={"data": "test", "qr_size": 1.5, "opacity": 999},
            files={"background": ("test.png", sample_image, "image/png")},
        )
        assert response.status_code == 200

    def test_embed_invalid_position(self, client, sample_image):
        response = client.post(
            "/embed",
            data={"data": "test", "position": "middle"},
            files={"background": ("test.png", sample_image, "image/png")},
        )
        assert response.status_code == 400

    def test_embed_payload_too_large(self, client, sample_image):
        response = client.post(
            "/embed",
            data={"data": "a" * 5000, "error_correction": "L"},
            files={"background": ("test.png", sample_image, "image/png")},
        )
        assert response.status_code == 400
        assert "capacity" in response.json()["detail"]

    def test_embed_not_an_image(self, client):
        response = client.post(
            "/embed",
            data={"data": "test"},
            files={"background": ("test.png", io.BytesIO(b"garbage"), "image/png")},
        )
        assert response.status_code == 400

    def test_embed_exhausted(self, client, sample_image, monkeypatch):
        monkeypatch.setattr("qr_backdrop.pipeline.decode", lambda image: None)
        response = client.post(
            "/embed",
            data={"data": "test"},
            files={"background": ("test.png", sample_image, "image/png")},
        )
        assert response.status_code == 422
        failures = response.json()["detail"]["failures"]
        assert [f["attempt"] for f in failures] == [1, 2, 3]
        assert all(f["reason"] == "no QR code found" for f in failures)


class TestGenerateEndpoint:
    """Tests for the /generate endpoint."""

    def test_generate_uses_placeholder(self, client, monkeypatch):
        monkeypatch.setenv("QR_BACKDROP_IMAGE_WIDTH", "640")
        monkeypatch.setenv("QR_BACKDROP_IMAGE_HEIGHT", "480")
        response = client.post("/generate", data={"keyword": "beach", "data": "hello"})
        assert response.status_code == 200
        img = Image.open(io.BytesIO(response.content))
        assert img.size == (640, 480)


class TestScanEndpoint:
    """Tests for the /scan endpoint."""

    def test_scan_finds_code(self, client):
        img = rasterize(encode("scan me"), module_scale=8)
        response = client.post("/scan", files={"image": ("qr.png", _png(img), "image/png")})
        assert response.status_code == 200
        assert response.json() == {"found": True, "data": "scan me"}

    def test_scan_blank(self, client):
        img = Image.new("RGB", (200, 200), "white")
        response = client.post("/scan", files={"image": ("blank.png", _png(img), "image/png")})
        assert response.json() == {"found": False, "data": None}
