"""Tests for qr_backdrop.provider and qr_backdrop.generator modules."""

import io
from unittest import mock

import pytest
import requests
from PIL import Image

from qr_backdrop.config import AppConfig, EmbedConfig, ProviderConfig, ServerConfig
from qr_backdrop.errors import VerificationExhausted
from qr_backdrop.generator import QrImageGenerator
from qr_backdrop.provider import UNSPLASH_API_URL, ImageProvider, placeholder_image
from qr_backdrop.scan import decode


def _png_bytes(size=(640, 480), color="teal"):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


def _response(status_code=200, json_data=None, content=b""):
    response = mock.Mock(status_code=status_code, content=content)
    response.json.return_value = json_data
    return response


@pytest.fixture
def session():
    fake = mock.Mock(spec=requests.Session)
    fake.headers = {}
    return fake


class TestPlaceholder:
    """Tests for the synthesized fallback background."""

    def test_size_and_mode(self):
        img = placeholder_image("test", 320, 200)
        assert img.size == (320, 200)
        assert img.mode == "RGB"

    def test_deterministic(self):
        assert placeholder_image("sunset", 50, 20).tobytes() == placeholder_image("sunset", 50, 20).tobytes()

    def test_keyword_color(self):
        # byte sum of "test" is 448
        img = placeholder_image("test", 100, 10)
        right = img.getpixel((99, 0))
        assert right == pytest.approx(((448 * 137) % 256, (448 * 193) % 256, (448 * 241) % 256), abs=3)

    def test_shaded_left_to_right(self):
        img = placeholder_image("ocean", 100, 10)
        assert sum(img.getpixel((0, 5))) <= sum(img.getpixel((99, 5)))


class TestImageProvider:
    """Tests for fetching backgrounds."""

    def test_no_key_uses_placeholder(self, session):
        provider = ImageProvider(ProviderConfig(image_width=200, image_height=100), session=session)
        img = provider.fetch_image("forest")
        assert img.size == (200, 100)
        session.get.assert_not_called()

    def test_sets_user_agent(self, session):
        ImageProvider(ProviderConfig(user_agent="ua/1"), session=session)
        assert session.headers["User-Agent"] == "ua/1"

    def test_fetches_from_unsplash(self, session):
        session.get.side_effect = [
            _response(json_data={"urls": {"raw": "https://images.example/raw"}}),
            _response(content=_png_bytes()),
        ]
        config = ProviderConfig(unsplash_api_key="key", image_width=300, image_height=200)
        img = ImageProvider(config, session=session).fetch_image("mountains")

        assert img.size == (300, 200)
        assert img.getpixel((10, 10)) == (0, 128, 128)

        api_call, download_call = session.get.call_args_list
        assert api_call.args[0] == UNSPLASH_API_URL
        assert api_call.kwargs["params"]["query"] == "mountains"
        assert api_call.kwargs["headers"]["Authorization"] == "Client-ID key"
        assert download_call.args[0] == "https://images.example/raw"
        assert download_call.kwargs["params"] == {"w": 300, "h": 200, "fit": "crop"}

    def test_api_error_falls_back(self, session):
        session.get.return_value = _response(status_code=401)
        config = ProviderConfig(unsplash_api_key="bad", image_width=120, image_height=80)
        img = ImageProvider(config, session=session).fetch_image("forest")
        assert img.tobytes() == placeholder_image("forest", 120, 80).tobytes()

    def test_network_error_falls_back(self, session):
        session.get.side_effect = requests.ConnectionError("offline")
        config = ProviderConfig(unsplash_api_key="key", image_width=120, image_height=80)
        img = ImageProvider(config, session=session).fetch_image("forest")
        assert img.size == (120, 80)

    def test_undecodable_download_falls_back(self, session):
        session.get.side_effect = [
            _response(json_data={"urls": {"raw": "https://images.example/raw"}}),
            _response(content=b"not an image"),
        ]
        config = ProviderConfig(unsplash_api_key="key", image_width=120, image_height=80)
        img = ImageProvider(config, session=session).fetch_image("forest")
        assert img.tobytes() == placeholder_image("forest", 120, 80).tobytes()

    def test_malformed_json_falls_back(self, session):
        session.get.return_value = _response(json_data={"unexpected": True})
        config = ProviderConfig(unsplash_api_key="key", image_width=120, image_height=80)
        img = ImageProvider(config, session=session).fetch_image("forest")
        assert img.size == (120, 80)


class TestQrImageGenerator:
    """Tests for keyword-to-image orchestration."""

    @pytest.fixture
    def config(self):
        return AppConfig(
            server=ServerConfig(),
            provider=ProviderConfig(image_width=800, image_height=600),
            embed=EmbedConfig(),
        )

    def test_generate(self, config):
        img = QrImageGenerator(config).generate("coffee", "https://example.com")
        assert img.size == (800, 600)
        assert decode(img) == b"https://example.com"

    def test_generate_and_save(self, config, tmp_path):
        output = QrImageGenerator(config).generate_and_save("coffee", "hello", tmp_path / "out.png")
        assert output.exists()

    def test_exhausted_writes_nothing(self, config, tmp_path, monkeypatch):
        monkeypatch.setattr("qr_backdrop.pipeline.decode", lambda image: None)
        output = tmp_path / "out.png"
        with pytest.raises(VerificationExhausted):
            QrImageGenerator(config).generate_and_save("coffee", "hello", output)
        assert not output.exists()

    def test_quick_validate(self, config):
        generator = QrImageGenerator(config)
        assert generator.quick_validate(generator.generate("tea", "x"))
        assert not generator.quick_validate(Image.new("RGB", (100, 100), "white"))
