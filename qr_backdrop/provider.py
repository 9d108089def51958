"""
qr_backdrop.provider
--------------------

Background images for a keyword: a random Unsplash photo when an API key is
configured, otherwise (or on any failure) a deterministic placeholder.
"""

from __future__ import annotations

import io
import logging

import numpy as np
import requests
from PIL import Image, UnidentifiedImageError

from .config import ProviderConfig
from .errors import ProviderError

logger = logging.getLogger(__name__)

UNSPLASH_API_URL = "https://api.unsplash.com/photos/random"


def placeholder_image(keyword: str, width: int, height: int) -> Image.Image:
    """Flat colour derived from the keyword, shaded left to right."""
    seed = sum(keyword.encode("utf-8"))
    base = np.array(
        [(seed * 137) % 256, (seed * 193) % 256, (seed * 241) % 256],
        dtype=np.float32,
    )
    shade = np.arange(width, dtype=np.float32) / width * 0.3 + 0.7
    row = (shade[:, None] * base[None, :]).astype(np.uint8)
    pixels = np.broadcast_to(row, (height, width, 3))
    return Image.fromarray(np.ascontiguousarray(pixels), "RGB")


class ImageProvider:
    """Fetches background images sized to the configured dimensions."""

    def __init__(self, config: ProviderConfig, session: requests.Session | None = None):
        self.config = config
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": config.user_agent})

    def fetch_image(self, keyword: str) -> Image.Image:
        """Return a background for ``keyword``; never fails, falls back to a placeholder."""
        logger.info("Fetching image for keyword: %s", keyword)

        if self.config.unsplash_api_key:
            try:
                img = self.fetch_from_unsplash(keyword, self.config.unsplash_api_key)
                logger.info("Fetched image from Unsplash")
                return img
            except (requests.RequestException, ProviderError) as exc:
                logger.warning("Unsplash fetch failed: %s, using placeholder", exc)
        else:
            logger.warning("No Unsplash API key configured, using placeholder")

        return placeholder_image(keyword, self.config.image_width, self.config.image_height)

    def fetch_from_unsplash(self, keyword: str, api_key: str) -> Image.Image:
        response = self.session.get(
            UNSPLASH_API_URL,
            params={"query": keyword, "orientation": "landscape", "content_filter": "high"},
            headers={"Authorization": f"Client-ID {api_key}"},
            timeout=self.config.timeout,
        )
        if response.status_code != 200:
            raise ProviderError(f"Unsplash API returned status {response.status_code}")

        try:
            raw_url = response.json()["urls"]["raw"]
        except (ValueError, KeyError, TypeError) as exc:
            raise ProviderError(f"Unexpected Unsplash response: {exc}") from exc

        return self.download_image(
            raw_url,
            params={"w": self.config.image_width, "h": self.config.image_height, "fit": "crop"},
        )

    def download_image(self, url: str, params: dict | None = None) -> Image.Image:
        logger.debug("Downloading image from %s", url)
        response = self.session.get(url, params=params, timeout=self.config.timeout)
        if response.status_code != 200:
            raise ProviderError(f"Image download failed with status {response.status_code}")

        try:
            img = Image.open(io.BytesIO(response.content)).convert("RGB")
        except (UnidentifiedImageError, OSError) as exc:
            raise ProviderError(f"Failed to decode image: {exc}") from exc

        size = (self.config.image_width, self.config.image_height)
        if img.size != size:
            img = img.resize(size, Image.LANCZOS)
        return img
