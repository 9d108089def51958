"""
qr_backdrop.generator
---------------------

End-to-end orchestration: keyword -> background -> verified QR image.
"""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image

from .config import AppConfig
from .core import Payload
from .pipeline import outcome_image, produce_verified_image
from .provider import ImageProvider
from .scan import contains_qr

logger = logging.getLogger(__name__)


class QrImageGenerator:
    def __init__(self, config: AppConfig, provider: ImageProvider | None = None):
        self.config = config
        self.provider = provider or ImageProvider(config.provider)

    def generate(self, keyword: str, data: Payload) -> Image.Image:
        """
        Fetch a background for ``keyword`` and embed ``data`` as a verified QR code.

        Raises:
            EncodingError: If the data does not fit in a QR code.
            VerificationExhausted: If no attempt produced a readable code.
        """
        logger.info("Generating QR image for keyword=%s (%d chars of data)", keyword, len(data))
        background = self.provider.fetch_image(keyword)
        logger.info("Background ready: %dx%d", *background.size)

        outcome = produce_verified_image(
            data,
            background,
            self.config.embed.to_spec(),
            error_correction=self.config.embed.error_correction,
            max_attempts=self.config.embed.max_validation_attempts,
        )
        return outcome_image(outcome)

    def generate_and_save(self, keyword: str, data: Payload, output_path: str | Path) -> Path:
        image = self.generate(keyword, data)
        output_path = Path(output_path)
        image.save(output_path)
        logger.info("Saved image to %s", output_path)
        return output_path

    def quick_validate(self, image: Image.Image) -> bool:
        return contains_qr(image)
