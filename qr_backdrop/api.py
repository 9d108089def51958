"""
qr_backdrop.api
---------------

FastAPI application exposing QR Backdrop via HTTP.

Supported endpoints:
- /health - Liveness check
- /embed - Verified QR placed on an uploaded background
- /generate - Verified QR placed on a keyword background
- /scan - Decode the QR code in an uploaded image

Entry points (after install):
    qr-backdrop-api   # convenience wrapper defined in pyproject.toml

Or manually:
    uvicorn qr_backdrop.api:app --reload
"""

from __future__ import annotations

import io
import logging

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import StreamingResponse
from PIL import Image, UnidentifiedImageError

from .config import get_config
from .core import Anchor, EmbedSpec
from .errors import EncodingError, VerificationExhausted
from .generator import QrImageGenerator
from .pipeline import outcome_image, produce_verified_image
from .scan import decode

logger = logging.getLogger(__name__)

app = FastAPI(
    title="QR Backdrop API",
    description="Embed QR codes into background images and prove they scan before returning them.",
    version="0.1.0",
)


async def _read_image(upload: UploadFile) -> Image.Image:
    raw = await upload.read()
    try:
        with Image.open(io.BytesIO(raw)) as img:
            return img.convert("RGB")
    except (UnidentifiedImageError, OSError):
        raise HTTPException(status_code=400, detail=f"Could not read image '{upload.filename}'.")


def _png_response(img: Image.Image) -> StreamingResponse:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    buf.seek(0)
    return StreamingResponse(buf, media_type="image/png")


def _exhausted_response(exc: VerificationExhausted) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail={
            "message": "QR code could not be verified; no image produced.",
            "failures": [
                {
                    "attempt": f.attempt,
                    "reason": f.reason,
                    "relative_size": f.spec.relative_size,
                    "backing_opacity": f.spec.backing_opacity,
                }
                for f in exc.failures
            ],
        },
    )


@app.get("/health", tags=["meta"])
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@app.post("/embed", tags=["embed"])
async def embed_qr(
    background: UploadFile = File(..., description="Background image file."),
    data: str = Form(..., description="Text or URL to encode."),
    qr_size: float = Form(0.25, description="QR size as fraction of the shorter side (clamped to 0.1-0.5)."),
    position: str = Form("bottom-right", description="Position: center, top-left, top-right, bottom-left, bottom-right."),
    opacity: int = Form(230, description="Backing plate opacity (clamped to 0-255)."),
    fill_color: str = Form("black", description="QR foreground color."),
    back_color: str = Form("white", description="QR background color."),
    error_correction: str = Form("M", description="Error correction level: L, M, Q, H."),
):
    """Embed a verified QR into an uploaded background and return it as PNG."""
    bg = await _read_image(background)
    try:
        spec = EmbedSpec(
            relative_size=qr_size,
            anchor=Anchor.parse(position),
            backing_opacity=opacity,
            fill_color=fill_color,
            back_color=back_color,
        ).clamped()
        outcome = produce_verified_image(data, bg, spec, error_correction=error_correction)
        img = outcome_image(outcome)
    except VerificationExhausted as exc:
        logger.warning("Verification exhausted for /embed: %s", exc)
        raise _exhausted_response(exc)
    except (ValueError, EncodingError) as exc:
        logger.warning("Bad request for /embed: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))

    return _png_response(img)


@app.post("/generate", tags=["generate"])
async def generate_from_keyword(
    keyword: str = Form(..., description="Keyword for the background image."),
    data: str = Form(..., description="Text or URL to encode."),
):
    """Fetch a background for a keyword, embed a verified QR and return it as PNG."""
    generator = QrImageGenerator(get_config())
    try:
        img = generator.generate(keyword, data)
    except VerificationExhausted as exc:
        logger.warning("Verification exhausted for /generate: %s", exc)
        raise _exhausted_response(exc)
    except (ValueError, EncodingError) as exc:
        logger.warning("Bad request for /generate: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))

    return _png_response(img)


@app.post("/scan", tags=["scan"])
async def scan_image(
    image: UploadFile = File(..., description="Image that may contain a QR code."),
) -> dict:
    """Decode the QR code in an uploaded image."""
    img = await _read_image(image)
    decoded = decode(img)
    if decoded is None:
        return {"found": False, "data": None}
    return {"found": True, "data": decoded.decode("utf-8", errors="replace")}


def run() -> None:
    """Convenience entrypoint for `qr-backdrop-api` script."""
    import uvicorn

    server = get_config().server
    uvicorn.run(
        "qr_backdrop.api:app",
        host=server.host,
        port=server.port,
        reload=server.reload,
        log_level=server.log_level,
    )
