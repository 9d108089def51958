"""
qr_backdrop.core
----------------

Core building blocks: encoding a payload into a QR matrix, rasterizing the
matrix into pixels, resolving where it goes on a background and compositing it
there behind a contrast plate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Sequence, Tuple, Union

import qrcode
import qrcode.constants
from qrcode.exceptions import DataOverflowError
from PIL import Image, ImageColor, ImageDraw, ImageOps

from .errors import EncodingError

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]
Payload = Union[str, bytes]

# Constants for validation
QUIET_ZONE_MODULES = 4  # QR standard minimum
MIN_RELATIVE_SIZE = 0.1
MAX_RELATIVE_SIZE = 0.5
PLACEMENT_MARGIN = 30  # px inset from the background edges for corner anchors
PLATE_PADDING_RATIO = 0.04
MIN_PLATE_PADDING = 2
BLACK: RGB = (0, 0, 0)
WHITE: RGB = (255, 255, 255)

ERROR_CORRECTION_LEVELS = {
    "L": qrcode.constants.ERROR_CORRECT_L,  # 7%
    "M": qrcode.constants.ERROR_CORRECT_M,  # 15%
    "Q": qrcode.constants.ERROR_CORRECT_Q,  # 25%
    "H": qrcode.constants.ERROR_CORRECT_H,  # 30%
}


class Anchor(str, Enum):
    """Named placement regions on the background."""

    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"
    CENTER = "center"

    @classmethod
    def parse(cls, value: str | Anchor) -> Anchor:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unsupported position '{value}'. "
                "Use one of: center, top-left, top-right, bottom-left, bottom-right."
            ) from None


VALID_POSITIONS = tuple(anchor.value for anchor in Anchor)


@dataclass(frozen=True)
class EmbedSpec:
    """How a QR code is placed on a background for one attempt."""

    relative_size: float = 0.25  # fraction of the shorter background side
    anchor: Anchor = Anchor.BOTTOM_RIGHT
    backing_opacity: int = 230
    fill_color: RGB = BLACK
    back_color: RGB = WHITE

    def clamped(self) -> EmbedSpec:
        """Return a copy with every field forced into its valid range."""
        return replace(
            self,
            relative_size=min(max(float(self.relative_size), MIN_RELATIVE_SIZE), MAX_RELATIVE_SIZE),
            anchor=Anchor.parse(self.anchor),
            backing_opacity=min(max(int(self.backing_opacity), 0), 255),
            fill_color=parse_color(self.fill_color),
            back_color=parse_color(self.back_color),
        )


@dataclass(frozen=True)
class QrMatrix:
    """Immutable grid of QR modules; True marks a dark module."""

    modules: Tuple[Tuple[bool, ...], ...]
    version: int
    error_correction: str

    @property
    def size(self) -> int:
        return len(self.modules)


@dataclass(frozen=True)
class Placement:
    """Rectangle in background coordinates occupied by the backing plate."""

    x: int
    y: int
    width: int
    height: int

    @property
    def box(self) -> tuple[int, int, int, int]:
        return self.x, self.y, self.x + self.width, self.y + self.height

    def contains(self, bg_w: int, bg_h: int) -> bool:
        return self.x >= 0 and self.y >= 0 and self.x + self.width <= bg_w and self.y + self.height <= bg_h

    def overlay_origin(self, overlay_size: tuple[int, int]) -> tuple[int, int]:
        """Top-left corner that centres an overlay inside this rectangle."""
        ow, oh = overlay_size
        return self.x + (self.width - ow) // 2, self.y + (self.height - oh) // 2

    def grown(self, amount: int, bg_w: int, bg_h: int) -> Placement:
        """Expand on every side by ``amount`` px, clipped to the background."""
        x0, y0 = max(self.x - amount, 0), max(self.y - amount, 0)
        x1 = min(self.x + self.width + amount, bg_w)
        y1 = min(self.y + self.height + amount, bg_h)
        return Placement(x0, y0, x1 - x0, y1 - y0)


def to_payload_bytes(payload: Payload) -> bytes:
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return bytes(payload)


def validate_payload(payload: Payload) -> None:
    """Validate QR payload input."""
    if not payload:
        raise ValueError("Payload cannot be empty.")


def parse_color(value: str | Sequence[int]) -> RGB:
    """Parse a colour name, ``#rrggbb`` string or RGB sequence into an RGB tuple."""
    if not isinstance(value, str):
        channels = tuple(int(c) for c in value)
        if len(channels) < 3 or any(not 0 <= c <= 255 for c in channels[:3]):
            raise ValueError(f"Unsupported color {value!r}.")
        return channels[0], channels[1], channels[2]
    try:
        rgb = ImageColor.getrgb(value)
    except ValueError:
        raise ValueError(f"Unsupported color '{value}'.") from None
    return rgb[0], rgb[1], rgb[2]


def encode(payload: Payload, error_correction: str = "M") -> QrMatrix:
    """
    Encode a payload into a QR matrix at the smallest version that fits.

    Args:
        payload: Text (encoded as UTF-8) or raw bytes.
        error_correction: One of L, M, Q, H.

    Returns:
        QrMatrix without any quiet zone.

    Raises:
        ValueError: If the payload is empty or the level is unknown.
        EncodingError: If the payload exceeds the capacity of version 40.
    """
    validate_payload(payload)
    data = to_payload_bytes(payload)
    level_name = error_correction.upper()
    if level_name not in ERROR_CORRECTION_LEVELS:
        raise ValueError(f"Unknown error correction level '{error_correction}'. Use L, M, Q or H.")

    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECTION_LEVELS[level_name],
        border=0,
    )
    qr.add_data(data)
    try:
        qr.make(fit=True)
    except DataOverflowError as exc:
        raise EncodingError(
            f"Payload of {len(data)} bytes exceeds QR capacity at error correction {level_name}."
        ) from exc

    modules = tuple(tuple(bool(cell) for cell in row) for row in qr.get_matrix())
    logger.debug("Encoded %d bytes as version %d (%dx%d)", len(data), qr.version, len(modules), len(modules))
    return QrMatrix(modules=modules, version=qr.version, error_correction=level_name)


def rasterize(
    matrix: QrMatrix,
    module_scale: int = 10,
    fill_color: RGB = BLACK,
    back_color: RGB = WHITE,
    quiet_zone: int = QUIET_ZONE_MODULES,
) -> Image.Image:
    """
    Render a QR matrix into an opaque RGBA image.

    Each module becomes a ``module_scale`` square block with hard edges and the
    matrix is surrounded by ``quiet_zone`` blank modules on every side.
    """
    if module_scale < 1:
        raise ValueError("module_scale must be at least 1.")
    if quiet_zone < QUIET_ZONE_MODULES:
        raise ValueError(f"quiet_zone must be at least {QUIET_ZONE_MODULES} modules.")

    modules = matrix.size + 2 * quiet_zone
    pixels = []
    for y in range(modules):
        row = y - quiet_zone
        for x in range(modules):
            col = x - quiet_zone
            dark = 0 <= row < matrix.size and 0 <= col < matrix.size and matrix.modules[row][col]
            pixels.append(0 if dark else 255)

    grid = Image.new("L", (modules, modules), 255)
    grid.putdata(pixels)
    side = modules * module_scale
    grid = grid.resize((side, side), Image.NEAREST)
    return ImageOps.colorize(grid, black=fill_color, white=back_color).convert("RGBA")


def resolve_placement(
    bg_w: int,
    bg_h: int,
    side: int,
    anchor: Anchor | str,
    margin: int = PLACEMENT_MARGIN,
) -> Placement:
    """
    Calculate the square rectangle for a QR plate on a background.

    The result always lies inside the background; the corner margin shrinks
    when the background is too small to honour it.
    """
    if not 0 < side <= min(bg_w, bg_h):
        raise ValueError(f"Side {side}px does not fit a {bg_w}x{bg_h} background.")
    anchor = Anchor.parse(anchor)

    if anchor is Anchor.CENTER:
        x, y = (bg_w - side) // 2, (bg_h - side) // 2
    elif anchor is Anchor.TOP_LEFT:
        x, y = margin, margin
    elif anchor is Anchor.TOP_RIGHT:
        x, y = bg_w - side - margin, margin
    elif anchor is Anchor.BOTTOM_LEFT:
        x, y = margin, bg_h - side - margin
    else:
        x, y = bg_w - side - margin, bg_h - side - margin

    x = min(max(x, 0), bg_w - side)
    y = min(max(y, 0), bg_h - side)
    return Placement(x, y, side, side)


def plan_layout(
    background_size: tuple[int, int],
    spec: EmbedSpec,
    matrix_size: int,
    quiet_zone: int = QUIET_ZONE_MODULES,
) -> tuple[Placement, int, int]:
    """
    Work out placement, module scale and plate padding for one attempt.

    Returns:
        (placement, module_scale, padding)

    Raises:
        ValueError: If the background cannot hold the code even at one pixel per module.
    """
    bg_w, bg_h = background_size
    shorter = min(bg_w, bg_h)
    requested = round(shorter * spec.relative_size)
    padding = max(MIN_PLATE_PADDING, round(requested * PLATE_PADDING_RATIO))
    modules = matrix_size + 2 * quiet_zone
    module_scale = max(1, (requested - 2 * padding) // modules)
    side = modules * module_scale + 2 * padding
    if side > shorter:
        raise ValueError(
            f"Background {bg_w}x{bg_h} is too small for a {matrix_size}x{matrix_size} QR code."
        )
    return resolve_placement(bg_w, bg_h, side, spec.anchor), module_scale, padding


def composite(
    background: Image.Image,
    overlay: Image.Image,
    placement: Placement,
    backing_opacity: int,
    back_color: RGB = WHITE,
    neutral_fill: bool = False,
) -> Image.Image:
    """
    Blend a rendered QR overlay onto a copy of the background.

    The caller's background is never modified. A plate of ``back_color`` with
    alpha ``backing_opacity`` is alpha-composited over ``placement`` and the
    opaque overlay is pasted centred on it, so module pixels keep their exact
    colours. With ``neutral_fill`` an opaque flat rectangle is painted first
    around the placement to hide a busy background entirely.
    """
    canvas = background.convert("RGBA")  # always a fresh image
    bg_w, bg_h = canvas.size
    if not placement.contains(bg_w, bg_h):
        raise ValueError(f"Placement {placement} lies outside the {bg_w}x{bg_h} background.")

    if neutral_fill:
        region = placement.grown(max(placement.width // 8, MIN_PLATE_PADDING), bg_w, bg_h)
        x0, y0, x1, y1 = region.box
        ImageDraw.Draw(canvas).rectangle([x0, y0, x1 - 1, y1 - 1], fill=(*back_color, 255))

    plate = Image.new("RGBA", (placement.width, placement.height), (*back_color, backing_opacity))
    canvas.alpha_composite(plate, dest=(placement.x, placement.y))
    canvas.paste(overlay, placement.overlay_origin(overlay.size))
    return canvas.convert("RGB")
