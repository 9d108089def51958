"""
qr_backdrop.pipeline
--------------------

Embed-then-verify loop. A QR code is composited onto a background, decoded
again and compared byte for byte with the payload. On failure the embedding
is escalated along a fixed schedule and retried, up to ``MAX_ATTEMPTS``.
An image that did not decode is never handed back.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

from PIL import Image

from .core import (
    MAX_RELATIVE_SIZE,
    Anchor,
    EmbedSpec,
    Payload,
    composite,
    encode,
    plan_layout,
    rasterize,
    to_payload_bytes,
)
from .errors import AttemptFailure, DecodeNotFound, PayloadMismatch, VerificationExhausted
from .scan import decode, payload_matches

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3

Decoder = Callable[[Image.Image], Optional[bytes]]


@dataclass(frozen=True)
class Escalation:
    """Adjustment applied to the caller's spec for one attempt."""

    size_increment: float = 0.0
    opacity_boost: float = 0.0  # fraction of the remaining gap to 255
    neutral_fill: bool = False


# Indexed by attempt - 1. Each step is at least as strong as the previous one.
ESCALATION_SCHEDULE: Tuple[Escalation, ...] = (
    Escalation(),
    Escalation(size_increment=0.05, opacity_boost=0.5),
    Escalation(size_increment=0.10, opacity_boost=1.0, neutral_fill=True),
)


def escalation_for(attempt: int) -> Escalation:
    if not 1 <= attempt <= len(ESCALATION_SCHEDULE):
        raise ValueError(f"Attempt must be between 1 and {len(ESCALATION_SCHEDULE)}.")
    return ESCALATION_SCHEDULE[attempt - 1]


def escalate(spec: EmbedSpec, attempt: int) -> EmbedSpec:
    """Return the spec to use on ``attempt`` (1-based) starting from ``spec``."""
    step = escalation_for(attempt)
    spec = spec.clamped()
    if attempt == 1:
        return spec
    gap = 255 - spec.backing_opacity
    return replace(
        spec,
        relative_size=min(spec.relative_size + step.size_increment, MAX_RELATIVE_SIZE),
        backing_opacity=min(spec.backing_opacity + math.ceil(gap * step.opacity_boost), 255),
    )


@dataclass(frozen=True)
class Verified:
    """The composite decoded back to the exact payload."""

    image: Image.Image
    attempt: int
    spec: EmbedSpec
    failures: Tuple[AttemptFailure, ...] = ()

    ok = True


@dataclass(frozen=True)
class Exhausted:
    """Every attempt failed; carries one failure per attempt."""

    failures: Tuple[AttemptFailure, ...] = field(default_factory=tuple)

    ok = False

    def error(self) -> VerificationExhausted:
        return VerificationExhausted(self.failures)


VerificationOutcome = Union[Verified, Exhausted]


def outcome_image(outcome: VerificationOutcome) -> Image.Image:
    """Return the verified image or raise ``VerificationExhausted``."""
    if isinstance(outcome, Verified):
        return outcome.image
    raise outcome.error()


def _check_candidate(
    candidate: Image.Image,
    expected: bytes,
    attempt: int,
    spec: EmbedSpec,
    decoder: Decoder,
) -> None:
    decoded = decoder(candidate)
    if decoded is None:
        raise DecodeNotFound(attempt, spec)
    if not payload_matches(decoded, expected):
        raise PayloadMismatch(attempt, spec, decoded)


def produce_verified_image(
    payload: Payload,
    background: Image.Image,
    initial_spec: EmbedSpec | None = None,
    *,
    error_correction: str = "M",
    max_attempts: int = MAX_ATTEMPTS,
    decoder: Decoder | None = None,
) -> VerificationOutcome:
    """
    Embed ``payload`` as a QR code on ``background`` and prove it decodes.

    Args:
        payload: Text or bytes to encode.
        background: Read-only background; each attempt works on its own copy.
        initial_spec: Placement for attempt 1; clamped into range before use.
        error_correction: QR error correction level (L, M, Q, H).
        max_attempts: Attempt ceiling, at most ``len(ESCALATION_SCHEDULE)``.
        decoder: Function returning decoded bytes or None; defaults to
            :func:`qr_backdrop.scan.decode`.

    Returns:
        ``Verified`` with the composite, or ``Exhausted`` with per-attempt failures.

    Raises:
        EncodingError: If the payload cannot be encoded; no attempt is made.
        ValueError: For an empty payload or one containing NUL bytes, a bad
            attempt ceiling, or a background too small to hold the code.
    """
    if not 1 <= max_attempts <= len(ESCALATION_SCHEDULE):
        raise ValueError(f"max_attempts must be between 1 and {len(ESCALATION_SCHEDULE)}.")

    decoder = decoder or decode
    expected = to_payload_bytes(payload)
    if b"\x00" in expected:
        raise ValueError("Payload containing NUL bytes cannot be verified by the QR decoder.")
    spec = initial_spec or EmbedSpec()
    matrix = encode(expected, error_correction)
    overlays: dict[tuple, Image.Image] = {}
    failures: list[AttemptFailure] = []

    for attempt in range(1, max_attempts + 1):
        attempt_spec = escalate(spec, attempt)
        step = escalation_for(attempt)
        placement, module_scale, _padding = plan_layout(background.size, attempt_spec, matrix.size)
        logger.info(
            "Attempt %d/%d: size=%.2f opacity=%d anchor=%s scale=%d neutral=%s",
            attempt, max_attempts, attempt_spec.relative_size, attempt_spec.backing_opacity,
            Anchor.parse(attempt_spec.anchor).value, module_scale, step.neutral_fill,
        )

        key = (module_scale, attempt_spec.fill_color, attempt_spec.back_color)
        if key not in overlays:
            overlays[key] = rasterize(matrix, module_scale, attempt_spec.fill_color, attempt_spec.back_color)

        candidate = composite(
            background,
            overlays[key],
            placement,
            attempt_spec.backing_opacity,
            back_color=attempt_spec.back_color,
            neutral_fill=step.neutral_fill,
        )
        try:
            _check_candidate(candidate, expected, attempt, attempt_spec, decoder)
        except AttemptFailure as failure:
            logger.warning("Verification failed: %s", failure.describe())
            failures.append(failure)
            continue

        logger.info("QR code verified on attempt %d", attempt)
        return Verified(image=candidate, attempt=attempt, spec=attempt_spec, failures=tuple(failures))

    logger.error("QR code not readable after %d attempts", max_attempts)
    return Exhausted(failures=tuple(failures))


def embed_qr_in_image(
    background_image_path: str | Path,
    data: Payload,
    output_path: str | Path,
    spec: EmbedSpec | None = None,
    error_correction: str = "M",
    max_attempts: int = MAX_ATTEMPTS,
) -> Path:
    """
    Embed a verified QR code inside an existing image file.

    Args:
        background_image_path: Path to the background image.
        data: Text/URL encoded into the QR code.
        output_path: File path to save the final image.
        spec: Embedding parameters (clamped before use).
        error_correction: QR error correction level.
        max_attempts: Attempt ceiling.

    Returns:
        Path: Saved output path.

    Raises:
        FileNotFoundError: If the background does not exist.
        VerificationExhausted: If no attempt decoded; nothing is written.
    """
    logger.info("Embedding QR into image: %s", background_image_path)

    bg_path = Path(background_image_path)
    if not bg_path.exists():
        raise FileNotFoundError(f"Background image not found: {bg_path}")

    with Image.open(bg_path) as img:
        background = img.convert("RGB")

    outcome = produce_verified_image(
        data,
        background,
        (spec or EmbedSpec()).clamped(),
        error_correction=error_correction,
        max_attempts=max_attempts,
    )
    image = outcome_image(outcome)

    output_path = Path(output_path)
    image.save(output_path)
    logger.info("Saved verified image to %s", output_path)
    return output_path
