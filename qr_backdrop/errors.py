"""
qr_backdrop.errors
------------------

Exception hierarchy shared by the encoder, the verification loop and the
image provider.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .core import EmbedSpec


class QrBackdropError(Exception):
    """Base class for all qr_backdrop errors."""


class EncodingError(QrBackdropError):
    """Payload does not fit into any QR version at the requested error correction."""


class ProviderError(QrBackdropError):
    """Background image could not be fetched or decoded."""


class AttemptFailure(QrBackdropError):
    """A single verification attempt did not round-trip the payload."""

    reason = "failed"

    def __init__(self, attempt: int, spec: EmbedSpec, decoded: bytes | None = None):
        self.attempt = attempt
        self.spec = spec
        self.decoded = decoded
        super().__init__(self.describe())

    def describe(self) -> str:
        return (
            f"attempt {self.attempt}: {self.reason} "
            f"(size={self.spec.relative_size:.2f}, opacity={self.spec.backing_opacity})"
        )


class DecodeNotFound(AttemptFailure):
    """No QR code could be located in the composite."""

    reason = "no QR code found"


class PayloadMismatch(AttemptFailure):
    """A QR code was decoded but carried different bytes."""

    reason = "payload mismatch"

    def describe(self) -> str:
        return f"{super().describe()} decoded={self.decoded!r}"


class VerificationExhausted(QrBackdropError):
    """Every attempt failed; no image is produced."""

    def __init__(self, failures: Sequence[AttemptFailure]):
        self.failures = tuple(failures)
        lines = "; ".join(f.describe() for f in self.failures)
        super().__init__(
            f"QR code not readable after {len(self.failures)} attempt(s): {lines}"
        )
