from .core import (
    # Building blocks
    encode,
    rasterize,
    composite,
    plan_layout,
    resolve_placement,
    validate_payload,
    parse_color,
    Anchor,
    EmbedSpec,
    Placement,
    QrMatrix,
    # Constants
    MAX_RELATIVE_SIZE,
    MIN_RELATIVE_SIZE,
    QUIET_ZONE_MODULES,
    VALID_POSITIONS,
)

from .errors import (
    QrBackdropError,
    EncodingError,
    AttemptFailure,
    DecodeNotFound,
    PayloadMismatch,
    VerificationExhausted,
    ProviderError,
)

from .pipeline import (
    produce_verified_image,
    embed_qr_in_image,
    outcome_image,
    escalate,
    Verified,
    Exhausted,
    ESCALATION_SCHEDULE,
    MAX_ATTEMPTS,
)

from .scan import decode, contains_qr

__version__ = "0.1.0"

__all__ = [
    # Building blocks
    "encode",
    "rasterize",
    "composite",
    "plan_layout",
    "resolve_placement",
    "validate_payload",
    "parse_color",
    "Anchor",
    "EmbedSpec",
    "Placement",
    "QrMatrix",
    # Verification
    "produce_verified_image",
    "embed_qr_in_image",
    "outcome_image",
    "escalate",
    "Verified",
    "Exhausted",
    "ESCALATION_SCHEDULE",
    "MAX_ATTEMPTS",
    "decode",
    "contains_qr",
    # Errors
    "QrBackdropError",
    "EncodingError",
    "AttemptFailure",
    "DecodeNotFound",
    "PayloadMismatch",
    "VerificationExhausted",
    "ProviderError",
    # Constants
    "MAX_RELATIVE_SIZE",
    "MIN_RELATIVE_SIZE",
    "QUIET_ZONE_MODULES",
    "VALID_POSITIONS",
    "__version__",
]
