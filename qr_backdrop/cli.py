"""
qr_backdrop.cli
---------------

Command-line interface for QR Backdrop.

Usage examples:
    qr-backdrop generate "mountains" "https://example.com" -o out.png
    qr-backdrop embed bg.jpg "https://example.com" out.png --qr-size 0.3 --position center
    qr-backdrop scan out.png
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from PIL import Image

from .config import get_config
from .core import VALID_POSITIONS, EmbedSpec
from .errors import QrBackdropError, VerificationExhausted
from .generator import QrImageGenerator
from .pipeline import embed_qr_in_image
from .scan import decode

logger = logging.getLogger(__name__)


def _add_embed_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--qr-size", type=float, default=None, help="QR size as fraction of the shorter side (0.1-0.5).")
    parser.add_argument("--position", default=None, choices=VALID_POSITIONS)
    parser.add_argument("--opacity", type=int, default=None, help="Backing plate opacity (0-255).")
    parser.add_argument("--fill-color", default=None)
    parser.add_argument("--back-color", default=None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qr-backdrop",
        description="Embed verified, scannable QR codes into background images.",
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set log level (default: INFO)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Shortcut for --log-level DEBUG.")

    sub = parser.add_subparsers(dest="command", required=True)

    # Keyword background
    generate = sub.add_parser("generate", help="Fetch a background for a keyword and embed a QR code.")
    generate.add_argument("keyword", help="Keyword for the background image search.")
    generate.add_argument("data", help="Text/URL to encode.")
    generate.add_argument("-o", "--output", default="qr_output.png", help="Output path (PNG recommended).")
    generate.add_argument("--api-key", default=None, help="Unsplash API key (or set UNSPLASH_API_KEY).")
    generate.add_argument("--width", type=int, default=None)
    generate.add_argument("--height", type=int, default=None)
    _add_embed_options(generate)

    # Local background
    embed = sub.add_parser("embed", help="Embed a QR code into an existing image.")
    embed.add_argument("background", help="Background image path.")
    embed.add_argument("data", help="Text/URL to encode.")
    embed.add_argument("output", help="Output path (PNG recommended).")
    _add_embed_options(embed)

    # Decode
    scan = sub.add_parser("scan", help="Decode the QR code in an image.")
    scan.add_argument("image", help="Image path.")

    return parser


def _embed_settings(args: argparse.Namespace):
    """Merge CLI overrides into the configured embed settings."""
    embed = get_config().embed
    overrides = {
        "qr_size_ratio": args.qr_size,
        "position": args.position,
        "background_opacity": args.opacity,
        "fill_color": args.fill_color,
        "back_color": args.back_color,
    }
    return replace(embed, **{k: v for k, v in overrides.items() if v is not None})


def _run_generate(args: argparse.Namespace) -> None:
    config = get_config()
    provider = config.provider
    provider = replace(
        provider,
        unsplash_api_key=args.api_key or provider.unsplash_api_key,
        image_width=args.width or provider.image_width,
        image_height=args.height or provider.image_height,
    )
    config = replace(config, provider=provider, embed=_embed_settings(args))
    QrImageGenerator(config).generate_and_save(args.keyword, args.data, args.output)
    print(f"Saved verified QR image to {args.output}")


def _run_embed(args: argparse.Namespace) -> None:
    embed = _embed_settings(args)
    spec: EmbedSpec = embed.to_spec()
    embed_qr_in_image(
        background_image_path=args.background,
        data=args.data,
        output_path=args.output,
        spec=spec,
        error_correction=embed.error_correction,
        max_attempts=embed.max_validation_attempts,
    )
    print(f"Saved verified QR image to {args.output}")


def _run_scan(args: argparse.Namespace) -> int:
    path = Path(args.image)
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {path}")
    with Image.open(path) as img:
        decoded = decode(img)
    if decoded is None:
        logger.error("No QR code found in %s", path)
        return 1
    print(decoded.decode("utf-8", errors="replace"))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = "DEBUG" if args.verbose else args.log_level
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(levelname)s: %(message)s",
    )

    try:
        if args.command == "generate":
            _run_generate(args)
        elif args.command == "embed":
            _run_embed(args)
        elif args.command == "scan":
            return _run_scan(args)
        else:
            parser.print_help()
            return 2
    except VerificationExhausted as exc:
        logger.error("No image written. The QR code could not be verified:")
        for failure in exc.failures:
            logger.error("  %s", failure.describe())
        logger.error("Try a larger --qr-size, a higher --opacity or another --position.")
        return 1
    except (QrBackdropError, ValueError, OSError) as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
