"""Compress one photo the way captured photos are prepared for AI context."""

from __future__ import annotations

import argparse
from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from fieldreport.media import ImageProcessingError, compress_image, image_dimensions


def build_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Compress a photo to the AI thumbnail size and report the savings."
    )
    parser.add_argument("input", help="Path to the source photo.")
    parser.add_argument(
        "--output",
        required=True,
        help="Path to output JPEG file.",
    )
    parser.add_argument(
        "--max-dimension",
        type=int,
        default=512,
        help="Longest side of the output in pixels (default: 512).",
    )
    parser.add_argument(
        "--quality",
        type=int,
        default=None,
        help="JPEG quality 1-95 (default: chosen from the output size).",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the script and return process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    source = Path(args.input).expanduser()
    if not source.is_file():
        print(f"Input not found: {source}", file=sys.stderr)
        return 2

    data = source.read_bytes()
    try:
        compressed = compress_image(data, max_dimension=args.max_dimension, quality=args.quality)
        width, height = image_dimensions(compressed)
    except ImageProcessingError as exc:
        print(f"Image error: {exc}", file=sys.stderr)
        return 2

    target = Path(args.output).expanduser().resolve()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(compressed)
    print(f"Saved JPEG: {target} ({width}x{height}, {len(data)} -> {len(compressed)} bytes)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
