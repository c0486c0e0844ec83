"""vsegments CLI

사용법:
    vsegments -f photo.jpg                         # 바운딩 박스 탐지
    vsegments -f photo.jpg --segment -o out.png    # 세그멘테이션 + 시각화 저장
    vsegments -f photo.jpg --compact               # "1. cat [x1 y1 x2 y2]" 형식
    vsegments -f photo.jpg --json result.json      # JSON 내보내기
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from PIL import Image

from vsegments.config import get_settings
from vsegments.schemas.segmentation import SegmentationResult
from vsegments.services.parsing import MalformedResponseError
from vsegments.services.segmenter import AssetNotFoundError, InvalidImageError, Segmenter
from vsegments.services.transport import Transport, TransportError, get_transport
from vsegments.services.transport.gemini import GeminiTransport
from vsegments.services.visualize import DrawStyle

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vsegments",
        description="Visual segmentation and bounding box detection using Google Gemini AI",
    )
    parser.add_argument("-f", "--file", required=True, help="Path to input image file")
    parser.add_argument(
        "--segment", action="store_true", help="Perform segmentation instead of detection"
    )
    parser.add_argument("--api-key", help="Google API key (default: GOOGLE_API_KEY env var)")
    parser.add_argument("-m", "--model", help="Model name to use")
    parser.add_argument("--temperature", type=float, help="Sampling temperature 0.0-1.0")
    parser.add_argument("--max-objects", type=int, help="Maximum number of objects to detect")
    parser.add_argument("-p", "--prompt", help="Custom detection prompt")
    parser.add_argument("--instructions", help="Additional system instructions for grounding")
    parser.add_argument("-o", "--output", help="Save visualized output to file")
    parser.add_argument("--json", dest="json_path", help="Export results as JSON")
    parser.add_argument("--raw", action="store_true", help="Print raw API response")
    parser.add_argument("--line-width", type=int, default=4, help="Bounding box line width")
    parser.add_argument("--font-size", type=int, default=14, help="Label font size")
    parser.add_argument("--alpha", type=float, default=0.7, help="Mask transparency 0.0-1.0")
    parser.add_argument("--max-size", type=int, help="Maximum image dimension for processing")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress informational output")
    parser.add_argument(
        "--compact", action="store_true", help="Compact output: order. subject [x1 y1 x2 y2]"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    return parser


def _build_transport(args: argparse.Namespace) -> Transport:
    if args.api_key or args.model:
        settings = get_settings()
        return GeminiTransport(
            api_key=args.api_key or settings.google_api_key,
            model=args.model or settings.gemini_model,
        )
    return get_transport()


def _build_segmenter(args: argparse.Namespace, transport: Transport) -> Segmenter:
    settings = get_settings()
    return Segmenter(
        transport=transport,
        temperature=settings.temperature if args.temperature is None else args.temperature,
        max_objects=args.max_objects or settings.max_objects,
        max_size=args.max_size or settings.max_size,
        display_max_size=settings.display_max_size,
        mask_workers=settings.mask_workers,
    )


def format_compact(result: SegmentationResult, width: int, height: int) -> list[str]:
    """compact 출력 줄 목록: 순번(1부터). 라벨 [x1 y1 x2 y2] (절대 픽셀 좌표)"""
    lines: list[str] = []
    for i, box in enumerate(result.boxes, start=1):
        x1, y1, x2, y2 = box.to_absolute(width, height)
        lines.append(f"{i}. {box.label} [{x1} {y1} {x2} {y2}]")
    return lines


def build_export(result: SegmentationResult, model: str, temperature: float) -> dict[str, Any]:
    """JSON 내보내기 (박스는 [y1, x1, y2, x2], 마스크는 개수만)"""
    export = result.to_export_dict()
    data: dict[str, Any] = {
        "boxes": export["boxes"],
        "model": model,
        "temperature": temperature,
    }
    if "masks" in export:
        data["masks"] = export["masks"]
    return data


def run(args: argparse.Namespace) -> int:
    """
    Raises:
        AssetNotFoundError, TransportError, MalformedResponseError 등 (main에서 처리)
    """
    image_path = Path(args.file)
    if not image_path.is_file():
        raise AssetNotFoundError(args.file)

    settings = get_settings()
    style = DrawStyle(line_width=args.line_width, font_size=args.font_size, alpha=args.alpha)
    segmenter = _build_segmenter(args, _build_transport(args))
    show_progress = not args.quiet and not args.compact

    if args.segment:
        if show_progress:
            print(f"Performing segmentation on: {args.file}")
        result = segmenter.segment(image_path, prompt=args.prompt)
    else:
        if show_progress:
            print(f"Detecting bounding boxes in: {args.file}")
        result = segmenter.detect_boxes(
            image_path, prompt=args.prompt, custom_instructions=args.instructions
        )

    if args.compact:
        with Image.open(image_path) as img:
            width, height = img.size
        for line in format_compact(result, width, height):
            print(line)
    elif not args.quiet:
        print(f"\nDetected {result.count()} object(s):")
        for i, box in enumerate(result.boxes, start=1):
            print(f"  {i}. {box.label}")

    if args.raw and not args.compact:
        print("\nRaw API Response:")
        print(result.raw_response)

    if args.json_path:
        model = args.model or settings.gemini_model
        temperature = settings.temperature if args.temperature is None else args.temperature
        export = build_export(result, model, temperature)
        Path(args.json_path).write_text(json.dumps(export, indent=2, ensure_ascii=False))
        if show_progress:
            print(f"\nJSON results saved to: {args.json_path}")

    if args.output and not args.compact:
        if not args.quiet:
            print("\nCreating visualization...")
        segmenter.visualize(image_path, result, output_path=args.output, style=style)
        if not args.quiet:
            print(f"Output saved to: {args.output}")

    if show_progress:
        print("\nComplete!")

    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return run(args)
    except (
        AssetNotFoundError,
        InvalidImageError,
        TransportError,
        MalformedResponseError,
        ValueError,
        OSError,
    ) as e:
        print(f"Error: {e}", file=sys.stderr)
        logger.info("상세 오류", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
