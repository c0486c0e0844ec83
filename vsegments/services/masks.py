"""세그멘테이션 마스크 디코딩

항목마다: base64 PNG 디코딩 → 박스 크기로 리샘플 → 알파 채널 추출
→ 이미지 전체 크기 버퍼에 배치.

마스크 하나당 디코딩 1회 + 리샘플 1회 (객체 수가 많을 때 주요 비용).
"""

import base64
import binascii
import io
import logging
from concurrent.futures import ThreadPoolExecutor

import numpy as np
from PIL import Image, UnidentifiedImageError

from vsegments.constants import DATA_URI_PATTERN
from vsegments.schemas.segmentation import SegmentationMask, to_absolute
from vsegments.services.parsing import MalformedResponseError, ResponseEntry, parse_entries

logger = logging.getLogger(__name__)


def decode_mask_image(mask_field: str) -> Image.Image:
    """mask 필드 문자열 → PIL 이미지 (data URI 접두사 허용)

    Raises:
        MalformedResponseError: base64 또는 이미지 디코딩 실패
    """
    payload = DATA_URI_PATTERN.sub("", mask_field, count=1)

    try:
        data = base64.b64decode(payload)
        image = Image.open(io.BytesIO(data))
        image.load()
    except (binascii.Error, UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise MalformedResponseError(
            f"마스크 이미지 디코딩 실패: {e}", raw_text=mask_field
        ) from e

    return image


def extract_alpha(image: Image.Image, width: int, height: int) -> np.ndarray:
    """width x height로 리샘플한 알파 채널 (height, width) uint8

    알파 채널이 없는 이미지는 완전 불투명(255)으로 취급.
    """
    resized = image.convert("RGBA").resize((width, height), Image.Resampling.BILINEAR)
    return np.asarray(resized.getchannel("A"), dtype=np.uint8)


def scatter_mask(
    alpha: np.ndarray, top: int, left: int, image_height: int, image_width: int
) -> np.ndarray:
    """박스 영역 알파를 이미지 전체 크기 버퍼에 배치

    이미지 경계 밖은 조용히 잘라냄 (박스 자체는 거부하지 않음).
    """
    full = np.zeros((image_height, image_width), dtype=np.uint8)
    bh, bw = alpha.shape

    dst_y0, dst_x0 = max(top, 0), max(left, 0)
    dst_y1, dst_x1 = min(top + bh, image_height), min(left + bw, image_width)

    if dst_y1 > dst_y0 and dst_x1 > dst_x0:
        full[dst_y0:dst_y1, dst_x0:dst_x1] = alpha[
            dst_y0 - top : dst_y1 - top, dst_x0 - left : dst_x1 - left
        ]

    return full


def decode_mask(entry: ResponseEntry, image_height: int, image_width: int) -> SegmentationMask:
    """박스 + 마스크가 모두 있는 항목 하나를 SegmentationMask로 변환

    Raises:
        MalformedResponseError: 마스크 이미지 디코딩 실패
    """
    if entry.box is None or entry.mask is None:
        raise ValueError(f"box/mask가 없는 항목: index={entry.index}")

    y1, x1, y2, x2 = entry.box
    abs_y0 = to_absolute(y1, image_height)
    abs_x0 = to_absolute(x1, image_width)
    abs_y1 = to_absolute(y2, image_height)
    abs_x1 = to_absolute(x2, image_width)

    bbox_width = abs_x1 - abs_x0
    bbox_height = abs_y1 - abs_y0

    image = decode_mask_image(entry.mask)

    if bbox_width > 0 and bbox_height > 0:
        alpha = extract_alpha(image, bbox_width, bbox_height)
        full = scatter_mask(alpha, abs_y0, abs_x0, image_height, image_width)
    else:
        full = np.zeros((image_height, image_width), dtype=np.uint8)

    return SegmentationMask.from_array((abs_y0, abs_x0, abs_y1, abs_x1), full, entry.label)


def parse_segmentation_masks(
    text: str, image_height: int, image_width: int, max_workers: int = 1
) -> list[SegmentationMask]:
    """응답 텍스트에서 세그멘테이션 마스크 추출

    box_2d와 mask가 모두 있는 항목만 사용. 결과는 응답 배열 순서 유지
    (max_workers > 1이어도 완료 순서가 아닌 원래 순서).

    Raises:
        MalformedResponseError: JSON 파싱 실패, 배열이 아님, 마스크 디코딩 실패
    """
    entries = [e for e in parse_entries(text) if e.box is not None and e.mask is not None]

    if max_workers > 1 and len(entries) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            masks = list(
                executor.map(lambda e: decode_mask(e, image_height, image_width), entries)
            )
    else:
        masks = [decode_mask(e, image_height, image_width) for e in entries]

    logger.info(f"마스크 파싱 완료: {len(masks)}개 ({image_width}x{image_height})")
    return masks
