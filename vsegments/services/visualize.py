"""시각화: 바운딩 박스 / 세그멘테이션 마스크 합성

모든 함수는 입력 배열을 수정하지 않고 새 배열을 반환합니다.
배열 형식: (H, W, 3) RGB 또는 (H, W, 4) RGBA, uint8.
"""

import logging
from collections.abc import Sequence
from functools import lru_cache
from pathlib import Path
from typing import cast

import cv2
import numpy as np
from PIL import Image, ImageColor, ImageDraw, ImageFont
from pydantic import BaseModel, ConfigDict, Field

from vsegments.constants import LabelOffset
from vsegments.schemas.segmentation import BoundingBox, SegmentationMask

logger = logging.getLogger(__name__)

DEFAULT_PALETTE: tuple[str, ...] = (
    "#FF0000", "#00FF00", "#0000FF", "#FFFF00", "#FF00FF", "#00FFFF",
    "#FFA500", "#800080", "#FFC0CB", "#A52A2A", "#808080", "#F5F5DC",
    "#40E0D0", "#FF7F50", "#E6E6FA", "#EE82EE", "#FFD700", "#C0C0C0",
    "#000080", "#800000", "#008080", "#808000", "#FF6347", "#4B0082",
    "#DC143C", "#00CED1", "#9370DB", "#FF1493", "#7FFF00", "#D2691E",
)  # fmt: skip

# 파일 이름만 지정 (Pillow가 시스템 폰트 디렉터리에서 검색)
LABEL_FONTS = ("DejaVuSans.ttf", "LiberationSans-Regular.ttf", "Arial.ttf")

RGB = tuple[int, int, int]


class DrawStyle(BaseModel):
    """그리기 옵션 (팔레트 포함, 불변)"""

    model_config = ConfigDict(frozen=True)

    line_width: int = Field(default=4, ge=1)
    font_size: int = Field(default=14, ge=1)
    alpha: float = Field(default=0.7, ge=0.0, le=1.0)
    show_labels: bool = True
    palette: tuple[str, ...] = Field(default=DEFAULT_PALETTE, min_length=1)

    def color_for(self, index: int) -> RGB:
        """index번째 객체 색상 (라벨과 무관, 팔레트 순환)"""
        return cast(RGB, ImageColor.getrgb(self.palette[index % len(self.palette)])[:3])


@lru_cache(maxsize=32)
def _get_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """라벨 폰트 (시스템 폰트가 없으면 Pillow 내장 폰트를 같은 크기로)"""
    for name in LABEL_FONTS:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    logger.debug(f"라벨 폰트 없음, 내장 폰트 사용: size={size}")
    return ImageFont.load_default(size=size)


def _fill_for(image: np.ndarray, color: RGB) -> tuple[int, ...]:
    """채널 수에 맞는 색상 (RGBA면 alpha=255)"""
    if image.ndim == 3 and image.shape[2] == 4:
        return (*color, 255)
    return color


def _stroke_rect(
    image: np.ndarray, corners: tuple[int, int, int, int], color: RGB, line_width: int
) -> None:
    x1, y1, x2, y2 = corners
    cv2.rectangle(image, (x1, y1), (x2, y2), _fill_for(image, color), line_width)


def _draw_labels(
    image: np.ndarray, labels: list[tuple[str, int, int, RGB]], font_size: int
) -> np.ndarray:
    """(text, x, y, color) 목록을 그린 새 배열 반환 (x, y = 텍스트 좌상단)"""
    if not labels:
        return image

    pil_image = Image.fromarray(image)
    draw = ImageDraw.Draw(pil_image)
    font = _get_font(font_size)

    for text, x, y, color in labels:
        draw.text((x, y), text, font=font, fill=_fill_for(image, color))

    return np.array(pil_image)


def _validate_image(image: np.ndarray) -> None:
    if image.ndim != 3 or image.shape[2] not in (3, 4) or image.dtype != np.uint8:
        raise ValueError(f"RGB/RGBA uint8 이미지가 필요합니다: shape={image.shape}")


def plot_bounding_boxes(
    image: np.ndarray, boxes: Sequence[BoundingBox], style: DrawStyle | None = None
) -> np.ndarray:
    """바운딩 박스와 라벨(박스 안쪽 상단)을 그린 새 배열 반환

    좌표는 항상 현재 배열 크기 기준으로 다시 계산.
    """
    _validate_image(image)
    style = style or DrawStyle()
    result = image.copy()
    height, width = result.shape[:2]
    labels: list[tuple[str, int, int, RGB]] = []

    for i, box in enumerate(boxes):
        color = style.color_for(i)
        corners = box.to_absolute(width, height)
        _stroke_rect(result, corners, color, style.line_width)

        if style.show_labels and box.label:
            x, y = corners[0] + LabelOffset.X, corners[1] + LabelOffset.Y
            labels.append((box.label, x, y, color))

    return _draw_labels(result, labels, style.font_size)


def overlay_mask(image: np.ndarray, mask: np.ndarray, color: RGB, alpha: float) -> np.ndarray:
    """마스크 강도만큼 color를 블렌딩한 새 배열 반환

    w = mask / 255 * alpha, out = round(src * (1 - w) + color * w) (RGB 채널만).
    알파 채널(있다면)은 그대로.
    """
    _validate_image(image)
    if mask.shape != image.shape[:2]:
        raise ValueError(f"마스크 크기 불일치: mask={mask.shape}, image={image.shape[:2]}")

    result = image.copy()
    selected = mask > 0
    if not selected.any():
        return result

    weight = (mask[selected].astype(np.float64) / 255.0 * alpha)[:, None]
    src = result[selected][:, :3].astype(np.float64)
    tint = np.asarray(color, dtype=np.float64)[None, :]

    blended = np.floor(src * (1.0 - weight) + tint * weight + 0.5)
    rgb = result[..., :3]
    rgb[selected] = np.clip(blended, 0, 255).astype(np.uint8)
    return result


def plot_segmentation_masks(
    image: np.ndarray, masks: Sequence[SegmentationMask], style: DrawStyle | None = None
) -> np.ndarray:
    """마스크 합성 → 박스 → 라벨(박스 위쪽) 순서로 그린 새 배열 반환

    마스크를 먼저 전부 합성해야 외곽선이 마스크에 덮이지 않음.
    박스는 마스크에 저장된 절대 좌표를 그대로 사용.
    """
    _validate_image(image)
    style = style or DrawStyle()
    height, width = image.shape[:2]
    result = image

    for i, mask in enumerate(masks):
        if (mask.height, mask.width) != (height, width):
            raise ValueError(
                f"마스크 크기 불일치: mask={mask.width}x{mask.height}, "
                f"image={width}x{height}"
            )
        result = overlay_mask(result, mask.to_array(), style.color_for(i), style.alpha)

    if result is image:
        result = image.copy()

    labels: list[tuple[str, int, int, RGB]] = []
    for i, mask in enumerate(masks):
        color = style.color_for(i)
        _stroke_rect(result, (mask.x0, mask.y0, mask.x1, mask.y1), color, style.line_width)

        if style.show_labels and mask.label:
            top = mask.y0 - LabelOffset.Y - style.font_size
            labels.append((mask.label, mask.x0 + LabelOffset.X, top, color))

    return _draw_labels(result, labels, style.font_size)


def resize_for_display(image: Image.Image, max_size: int) -> Image.Image:
    """max_size를 넘으면 비율 유지하며 축소 (확대는 하지 않음)"""
    width, height = image.size
    if width <= max_size and height <= max_size:
        return image

    scale = min(max_size / width, max_size / height)
    new_size = (max(1, round(width * scale)), max(1, round(height * scale)))
    logger.info(f"이미지 축소: {width}x{height} → {new_size[0]}x{new_size[1]}")
    return image.resize(new_size, Image.Resampling.LANCZOS)


def load_image(image_path: str | Path, max_size: int | None = None) -> np.ndarray:
    """이미지 파일 → RGB 배열 (max_size 지정 시 축소)"""
    with Image.open(image_path) as img:
        image = img.convert("RGB")

    if max_size is not None:
        image = resize_for_display(image, max_size)

    return np.array(image)


def save_image(image: np.ndarray, output_path: str | Path) -> None:
    """배열 → PNG 파일"""
    Image.fromarray(image).save(output_path, format="PNG")
