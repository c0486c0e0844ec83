"""탐지/세그멘테이션 서비스

이미지 로드 → 모델 호출(Transport) → 응답 디코딩 → 시각화.
호출마다 독립적이며 공유 상태 없음.
"""

import io
import logging
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

from vsegments.config import get_settings
from vsegments.constants import DEFAULT_MIME_TYPE, MIME_TYPES, Prompts
from vsegments.schemas.segmentation import SegmentationMask, SegmentationResult
from vsegments.services.masks import parse_segmentation_masks
from vsegments.services.parsing import parse_bounding_boxes
from vsegments.services.transport import Transport, get_transport
from vsegments.services.visualize import (
    DrawStyle,
    plot_bounding_boxes,
    plot_segmentation_masks,
    resize_for_display,
    save_image,
)

logger = logging.getLogger(__name__)


class AssetNotFoundError(Exception):
    def __init__(self, path: str | Path):
        self.path = str(path)
        super().__init__(f"이미지 파일을 찾을 수 없습니다: {path}")


class InvalidImageError(Exception):
    pass


def get_mime_type(path: str | Path) -> str:
    """확장자로 MIME 타입 추정 (모르면 image/jpeg)"""
    ext = Path(path).suffix.lower().lstrip(".")
    return MIME_TYPES.get(ext, DEFAULT_MIME_TYPE)


def read_image(path: str | Path) -> tuple[bytes, str]:
    """이미지 파일 → (바이트, MIME 타입)

    Raises:
        AssetNotFoundError: 파일이 없음 (네트워크 호출 전에 실패)
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise AssetNotFoundError(path)
    return file_path.read_bytes(), get_mime_type(file_path)


def open_image(data: bytes) -> Image.Image:
    """
    Raises:
        InvalidImageError: 이미지 디코딩 실패
    """
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise InvalidImageError(f"이미지 디코딩 실패: {e}") from e
    return image


class Segmenter:
    """Gemini 기반 바운딩 박스 탐지 / 세그멘테이션"""

    def __init__(
        self,
        transport: Transport,
        temperature: float = 0.5,
        max_objects: int = 25,
        max_size: int = 1024,
        display_max_size: int = 2048,
        mask_workers: int = 1,
    ) -> None:
        self._transport = transport
        self._temperature = temperature
        self._max_objects = max_objects
        self._max_size = max_size
        self._display_max_size = display_max_size
        self._mask_workers = mask_workers

    def system_instructions(self, custom_instructions: str | None = None) -> str:
        instructions = Prompts.SYSTEM_INSTRUCTIONS.format(max_objects=self._max_objects)
        if custom_instructions:
            instructions += "\n" + custom_instructions
        return instructions

    def _prepare_request_image(self, data: bytes, mime_type: str) -> tuple[bytes, str, int, int]:
        """요청용 이미지 준비 (max_size 초과 시 축소 후 PNG 재인코딩)

        Returns:
            (요청 바이트, MIME 타입, 원본 너비, 원본 높이)
        """
        with open_image(data) as image:
            width, height = image.size
            resized = resize_for_display(image, self._max_size)

            if resized is image:
                return data, mime_type, width, height

            buffer = io.BytesIO()
            resized.save(buffer, format="PNG")

        return buffer.getvalue(), "image/png", width, height

    def detect_image(
        self,
        data: bytes,
        mime_type: str,
        prompt: str | None = None,
        custom_instructions: str | None = None,
    ) -> SegmentationResult:
        """이미지 바이트에서 바운딩 박스 탐지

        Raises:
            InvalidImageError: 이미지 디코딩 실패
            TransportError: 모델 호출 실패
            MalformedResponseError: 응답 파싱 실패
        """
        request_data, request_mime, _, _ = self._prepare_request_image(data, mime_type)

        text = self._transport.generate(
            request_data,
            request_mime,
            prompt or Prompts.DETECT,
            system_instructions=self.system_instructions(custom_instructions),
            temperature=self._temperature,
        )

        boxes = parse_bounding_boxes(text)
        logger.info(f"탐지 완료: {len(boxes)}개 객체")
        return SegmentationResult(boxes=tuple(boxes), masks=None, raw_response=text)

    def segment_image(
        self, data: bytes, mime_type: str, prompt: str | None = None
    ) -> SegmentationResult:
        """이미지 바이트에서 세그멘테이션 (시스템 지시문 없음)

        마스크는 원본 이미지 크기 기준으로 디코딩.

        Raises:
            InvalidImageError: 이미지 디코딩 실패
            TransportError: 모델 호출 실패
            MalformedResponseError: 응답 또는 마스크 파싱 실패
        """
        request_data, request_mime, width, height = self._prepare_request_image(data, mime_type)

        text = self._transport.generate(
            request_data,
            request_mime,
            prompt or Prompts.SEGMENT,
            system_instructions=None,
            temperature=self._temperature,
        )

        boxes = parse_bounding_boxes(text)
        masks = parse_segmentation_masks(text, height, width, max_workers=self._mask_workers)
        logger.info(f"세그멘테이션 완료: {len(boxes)}개 박스, {len(masks)}개 마스크")
        return SegmentationResult(boxes=tuple(boxes), masks=tuple(masks), raw_response=text)

    def detect_boxes(
        self,
        image_path: str | Path,
        prompt: str | None = None,
        custom_instructions: str | None = None,
    ) -> SegmentationResult:
        """이미지 파일에서 바운딩 박스 탐지

        Raises:
            AssetNotFoundError: 파일 없음 (모델 호출 전)
        """
        data, mime_type = read_image(image_path)
        return self.detect_image(data, mime_type, prompt, custom_instructions)

    def segment(self, image_path: str | Path, prompt: str | None = None) -> SegmentationResult:
        """이미지 파일 세그멘테이션

        Raises:
            AssetNotFoundError: 파일 없음 (모델 호출 전)
        """
        data, mime_type = read_image(image_path)
        return self.segment_image(data, mime_type, prompt)

    def _masks_for_display(
        self, result: SegmentationResult, width: int, height: int
    ) -> tuple[SegmentationMask, ...]:
        """표시 배열 크기에 맞는 마스크 반환

        크기가 다르면 raw_response를 표시 크기 기준으로 다시 디코딩.
        """
        masks = result.masks or ()
        if all((m.width, m.height) == (width, height) for m in masks):
            return masks

        if result.raw_response is None:
            raise ValueError(
                "마스크 크기가 이미지와 다르고 raw_response가 없어 다시 디코딩할 수 없습니다"
            )

        logger.info(f"표시 크기 기준 마스크 재디코딩: {width}x{height}")
        return tuple(
            parse_segmentation_masks(
                result.raw_response, height, width, max_workers=self._mask_workers
            )
        )

    def render(
        self, image: Image.Image, result: SegmentationResult, style: DrawStyle | None = None
    ) -> np.ndarray:
        """결과를 이미지에 합성한 RGB 배열 반환 (display_max_size로 축소 후)"""
        display = resize_for_display(image.convert("RGB"), self._display_max_size)
        array = np.array(display)
        height, width = array.shape[:2]

        if result.masks is not None:
            masks = self._masks_for_display(result, width, height)
            return plot_segmentation_masks(array, masks, style)

        return plot_bounding_boxes(array, result.boxes, style)

    def visualize(
        self,
        image_path: str | Path,
        result: SegmentationResult,
        output_path: str | Path | None = None,
        style: DrawStyle | None = None,
    ) -> np.ndarray:
        """이미지 파일에 결과를 그리고 (지정 시) PNG로 저장

        Raises:
            AssetNotFoundError: 파일 없음
        """
        data, _ = read_image(image_path)

        with open_image(data) as image:
            rendered = self.render(image, result, style)

        if output_path is not None:
            save_image(rendered, output_path)
            logger.info(f"시각화 저장: {output_path}")

        return rendered


_segmenter: Segmenter | None = None


def get_segmenter() -> Segmenter:
    """설정 기반 Segmenter 반환"""
    global _segmenter
    if _segmenter is None:
        settings = get_settings()
        _segmenter = Segmenter(
            transport=get_transport(),
            temperature=settings.temperature,
            max_objects=settings.max_objects,
            max_size=settings.max_size,
            display_max_size=settings.display_max_size,
            mask_workers=settings.mask_workers,
        )
    return _segmenter


def set_segmenter(segmenter: Segmenter | None) -> None:
    """Segmenter 설정 (테스트용)"""
    global _segmenter
    _segmenter = segmenter
