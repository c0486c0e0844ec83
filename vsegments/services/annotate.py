"""Annotate 서비스: base64 이미지 → 탐지/세그멘테이션 결과 (+ 시각화)

HTTP API용 얇은 래퍼. 실제 처리는 Segmenter가 담당.
"""

import base64
import binascii
import io
import logging
from typing import Literal

import numpy as np
from PIL import Image
from pydantic import Field

from vsegments.constants import BOX_KEY
from vsegments.schemas.base import BaseSchema
from vsegments.schemas.segmentation import SegmentationResult
from vsegments.services.parsing import MalformedResponseError
from vsegments.services.segmenter import InvalidImageError, get_segmenter, open_image
from vsegments.services.transport import ServerTransportError, TransportError
from vsegments.services.visualize import DrawStyle

logger = logging.getLogger(__name__)

AnnotateMode = Literal["detect", "segment"]


class AnnotateError(Exception):
    """Annotate 작업 관련 에러

    code로 구체적인 원인 구분:
    - INVALID_IMAGE: base64/이미지 디코딩 실패 (400)
    - MALFORMED_RESPONSE: 모델 응답 파싱 실패 (502)
    - TRANSPORT_ERROR: 모델 호출 실패 (502)
    - TRANSPORT_UNAVAILABLE: 모델 서버 일시 장애, 재시도 가능 (503)
    """

    STATUS_MAP: dict[str, int] = {
        "INVALID_IMAGE": 400,
        "MALFORMED_RESPONSE": 502,
        "TRANSPORT_ERROR": 502,
        "TRANSPORT_UNAVAILABLE": 503,
    }

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")

    @property
    def status_code(self) -> int:
        return self.STATUS_MAP.get(self.code, 500)


class AnnotateRequest(BaseSchema):
    """탐지/세그멘테이션 요청"""

    image: str  # base64
    mime_type: str = "image/png"
    prompt: str | None = None
    instructions: str | None = None  # 탐지 모드 전용
    visualize: bool = False
    line_width: int = Field(default=4, ge=1)
    font_size: int = Field(default=14, ge=1)
    alpha: float = Field(default=0.7, ge=0.0, le=1.0)


class BoxItem(BaseSchema):
    label: str | None
    box_2d: list[float] = Field(alias="box2d")


class AnnotateResponse(BaseSchema):
    """탐지/세그멘테이션 응답 (마스크는 개수만)"""

    boxes: list[BoxItem]
    masks: int | None = None
    raw_response: str | None = None
    result_image: str | None = None  # base64 PNG


def _decode_image(b64_str: str) -> bytes:
    """
    Raises:
        AnnotateError: base64 디코딩 실패
    """
    try:
        return base64.b64decode(b64_str, validate=True)
    except (binascii.Error, ValueError) as e:
        raise AnnotateError("INVALID_IMAGE", "이미지 base64 디코딩 실패") from e


def _encode_png(array: np.ndarray) -> str:
    buffer = io.BytesIO()
    Image.fromarray(array).save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode()


def _to_response(result: SegmentationResult, result_image: str | None) -> AnnotateResponse:
    export = result.to_export_dict()
    return AnnotateResponse(
        boxes=[BoxItem(label=b["label"], box_2d=b[BOX_KEY]) for b in export["boxes"]],
        masks=export.get("masks"),
        raw_response=result.raw_response,
        result_image=result_image,
    )


def annotate(request: AnnotateRequest, mode: AnnotateMode) -> AnnotateResponse:
    """
    Raises:
        AnnotateError: 이미지 오류 / 모델 호출 실패 / 응답 파싱 실패
    """
    data = _decode_image(request.image)
    segmenter = get_segmenter()

    try:
        if mode == "segment":
            result = segmenter.segment_image(data, request.mime_type, request.prompt)
        else:
            result = segmenter.detect_image(
                data, request.mime_type, request.prompt, request.instructions
            )
    except InvalidImageError as e:
        raise AnnotateError("INVALID_IMAGE", str(e)) from e
    except ServerTransportError as e:
        raise AnnotateError("TRANSPORT_UNAVAILABLE", str(e)) from e
    except TransportError as e:
        raise AnnotateError("TRANSPORT_ERROR", str(e)) from e
    except MalformedResponseError as e:
        logger.warning(f"모델 응답 파싱 실패: {e} / raw={e.raw_text[:200]!r}")
        raise AnnotateError("MALFORMED_RESPONSE", str(e)) from e

    result_image = None
    if request.visualize:
        style = DrawStyle(
            line_width=request.line_width, font_size=request.font_size, alpha=request.alpha
        )
        with open_image(data) as image:
            result_image = _encode_png(segmenter.render(image, result, style))

    return _to_response(result, result_image)
