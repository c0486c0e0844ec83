"""세그멘테이션 데이터 모델

응답 디코딩 → 시각화 전체에서 사용하는 공통 스키마.
모든 모델은 불변(frozen)이며 값으로 비교됩니다.
"""

import math
from typing import Any, Self

import numpy as np
from pydantic import BaseModel, ConfigDict, model_validator

from vsegments.constants import BOX_KEY, NORMALIZED_SCALE


def to_absolute(value: float, dimension: int) -> int:
    """정규화 좌표 [0, 1000] → 절대 픽셀 좌표

    0.5는 올림 처리 (round()의 banker's rounding 회피)
    """
    return math.floor(value / NORMALIZED_SCALE * dimension + 0.5)


class BoundingBox(BaseModel):
    """바운딩 박스 (정규화 좌표, y 먼저)

    모델 출력 그대로 보존:
    - y1 <= y2, x1 <= x2 보장하지 않음 (역전/퇴화 박스 허용)
    - 범위 밖 좌표도 거부하지 않음 (그릴 때 클리핑)
    """

    model_config = ConfigDict(frozen=True)

    label: str | None = None
    y1: float
    x1: float
    y2: float
    x2: float

    @classmethod
    def from_list(cls, coords: list[float], label: str | None = None) -> "BoundingBox":
        """[y1, x1, y2, x2] 리스트에서 BoundingBox 생성

        Raises:
            ValueError: 좌표 개수가 4개가 아닌 경우
        """
        if len(coords) != 4:
            raise ValueError(f"BoundingBox requires 4 coordinates, got {len(coords)}")
        return cls(label=label, y1=coords[0], x1=coords[1], y2=coords[2], x2=coords[3])

    def to_list(self) -> list[float]:
        """[y1, x1, y2, x2] (응답 포맷 순서)"""
        return [self.y1, self.x1, self.y2, self.x2]

    def to_absolute(self, width: int, height: int) -> tuple[int, int, int, int]:
        """대상 이미지 크기 기준 절대 좌표 (x1, y1, x2, y2)"""
        return (
            to_absolute(self.x1, width),
            to_absolute(self.y1, height),
            to_absolute(self.x2, width),
            to_absolute(self.y2, height),
        )


class SegmentationMask(BaseModel):
    """객체 하나의 세그멘테이션 마스크

    mask는 이미지 전체 크기(width * height)의 단일 채널 버퍼 (row-major, 0~255).
    박스 영역 밖은 모두 0.
    """

    model_config = ConfigDict(frozen=True)

    y0: int
    x0: int
    y1: int
    x1: int
    mask: bytes
    label: str | None = None
    width: int
    height: int

    @model_validator(mode="after")
    def validate_buffer_size(self) -> Self:
        expected = self.width * self.height
        if len(self.mask) != expected:
            raise ValueError(f"mask buffer size {len(self.mask)} != {self.width}x{self.height}")
        return self

    @classmethod
    def from_array(
        cls, box: tuple[int, int, int, int], array: np.ndarray, label: str | None
    ) -> "SegmentationMask":
        """(y0, x0, y1, x1) + (H, W) uint8 배열에서 생성"""
        y0, x0, y1, x1 = box
        height, width = array.shape
        return cls(
            y0=y0,
            x0=x0,
            y1=y1,
            x1=x1,
            mask=np.ascontiguousarray(array, dtype=np.uint8).tobytes(),
            label=label,
            width=width,
            height=height,
        )

    def to_array(self) -> np.ndarray:
        """(height, width) uint8 읽기 전용 배열"""
        return np.frombuffer(self.mask, dtype=np.uint8).reshape(self.height, self.width)


class SegmentationResult(BaseModel):
    """탐지/세그멘테이션 결과

    masks는 세그멘테이션 요청일 때만 존재 (탐지 결과는 None).
    boxes/masks 순서 = 응답 JSON 배열 순서 (팔레트 색상 인덱스로 사용).
    """

    model_config = ConfigDict(frozen=True)

    boxes: tuple[BoundingBox, ...] = ()
    masks: tuple[SegmentationMask, ...] | None = None
    raw_response: str | None = None

    def count(self) -> int:
        return len(self.boxes)

    def __len__(self) -> int:
        return self.count()

    def to_export_dict(self) -> dict[str, Any]:
        """JSON 내보내기용 dict (마스크는 개수만)"""
        data: dict[str, Any] = {
            "boxes": [{"label": box.label, BOX_KEY: box.to_list()} for box in self.boxes],
        }
        if self.masks is not None:
            data["masks"] = len(self.masks)
        return data
