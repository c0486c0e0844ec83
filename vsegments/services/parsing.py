"""모델 응답 파싱

마크다운 코드 펜스 제거 → JSON 배열 파싱 → BoundingBox 변환.
박스 키가 없는 항목은 에러 없이 건너뜁니다.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

from vsegments.constants import BOX_KEY, FENCE_CLOSE, FENCE_OPEN, LABEL_KEY, MASK_KEY
from vsegments.schemas.segmentation import BoundingBox

logger = logging.getLogger(__name__)


class MalformedResponseError(Exception):
    """JSON 파싱 실패 또는 최상위 구조가 배열이 아님

    "객체 0개"와 "쓰레기 응답"을 구분하기 위해 빈 결과로 대체하지 않음.
    raw_text에 원본 텍스트를 보관 (진단용).
    """

    def __init__(self, message: str, raw_text: str):
        self.raw_text = raw_text
        super().__init__(message)


@dataclass(frozen=True)
class ResponseEntry:
    """응답 배열의 항목 하나 (키 존재 여부는 여기서 한 번만 검증)"""

    index: int
    label: str | None
    box: tuple[float, float, float, float] | None
    mask: str | None


def parse_json(text: str) -> str:
    """코드 펜스(```json ... ```)를 제거한 JSON 문자열 반환

    펜스가 없으면 전체 텍스트를 그대로 사용. 절대 실패하지 않음.
    """
    lines = text.split("\n")
    for i, line in enumerate(lines):
        if line.strip() == FENCE_OPEN:
            text = "\n".join(lines[i + 1 :])
            text = text.split(FENCE_CLOSE)[0]
            break
    return text.strip()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_box(value: Any) -> tuple[float, float, float, float] | None:
    if not isinstance(value, list) or len(value) != 4:
        return None
    if not all(_is_number(v) for v in value):
        return None
    return (float(value[0]), float(value[1]), float(value[2]), float(value[3]))


def _parse_label(value: Any) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return str(value)


def _to_entry(index: int, item: Any) -> ResponseEntry:
    if not isinstance(item, dict):
        return ResponseEntry(index=index, label=None, box=None, mask=None)

    mask = item.get(MASK_KEY)
    return ResponseEntry(
        index=index,
        label=_parse_label(item.get(LABEL_KEY)),
        box=_parse_box(item.get(BOX_KEY)),
        mask=mask if isinstance(mask, str) and mask else None,
    )


def _reject_constant(name: str) -> Any:
    raise ValueError(f"JSON 표준이 아닌 상수: {name}")


def parse_entries(text: str) -> list[ResponseEntry]:
    """응답 텍스트 → ResponseEntry 리스트 (배열 순서 유지)

    Raises:
        MalformedResponseError: JSON 파싱 실패 또는 배열이 아닌 경우
    """
    cleaned = parse_json(text)

    try:
        data = json.loads(cleaned, parse_constant=_reject_constant)
    except ValueError as e:
        raise MalformedResponseError(f"JSON 파싱 실패: {e}", raw_text=text) from e

    if not isinstance(data, list):
        raise MalformedResponseError(
            f"응답이 리스트가 아님: {type(data).__name__}", raw_text=text
        )

    return [_to_entry(i, item) for i, item in enumerate(data)]


def parse_bounding_boxes(text: str) -> list[BoundingBox]:
    """응답 텍스트에서 바운딩 박스 추출

    Raises:
        MalformedResponseError: JSON 파싱 실패 또는 배열이 아닌 경우
    """
    boxes: list[BoundingBox] = []

    for entry in parse_entries(text):
        if entry.box is None:
            logger.debug(f"박스 키 없음, 건너뜀: index={entry.index}")
            continue
        boxes.append(BoundingBox.from_list(list(entry.box), label=entry.label))

    logger.info(f"바운딩 박스 파싱 완료: {len(boxes)}개")
    return boxes
