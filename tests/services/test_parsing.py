"""응답 파싱 테스트"""

import pytest

from vsegments.schemas.segmentation import BoundingBox
from vsegments.services.parsing import (
    MalformedResponseError,
    parse_bounding_boxes,
    parse_entries,
    parse_json,
)
from tests.conftest import DETECT_ITEMS, make_response

JSON_BODY = '[{"label": "a", "box_2d": [1, 2, 3, 4]}]'


class TestParseJson:
    def test_strips_fence(self) -> None:
        assert parse_json(f"```json\n{JSON_BODY}\n```") == JSON_BODY

    def test_unfenced_is_trimmed_only(self) -> None:
        assert parse_json(f"  \n{JSON_BODY}\n\n") == JSON_BODY

    def test_discards_prose_before_fence(self) -> None:
        text = f"Sure! Here you go:\n\n```json\n{JSON_BODY}\n```\nHope this helps."
        assert parse_json(text) == JSON_BODY

    def test_fence_marker_with_surrounding_whitespace(self) -> None:
        assert parse_json(f"   ```json   \n{JSON_BODY}\n```") == JSON_BODY

    def test_missing_close_fence_keeps_rest(self) -> None:
        assert parse_json(f"```json\n{JSON_BODY}\n") == JSON_BODY

    def test_truncates_at_first_close_marker(self) -> None:
        text = f"```json\n{JSON_BODY}\n```\n```json\n[]\n```"
        assert parse_json(text) == JSON_BODY

    def test_plain_fence_is_not_an_opening_marker(self) -> None:
        text = f"```\n{JSON_BODY}\n```"
        assert parse_json(text) == text

    def test_never_raises_on_garbage(self) -> None:
        assert parse_json("This is not valid JSON") == "This is not valid JSON"


class TestParseBoundingBoxes:
    def test_two_boxes_in_order(self) -> None:
        boxes = parse_bounding_boxes(make_response(DETECT_ITEMS))

        assert len(boxes) == 2
        assert boxes[0] == BoundingBox(label="person", y1=100, x1=150, y2=450, x2=600)
        assert boxes[1].label == "car"
        assert boxes[1].to_list() == [500, 200, 800, 700]

    def test_fenced_response(self) -> None:
        boxes = parse_bounding_boxes(make_response(DETECT_ITEMS, fenced=True))
        assert [b.label for b in boxes] == ["person", "car"]

    def test_skips_entries_without_box(self) -> None:
        text = make_response(
            [
                {"label": "note", "text": "auxiliary entry"},
                {"label": "cat", "box_2d": [0, 0, 10, 10]},
                "stray string",
            ]
        )
        boxes = parse_bounding_boxes(text)

        assert len(boxes) == 1
        assert boxes[0].label == "cat"

    def test_skips_malformed_box_arrays(self) -> None:
        text = make_response(
            [
                {"label": "short", "box_2d": [1, 2, 3]},
                {"label": "text", "box_2d": ["a", "b", "c", "d"]},
                {"label": "bool", "box_2d": [True, False, True, False]},
                {"label": "ok", "box_2d": [1.5, 2, 3, 4]},
            ]
        )
        boxes = parse_bounding_boxes(text)
        assert [b.label for b in boxes] == ["ok"]

    def test_label_passthrough(self) -> None:
        text = make_response(
            [
                {"box_2d": [0, 0, 1, 1]},
                {"label": "", "box_2d": [0, 0, 1, 1]},
                {"label": 7, "box_2d": [0, 0, 1, 1]},
            ]
        )
        boxes = parse_bounding_boxes(text)
        assert [b.label for b in boxes] == [None, "", "7"]

    def test_empty_array(self) -> None:
        assert parse_bounding_boxes("[]") == []

    def test_invalid_json_raises(self) -> None:
        with pytest.raises(MalformedResponseError) as exc_info:
            parse_bounding_boxes("This is not valid JSON")
        assert exc_info.value.raw_text == "This is not valid JSON"

    def test_non_array_raises(self) -> None:
        with pytest.raises(MalformedResponseError, match="리스트가 아님"):
            parse_bounding_boxes('{"label": "a", "box_2d": [1, 2, 3, 4]}')

    @pytest.mark.parametrize("constant", ["NaN", "Infinity", "-Infinity"])
    def test_non_standard_constants_raise(self, constant: str) -> None:
        text = f'[{{"label": "a", "box_2d": [{constant}, 0, 10, 10]}}]'
        with pytest.raises(MalformedResponseError, match=constant) as exc_info:
            parse_bounding_boxes(text)
        assert exc_info.value.raw_text == text


class TestParseEntries:
    def test_records_key_presence(self) -> None:
        entries = parse_entries(
            make_response(
                [
                    {"label": "a", "box_2d": [1, 2, 3, 4], "mask": "abc"},
                    {"label": "b", "box_2d": [1, 2, 3, 4]},
                    {"label": "c", "mask": ""},
                ]
            )
        )

        assert [e.index for e in entries] == [0, 1, 2]
        assert entries[0].box == (1.0, 2.0, 3.0, 4.0)
        assert entries[0].mask == "abc"
        assert entries[1].mask is None
        assert entries[2].box is None
        assert entries[2].mask is None
