import re

# 모델 응답 JSON 키
BOX_KEY = "box_2d"
MASK_KEY = "mask"
LABEL_KEY = "label"

# 정규화 좌표 범위 [0, 1000]
NORMALIZED_SCALE = 1000

# 코드 펜스
FENCE_OPEN = "```json"
FENCE_CLOSE = "```"

DATA_URI_PATTERN = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,")

MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}
DEFAULT_MIME_TYPE = "image/jpeg"


class Prompts:
    DETECT = "Detect the 2d bounding boxes"
    SEGMENT = (
        "Give the segmentation masks for the objects. "
        "Output a JSON list of segmentation masks where each entry contains "
        'the 2D bounding box in the key "box_2d", the segmentation mask in key "mask", '
        'and the text label in the key "label". Use descriptive labels.'
    )
    SYSTEM_INSTRUCTIONS = (
        "Return bounding boxes as a JSON array with labels. "
        "Never return masks or code fencing. Limit to {max_objects} objects.\n"
        "If an object is present multiple times, name them according to their unique "
        "characteristic (colors, size, position, unique characteristics, etc..)."
    )


class LabelOffset:
    """라벨 텍스트 위치 오프셋 (px)"""

    X = 8
    Y = 6
