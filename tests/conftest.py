import base64
import json
from collections.abc import Generator
from io import BytesIO
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from vsegments.main import app
from vsegments.services.segmenter import Segmenter, set_segmenter
from vsegments.services.transport import set_transport


def make_test_image(width: int = 100, height: int = 100, fmt: str = "PNG") -> bytes:
    """테스트용 실제 이미지 바이트 생성"""
    img = Image.new("RGB", (width, height), color="blue")
    buf = BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def make_mask_b64(
    width: int = 16,
    height: int = 16,
    alpha: int = 255,
    mode: str = "RGBA",
    data_uri: bool = False,
) -> str:
    """단색 마스크 PNG (base64)"""
    color: Any = (255, 255, 255, alpha) if mode == "RGBA" else 255
    img = Image.new(mode, (width, height), color=color)
    buf = BytesIO()
    img.save(buf, format="PNG")
    encoded = base64.b64encode(buf.getvalue()).decode()
    return f"data:image/png;base64,{encoded}" if data_uri else encoded


def make_response(items: list[dict[str, Any]], fenced: bool = False) -> str:
    """모델 응답 텍스트 생성"""
    body = json.dumps(items)
    if fenced:
        return f"Here are the objects:\n```json\n{body}\n```\n"
    return body


DETECT_ITEMS: list[dict[str, Any]] = [
    {"label": "person", "box_2d": [100, 150, 450, 600]},
    {"label": "car", "box_2d": [500, 200, 800, 700]},
]


class FakeTransport:
    """응답 텍스트를 고정으로 돌려주고 호출 내역을 기록"""

    def __init__(self, text: str = "[]") -> None:
        self.text = text
        self.calls: list[dict[str, Any]] = []

    def generate(
        self,
        image: bytes,
        mime_type: str,
        prompt: str,
        system_instructions: str | None = None,
        temperature: float = 0.5,
    ) -> str:
        self.calls.append(
            {
                "image": image,
                "mime_type": mime_type,
                "prompt": prompt,
                "system_instructions": system_instructions,
                "temperature": temperature,
            }
        )
        return self.text


class FailingTransport:
    def __init__(self, error: Exception) -> None:
        self.error = error

    def generate(
        self,
        image: bytes,
        mime_type: str,
        prompt: str,
        system_instructions: str | None = None,
        temperature: float = 0.5,
    ) -> str:
        raise self.error


@pytest.fixture
def image_path(tmp_path: Path) -> Path:
    """100x100 PNG 파일"""
    path = tmp_path / "photo.png"
    path.write_bytes(make_test_image())
    return path


@pytest.fixture
def fake_transport() -> Generator[FakeTransport, None, None]:
    """get_transport()가 FakeTransport를 반환하도록 설정"""
    transport = FakeTransport(make_response(DETECT_ITEMS))
    set_transport(transport)
    yield transport
    set_transport(None)


@pytest.fixture
def client(fake_transport: FakeTransport) -> Generator[TestClient, None, None]:
    set_segmenter(Segmenter(transport=fake_transport))
    yield TestClient(app)
    set_segmenter(None)
