"""Transport 모듈

사용법:
    from vsegments.services.transport import get_transport

    transport = get_transport()
    text = transport.generate(image_bytes, "image/png", prompt)

백엔드 선택 (.env TRANSPORT_PROVIDER):
    - "gemini": Google Gemini API (기본값)
"""

from vsegments.config import get_settings
from vsegments.services.transport.base import ServerTransportError, Transport, TransportError
from vsegments.services.transport.gemini import GeminiTransport

__all__ = [
    "ServerTransportError",
    "Transport",
    "TransportError",
    "get_transport",
    "set_transport",
]

_transport: Transport | None = None


def get_transport() -> Transport:
    """설정에 따라 transport 백엔드 반환"""
    global _transport
    if _transport is None:
        settings = get_settings()
        if settings.transport_provider == "gemini":
            _transport = GeminiTransport(
                api_key=settings.google_api_key,
                model=settings.gemini_model,
            )
        else:
            raise ValueError(f"Unknown transport provider: {settings.transport_provider!r}")
    return _transport


def set_transport(transport: Transport | None) -> None:
    """transport 백엔드 설정 (테스트용)"""
    global _transport
    _transport = transport
