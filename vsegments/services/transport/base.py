"""Transport Protocol

이미지 + 프롬프트를 받아 모델 응답 텍스트를 돌려주는 교체 가능한 인터페이스.
재시도는 하지 않음 (호출자 책임).
"""

from typing import Protocol


class TransportError(Exception):
    pass


class ServerTransportError(TransportError):
    """서버 측 일시 장애 (HTTP 5xx). 호출자가 재시도할 수 있음."""

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        super().__init__(
            f"Gemini API 서버 오류 ({status_code}): 일시적인 문제일 수 있습니다. "
            f"잠시 후 다시 시도하거나 API 키와 이미지를 확인하세요. 원본 오류: {detail}"
        )


class Transport(Protocol):
    """생성 모델 호출 인터페이스

    구현체:
    - GeminiTransport: Google Gemini API
    """

    def generate(
        self,
        image: bytes,
        mime_type: str,
        prompt: str,
        system_instructions: str | None = None,
        temperature: float = 0.5,
    ) -> str:
        """이미지와 프롬프트로 모델 호출

        Args:
            image: 인코딩된 이미지 바이트
            mime_type: 이미지 MIME 타입
            prompt: 사용자 프롬프트
            system_instructions: 시스템 지시문 (없으면 생략)
            temperature: 샘플링 온도

        Returns:
            모델 응답 텍스트

        Raises:
            ServerTransportError: 서버 측 오류 (5xx)
            TransportError: 그 외 호출 실패
        """
        ...
