"""Gemini 기반 Transport 구현체"""

# pyright: reportMissingTypeStubs=false

import logging

from google import genai
from google.genai import errors, types

from vsegments.services.transport.base import ServerTransportError, TransportError

logger = logging.getLogger(__name__)

SAFETY_SETTINGS = [
    types.SafetySetting(
        category=types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
        threshold=types.HarmBlockThreshold.BLOCK_ONLY_HIGH,
    ),
]


class GeminiTransport:
    """Google Gemini API 호출"""

    def __init__(self, api_key: str, model: str) -> None:
        self._api_key = api_key
        self._model = model

    def generate(
        self,
        image: bytes,
        mime_type: str,
        prompt: str,
        system_instructions: str | None = None,
        temperature: float = 0.5,
    ) -> str:
        """
        Raises:
            ServerTransportError: 서버 측 오류 (5xx)
            TransportError: API 키 누락, 빈 응답, 그 외 호출 실패
        """
        if not self._api_key:
            raise TransportError("GOOGLE_API_KEY가 설정되지 않았습니다")

        client = genai.Client(api_key=self._api_key)
        config = types.GenerateContentConfig(
            temperature=temperature,
            safety_settings=SAFETY_SETTINGS,
            system_instruction=system_instructions,
        )

        logger.info(f"Gemini 호출: model={self._model}, {len(image)} bytes ({mime_type})")

        try:
            response = client.models.generate_content(
                model=self._model,
                contents=[prompt, types.Part.from_bytes(data=image, mime_type=mime_type)],
                config=config,
            )
        except errors.ServerError as e:
            raise ServerTransportError(e.code, str(e)) from e
        except errors.APIError as e:
            raise TransportError(f"Gemini API 호출 실패 ({e.code}): {e}") from e
        except Exception as e:
            raise TransportError(f"Gemini API 호출 실패: {e}") from e

        if not response.text:
            raise TransportError("빈 응답")

        return response.text
