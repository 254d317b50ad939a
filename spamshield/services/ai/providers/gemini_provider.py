# spamshield/services/ai/providers/gemini_provider.py
import asyncio
import json
from typing import Any, Dict, Optional

import aiohttp
import backoff
from loguru import logger

from spamshield.services.ai.providers.base import (
    BaseAIProvider,
    ClassifierHTTPError,
    ClassifierResponseError,
)
from spamshield.utils.text_utils import clip_text


def _giveup(exc: Exception) -> bool:
    # 4xx (кроме 429) повторять бессмысленно
    return isinstance(exc, ClassifierHTTPError) and exc.status < 500 and exc.status != 429


class GeminiProvider(BaseAIProvider):
    """Google Gemini через REST API generateContent."""

    def __init__(
        self,
        api_key: str,
        model: str,
        endpoint: str = "https://generativelanguage.googleapis.com/v1beta/models",
        timeout: float = 30,
        max_output_tokens: int = 1000,
        max_tries: int = 3,
    ):
        self.api_key = api_key
        self.model = model
        self.url = f"{endpoint.rstrip('/')}/{model}:generateContent"
        self.timeout = timeout
        self.max_output_tokens = max_output_tokens
        self.max_tries = max_tries
        self._session: Optional[aiohttp.ClientSession] = None

        logger.info(f"✅ Gemini initialized (model: {model})")

    def is_available(self) -> bool:
        return bool(self.api_key)

    def get_name(self) -> str:
        return "Gemini"

    async def _get_session(self) -> aiohttp.ClientSession:
        """Лениво создает и возвращает сессию aiohttp."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout, connect=10)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    def _build_body(self, prompt: str, temperature: float) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": self.max_output_tokens,
                "topP": 0.8,
                "topK": 10,
                "responseMimeType": "application/json",
            },
            "safetySettings": [
                {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
                {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
            ],
        }

    async def _request(self, prompt: str, temperature: float) -> str:
        session = await self._get_session()

        async with session.post(
            self.url,
            params={"key": self.api_key},
            json=self._build_body(prompt, temperature),
        ) as response:
            body = await response.text()
            if response.status != 200:
                raise ClassifierHTTPError(response.status, body)

        try:
            data = json.loads(body)
            return data["candidates"][0]["content"]["parts"][0]["text"].strip()
        except (json.JSONDecodeError, KeyError, IndexError, TypeError, AttributeError) as e:
            raise ClassifierResponseError(f"Invalid Gemini response format: {e}") from e

    async def generate_json(
        self,
        prompt: str,
        json_schema: Dict[str, Any],
        temperature: float = 0.1,
    ) -> str:
        system_prompt = (
            "You must respond ONLY with valid JSON that matches the provided schema. "
            "Do not include any explanations, comments, or markdown formatting. "
            f"JSON schema: {json.dumps(json_schema, ensure_ascii=False, indent=2)}"
        )
        full_prompt = f"{system_prompt}\n\n{clip_text(prompt, 7000)}"

        retrying = backoff.on_exception(
            backoff.expo,
            (aiohttp.ClientError, asyncio.TimeoutError, ClassifierHTTPError),
            max_tries=self.max_tries,
            giveup=_giveup,
            on_backoff=lambda details: logger.warning(
                f"🔄 Retrying Gemini request (attempt {details['tries']})"
            ),
        )(self._request)

        return await retrying(full_prompt, temperature)

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            logger.info("Gemini HTTP session closed.")
