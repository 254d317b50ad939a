# spamshield/services/ai/providers/openai_provider.py
import json
from typing import Any, Dict, List

import backoff
from loguru import logger
from openai import APIConnectionError, AsyncOpenAI, RateLimitError

from spamshield.services.ai.providers.base import BaseAIProvider
from spamshield.utils.text_utils import clip_text


class OpenAIProvider(BaseAIProvider):
    def __init__(self, api_key: str, model: str, timeout: float = 30):
        self.model = model
        self.timeout = timeout
        self.client = AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        logger.info(f"✅ OpenAI initialized (model: {model})")

    def is_available(self) -> bool:
        return self.client is not None

    def get_name(self) -> str:
        return "OpenAI"

    @backoff.on_exception(
        backoff.expo,
        (APIConnectionError, RateLimitError),
        max_tries=3,
        on_backoff=lambda details: logger.warning(
            f"🔄 Retrying OpenAI request (attempt {details['tries']})"
        ),
    )
    async def _request(self, messages: List[Dict[str, str]], temperature: float) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            response_format={"type": "json_object"},
        )
        return (response.choices[0].message.content or "").strip()

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

        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": clip_text(prompt, 7000)},
        ]

        return await self._request(messages, temperature)

    async def close(self) -> None:
        await self.client.close()
