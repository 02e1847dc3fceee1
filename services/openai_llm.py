# services/openai_llm.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass

import openai
from openai import AsyncOpenAI

from services.openai_errors import fatal_engine_error

logger = logging.getLogger(__name__)

_MOCK_RESPONSE = {
    "summary": "Mock response generated without calling OpenAI.",
    "key_topics": [],
    "decisions": [],
    "client_concerns": [],
    "advisor_guidance": [],
}


@dataclass
class Completion:
    text: str
    model: str
    tokens_used: int = 0
    mock: bool = False


class ChatCompletionEngine:
    """Text-in, text-out chat completion. The caller parses the text."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        mock_mode: bool = False,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.mock_mode = mock_mode
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> Completion:
        """Run an LLM chat completion and return the assistant message text."""
        model = model or self.model

        if self.mock_mode:
            logger.info("LLM(mock): %d chars prompt", len(user_prompt))
            return Completion(text=json.dumps(_MOCK_RESPONSE), model=model, mock=True)

        logger.info("LLM: sending %d chars to %s", len(system_prompt) + len(user_prompt), model)
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except openai.APIStatusError as exc:
            fatal = fatal_engine_error(exc)
            if fatal is not None:
                raise fatal from exc
            raise

        text = response.choices[0].message.content or ""
        tokens = response.usage.total_tokens if response.usage else 0
        logger.info("LLM: got %d chars response, %d tokens", len(text), tokens)
        return Completion(text=text, model=response.model or model, tokens_used=tokens)

    async def check_connection(self) -> bool:
        """Startup probe: can we list models with the configured key?"""
        if self.mock_mode:
            return True
        try:
            models = await self.client.models.list()
        except openai.OpenAIError as exc:
            logger.error("OpenAI connection failed: %s", exc)
            return False
        logger.info("OpenAI connection ok (%d models available)", len(models.data))
        return True
