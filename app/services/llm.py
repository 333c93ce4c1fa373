"""
LLM Completion Provider
Chat completions through Groq's OpenAI-compatible API
"""
import asyncio
from typing import Dict, List, Optional

import openai
from openai import AsyncOpenAI

from app.config import Settings, settings as default_settings
from app.errors import ProviderError
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

Message = Dict[str, str]


class CompletionProvider:
    """Interface: system prompt + messages in, generated text out"""

    available = True

    async def complete(
        self,
        system_prompt: str,
        messages: List[Message],
        max_tokens: int,
        temperature: float,
    ) -> str:
        raise NotImplementedError


class UnavailableCompletionProvider(CompletionProvider):
    """Used when no API key is configured; every call fails recoverably"""

    available = False

    async def complete(self, system_prompt, messages, max_tokens, temperature) -> str:
        raise ProviderError("LLM provider is not configured")


class GroqCompletionProvider(CompletionProvider):
    def __init__(self, config: Optional[Settings] = None, client: Optional[AsyncOpenAI] = None):
        config = config or default_settings
        self.model = config.GROQ_MODEL
        self.timeout = config.LLM_TIMEOUT_SECONDS
        self.client = client or AsyncOpenAI(
            api_key=config.GROQ_API_KEY,
            base_url=config.GROQ_BASE_URL,
            timeout=config.LLM_TIMEOUT_SECONDS,
            max_retries=1,
        )

    async def complete(
        self,
        system_prompt: str,
        messages: List[Message],
        max_tokens: int,
        temperature: float,
    ) -> str:
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "system", "content": system_prompt}, *messages],
                    temperature=temperature,
                    max_tokens=max_tokens,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(f"LLM call timed out after {self.timeout}s") from e
        except openai.APIError as e:
            raise ProviderError(f"LLM call failed: {e}") from e

        if not response.choices:
            raise ProviderError("LLM returned no choices")
        content = (response.choices[0].message.content or "").strip()
        if not content:
            raise ProviderError("LLM returned an empty message")
        return content


def build_completion_provider(config: Optional[Settings] = None) -> CompletionProvider:
    config = config or default_settings
    if not config.GROQ_API_KEY:
        logger.warning("GROQ_API_KEY is not set; chat answers will use the fallback message")
        return UnavailableCompletionProvider()
    return GroqCompletionProvider(config)
