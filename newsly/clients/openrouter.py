"""OpenRouter chat completions client used by the agent process."""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import aiohttp

logger = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"

CURATOR_SYSTEM_PROMPT = (
    "You curate HackerNews stories for a personalized email newsletter. "
    "Follow the requested output format exactly and never invent stories or links."
)


class OpenRouterClient:
    """Sends prompts to an OpenRouter model and returns the reply text.

    Requests from one process are spaced at least ``min_request_interval``
    seconds apart.
    """

    def __init__(self, api_key: Optional[str], model: str = None, settings=None):
        """Initialize the client.

        Args:
            api_key: OpenRouter API key
            model: Model slug (defaults to ``settings.openrouter_model``)
            settings: Settings instance for configuration values
        """
        self.api_key = api_key
        self.model = model or (
            settings.openrouter_model if settings else "openai/gpt-4o-mini"
        )
        self.min_request_interval = (
            settings.openrouter_min_request_interval if settings else 3.2
        )
        self.timeout = settings.openrouter_timeout if settings else 30.0
        self._last_sent = 0.0

    async def _wait_for_slot(self) -> None:
        elapsed = time.monotonic() - self._last_sent
        if self._last_sent and elapsed < self.min_request_interval:
            delay = self.min_request_interval - elapsed
            logger.debug(f"Waiting {delay:.1f}s before next OpenRouter request")
            await asyncio.sleep(delay)
        self._last_sent = time.monotonic()

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST one completion request.

        Returns:
            Decoded response body

        Raises:
            ValueError: On a non-200 status, including rate limiting
            aiohttp.ClientError: On network errors
        """
        await self._wait_for_slot()

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": "Newsly",
        }
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(headers=headers) as session:
            async with session.post(OPENROUTER_URL, json=payload, timeout=timeout) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise ValueError(
                        f"OpenRouter API error: {response.status} - {error_text[:200]}"
                    )
                return await response.json()

    async def complete(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int = 2000,
        temperature: float = 0.3,
    ) -> str:
        """Run a chat completion and return the assistant text.

        Raises:
            ValueError: If no API key is set, the API rejects the request
                or the reply is empty
            aiohttp.ClientError: On network errors
        """
        if not self.api_key:
            raise ValueError("OpenRouter API key not configured")

        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        data = await self._post(payload)

        choices = data.get("choices") or []
        text = choices[0].get("message", {}).get("content") if choices else None
        if not text or not text.strip():
            raise ValueError(f"Empty response from OpenRouter model {self.model}")
        return text.strip()

    async def generate_text(
        self,
        prompt: str,
        max_tokens: int = 2000,
        temperature: float = 0.3,
        system: str = CURATOR_SYSTEM_PROMPT,
    ) -> str:
        """Send a single user prompt under the curator system prompt."""
        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ]
        return await self.complete(messages, max_tokens=max_tokens, temperature=temperature)
