"""Client for the out-of-process LLM agent.

The agent is started once per call with the JSON request as its last
argument and must print its answer on stdout:

    getStories       -> JSON array of story objects
    generateContent  -> JSON object {"subject": ..., "content": ...}
    chat             -> plain text

Every failure surfaces as an :class:`~newsly.core.errors.AgentError` so
callers can fall through to the next content source.
"""

import asyncio
import json
import logging
import math
import os
import time
from typing import Any, Callable, Dict, List, Optional

from newsly.core.categorizer import categorize
from newsly.core.errors import (
    AgentDisabledError,
    AgentOutputError,
    AgentProcessError,
    AgentTimeoutError,
    ExtractionError,
    RateLimitExceededError,
)
from newsly.core.utils import extract_json, truncate
from newsly.models.content import NewsletterContent, PreferenceSpec, Story
from newsly.models.settings import Settings

logger = logging.getLogger(__name__)


class FixedWindowRateLimiter:
    """Allow at most ``max_calls`` acquisitions per fixed time window."""

    def __init__(
        self,
        max_calls: int = 5,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_calls = max_calls
        self.window = window
        self._clock = clock
        self.calls = 0
        self.reset_time = clock() + window

    def acquire(self) -> None:
        """Count one call against the current window.

        Raises:
            RateLimitExceededError: If the window is already full.
        """
        now = self._clock()
        if now >= self.reset_time:
            self.calls = 0
            self.reset_time = now + self.window

        if self.calls >= self.max_calls:
            raise RateLimitExceededError(math.ceil(self.reset_time - now))

        self.calls += 1


def story_from_agent(data: Dict[str, Any], index: int) -> Story:
    """Build a Story from one element of the agent's JSON array.

    Raises:
        ValueError: If a field has the wrong type
    """
    for field in ("title", "url"):
        if data.get(field) and not isinstance(data[field], str):
            raise ValueError(f"Agent story {field} is not a string: {data[field]!r}")

    title = data.get("title") or "Untitled"
    return Story(
        id=data.get("id") or index,
        title=title,
        url=data.get("url") or "#",
        points=data.get("points"),
        comments=data.get("comments"),
        author=data.get("author") or "unknown",
        category=data.get("category") or categorize(title),
    )


class AgentClient:
    """Runs agent actions as a subprocess with a timeout and rate limit."""

    def __init__(
        self,
        settings: Settings,
        rate_limiter: Optional[FixedWindowRateLimiter] = None,
        command: Optional[List[str]] = None,
    ):
        """Initialize the agent client.

        Args:
            settings: Settings instance for configuration values
            rate_limiter: Shared limiter; one is created from settings if omitted
            command: Agent argv prefix, overriding ``settings.agent_command``
        """
        self.enabled = settings.agent_enabled
        self.command = command or settings.agent_argv()
        self.timeout = settings.agent_timeout
        self.openrouter_api_key = settings.openrouter_api_key
        self.rate_limiter = rate_limiter or FixedWindowRateLimiter(
            settings.agent_rate_limit_calls, settings.agent_rate_limit_window
        )

    def _env(self) -> Dict[str, str]:
        env = dict(os.environ)
        if self.openrouter_api_key:
            env["OPENROUTER_API_KEY"] = self.openrouter_api_key
        return env

    async def _run(self, request: Dict[str, Any]) -> str:
        """Run the agent once and return its stdout.

        Raises:
            AgentDisabledError: Agent integration is switched off
            RateLimitExceededError: Too many calls in the current window
            AgentTimeoutError: The process outlived ``self.timeout``
            AgentProcessError: The process could not start or exited non-zero
        """
        if not self.enabled:
            raise AgentDisabledError("Agent integration is disabled")

        self.rate_limiter.acquire()

        argv = self.command + [json.dumps(request)]
        logger.debug(f"Starting agent action {request.get('action')}: {argv[:-1]}")

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._env(),
            )
        except OSError as e:
            raise AgentProcessError(f"Failed to spawn agent process: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
            raise AgentTimeoutError(
                f"Agent execution timed out after {self.timeout:g} seconds"
            )

        if process.returncode != 0:
            error_text = stderr.decode("utf-8", errors="replace").strip()
            raise AgentProcessError(
                f"Agent process failed with code {process.returncode}: {error_text}"
            )

        return stdout.decode("utf-8", errors="replace")

    async def get_stories(self, preferences: List[str], count: int) -> List[Story]:
        """Ask the agent for ``count`` stories matching ``preferences``.

        Returns:
            Stories parsed from the first JSON array in the agent's output

        Raises:
            AgentError: If the agent is unavailable or its output has no array
        """
        output = await self._run(
            {"action": "getStories", "preferences": list(preferences), "count": count}
        )
        try:
            items = extract_json(output, kind="array")
        except ExtractionError as e:
            raise AgentOutputError(f"Failed to parse agent stories: {e}") from e

        stories = []
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                logger.debug(f"Skipping non-object agent story: {truncate(repr(item))}")
                continue
            try:
                stories.append(story_from_agent(item, index))
            except (TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed agent story: {e}")

        logger.info(f"Agent returned {len(stories)} stories")
        return stories[:count]

    async def generate_content(
        self, spec: PreferenceSpec, count: int
    ) -> NewsletterContent:
        """Ask the agent for a complete newsletter.

        Raises:
            AgentError: If the agent is unavailable or returned no usable
                subject/content pair
        """
        output = await self._run(
            {
                "action": "generateContent",
                "userSpec": spec.to_storage_dict(),
                "preferences": list(spec.topics),
                "count": count,
            }
        )
        try:
            result = extract_json(output, kind="object")
        except ExtractionError as e:
            raise AgentOutputError(f"Failed to parse agent newsletter: {e}") from e

        subject = result.get("subject")
        content = result.get("content")
        if not isinstance(subject, str) or not subject.strip():
            raise AgentOutputError("Agent newsletter has no subject")
        if not isinstance(content, str) or not content.strip():
            raise AgentOutputError("Agent newsletter has no content")

        return NewsletterContent(subject=subject.strip(), content=content)

    async def chat(self, prompt: str) -> str:
        """Send a free-form prompt and return the agent's text reply."""
        output = (await self._run({"action": "chat", "prompt": prompt})).strip()
        if not output:
            raise AgentOutputError("Agent returned an empty reply")
        return output
