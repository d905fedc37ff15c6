"""Agent process for LLM-assisted story selection and newsletter writing.

Started by :class:`newsly.clients.agent.AgentClient` as::

    python -m newsly.agent '{"action": "getStories", "preferences": ["ai"], "count": 5}'

Actions:
    getStories       Print a JSON array of stories picked and categorized by the LLM
    generateContent  Print a JSON object with "subject" and "content"
    chat             Print the LLM's plain text answer to "prompt"

Errors are written to stderr and the process exits with status 1.
"""

import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from newsly.clients.agent import story_from_agent
from newsly.clients.hackernews import HackerNewsClient
from newsly.clients.openrouter import OpenRouterClient
from newsly.core.categorizer import CATEGORIES
from newsly.core.utils import extract_json
from newsly.models.content import NewsletterContent, parse_preference_spec
from newsly.models.settings import Settings

logger = logging.getLogger(__name__)

# Stories the LLM gets to choose from
MAX_CANDIDATES = 30

STORIES_TASK = """Here are the current top stories from HackerNews as JSON:

{candidates}

Pick the {count} stories that best match {preferences_text}. Categorize each one as exactly one of: {categories}.
Return the data as a JSON array with this exact structure: [{{"id": number, "title": string, "url": string, "points": number, "comments": number, "author": string, "category": string}}]"""

CONTENT_TASK = """Create newsletter from HN stories:

{stories_text}

Prefs: {topics}, {tone} tone, {length} length{analysis}

Return JSON: {{"subject": "...", "content": "HTML with story links and brief summaries"}}"""

CHAT_SYSTEM_PROMPT = "You answer readers who reply to their tech news digest by email."


class NewsAgent:
    """Answers agent requests using HackerNews data and an OpenRouter LLM."""

    def __init__(
        self,
        settings: Settings,
        llm: Optional[OpenRouterClient] = None,
        hackernews_client: Optional[HackerNewsClient] = None,
    ):
        self.settings = settings
        self.llm = llm or OpenRouterClient(settings.openrouter_api_key, settings=settings)
        self.hackernews_client = hackernews_client or HackerNewsClient(settings)

    async def _candidates(self, count: int) -> List[Dict[str, Any]]:
        story_ids = await self.hackernews_client.get_top_story_ids()
        limit = min(max(count * 3, 10), MAX_CANDIDATES)
        items = await self.hackernews_client.fetch_items(story_ids[:limit])
        return [
            {
                "id": item.get("id"),
                "title": item["title"],
                "url": item["url"],
                "points": item.get("score") or 0,
                "comments": item.get("descendants") or 0,
                "author": item.get("by") or "unknown",
            }
            for item in items
            if item and item.get("title") and item.get("url")
        ]

    async def get_stories(self, preferences: List[str], count: int) -> List[Dict[str, Any]]:
        candidates = await self._candidates(count)
        preferences_text = (
            f"these topics: {', '.join(preferences)}" if preferences else "all topics"
        )
        task = STORIES_TASK.format(
            candidates=json.dumps(candidates),
            count=count,
            preferences_text=preferences_text,
            categories=", ".join(CATEGORIES),
        )
        text = await self.llm.generate_text(task, max_tokens=2000)
        items = extract_json(text, kind="array")
        stories = [
            story_from_agent(item, index).model_dump()
            for index, item in enumerate(items)
            if isinstance(item, dict)
        ]
        return stories[:count]

    async def generate_content(
        self, user_spec: Any, preferences: List[str], count: int
    ) -> Dict[str, str]:
        spec = parse_preference_spec(user_spec)
        stories = await self.get_stories(preferences or spec.topics, count)
        stories_text = "\n".join(
            f"- {story['title']} ({story['url']}, {story['points']}pts, "
            f"{story['comments']}c)"
            for story in stories
        )
        task = CONTENT_TASK.format(
            stories_text=stories_text,
            topics=", ".join(spec.topics) or "all topics",
            tone=spec.tone,
            length=spec.length,
            analysis=", include a short analysis per story" if spec.include_analysis else "",
        )
        text = await self.llm.generate_text(task, max_tokens=3000)
        result = extract_json(text, kind="object")
        return NewsletterContent(
            subject=result.get("subject", ""), content=result.get("content", "")
        ).model_dump()

    async def chat(self, prompt: str) -> str:
        return await self.llm.generate_text(
            prompt, max_tokens=800, temperature=0.7, system=CHAT_SYSTEM_PROMPT
        )

    async def run(self, request: Dict[str, Any]) -> str:
        """Execute one request and return what to print on stdout.

        Raises:
            ValueError: For unknown actions or missing arguments
        """
        action = request.get("action")
        if action == "getStories":
            stories = await self.get_stories(
                request.get("preferences") or [], request.get("count") or 10
            )
            return json.dumps(stories, indent=2)
        if action == "generateContent":
            content = await self.generate_content(
                request.get("userSpec"),
                request.get("preferences") or [],
                request.get("count") or 5,
            )
            return json.dumps(content, indent=2)
        if action == "chat":
            if not request.get("prompt"):
                raise ValueError("Prompt is required for chat action")
            return await self.chat(request["prompt"])
        raise ValueError(f"Unknown action: {action}")


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    logging.basicConfig(level=logging.WARNING, stream=sys.stderr)

    try:
        request = json.loads(argv[0] if argv else "{}")
        if not isinstance(request, dict):
            raise ValueError("Request must be a JSON object")
        agent = NewsAgent(Settings())
        output = asyncio.run(agent.run(request))
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
