"""Story selection with agent, live API and mock data fallbacks."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

import aiohttp

from newsly.clients.agent import AgentClient
from newsly.clients.hackernews import HackerNewsClient
from newsly.core.categorizer import categorize
from newsly.core.errors import AgentError, RateLimitExceededError
from newsly.models.content import Story
from newsly.models.settings import Settings

logger = logging.getLogger(__name__)

MOCK_STORIES: Sequence[Story] = (
    Story(
        id=1,
        title="Show HN: I built a distributed database in Rust",
        url="https://example.com/rust-db",
        points=342,
        comments=89,
        author="rustdev2024",
        category="databases",
    ),
    Story(
        id=2,
        title="OpenAI releases GPT-5 with breakthrough reasoning capabilities",
        url="https://example.com/gpt5",
        points=1247,
        comments=456,
        author="airesearcher",
        category="ai",
    ),
    Story(
        id=3,
        title="Why I switched from React to Svelte for my startup",
        url="https://example.com/react-svelte",
        points=234,
        comments=123,
        author="frontend_dev",
        category="frontend",
    ),
    Story(
        id=4,
        title="The hidden costs of microservices architecture",
        url="https://example.com/microservices",
        points=567,
        comments=234,
        author="backend_guru",
        category="architecture",
    ),
    Story(
        id=5,
        title="Ask HN: What's your favorite debugging technique?",
        url="https://example.com/debugging",
        points=189,
        comments=167,
        author="curious_dev",
        category="programming",
    ),
    Story(
        id=6,
        title="Show HN: Real-time collaborative code editor in the browser",
        url="https://example.com/code-editor",
        points=445,
        comments=78,
        author="webdev_pro",
        category="web development",
    ),
    Story(
        id=7,
        title="The future of blockchain beyond cryptocurrency",
        url="https://example.com/blockchain-future",
        points=298,
        comments=156,
        author="crypto_analyst",
        category="blockchain",
    ),
    Story(
        id=8,
        title="How we reduced our AWS costs by 80% with smart caching",
        url="https://example.com/aws-optimization",
        points=678,
        comments=234,
        author="devops_master",
        category="cloud",
    ),
    Story(
        id=9,
        title="Security vulnerability found in popular npm package",
        url="https://example.com/npm-security",
        points=892,
        comments=345,
        author="security_researcher",
        category="security",
    ),
    Story(
        id=10,
        title="Ask HN: Best practices for remote team management?",
        url="https://example.com/remote-management",
        points=156,
        comments=89,
        author="startup_cto",
        category="management",
    ),
)


def matches_any(story: Story, keywords: Iterable[str]) -> bool:
    """True if the story's category or title contains any keyword."""
    category = story.category.lower()
    title = story.title.lower()
    return any(
        keyword.lower() in category or keyword.lower() in title
        for keyword in keywords
    )


def matches_preferences(story: Story, preferences: Sequence[str]) -> bool:
    """A story matches when no preferences are given or any keyword hits."""
    return not preferences or matches_any(story, preferences)


@dataclass(frozen=True)
class StorySourceConfig:
    """Behaviour switches for :class:`StorySource`."""

    agent_enabled: bool = False
    max_candidates: int = 30
    enforce_exclude_topics: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "StorySourceConfig":
        return cls(
            agent_enabled=settings.agent_enabled,
            enforce_exclude_topics=settings.enforce_exclude_topics,
        )


class StorySource:
    """Produces candidate stories for a newsletter.

    Backends are tried in order: the external agent (when enabled), the
    live HackerNews API, and finally a fixed mock table. Live results that
    fall short of the requested count are padded with mock stories.
    """

    def __init__(
        self,
        config: Optional[StorySourceConfig] = None,
        hackernews_client: Optional[HackerNewsClient] = None,
        agent_client: Optional[AgentClient] = None,
    ):
        """Initialize the story source.

        Args:
            config: Behaviour switches; defaults keep the agent off
            hackernews_client: Live API client
            agent_client: Agent client, required when the agent is enabled
        """
        self.config = config or StorySourceConfig()
        self.hackernews_client = hackernews_client or HackerNewsClient()
        self.agent_client = agent_client

        if self.config.agent_enabled and self.agent_client is None:
            logger.warning("Agent enabled but no agent client configured")

    @property
    def agent_available(self) -> bool:
        return self.config.agent_enabled and self.agent_client is not None

    def _keep(
        self, story: Story, preferences: Sequence[str], exclude: Sequence[str]
    ) -> bool:
        if not matches_preferences(story, preferences):
            return False
        if self.config.enforce_exclude_topics and exclude:
            return not matches_any(story, exclude)
        return True

    async def get_top_stories(
        self,
        preferences: Sequence[str] = (),
        count: int = 10,
        exclude_topics: Sequence[str] = (),
    ) -> List[Story]:
        """Get up to ``count`` stories matching ``preferences``.

        Args:
            preferences: Interest keywords; empty means any story
            count: Maximum number of stories to return
            exclude_topics: Keywords to drop when exclusion is enforced

        Returns:
            At most ``count`` stories; never raises for backend failures
        """
        count = max(int(count), 0)
        if count == 0:
            return []

        if self.agent_available:
            stories = await self._get_agent_stories(preferences, count, exclude_topics)
            if stories:
                return stories

        try:
            stories = await self._get_live_stories(preferences, count, exclude_topics)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Network error fetching HackerNews stories: {e!r}")
            return self.get_mock_stories(preferences, count, exclude_topics)
        except (KeyError, ValueError, TypeError) as e:
            logger.error(f"Data parsing error fetching HackerNews stories: {e}")
            return self.get_mock_stories(preferences, count, exclude_topics)
        except Exception as e:
            logger.error(f"Unexpected error fetching HackerNews stories: {e}")
            return self.get_mock_stories(preferences, count, exclude_topics)

        if len(stories) < count:
            padding = self.get_mock_stories(
                preferences, count - len(stories), exclude_topics
            )
            logger.info(
                f"Padding {len(stories)} live stories with {len(padding)} mock stories"
            )
            stories.extend(padding)

        return stories[:count]

    async def _get_agent_stories(
        self, preferences: Sequence[str], count: int, exclude: Sequence[str]
    ) -> List[Story]:
        try:
            stories = await self.agent_client.get_stories(list(preferences), count)
        except RateLimitExceededError as e:
            logger.warning(f"Agent rate limit reached, using HackerNews API: {e}")
            return []
        except AgentError as e:
            logger.error(f"Agent failed, falling back to HackerNews API: {e}")
            return []

        if self.config.enforce_exclude_topics and exclude:
            stories = [story for story in stories if not matches_any(story, exclude)]
        return stories[:count]

    async def _get_live_stories(
        self, preferences: Sequence[str], count: int, exclude: Sequence[str]
    ) -> List[Story]:
        story_ids = await self.hackernews_client.get_top_story_ids()
        candidates = story_ids[: min(count * 2, self.config.max_candidates)]
        batch_size = max(self.hackernews_client.max_concurrency, 1)

        stories: List[Story] = []
        for start in range(0, len(candidates), batch_size):
            if len(stories) >= count:
                break
            batch = candidates[start : start + batch_size]
            items = await self.hackernews_client.fetch_items(batch)
            for item in items:
                if len(stories) >= count:
                    break
                story = self._story_from_item(item)
                if story and self._keep(story, preferences, exclude):
                    stories.append(story)

        logger.info(
            f"Collected {len(stories)} matching HackerNews stories "
            f"from {len(candidates)} candidates"
        )
        return stories

    def _story_from_item(self, item: Optional[Dict[str, Any]]) -> Optional[Story]:
        if not item or not item.get("title") or not item.get("url"):
            return None
        if not isinstance(item["title"], str) or not isinstance(item["url"], str):
            return None
        return Story(
            id=item.get("id") or 0,
            title=item["title"],
            url=item["url"],
            points=item.get("score") or 0,
            comments=item.get("descendants") or 0,
            author=item.get("by") or "unknown",
            category=categorize(item["title"]),
        )

    def get_mock_stories(
        self,
        preferences: Sequence[str] = (),
        count: int = 10,
        exclude_topics: Sequence[str] = (),
    ) -> List[Story]:
        """Get stories from the built-in mock table, in table order."""
        stories = [
            story.model_copy()
            for story in MOCK_STORIES
            if self._keep(story, preferences, exclude_topics)
        ]
        return stories[: max(count, 0)]
