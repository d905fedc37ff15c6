"""Content pipeline: preference spec in, finished newsletter out."""

import logging
from typing import Any, Dict, Optional, Union

from newsly.clients.agent import AgentClient
from newsly.clients.hackernews import HackerNewsClient
from newsly.core.errors import AgentError, RateLimitExceededError
from newsly.core.renderer import ContentRenderer
from newsly.core.stories import StorySource, StorySourceConfig
from newsly.models.content import (
    NewsletterContent,
    PreferenceSpec,
    parse_preference_spec,
)
from newsly.models.settings import Settings

logger = logging.getLogger(__name__)


class ContentPipeline:
    """Generates a newsletter for one user's preferences.

    The agent is asked for a complete newsletter first (when enabled).
    Otherwise stories come from the story source, whose own fallback chain
    ends in mock data, and are rendered with the deterministic templates.
    Backend failures never reach the caller; only a malformed spec does.
    """

    def __init__(
        self,
        story_source: StorySource,
        renderer: Optional[ContentRenderer] = None,
        agent_client: Optional[AgentClient] = None,
        agent_enabled: bool = False,
    ):
        self.story_source = story_source
        self.renderer = renderer or ContentRenderer()
        self.agent_client = agent_client
        self.agent_enabled = agent_enabled and agent_client is not None

    @classmethod
    def from_settings(
        cls, settings: Settings, renderer: Optional[ContentRenderer] = None
    ) -> "ContentPipeline":
        """Wire a pipeline whose agent calls share one rate limiter."""
        agent_client = AgentClient(settings) if settings.agent_enabled else None
        story_source = StorySource(
            config=StorySourceConfig.from_settings(settings),
            hackernews_client=HackerNewsClient(settings),
            agent_client=agent_client,
        )
        logger.info(
            f"🔧 Content pipeline ready (agent "
            f"{'✅ enabled' if agent_client else '❌ disabled'})"
        )
        return cls(
            story_source=story_source,
            renderer=renderer,
            agent_client=agent_client,
            agent_enabled=settings.agent_enabled,
        )

    async def generate(
        self, spec: Union[str, Dict[str, Any], PreferenceSpec]
    ) -> NewsletterContent:
        """Generate the newsletter for a stored preference spec.

        Args:
            spec: Raw JSON string, decoded dict, or parsed spec

        Returns:
            Subject line and HTML content

        Raises:
            SpecMalformedError: If ``spec`` is a string that is not a JSON object
        """
        preferences = parse_preference_spec(spec)
        count = preferences.story_count

        if self.agent_enabled:
            content = await self._generate_with_agent(preferences, count)
            if content is not None:
                return content

        try:
            stories = await self.story_source.get_top_stories(
                preferences.topics, count, preferences.exclude_topics
            )
        except Exception as e:
            logger.error(f"Story source failed, using mock stories: {e}")
            stories = self.story_source.get_mock_stories(
                preferences.topics, count, preferences.exclude_topics
            )

        logger.info(
            f"Rendering {len(stories)} stories "
            f"({preferences.tone}, {preferences.length})"
        )
        return self.renderer.render(preferences, stories)

    async def _generate_with_agent(
        self, preferences: PreferenceSpec, count: int
    ) -> Optional[NewsletterContent]:
        try:
            content = await self.agent_client.generate_content(preferences, count)
            logger.info("Newsletter content generated by agent")
            return content
        except RateLimitExceededError as e:
            logger.warning(
                f"Agent rate limit reached, falling back to standard generation: {e}"
            )
        except AgentError as e:
            logger.error(f"Failed to generate content with agent: {e}")
        except Exception as e:
            logger.error(f"Unexpected error generating content with agent: {e}")
        return None
