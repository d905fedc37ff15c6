"""Tests for story selection and its fallback chain."""

import sys
from unittest.mock import AsyncMock, Mock

import aiohttp
import pytest

from conftest import FakeHackerNews, hn_item
from newsly.clients.agent import AgentClient
from newsly.core.errors import AgentTimeoutError, RateLimitExceededError
from newsly.core.stories import MOCK_STORIES, StorySource, StorySourceConfig
from newsly.models.content import Story


def ids_of(stories):
    return [story.id for story in stories]


class TestMockStories:
    """Tests for the built-in mock table."""

    def test_table_order_and_count(self, offline_hackernews):
        source = StorySource(hackernews_client=offline_hackernews)

        assert ids_of(source.get_mock_stories([], 3)) == [1, 2, 3]
        assert ids_of(source.get_mock_stories([], 20)) == list(range(1, 11))

    def test_preference_filter_uses_category_and_title(self, offline_hackernews):
        source = StorySource(hackernews_client=offline_hackernews)

        # "ai" also matches inside the "blockchain" category
        assert ids_of(source.get_mock_stories(["ai"], 5)) == [2, 7]
        assert ids_of(source.get_mock_stories(["RUST"], 5)) == [1]

    def test_exclude_topics_ignored_by_default(self, offline_hackernews):
        source = StorySource(hackernews_client=offline_hackernews)
        assert ids_of(source.get_mock_stories(["ai"], 5, ["crypto"])) == [2, 7]

    def test_exclude_topics_when_enforced(self, offline_hackernews):
        source = StorySource(
            config=StorySourceConfig(enforce_exclude_topics=True),
            hackernews_client=offline_hackernews,
        )
        assert ids_of(source.get_mock_stories(["ai"], 5, ["crypto"])) == [2]

    def test_returns_copies(self, offline_hackernews):
        source = StorySource(hackernews_client=offline_hackernews)
        story = source.get_mock_stories([], 1)[0]
        story.title = "changed"

        assert MOCK_STORIES[0].title != "changed"


class TestGetTopStories:
    """Tests for the live API path and its fallbacks."""

    @pytest.mark.asyncio
    async def test_network_failure_returns_mock(self, offline_hackernews):
        source = StorySource(hackernews_client=offline_hackernews)

        stories = await source.get_top_stories([], 10)

        assert ids_of(stories) == list(range(1, 11))

    @pytest.mark.asyncio
    async def test_parse_failure_returns_mock(self):
        source = StorySource(hackernews_client=FakeHackerNews(error=ValueError("bad")))

        stories = await source.get_top_stories(["ai"], 5)

        assert ids_of(stories) == [2, 7]

    @pytest.mark.asyncio
    async def test_zero_count(self):
        client = FakeHackerNews(error=AssertionError("should not be called"))
        source = StorySource(hackernews_client=client)

        assert await source.get_top_stories([], 0) == []

    @pytest.mark.asyncio
    async def test_live_stories_stop_after_first_batch(self):
        items = {i: hn_item(i, f"Launch story {i}") for i in range(101, 111)}
        client = FakeHackerNews(items=items, max_concurrency=5)
        source = StorySource(hackernews_client=client)

        stories = await source.get_top_stories([], 5)

        assert ids_of(stories) == [101, 102, 103, 104, 105]
        assert client.fetched == [[101, 102, 103, 104, 105]]
        assert stories[0].points == 100
        assert stories[0].comments == 10
        assert stories[0].author == "pg"

    @pytest.mark.asyncio
    async def test_live_stories_are_categorized(self):
        items = {1: hn_item(1, "Show HN: GPT for spreadsheets")}
        source = StorySource(hackernews_client=FakeHackerNews(items=items))

        stories = await source.get_top_stories([], 1)

        assert stories[0].category == "ai"

    @pytest.mark.asyncio
    async def test_candidates_capped(self):
        items = {i: hn_item(i, f"Story {i}") for i in range(1, 101)}
        client = FakeHackerNews(items=items)
        source = StorySource(hackernews_client=client)

        stories = await source.get_top_stories(["zzz"], 20)

        assert stories == []
        assert sum(len(batch) for batch in client.fetched) == 30

    @pytest.mark.asyncio
    async def test_shortfall_padded_with_mock(self):
        items = {
            201: hn_item(201, "Rust 2.0 announced"),
            202: hn_item(202, "Writing an OS in Rust"),
            203: hn_item(203, "Unrelated thing"),
        }
        source = StorySource(hackernews_client=FakeHackerNews(items=items))

        stories = await source.get_top_stories(["rust"], 5)

        assert ids_of(stories) == [201, 202, 1]

    @pytest.mark.asyncio
    async def test_padding_without_preferences(self):
        items = {301: hn_item(301, "One"), 302: hn_item(302, "Two")}
        source = StorySource(hackernews_client=FakeHackerNews(items=items))

        stories = await source.get_top_stories([], 5)

        assert ids_of(stories) == [301, 302, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_failed_and_incomplete_items_skipped(self):
        items = {
            401: hn_item(401, "Kept"),
            403: {"id": 403, "title": "Ask HN: no url", "score": 5},
            404: hn_item(404, "Also kept"),
        }
        client = FakeHackerNews(items=items, ids=[401, 402, 403, 404])
        source = StorySource(hackernews_client=client)

        stories = await source.get_top_stories([], 2)

        assert ids_of(stories) == [401, 404]


class TestAgentStories:
    """Tests for the agent stage of the fallback chain."""

    def agent_source(self, agent_client, hackernews_client):
        return StorySource(
            config=StorySourceConfig(agent_enabled=True),
            hackernews_client=hackernews_client,
            agent_client=agent_client,
        )

    @pytest.mark.asyncio
    async def test_agent_stories_used(self):
        agent = Mock()
        agent.get_stories = AsyncMock(
            return_value=[Story(id=9001, title="Agent pick", url="https://a")]
        )
        hackernews = FakeHackerNews(error=AssertionError("should not be called"))
        source = self.agent_source(agent, hackernews)

        stories = await source.get_top_stories(["ai"], 3)

        assert ids_of(stories) == [9001]
        agent.get_stories.assert_awaited_once_with(["ai"], 3)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "outcome",
        [AgentTimeoutError("slow"), RateLimitExceededError(30), []],
    )
    async def test_agent_falls_through(self, outcome):
        agent = Mock()
        if isinstance(outcome, Exception):
            agent.get_stories = AsyncMock(side_effect=outcome)
        else:
            agent.get_stories = AsyncMock(return_value=outcome)
        hackernews = FakeHackerNews(error=aiohttp.ClientError("offline"))
        source = self.agent_source(agent, hackernews)

        stories = await source.get_top_stories([], 3)

        assert ids_of(stories) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_agent_disabled_is_skipped(self, offline_hackernews):
        agent = Mock()
        agent.get_stories = AsyncMock()
        source = StorySource(hackernews_client=offline_hackernews, agent_client=agent)

        await source.get_top_stories([], 3)

        agent.get_stories.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed_agent_stories_fall_through_to_live(self, settings):
        payload = '[{"id": 1, "title": 12345, "url": "https://x"}]'
        agent = AgentClient(
            settings.model_copy(update={"agent_enabled": True}),
            command=[sys.executable, "-c", f"print({payload!r})"],
        )
        hackernews = FakeHackerNews(items={501: hn_item(501, "Live story")})
        source = self.agent_source(agent, hackernews)

        stories = await source.get_top_stories([], 1)

        assert ids_of(stories) == [501]
