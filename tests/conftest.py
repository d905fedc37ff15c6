from datetime import date
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, Mock

import aiohttp
import pytest

from newsly.core.pipeline import ContentPipeline
from newsly.core.renderer import ContentRenderer
from newsly.core.stories import StorySource
from newsly.core.storage import NewsletterStore

FIXED_DAY = date(2024, 1, 15)


class FakeHackerNews:
    """Stands in for HackerNewsClient with canned ids and items."""

    def __init__(
        self,
        items: Optional[Dict[int, Dict[str, Any]]] = None,
        ids: Optional[List[int]] = None,
        error: Optional[Exception] = None,
        max_concurrency: int = 5,
    ):
        self.items = items or {}
        self.ids = ids if ids is not None else list(self.items)
        self.error = error
        self.max_concurrency = max_concurrency
        self.fetched: List[List[int]] = []

    async def get_top_story_ids(self):
        if self.error:
            raise self.error
        return list(self.ids)

    async def fetch_items(self, story_ids):
        self.fetched.append(list(story_ids))
        return [self.items.get(story_id) for story_id in story_ids]

    async def test_connection(self):
        return self.error is None


def hn_item(story_id, title, score=100, descendants=10, by="pg", url=None):
    return {
        "id": story_id,
        "type": "story",
        "title": title,
        "url": url or f"https://example.com/{story_id}",
        "score": score,
        "descendants": descendants,
        "by": by,
    }


@pytest.fixture
def settings(tmp_path, monkeypatch):
    """Settings isolated from the developer's environment and .env file."""
    from newsly.models.settings import Settings

    for name in ("AGENT_ENABLED", "AGENT_COMMAND", "EMAIL_USER", "EMAIL_PASSWORD", "EMAIL_FROM"):
        monkeypatch.delenv(name, raising=False)

    return Settings(_env_file=None, database_path=str(tmp_path / "test.db"))


@pytest.fixture
def offline_hackernews():
    return FakeHackerNews(error=aiohttp.ClientError("offline"))


@pytest.fixture
def mock_pipeline(offline_hackernews):
    """Pipeline that always falls back to the built-in mock stories."""
    return ContentPipeline(
        story_source=StorySource(hackernews_client=offline_hackernews),
        renderer=ContentRenderer(clock=lambda: FIXED_DAY),
    )


@pytest.fixture
def store(tmp_path):
    return NewsletterStore(tmp_path / "newsly.db")


@pytest.fixture
def mock_mailer():
    mailer = Mock()
    mailer.configured = False
    mailer.send = AsyncMock(return_value=False)
    return mailer
