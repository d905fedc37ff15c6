"""HackerNews API client for top stories."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

logger = logging.getLogger(__name__)


class HackerNewsClient:
    """Client for the public HackerNews Firebase API."""

    def __init__(self, settings=None):
        """Initialize HackerNews client.

        Args:
            settings: Settings instance for configuration values
        """
        self.base_url = (
            settings.hackernews_base_url.rstrip("/")
            if settings
            else "https://hacker-news.firebaseio.com/v0"
        )
        self.list_timeout = settings.hackernews_list_timeout if settings else 10.0
        self.item_timeout = settings.hackernews_item_timeout if settings else 5.0
        self.max_concurrency = settings.hackernews_max_concurrency if settings else 5
        self.headers = {
            "User-Agent": settings.default_user_agent if settings else "Newsly/1.0",
            "Accept": "application/json",
        }

    async def get_top_story_ids(self) -> List[int]:
        """Get the current ranking of top story ids.

        Returns:
            Story ids in ranking order

        Raises:
            aiohttp.ClientError: On network or HTTP errors
            asyncio.TimeoutError: If the request exceeds ``list_timeout``
            ValueError: If the response is not a list of ids
        """
        url = f"{self.base_url}/topstories.json"
        timeout = aiohttp.ClientTimeout(total=self.list_timeout)
        async with aiohttp.ClientSession(headers=self.headers) as session:
            async with session.get(url, timeout=timeout) as response:
                response.raise_for_status()
                data = await response.json(content_type=None)

        if not isinstance(data, list):
            raise ValueError(f"Unexpected top stories payload: {type(data).__name__}")

        logger.debug(f"Retrieved {len(data)} top story ids from HackerNews")
        return data

    async def get_item(
        self, story_id: int, session: Optional[aiohttp.ClientSession] = None
    ) -> Optional[Dict[str, Any]]:
        """Get a single item.

        Args:
            story_id: HackerNews item id
            session: Session to reuse; a new one is opened if omitted

        Returns:
            Item dictionary, or None if the API has no such item

        Raises:
            aiohttp.ClientError: On network or HTTP errors
            asyncio.TimeoutError: If the request exceeds ``item_timeout``
        """
        if session is None:
            async with aiohttp.ClientSession(headers=self.headers) as own_session:
                return await self.get_item(story_id, own_session)

        url = f"{self.base_url}/item/{story_id}.json"
        timeout = aiohttp.ClientTimeout(total=self.item_timeout)
        async with session.get(url, timeout=timeout) as response:
            response.raise_for_status()
            data = await response.json(content_type=None)

        return data if isinstance(data, dict) else None

    async def fetch_items(self, story_ids: List[int]) -> List[Optional[Dict[str, Any]]]:
        """Fetch several items concurrently.

        Individual failures are logged and reported as None so one bad item
        never aborts the batch.

        Args:
            story_ids: Item ids to resolve

        Returns:
            Items in the same order as ``story_ids`` (None for failures)
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def limited_fetch(session, story_id):
            async with semaphore:
                return await self.get_item(story_id, session)

        async with aiohttp.ClientSession(headers=self.headers) as session:
            tasks = [limited_fetch(session, story_id) for story_id in story_ids]
            results = await asyncio.gather(*tasks, return_exceptions=True)

        items: List[Optional[Dict[str, Any]]] = []
        for story_id, result in zip(story_ids, results):
            if isinstance(result, Exception):
                logger.warning(f"Failed to fetch story {story_id}: {result!r}")
                items.append(None)
            else:
                items.append(result)
        return items

    async def test_connection(self) -> bool:
        """Test the HackerNews API connection.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            ids = await self.get_top_story_ids()
            logger.info(f"HackerNews API connection successful ({len(ids)} ids)")
            return True
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Network error testing HackerNews connection: {e}")
            return False
        except ValueError as e:
            logger.error(f"Response parsing error testing HackerNews connection: {e}")
            return False
