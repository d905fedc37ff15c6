"""Tests for the agent process entry point."""

import json
from unittest.mock import AsyncMock, Mock

import pytest

from conftest import hn_item
from newsly.agent import NewsAgent, main


@pytest.fixture
def hackernews():
    client = Mock()
    client.get_top_story_ids = AsyncMock(return_value=[1, 2, 3])
    client.fetch_items = AsyncMock(
        return_value=[
            hn_item(1, "GPT agents in production"),
            None,
            {"id": 3, "title": "Ask HN: no link"},
        ]
    )
    return client


@pytest.fixture
def llm():
    client = Mock()
    client.generate_text = AsyncMock()
    return client


@pytest.fixture
def agent(settings, llm, hackernews):
    return NewsAgent(settings, llm=llm, hackernews_client=hackernews)


@pytest.mark.asyncio
async def test_get_stories(agent, llm, hackernews):
    llm.generate_text.return_value = (
        "```json\n"
        '[{"id": 1, "title": "GPT agents in production", "url": "https://example.com/1",'
        ' "points": 100, "comments": 10, "author": "pg", "category": "ai"}]\n'
        "```"
    )

    output = await agent.run({"action": "getStories", "preferences": ["ai"], "count": 3})

    stories = json.loads(output)
    assert stories[0]["id"] == 1
    assert stories[0]["category"] == "ai"

    hackernews.fetch_items.assert_awaited_once_with([1, 2, 3])
    prompt = llm.generate_text.await_args.args[0]
    assert "GPT agents in production" in prompt
    assert "Ask HN: no link" not in prompt
    assert "these topics: ai" in prompt


@pytest.mark.asyncio
async def test_generate_content(agent, llm):
    llm.generate_text.side_effect = [
        '[{"id": 1, "title": "GPT agents in production", "url": "https://example.com/1"}]',
        'Sure: {"subject": "AI weekly", "content": "<p>Stories</p>"}',
    ]

    output = await agent.run(
        {
            "action": "generateContent",
            "userSpec": {"preferences": {"topics": ["ai"]}, "tone": "casual"},
            "count": 3,
        }
    )

    assert json.loads(output) == {"subject": "AI weekly", "content": "<p>Stories</p>"}
    content_prompt = llm.generate_text.await_args_list[1].args[0]
    assert "casual tone" in content_prompt


@pytest.mark.asyncio
async def test_chat(agent, llm):
    llm.generate_text.return_value = "Glad you liked it!"
    assert await agent.run({"action": "chat", "prompt": "Nice issue"}) == "Glad you liked it!"


@pytest.mark.asyncio
async def test_chat_requires_prompt(agent):
    with pytest.raises(ValueError, match="Prompt is required"):
        await agent.run({"action": "chat"})


@pytest.mark.asyncio
async def test_unknown_action(agent):
    with pytest.raises(ValueError, match="Unknown action"):
        await agent.run({"action": "dance"})


@pytest.mark.asyncio
async def test_candidate_limit(agent, llm, hackernews):
    hackernews.get_top_story_ids.return_value = list(range(1, 101))
    hackernews.fetch_items.return_value = []
    llm.generate_text.return_value = "[]"

    assert await agent.get_stories([], 20) == []
    hackernews.fetch_items.assert_awaited_once_with(list(range(1, 31)))


def test_main_reports_errors(capsys):
    assert main(['{"action": "dance"}']) == 1
    assert "Error: Unknown action: dance" in capsys.readouterr().err


def test_main_rejects_non_object(capsys):
    assert main(["[1, 2]"]) == 1
    assert "Request must be a JSON object" in capsys.readouterr().err


def test_main_rejects_bad_json(capsys):
    assert main(["{nope"]) == 1
    assert capsys.readouterr().err.startswith("Error:")
