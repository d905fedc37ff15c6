from datetime import date

import pytest

from newsly.core.renderer import INTRO_BY_TONE, ContentRenderer, format_date
from newsly.models.content import PreferenceSpec, Story

DAY = date(2024, 3, 5)


@pytest.fixture
def stories():
    return [
        Story(
            id=1,
            title="Show HN: I built a distributed database in Rust",
            url="https://example.com/rust-db",
            points=342,
            comments=89,
            author="rustdev2024",
            category="databases",
        ),
        Story(id=2, title="GPT-5", url="https://example.com/gpt5", category="ai"),
    ]


@pytest.fixture
def renderer():
    return ContentRenderer(clock=lambda: DAY)


def test_subject_line(renderer, stories):
    newsletter = renderer.render(PreferenceSpec(tone="casual"), stories)
    assert newsletter.subject == "Your HackerNews Digest: 2 casual stories - 3/5/2024"


def test_rendering_is_deterministic(renderer, stories):
    spec = PreferenceSpec(topics=["ai"], include_analysis=True)
    assert renderer.render(spec, stories) == renderer.render(spec, stories)


def test_explicit_date_overrides_clock(renderer, stories):
    newsletter = renderer.render(PreferenceSpec(), stories, today=date(2025, 11, 30))
    assert newsletter.subject.endswith("- 11/30/2025")
    assert "11/30/2025" in newsletter.content


@pytest.mark.parametrize("tone", ["professional", "casual", "technical"])
def test_intro_per_tone(renderer, stories, tone):
    newsletter = renderer.render(PreferenceSpec(tone=tone), stories)
    assert INTRO_BY_TONE[tone] in newsletter.content


def test_story_meta_line(renderer, stories):
    newsletter = renderer.render(PreferenceSpec(), stories)

    assert "342 points | 89 comments | by rustdev2024" in newsletter.content
    assert 'href="https://example.com/rust-db"' in newsletter.content


def test_analysis_sentence(renderer, stories):
    spec = PreferenceSpec(topics=["ai", "rust"], include_analysis=True)
    newsletter = renderer.render(spec, stories)

    assert (
        "This story relates to databases and aligns with your interest in ai, rust."
        in newsletter.content
    )
    assert newsletter.content.count("💡") == 2
    assert "<strong>Analysis:</strong> Enabled" in newsletter.content


def test_analysis_without_topics(renderer, stories):
    spec = PreferenceSpec(include_analysis=True)
    newsletter = renderer.render(spec, stories)

    assert "aligns with your interest in ." in newsletter.content
    assert "<strong>Topics:</strong> All topics" in newsletter.content


def test_analysis_disabled(renderer, stories):
    newsletter = renderer.render(PreferenceSpec(), stories)

    assert "💡" not in newsletter.content
    assert "<strong>Analysis:</strong> Disabled" in newsletter.content


def test_preferences_footer(renderer, stories):
    spec = PreferenceSpec(topics=["ai", "rust"], tone="technical", length="long")
    newsletter = renderer.render(spec, stories)

    assert "<strong>Topics:</strong> ai, rust" in newsletter.content
    assert "<strong>Tone:</strong> technical" in newsletter.content
    assert "<strong>Length:</strong> long" in newsletter.content
    assert "Reply to this email with feedback" in newsletter.content


def test_text_is_escaped(renderer):
    story = Story(id=1, title="<script>alert(1)</script>", url="https://x?a=1&b=2")
    newsletter = renderer.render(PreferenceSpec(), [story])

    assert "<script>" not in newsletter.content
    assert "&lt;script&gt;" in newsletter.content
    assert "a=1&amp;b=2" in newsletter.content


def test_no_stories(renderer):
    newsletter = renderer.render(PreferenceSpec(), [])
    assert newsletter.subject.startswith("Your HackerNews Digest: 0 professional stories")


def test_format_date():
    assert format_date(date(2024, 12, 25)) == "12/25/2024"
    assert format_date(date(2024, 1, 5)) == "1/5/2024"
