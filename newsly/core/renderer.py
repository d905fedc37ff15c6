"""HTML newsletter rendering from preferences and stories."""

from datetime import date
from html import escape
from typing import Callable, Optional, Sequence

from newsly.models.content import (
    DEFAULT_TONE,
    NewsletterContent,
    PreferenceSpec,
    Story,
)

INTRO_BY_TONE = {
    "professional": "Here are the top stories from HackerNews that match your interests:",
    "casual": "Hey! Check out these cool stories I found for you on HN:",
    "technical": "Technical digest: Key developments in your areas of interest:",
}


def format_date(day: date) -> str:
    """Format a date as M/D/YYYY."""
    return f"{day.month}/{day.day}/{day.year}"


def intro_for(tone: str) -> str:
    return INTRO_BY_TONE.get(tone, INTRO_BY_TONE[DEFAULT_TONE])


class ContentRenderer:
    """Turns a preference spec and selected stories into a newsletter.

    Output depends only on the inputs and the date, which comes from
    ``clock`` unless passed explicitly.
    """

    def __init__(self, clock: Callable[[], date] = date.today):
        self.clock = clock

    def render(
        self,
        spec: PreferenceSpec,
        stories: Sequence[Story],
        today: Optional[date] = None,
    ) -> NewsletterContent:
        """Render the subject line and HTML body.

        Args:
            spec: Resolved preferences
            stories: Stories in display order
            today: Date shown in subject and header

        Returns:
            NewsletterContent with inline-styled HTML
        """
        day = format_date(today or self.clock())
        subject = (
            f"Your HackerNews Digest: {len(stories)} {spec.tone} stories - {day}"
        )

        story_html = "".join(self._render_story(spec, story) for story in stories)
        topics = ", ".join(spec.topics) or "All topics"

        content = (
            '<div style="font-family: Arial, sans-serif; max-width: 600px; '
            'margin: 0 auto; padding: 20px;">\n'
            '  <div style="text-align: center; margin-bottom: 30px;">\n'
            '    <h1 style="color: #ff6600; margin: 0;">🗞️ Your HackerNews Digest</h1>\n'
            f'    <p style="color: #666; margin: 10px 0 0 0;">{day}</p>\n'
            "  </div>\n"
            f'  <p style="color: #333; line-height: 1.6;">{escape(intro_for(spec.tone))}</p>\n'
            f"{story_html}"
            '  <div style="margin-top: 30px; padding: 15px; background: #f0f0f0; '
            'border-radius: 5px;">\n'
            '    <h4 style="margin: 0 0 10px 0; color: #333;">📊 Your Preferences</h4>\n'
            '    <p style="margin: 0; color: #666; font-size: 14px;">\n'
            f"      <strong>Topics:</strong> {escape(topics)}<br>\n"
            f"      <strong>Tone:</strong> {escape(spec.tone)}<br>\n"
            f"      <strong>Length:</strong> {escape(spec.length)}<br>\n"
            "      <strong>Analysis:</strong> "
            f"{'Enabled' if spec.include_analysis else 'Disabled'}\n"
            "    </p>\n"
            "  </div>\n"
            '  <div style="margin-top: 20px; text-align: center; color: #999; '
            'font-size: 12px;">\n'
            "    <p>Reply to this email with feedback to improve your next digest!</p>\n"
            "  </div>\n"
            "</div>\n"
        )

        return NewsletterContent(subject=subject, content=content)

    def _render_story(self, spec: PreferenceSpec, story: Story) -> str:
        analysis = ""
        if spec.include_analysis:
            interests = ", ".join(spec.topics)
            analysis = (
                '    <p style="color: #555; font-style: italic; margin: 8px 0 0 0;">'
                f"💡 This story relates to {escape(story.category)} and aligns "
                f"with your interest in {escape(interests)}.</p>\n"
            )

        return (
            '  <div style="margin: 20px 0; padding: 15px; border-left: 3px solid #ff6600; '
            'background: #f9f9f9;">\n'
            '    <h3 style="margin: 0 0 8px 0; color: #333;">\n'
            f'      <a href="{escape(story.url)}" style="color: #000; '
            f'text-decoration: none;">{escape(story.title)}</a>\n'
            "    </h3>\n"
            '    <div style="color: #666; font-size: 12px; margin-bottom: 8px;">\n'
            f"      {story.points} points | {story.comments} comments | "
            f"by {escape(story.author)}\n"
            "    </div>\n"
            f"{analysis}"
            "  </div>\n"
        )
