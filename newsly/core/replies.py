"""Helpers for answering reader replies to a newsletter."""

import re
from html import escape
from typing import Optional

from newsly.clients.mailer import strip_html

FALLBACK_ERROR_REPLY = (
    "Thanks for your message! I'm having trouble processing responses right now, "
    "but I appreciate your engagement with the newsletter. Please try again later "
    "or feel free to reach out directly."
)

_CANNED_AI_REPLY = """Thanks for your question about AI developments! Here are some key trends I'm seeing:

• Large Language Models: Continued improvements in reasoning capabilities and multimodal understanding
• AI Agents: More sophisticated autonomous systems that can perform complex tasks
• Edge AI: Bringing AI capabilities directly to devices for better privacy and performance

The field is moving incredibly fast, with new breakthroughs happening regularly. What specific aspect of AI interests you most?

Best regards,
Newsly AI Assistant"""

_CANNED_TECH_REPLY = """Great question about current tech trends! Here's what's catching my attention:

• AI Integration: Every industry is finding ways to incorporate AI tools
• Quantum Computing: Making steady progress toward practical applications
• Sustainable Tech: Green energy solutions and carbon-neutral computing

These developments are reshaping how we work and live. Are there any particular areas you'd like to explore further?

Best,
Newsly AI Assistant"""

_CANNED_GENERIC_REPLY = """Thanks for reaching out! I appreciate your engagement with the newsletter.

Your message has been received and I'm here to help with any questions about technology, startups, or the latest developments in the tech world.

Feel free to ask about specific topics you're interested in, and I'll do my best to provide insights and analysis.

Best regards,
Newsly AI Assistant"""


def inbound_text(text: Optional[str], html: Optional[str]) -> str:
    """Pick the plain text body of an inbound email, deriving it from HTML."""
    if text and text.strip():
        return text
    return strip_html(html or "")


def clean_email_content(content: str) -> str:
    """Strip quoted text, attributions and signatures from an email reply."""
    lines = [line for line in content.split("\n") if not line.strip().startswith(">")]
    cleaned = "\n".join(lines)
    cleaned = re.sub(r"On .+? wrote:", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"--\s*$", "", cleaned, flags=re.MULTILINE)
    cleaned = re.sub(r"Sent from my .+$", "", cleaned, flags=re.IGNORECASE | re.MULTILINE)
    cleaned = re.sub(r"\n\s*\n\s*\n", "\n\n", cleaned)
    return cleaned.strip()


def build_reply_prompt(message: str) -> str:
    return f"""You are an AI assistant helping with tech newsletter discussions. A user has replied to a newsletter with the following message:

"{message}"

Please provide a thoughtful, engaging response that:
1. Addresses their specific points or questions
2. Provides additional insights about the tech topics mentioned
3. Encourages further discussion
4. Keeps the tone conversational and friendly
5. Limits the response to 2-3 paragraphs

Response:"""


def canned_reply(message: str) -> str:
    """Offline answer used when the agent cannot respond."""
    lowered = message.lower()
    if "ai" in lowered or "artificial intelligence" in lowered:
        return _CANNED_AI_REPLY
    if "tech" in lowered or "technology" in lowered:
        return _CANNED_TECH_REPLY
    return _CANNED_GENERIC_REPLY


def reply_subject(original_subject: Optional[str]) -> str:
    if original_subject and original_subject.startswith("Re: "):
        return original_subject
    return f"Re: {original_subject or 'Newsletter Discussion'}"


def render_reply_html(response: str) -> str:
    """Wrap an assistant response in the reply email layout."""
    paragraphs = "".join(
        f"<p>{escape(paragraph)}</p>"
        for paragraph in response.split("\n")
        if paragraph.strip()
    )
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">\n'
        '  <div style="background: #f8f9fa; padding: 15px; border-left: 4px solid #007bff; '
        'margin-bottom: 20px;">\n'
        '    <p style="margin: 0; font-size: 14px; color: #666;">'
        "<strong>🤖 AI Assistant Response</strong></p>\n"
        "  </div>\n"
        f'  <div style="line-height: 1.6; color: #333;">{paragraphs}</div>\n'
        '  <hr style="margin: 30px 0; border: 1px solid #eee;">\n'
        '  <div style="background: #f8f9fa; padding: 15px; border-radius: 8px; '
        'font-size: 14px; color: #666;">\n'
        "    <p style=\"margin: 0;\">💡 <strong>Keep the conversation going!</strong> "
        "Reply to this email to continue our discussion about tech news and trends.</p>\n"
        "  </div>\n"
        "</div>\n"
    )
