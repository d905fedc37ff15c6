"""Newsletter use cases: preview, send and answer replies."""

import logging
from typing import Dict, Optional, Tuple

from pydantic import BaseModel

from newsly.clients.agent import AgentClient
from newsly.clients.mailer import Mailer
from newsly.core.errors import AgentError
from newsly.core.pipeline import ContentPipeline
from newsly.core.replies import (
    FALLBACK_ERROR_REPLY,
    build_reply_prompt,
    canned_reply,
    clean_email_content,
    inbound_text,
    render_reply_html,
    reply_subject,
)
from newsly.core.storage import NewsletterStore
from newsly.core.utils import truncate
from newsly.models.content import NewsletterContent, NewsletterRecord, User
from newsly.models.settings import Settings

logger = logging.getLogger(__name__)


class ReplyOutcome(BaseModel):
    """Result of handling one inbound reply email."""

    processed: bool
    response: str = ""
    email_sent: bool = False


class NewsletterService:
    """Combines the content pipeline with storage and email delivery."""

    def __init__(
        self,
        settings: Settings,
        store: Optional[NewsletterStore] = None,
        pipeline: Optional[ContentPipeline] = None,
        mailer: Optional[Mailer] = None,
    ):
        """Initialize the service.

        Args:
            settings: Application settings
            store: User and history storage
            pipeline: Content pipeline; built from settings if omitted
            mailer: Email transport; built from settings if omitted
        """
        self.settings = settings
        self.store = store or NewsletterStore(settings.database_path)
        self.pipeline = pipeline or ContentPipeline.from_settings(settings)
        self.mailer = mailer or Mailer(settings)

    @property
    def agent_client(self) -> Optional[AgentClient]:
        return self.pipeline.agent_client if self.pipeline.agent_enabled else None

    async def preview(self, user_id: str) -> Tuple[User, NewsletterContent]:
        """Generate a user's newsletter without sending or recording it.

        Raises:
            UserNotFoundError: If no such user exists
            SpecMalformedError: If the stored spec is not valid JSON
        """
        user = self.store.get_user(user_id)
        newsletter = await self.pipeline.generate(user.spec)
        return user, newsletter

    async def send(self, user_id: str) -> Tuple[NewsletterRecord, bool]:
        """Generate, email and record a user's newsletter.

        The newsletter is recorded even when email delivery is not
        configured or fails.

        Returns:
            The stored record and whether the email went out

        Raises:
            UserNotFoundError: If no such user exists
            SpecMalformedError: If the stored spec is not valid JSON
        """
        user, newsletter = await self.preview(user_id)

        logger.info(f"📧 Sending newsletter to {user.email}: {newsletter.subject}")
        logger.debug(f"Content preview: {truncate(newsletter.content, 200)}")
        email_sent = await self.mailer.send(
            user.email, newsletter.subject, newsletter.content
        )

        record = self.store.record_newsletter(
            user.id, newsletter.subject, newsletter.content
        )
        return record, email_sent

    async def handle_reply(
        self,
        sender: str,
        subject: Optional[str],
        text: Optional[str],
        html: Optional[str] = None,
        message_id: Optional[str] = None,
    ) -> ReplyOutcome:
        """Answer a reader's reply to a newsletter.

        Args:
            sender: Address the reply came from
            subject: Subject of the inbound email
            text: Plain text body
            html: HTML body, used when there is no text body
            message_id: Message-ID of the inbound email for threading

        Returns:
            Whether there was anything to answer, the answer and whether it
            was emailed back
        """
        message = clean_email_content(inbound_text(text, html))
        if not message:
            logger.info(f"No meaningful content in reply from {sender}")
            return ReplyOutcome(processed=False)

        logger.info(f"Received reply from {sender}: {truncate(message)}")
        response = await self._reply_text(message)

        email_sent = await self.mailer.send(
            sender,
            reply_subject(subject),
            render_reply_html(response),
            in_reply_to=message_id,
        )
        logger.info(
            f"Reply conversation with {sender}: {truncate(message)} -> "
            f"{truncate(response)}"
        )
        return ReplyOutcome(processed=True, response=response, email_sent=email_sent)

    async def _reply_text(self, message: str) -> str:
        if self.agent_client is None:
            return canned_reply(message)

        try:
            return await self.agent_client.chat(build_reply_prompt(message))
        except AgentError as e:
            logger.error(f"Failed to get agent reply: {e}")
            return FALLBACK_ERROR_REPLY

    async def test_connections(self) -> Dict[str, bool]:
        """Test connections to configured services.

        Returns:
            Dictionary of service connection statuses
        """
        results = {
            "hackernews": await self.pipeline.story_source.hackernews_client.test_connection(),
            "email": self.mailer.configured,
            "agent": self.agent_client is not None,
        }
        return results
