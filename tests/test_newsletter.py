"""Tests for the newsletter service and email delivery."""

import smtplib
from unittest.mock import AsyncMock, Mock, patch

import pytest

from newsly.clients.mailer import Mailer, strip_html
from newsly.core.errors import AgentTimeoutError, UserNotFoundError
from newsly.core.newsletter import NewsletterService
from newsly.core.pipeline import ContentPipeline
from newsly.core.replies import FALLBACK_ERROR_REPLY


@pytest.fixture
def service(settings, store, mock_pipeline, mock_mailer):
    return NewsletterService(
        settings, store=store, pipeline=mock_pipeline, mailer=mock_mailer
    )


@pytest.fixture
def email_settings(settings):
    return settings.model_copy(
        update={
            "email_user": "bot@example.com",
            "email_password": "secret",
            "email_from": "bot@example.com",
        }
    )


class TestNewsletterService:
    """Tests for preview, send and reply handling."""

    @pytest.mark.asyncio
    async def test_preview_is_not_recorded(self, service, store):
        user = store.create_user("reader@example.com")

        previewed_user, newsletter = await service.preview(user.id)

        assert previewed_user.id == user.id
        # Only the "programming" category matches the default topics in the mock table
        assert newsletter.subject == "Your HackerNews Digest: 1 professional stories - 1/15/2024"
        assert store.newsletter_history() == []

    @pytest.mark.asyncio
    async def test_send_records_even_without_email(self, service, store, mock_mailer):
        user = store.create_user("reader@example.com")

        record, email_sent = await service.send(user.id)

        assert email_sent is False
        mock_mailer.send.assert_awaited_once_with(
            "reader@example.com", record.subject, record.content
        )
        history = store.newsletter_history(user_id=user.id)
        assert [item.id for item in history] == [record.id]

    @pytest.mark.asyncio
    async def test_unknown_user(self, service):
        with pytest.raises(UserNotFoundError):
            await service.preview("nobody")

    @pytest.mark.asyncio
    async def test_reply_without_agent_uses_canned_answer(self, service, mock_mailer):
        outcome = await service.handle_reply(
            "reader@example.com",
            "Your digest",
            "What do you think about AI?\n\n> quoted newsletter",
            message_id="<abc@mail>",
        )

        assert outcome.processed is True
        assert "key trends" in outcome.response
        args, kwargs = mock_mailer.send.await_args
        assert args[0] == "reader@example.com"
        assert args[1] == "Re: Your digest"
        assert kwargs["in_reply_to"] == "<abc@mail>"

    @pytest.mark.asyncio
    async def test_reply_with_nothing_to_answer(self, service, mock_mailer):
        outcome = await service.handle_reply("reader@example.com", None, "> quoted only")

        assert outcome.processed is False
        mock_mailer.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_reply_agent_failure(self, settings, store, mock_pipeline, mock_mailer):
        agent = Mock()
        agent.chat = AsyncMock(side_effect=AgentTimeoutError("slow"))
        pipeline = ContentPipeline(
            story_source=mock_pipeline.story_source,
            renderer=mock_pipeline.renderer,
            agent_client=agent,
            agent_enabled=True,
        )
        service = NewsletterService(settings, store=store, pipeline=pipeline, mailer=mock_mailer)

        outcome = await service.handle_reply("reader@example.com", "Hi", "Tell me more")

        assert outcome.response == FALLBACK_ERROR_REPLY

    @pytest.mark.asyncio
    async def test_reply_agent_answer(self, settings, store, mock_pipeline, mock_mailer):
        agent = Mock()
        agent.chat = AsyncMock(return_value="Great point about Rust.")
        pipeline = ContentPipeline(
            story_source=mock_pipeline.story_source,
            agent_client=agent,
            agent_enabled=True,
        )
        service = NewsletterService(settings, store=store, pipeline=pipeline, mailer=mock_mailer)

        outcome = await service.handle_reply("reader@example.com", "Hi", "Rust rocks")

        assert outcome.response == "Great point about Rust."
        assert "Rust rocks" in agent.chat.await_args.args[0]

    @pytest.mark.asyncio
    async def test_connections(self, service):
        results = await service.test_connections()
        assert results == {"hackernews": False, "email": False, "agent": False}


class TestMailer:
    """Tests for SMTP delivery."""

    def test_strip_html(self):
        html = "<style>p {}</style><h1>Title</h1>\n<p>Body <a href='#'>link</a></p>"
        assert strip_html(html) == "Title\nBody link"

    def test_build_message(self, email_settings):
        mailer = Mailer(email_settings)

        msg = mailer.build_message(
            "reader@example.com", "Hello", "<p>Hi there</p>", in_reply_to="<abc@mail>"
        )

        assert msg["To"] == "reader@example.com"
        assert msg["In-Reply-To"] == "<abc@mail>"
        assert msg["References"] == "<abc@mail>"
        plain, html = msg.get_payload()
        assert plain.get_content_type() == "text/plain"
        assert html.get_content_type() == "text/html"

    @pytest.mark.asyncio
    async def test_not_configured(self, settings):
        mailer = Mailer(settings)

        with patch("smtplib.SMTP") as smtp:
            assert await mailer.send("r@example.com", "Hi", "<p>x</p>") is False

        smtp.assert_not_called()

    @pytest.mark.asyncio
    async def test_send(self, email_settings):
        mailer = Mailer(email_settings)

        with patch("smtplib.SMTP") as smtp:
            assert await mailer.send("r@example.com", "Hi", "<p>x</p>") is True

        server = smtp.return_value.__enter__.return_value
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("bot@example.com", "secret")
        server.send_message.assert_called_once()

    @pytest.mark.asyncio
    async def test_send_failure(self, email_settings):
        mailer = Mailer(email_settings)

        with patch("smtplib.SMTP", side_effect=smtplib.SMTPException("refused")):
            assert await mailer.send("r@example.com", "Hi", "<p>x</p>") is False
