"""FastAPI admin interface for managing users and newsletters."""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, ConfigDict, Field

from newsly import __version__
from newsly.core.errors import (
    DuplicateUserError,
    SpecMalformedError,
    UserNotFoundError,
)
from newsly.core.newsletter import NewsletterService
from newsly.models.settings import Settings

logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

SpecBody = Union[str, Dict[str, Any], None]


class UserCreate(BaseModel):
    email: str
    name: Optional[str] = None
    spec: SpecBody = None


class UserUpdate(BaseModel):
    spec: SpecBody = None
    name: Optional[str] = None


class NewsletterRequest(BaseModel):
    userId: Optional[str] = None


class InboundEmail(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sender: Optional[str] = Field(None, alias="from")
    subject: Optional[str] = None
    text: Optional[str] = None
    html: Optional[str] = None
    messageId: Optional[str] = None
    inReplyTo: Optional[str] = None


def get_service(request: Request) -> NewsletterService:
    """Return the app's service, creating it from settings on first use."""
    service = getattr(request.app.state, "service", None)
    if service is None:
        service = NewsletterService(Settings())
        request.app.state.service = service
    return service


def _user_json(user) -> Dict[str, Any]:
    return user.model_dump(mode="json")


def create_app(service: Optional[NewsletterService] = None) -> FastAPI:
    """Create the admin application.

    Args:
        service: Service to use; built lazily from ``Settings`` if omitted
    """
    app = FastAPI(
        title="Newsly Admin",
        description="Manage newsletter users, previews and send history",
        version=__version__,
    )
    app.state.service = service

    @app.get("/", response_class=HTMLResponse)
    async def dashboard(
        request: Request, service: NewsletterService = Depends(get_service)
    ):
        """Main dashboard page."""
        return templates.TemplateResponse(
            request,
            "dashboard.html",
            {
                "users": service.store.list_users(),
                "history": service.store.newsletter_history(limit=20),
                "agent_enabled": service.agent_client is not None,
                "email_configured": service.mailer.configured,
            },
        )

    @app.get("/api/health")
    async def health_check(service: NewsletterService = Depends(get_service)):
        """Health check endpoint."""
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": __version__,
            "agent_enabled": service.agent_client is not None,
            "email_configured": service.mailer.configured,
            "users": len(service.store.list_users()),
        }

    @app.get("/api/users")
    async def list_users(service: NewsletterService = Depends(get_service)):
        return [_user_json(user) for user in service.store.list_users()]

    @app.post("/api/users", status_code=201)
    async def create_user(
        body: UserCreate, service: NewsletterService = Depends(get_service)
    ):
        if not body.email.strip():
            raise HTTPException(status_code=400, detail="Email is required")
        try:
            user = service.store.create_user(body.email, name=body.name, spec=body.spec)
        except SpecMalformedError:
            raise HTTPException(status_code=400, detail="Invalid JSON in spec")
        except DuplicateUserError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return _user_json(user)

    @app.put("/api/users/{user_id}")
    async def update_user(
        user_id: str, body: UserUpdate, service: NewsletterService = Depends(get_service)
    ):
        try:
            user = service.store.update_user(user_id, spec=body.spec, name=body.name)
        except SpecMalformedError:
            raise HTTPException(status_code=400, detail="Invalid JSON in spec")
        except UserNotFoundError:
            raise HTTPException(status_code=404, detail="User not found")
        return _user_json(user)

    @app.delete("/api/users/{user_id}")
    async def delete_user(user_id: str, service: NewsletterService = Depends(get_service)):
        try:
            service.store.delete_user(user_id)
        except UserNotFoundError:
            raise HTTPException(status_code=404, detail="User not found")
        return {"message": "User deleted successfully"}

    @app.post("/api/preview-newsletter")
    async def preview_newsletter(
        body: NewsletterRequest, service: NewsletterService = Depends(get_service)
    ):
        if not body.userId:
            raise HTTPException(status_code=400, detail="User ID is required")
        try:
            user, newsletter = await service.preview(body.userId)
        except UserNotFoundError:
            raise HTTPException(status_code=404, detail="User not found")
        except SpecMalformedError as e:
            logger.error(f"Preview generation error: {e}")
            raise HTTPException(
                status_code=500, detail=f"Failed to generate preview: {e}"
            )

        return {
            "subject": newsletter.subject,
            "content": newsletter.content,
            "user": {"email": user.email, "name": user.name},
        }

    @app.post("/api/send-newsletter")
    async def send_newsletter(
        body: NewsletterRequest, service: NewsletterService = Depends(get_service)
    ):
        if not body.userId:
            raise HTTPException(status_code=400, detail="User ID is required")
        try:
            record, email_sent = await service.send(body.userId)
        except UserNotFoundError:
            raise HTTPException(status_code=404, detail="User not found")
        except SpecMalformedError as e:
            logger.error(f"Failed to send newsletter: {e}")
            raise HTTPException(
                status_code=500, detail=f"Failed to send newsletter: {e}"
            )

        return {
            "message": (
                "Newsletter sent successfully"
                if email_sent
                else "Newsletter generated and recorded (email not sent)"
            ),
            "newsletter": record.model_dump(mode="json"),
            "emailSent": email_sent,
        }

    @app.get("/api/newsletter-history")
    async def newsletter_history(
        userId: Optional[str] = Query(None),
        service: NewsletterService = Depends(get_service),
    ):
        records = service.store.newsletter_history(user_id=userId)
        return [record.model_dump(mode="json") for record in records]

    @app.post("/api/email-reply")
    async def email_reply(
        body: InboundEmail, service: NewsletterService = Depends(get_service)
    ):
        if not body.sender or not (body.text or body.html):
            raise HTTPException(status_code=400, detail="Missing required email fields")

        outcome = await service.handle_reply(
            body.sender,
            body.subject,
            body.text,
            html=body.html,
            message_id=body.messageId or body.inReplyTo,
        )
        if not outcome.processed:
            return {"message": "Email processed but no content to respond to"}

        return {
            "message": (
                "Email reply processed and response sent"
                if outcome.email_sent
                else "Email reply processed (email sending failed)"
            ),
            "from": body.sender,
            "responseLength": len(outcome.response),
            "response": outcome.response[:200],
            "emailSent": outcome.email_sent,
        }

    @app.get("/api/email-reply")
    async def email_reply_status():
        return {
            "message": "Email reply webhook endpoint is active",
            "instructions": "Configure your email service to POST incoming emails to this endpoint",
        }

    return app


app = create_app()


def run(host: str = "0.0.0.0", port: int = 8000) -> None:
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run()
