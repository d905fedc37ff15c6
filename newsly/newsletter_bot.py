"""Command line interface for the newsletter tool."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click

# Heavy dependencies (FastAPI, aiohttp) are imported inside the commands so
# that loading the CLI module stays cheap.

logger = logging.getLogger(__name__)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug mode")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """Newsly newsletter CLI.

    Builds personalized HackerNews digests from stored user preferences,
    previews and emails them, and serves the admin web interface.
    """
    from newsly.models.settings import Settings

    ctx.ensure_object(dict)
    settings = Settings(debug=debug) if debug else Settings()
    ctx.obj["settings"] = settings
    ctx.obj["debug"] = debug

    log_level = logging.DEBUG if debug else getattr(
        logging, settings.log_level.upper(), logging.INFO
    )
    logging.basicConfig(level=log_level, force=True)
    logger.debug("Debug mode enabled")


def _service(ctx: click.Context):
    from newsly.core.newsletter import NewsletterService

    return NewsletterService(ctx.obj["settings"])


@cli.command()
@click.option("--user-id", help="Preview the newsletter of a stored user")
@click.option("--spec", "spec_text", help="Preference spec as a JSON string")
@click.option(
    "--spec-file",
    type=click.Path(exists=True, dir_okay=False),
    help="Read the preference spec from a JSON file",
)
@click.option(
    "--output",
    type=click.Path(dir_okay=False),
    help="Write the HTML body to this file",
)
@click.pass_context
def preview(
    ctx: click.Context,
    user_id: Optional[str],
    spec_text: Optional[str],
    spec_file: Optional[str],
    output: Optional[str],
) -> None:
    """Generate a newsletter without sending it."""
    from newsly.core.errors import SpecMalformedError, UserNotFoundError
    from newsly.core.pipeline import ContentPipeline

    if spec_file:
        spec_text = Path(spec_file).read_text(encoding="utf-8")
    if not user_id and spec_text is None:
        raise click.UsageError("Give --user-id, --spec or --spec-file")

    async def _preview():
        if user_id:
            _, newsletter = await _service(ctx).preview(user_id)
        else:
            pipeline = ContentPipeline.from_settings(ctx.obj["settings"])
            newsletter = await pipeline.generate(spec_text)
        return newsletter

    try:
        newsletter = asyncio.run(_preview())
    except UserNotFoundError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)
    except SpecMalformedError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    click.echo(f"📧 Subject: {newsletter.subject}")
    if output:
        Path(output).write_text(newsletter.content, encoding="utf-8")
        click.echo(f"📝 HTML written to {output}")
    else:
        click.echo(newsletter.content)


@cli.command()
@click.option("--user-id", required=True, help="User to send the newsletter to")
@click.pass_context
def send(ctx: click.Context, user_id: str) -> None:
    """Generate, email and record a user's newsletter."""
    from newsly.core.errors import SpecMalformedError, UserNotFoundError

    try:
        record, email_sent = asyncio.run(_service(ctx).send(user_id))
    except UserNotFoundError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)
    except SpecMalformedError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    click.echo(f"📧 {record.subject}")
    if email_sent:
        click.echo("✅ Newsletter sent")
    else:
        click.echo("⚠️  Newsletter recorded but not emailed (check email settings)")


@cli.command()
@click.pass_context
def seed(ctx: click.Context) -> None:
    """Create the sample users."""
    from newsly.core.storage import NewsletterStore, seed_users

    store = NewsletterStore(ctx.obj["settings"].database_path)
    for user in seed_users(store):
        click.echo(f"👤 {user.email} ({user.id})")
    click.echo("✅ Seeding completed!")


@cli.command()
@click.pass_context
def users(ctx: click.Context) -> None:
    """List stored users."""
    from newsly.core.storage import NewsletterStore

    store = NewsletterStore(ctx.obj["settings"].database_path)
    all_users = store.list_users()
    if not all_users:
        click.echo("No users yet. Run 'newsly seed' to add sample users.")
        return
    for user in all_users:
        click.echo(f"{user.id}  {user.email}  {user.name or ''}")


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Run the admin web interface."""
    import uvicorn

    from newsly.core.newsletter import NewsletterService
    from newsly.web.app import create_app

    app = create_app(NewsletterService(ctx.obj["settings"]))
    uvicorn.run(app, host=host, port=port)


@cli.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check system health and configuration."""
    settings = ctx.obj["settings"]
    logger.info("🔍 Checking system health...")

    service = _service(ctx)
    connections = asyncio.run(service.test_connections())

    logger.info("🌐 Connection status:")
    for name, status in connections.items():
        status_icon = "✅" if status else "❌"
        logger.info(f"   - {name.title()}: {status_icon}")

    if not connections["hackernews"]:
        logger.warning("⚠️  HackerNews unreachable - newsletters will use mock stories")
    if not settings.email_configured:
        logger.warning("⚠️  Email not configured - newsletters will only be recorded")
    else:
        logger.info("✅ System healthy")


@cli.command()
@click.pass_context
def config(ctx: click.Context) -> None:
    """Display current configuration (without sensitive values)."""
    settings = ctx.obj["settings"]

    click.echo("\n📋 Newsly Configuration\n")
    click.echo(f"Debug Mode: {settings.debug}")
    click.echo(f"Log Level: {settings.log_level}")
    click.echo(f"Database: {settings.database_path}")

    click.echo("\n🤖 Agent:")
    click.echo(f"  Enabled: {settings.agent_enabled}")
    click.echo(f"  Command: {' '.join(settings.agent_argv())}")
    click.echo(f"  Timeout: {settings.agent_timeout:g}s")
    click.echo(
        f"  Rate limit: {settings.agent_rate_limit_calls} calls / "
        f"{settings.agent_rate_limit_window:g}s"
    )
    click.echo(
        f"  OpenRouter: {'✅ Configured' if settings.openrouter_api_key else '❌ Missing'}"
    )

    click.echo("\n📡 HackerNews:")
    click.echo(f"  API: {settings.hackernews_base_url}")
    click.echo(f"  Concurrency: {settings.hackernews_max_concurrency}")
    click.echo(f"  Enforce excluded topics: {settings.enforce_exclude_topics}")

    click.echo("\n📧 Email:")
    click.echo(f"  SMTP: {settings.smtp_host}:{settings.smtp_port}")
    click.echo(
        f"  Credentials: {'✅ Configured' if settings.email_configured else '❌ Missing'}"
    )


if __name__ == "__main__":
    cli()
