"""Settings and configuration management."""

import logging
import shlex
import sys
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore"
    )

    # Storage
    database_path: str = Field("newsly.db", description="SQLite database file")

    # Agent integration
    agent_enabled: bool = Field(
        False, description="Delegate story selection and content to the agent"
    )
    agent_command: Optional[str] = Field(
        None,
        description="Command used to start the agent (defaults to python -m newsly.agent)",
    )
    agent_timeout: float = Field(
        30.0, ge=1.0, le=300.0, description="Agent subprocess timeout in seconds"
    )
    agent_rate_limit_calls: int = Field(
        5, ge=1, le=100, description="Agent calls allowed per rate limit window"
    )
    agent_rate_limit_window: float = Field(
        60.0, ge=1.0, le=3600.0, description="Agent rate limit window in seconds"
    )

    # AI Processing (used by the agent process)
    openrouter_api_key: Optional[str] = Field(None, description="OpenRouter")
    openrouter_model: str = Field(
        "openai/gpt-4o-mini", description="Model used by the agent process"
    )
    openrouter_timeout: float = Field(
        30.0, ge=5.0, le=120.0, description="OpenRouter API request timeout in seconds"
    )
    openrouter_min_request_interval: float = Field(
        3.2,
        ge=0.0,
        le=10.0,
        description="Minimum seconds between OpenRouter requests",
    )

    # HackerNews API
    hackernews_base_url: str = Field(
        "https://hacker-news.firebaseio.com/v0", description="HackerNews API root"
    )
    hackernews_list_timeout: float = Field(
        10.0, ge=1.0, le=60.0, description="Top stories list request timeout"
    )
    hackernews_item_timeout: float = Field(
        5.0, ge=1.0, le=60.0, description="Single story request timeout"
    )
    hackernews_max_concurrency: int = Field(
        5, ge=1, le=10, description="Concurrent story item requests"
    )
    enforce_exclude_topics: bool = Field(
        False, description="Drop stories matching a user's excluded topics"
    )

    # Email transport
    smtp_host: str = Field("smtp.gmail.com", description="SMTP server")
    smtp_port: int = Field(587, ge=1, le=65535, description="SMTP port")
    smtp_timeout: float = Field(
        30.0, ge=5.0, le=120.0, description="SMTP connection timeout in seconds"
    )
    email_user: Optional[str] = Field(None, description="SMTP username")
    email_password: Optional[str] = Field(None, description="SMTP password")
    email_from: Optional[str] = Field(None, description="Sender address")

    # Application Settings
    debug: bool = Field(False, description="Debug mode")
    log_level: str = Field("INFO", description="Log level")
    default_user_agent: str = Field(
        "Newsly/1.0",
        min_length=5,
        max_length=100,
        description="Default User-Agent for HTTP requests",
    )

    @property
    def email_configured(self) -> bool:
        """True when every credential needed for SMTP delivery is present."""
        return bool(self.email_user and self.email_password and self.email_from)

    def agent_argv(self) -> List[str]:
        """Return the agent command as an argument vector."""
        if self.agent_command and self.agent_command.strip():
            return shlex.split(self.agent_command)
        return [sys.executable, "-m", "newsly.agent"]
