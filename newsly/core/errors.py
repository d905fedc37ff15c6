"""Exception hierarchy for newsletter generation, agent calls and storage."""


class NewsletterError(Exception):
    """Base class for all newsletter tool errors."""


class SpecMalformedError(NewsletterError, ValueError):
    """A stored preference spec is not valid JSON (or not a JSON object)."""


class ExtractionError(NewsletterError, ValueError):
    """No balanced JSON literal could be extracted from free text."""


class AgentError(NewsletterError):
    """The external agent stage is unavailable for this call.

    Every subclass is recoverable: callers fall through to the next
    content source.
    """


class AgentDisabledError(AgentError):
    """The agent integration is switched off in configuration."""


class AgentTimeoutError(AgentError):
    """The agent process did not finish within the configured timeout."""


class AgentProcessError(AgentError):
    """The agent process could not be started or exited non-zero."""


class AgentOutputError(AgentError):
    """The agent process exited cleanly but its stdout was unusable."""


class RateLimitExceededError(AgentError):
    """Too many agent calls in the current window."""

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__(
            f"Rate limit exceeded. Please wait {retry_after} seconds "
            "before making another request."
        )


class StorageError(NewsletterError):
    """Base class for storage layer failures."""


class UserNotFoundError(StorageError, LookupError):
    """No user with the requested id exists."""


class DuplicateUserError(StorageError):
    """A user with the same email address already exists."""
