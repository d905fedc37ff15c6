"""Content models for newsletter generation."""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from newsly.core.errors import SpecMalformedError

TONES = ("professional", "casual", "technical")
DEFAULT_TONE = "professional"

LENGTH_STORY_COUNTS = {"short": 3, "medium": 5, "long": 7}
DEFAULT_LENGTH = "medium"

DEFAULT_CATEGORY = "technology"

# Stored shape of a brand new user's spec
DEFAULT_USER_SPEC: Dict[str, Any] = {
    "preferences": {
        "topics": ["technology", "startups", "programming"],
        "excludeTopics": [],
        "sendTime": "09:00",
        "timezone": "UTC",
        "frequency": "daily",
    },
    "tone": "professional",
    "length": "medium",
    "includeAnalysis": True,
}


def story_count_for(length: Optional[str]) -> int:
    """Map a newsletter length to the number of stories it carries.

    Unknown or missing lengths count as ``medium``.
    """
    return LENGTH_STORY_COUNTS.get(length or "", LENGTH_STORY_COUNTS[DEFAULT_LENGTH])


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple, set)):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _non_negative_int(value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return 0
    return max(number, 0)


class PreferenceSpec(BaseModel):
    """A user's newsletter preferences with every field resolved.

    Values that are missing, mistyped or outside the known choices degrade
    to the documented defaults so that rendering never fails.
    """

    topics: List[str] = Field(default_factory=list, description="Interest keywords")
    exclude_topics: List[str] = Field(
        default_factory=list, description="Topics to suppress"
    )
    tone: str = Field(DEFAULT_TONE, description="professional, casual or technical")
    length: str = Field(DEFAULT_LENGTH, description="short, medium or long")
    include_analysis: bool = Field(False, description="Add analysis sentences")
    send_time: str = Field("09:00", description="Preferred delivery time")
    timezone: str = Field("UTC", description="Delivery timezone")
    frequency: str = Field("daily", description="Delivery frequency")

    @field_validator("topics", "exclude_topics", mode="before")
    @classmethod
    def _coerce_topics(cls, value: Any) -> List[str]:
        return _string_list(value)

    @field_validator("tone", mode="before")
    @classmethod
    def _coerce_tone(cls, value: Any) -> str:
        if isinstance(value, str) and value.strip().lower() in TONES:
            return value.strip().lower()
        return DEFAULT_TONE

    @field_validator("length", mode="before")
    @classmethod
    def _coerce_length(cls, value: Any) -> str:
        if isinstance(value, str) and value.strip().lower() in LENGTH_STORY_COUNTS:
            return value.strip().lower()
        return DEFAULT_LENGTH

    @field_validator("include_analysis", mode="before")
    @classmethod
    def _coerce_analysis(cls, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in {"true", "1", "yes", "on"}
        if isinstance(value, (int, float)):
            return bool(value)
        return False

    @field_validator("send_time", "timezone", "frequency", mode="before")
    @classmethod
    def _coerce_schedule(cls, value: Any, info) -> str:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return cls.model_fields[info.field_name].default

    @property
    def story_count(self) -> int:
        return story_count_for(self.length)

    def to_storage_dict(self) -> Dict[str, Any]:
        """Serialize back to the nested camelCase shape used in storage."""
        return {
            "preferences": {
                "topics": list(self.topics),
                "excludeTopics": list(self.exclude_topics),
                "sendTime": self.send_time,
                "timezone": self.timezone,
                "frequency": self.frequency,
            },
            "tone": self.tone,
            "length": self.length,
            "includeAnalysis": self.include_analysis,
        }


def _first(sources: List[Dict[str, Any]], *keys: str) -> Any:
    for source in sources:
        for key in keys:
            if source.get(key) is not None:
                return source[key]
    return None


def parse_preference_spec(
    raw: Union[str, bytes, Dict[str, Any], PreferenceSpec, None],
) -> PreferenceSpec:
    """Parse a stored preference spec into a :class:`PreferenceSpec`.

    Accepts a raw JSON string, an already-decoded dict or a spec instance.
    Both the nested storage shape (``{"preferences": {"topics": ...},
    "tone": ...}``) and flat camelCase/snake_case keys are understood;
    unknown keys are ignored.

    Raises:
        SpecMalformedError: If a string is given that is not a JSON object.
    """
    if isinstance(raw, PreferenceSpec):
        return raw

    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise SpecMalformedError(f"Preference spec is not valid JSON: {e}") from e
    else:
        data = raw

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise SpecMalformedError(
            f"Preference spec must be a JSON object, got {type(data).__name__}"
        )

    nested = data.get("preferences")
    if isinstance(nested, list):
        # Older records stored the topic list directly under "preferences"
        nested = {"topics": nested}
    elif not isinstance(nested, dict):
        nested = {}

    nested_first = [nested, data]
    top_first = [data, nested]

    return PreferenceSpec(
        topics=_first(nested_first, "topics"),
        exclude_topics=_first(nested_first, "excludeTopics", "exclude_topics"),
        tone=_first(top_first, "tone"),
        length=_first(top_first, "length"),
        include_analysis=_first(
            top_first, "includeAnalysis", "include_analysis", "analysis"
        ),
        send_time=_first(nested_first, "sendTime", "send_time"),
        timezone=_first(nested_first, "timezone"),
        frequency=_first(nested_first, "frequency"),
    )


class Story(BaseModel):
    """A single HackerNews story selected for a newsletter."""

    id: Union[int, str] = Field(..., description="Story identifier")
    title: str = Field(..., description="Story headline")
    url: str = Field(..., description="Link to the story")
    points: int = Field(0, ge=0, description="HackerNews score")
    comments: int = Field(0, ge=0, description="Comment count")
    author: str = Field("unknown", description="Submitter")
    category: str = Field(DEFAULT_CATEGORY, description="Topic category")

    @field_validator("points", "comments", mode="before")
    @classmethod
    def _coerce_counts(cls, value: Any) -> int:
        return _non_negative_int(value)

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: Any) -> str:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return DEFAULT_CATEGORY


class NewsletterContent(BaseModel):
    """A finished newsletter: subject line and HTML body."""

    subject: str = Field(..., min_length=1, description="Email subject")
    content: str = Field(..., min_length=1, description="Self-contained HTML body")


class User(BaseModel):
    """A newsletter recipient and their stored preference spec."""

    id: str = Field(..., description="Unique identifier")
    email: str = Field(..., description="Delivery address")
    name: Optional[str] = Field(None, description="Display name")
    spec: str = Field(..., description="Preference spec as a JSON string")
    created_at: datetime = Field(
        default_factory=datetime.now, description="Creation time"
    )


class NewsletterRecord(BaseModel):
    """A newsletter that was generated and sent to a user."""

    id: str = Field(..., description="Unique identifier")
    user_id: str = Field(..., description="Recipient user id")
    subject: str = Field(..., description="Email subject")
    content: str = Field(..., description="HTML body")
    sent_at: datetime = Field(default_factory=datetime.now, description="Send time")
    user_email: Optional[str] = Field(None, description="Recipient email")
    user_name: Optional[str] = Field(None, description="Recipient name")
