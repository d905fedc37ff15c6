"""Keyword based story categorization."""

from typing import Tuple

from newsly.models.content import DEFAULT_CATEGORY

# Checked in order, first match wins
CATEGORY_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("ai", ("ai", "machine learning", "gpt")),
    ("frontend", ("react", "vue", "frontend")),
    ("backend", ("backend", "api", "server")),
    ("security", ("security", "vulnerability", "hack")),
    ("blockchain", ("blockchain", "crypto", "bitcoin")),
    ("startups", ("startup", "funding", "vc")),
    ("programming", ("programming", "code", "developer")),
    ("databases", ("database", "sql", "nosql")),
    ("cloud", ("cloud", "aws", "azure")),
    ("mobile", ("mobile", "ios", "android")),
)

CATEGORIES = tuple(category for category, _ in CATEGORY_RULES) + (DEFAULT_CATEGORY,)


def categorize(title: str) -> str:
    """Return the topic category for a story title.

    Keywords are matched as plain substrings of the lower-cased title, so
    short keywords also hit inside longer words ("ai" in "blockchain").
    Titles that match nothing are ``technology``.
    """
    title_lower = (title or "").lower()
    for category, keywords in CATEGORY_RULES:
        if any(keyword in title_lower for keyword in keywords):
            return category
    return DEFAULT_CATEGORY
