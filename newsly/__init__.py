"""Newsly: personalized HackerNews digests by email."""

__version__ = "1.0.0"
