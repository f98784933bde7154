"""Filename and slug helpers shared by reference discovery and export."""

import re

_DISALLOWED = re.compile(r"[^A-Za-z0-9\s-]", re.ASCII)
_WHITESPACE = re.compile(r"\s+", re.ASCII)


def sanitize_filename(name: str) -> str:
    """Turn a title into a filesystem-safe, lower-case slug.

    Only ASCII letters, digits, whitespace and hyphens survive; whitespace
    runs become single hyphens. The function is idempotent.
    """
    cleaned = _DISALLOWED.sub("", name).strip()
    return _WHITESPACE.sub("-", cleaned).lower().strip("-")


def title_slug(title: str | None) -> str:
    """Slug for a page title, never empty."""
    return sanitize_filename(title or "") or "untitled"
