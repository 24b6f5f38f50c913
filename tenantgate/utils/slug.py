"""Tenant name and slug sanitization utilities."""

import re

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^a-z0-9-]")
_HYPHEN_RUNS = re.compile(r"-{2,}")


def slugify(name: str) -> str:
    """Derive a URL-safe slug: lowercase, whitespace runs become hyphens.

    Characters outside ``[a-z0-9-]`` are dropped, e.g.
    ``"Test Slug With Spaces!@#$"`` -> ``"test-slug-with-spaces"``.
    """
    slug = _WHITESPACE.sub("-", name.strip().lower())
    slug = _DISALLOWED.sub("", slug)
    slug = _HYPHEN_RUNS.sub("-", slug)
    return slug.strip("-")


def normalize_name(name: str) -> str:
    """Collapse internal whitespace and strip the ends of a display name."""
    return _WHITESPACE.sub(" ", name).strip()
